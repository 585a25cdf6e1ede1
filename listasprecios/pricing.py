"""Price formula.

    final_admin = base * (1 + markup/100) * (1 + impuestos/100) * (1 + iva/100)
    final_user  = final_admin * (1 - discount/100)

Percentages are expressed 0-100. Nothing is clamped here; range checks belong
to the callers (request schemas, user administration).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

HUNDRED = Decimal("100")
ONE = Decimal("1")
PRICE_QUANT = Decimal("0.0001")


def dec(x: float | int | str | Decimal | None) -> Decimal:
    if x is None:
        return Decimal("0")
    return x if isinstance(x, Decimal) else Decimal(str(x))


def round_price(x: Decimal) -> Decimal:
    return x.quantize(PRICE_QUANT, rounding=ROUND_HALF_UP)


def compute_admin_price(base_price_usd, markup_pct, impuestos_pct, iva_pct) -> Decimal:
    price = dec(base_price_usd)
    price = price * (ONE + dec(markup_pct) / HUNDRED)
    price = price * (ONE + dec(impuestos_pct) / HUNDRED)
    price = price * (ONE + dec(iva_pct) / HUNDRED)
    return price


def compute_user_price(final_admin_usd, discount_pct) -> Decimal:
    return dec(final_admin_usd) * (ONE - dec(discount_pct) / HUNDRED)


@dataclass(frozen=True)
class Pricing:
    price_item_id: int
    base_price_usd: Decimal
    markup_pct: Decimal
    impuestos_pct: Decimal
    iva_pct: Decimal
    final_admin_usd: Decimal
    price_for_user_usd: Decimal
    effective_date: datetime | None

    def to_dict(self) -> dict:
        return {
            "priceItemId": self.price_item_id,
            "basePriceUsd": float(self.base_price_usd),
            "markupPct": float(self.markup_pct),
            "impuestosPct": float(self.impuestos_pct),
            "ivaPct": float(self.iva_pct),
            "finalAdminUsd": float(self.final_admin_usd),
            "priceForUserUsd": float(self.price_for_user_usd),
            "effectiveDate": self.effective_date.isoformat() if self.effective_date else None,
        }


def price_item_pricing(item, discount_pct, effective_date: datetime | None = None) -> Pricing:
    """Pricing block for a PriceItem row as seen by a caller with ``discount_pct``.

    The user price is derived from the unrounded admin price; both are then
    rounded to four decimals.
    """
    final_admin = compute_admin_price(item.base_price_usd, item.markup_pct, item.impuestos_pct, item.iva_pct)
    final_user = compute_user_price(final_admin, discount_pct)
    if effective_date is None and getattr(item, "price_list", None) is not None:
        effective_date = item.price_list.effective_date
    return Pricing(
        price_item_id=item.id,
        base_price_usd=dec(item.base_price_usd),
        markup_pct=dec(item.markup_pct),
        impuestos_pct=dec(item.impuestos_pct),
        iva_pct=dec(item.iva_pct),
        final_admin_usd=round_price(final_admin),
        price_for_user_usd=round_price(final_user),
        effective_date=effective_date,
    )
