from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.orm import Session

from listasprecios.errors import ConflictError, NoRowsToImport, NotFoundError, SupplierRequired
from listasprecios.excel_import import ImportRow
from listasprecios.models import PriceItem, PriceList, Product, Supplier
from listasprecios.pricing import dec, price_item_pricing
from listasprecios.repos import PriceItemRepo, PriceListRepo, ProductRepo, SupplierRepo

logger = logging.getLogger(__name__)

PRICE_FIELDS = ("base_price_usd", "markup_pct", "impuestos_pct", "iva_pct")


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def naive_utc(dt: datetime | None) -> datetime | None:
    """Stored timestamps are naive UTC; aware inputs are converted, not truncated."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def page_window(page: Any, page_size: Any, *, default_size: int = 20, max_size: int = 100) -> tuple[int, int, int]:
    """Clamp 1-based paging input; returns (page, page_size, offset)."""
    try:
        p = int(page)
    except (TypeError, ValueError):
        p = 1
    try:
        size = int(page_size)
    except (TypeError, ValueError):
        size = default_size
    p = max(1, p)
    size = min(max_size, max(1, size))
    return p, size, (p - 1) * size


def supplier_to_dict(s: Supplier) -> dict:
    return {
        "id": s.id,
        "name": s.name,
        "slug": s.slug,
        "websiteUrl": s.website_url,
        "isCrestron": bool(s.is_crestron),
        "createdAt": _iso(s.created_at),
    }


def price_list_to_dict(pl: PriceList, items_count: int | None = None) -> dict:
    out = {
        "id": pl.id,
        "supplierId": pl.supplier_id,
        "sourceLabel": pl.source_label,
        "effectiveDate": _iso(pl.effective_date),
        "rawCurrency": pl.raw_currency,
        "createdAt": _iso(pl.created_at),
    }
    if pl.supplier is not None:
        out["supplier"] = {"id": pl.supplier.id, "name": pl.supplier.name}
    if items_count is not None:
        out["itemsCount"] = int(items_count)
    return out


def product_to_dict(p: Product, pricing: dict | None = None) -> dict:
    out = {
        "id": p.id,
        "supplierId": p.supplier_id,
        "code": p.code,
        "name": p.name,
        "brand": p.brand,
        "family": p.family,
        "description": p.description,
        "photoUrl": p.photo_url,
        "stockMiami": p.stock_miami,
        "stockLaredo": p.stock_laredo,
        "manufacturerInfo": p.manufacturer_info,
        "createdAt": _iso(p.created_at),
        "updatedAt": _iso(p.updated_at),
        "pricing": pricing,
    }
    if p.supplier is not None:
        out["supplier"] = {"id": p.supplier.id, "name": p.supplier.name}
    return out


def price_item_to_dict(item: PriceItem) -> dict:
    pricing = price_item_pricing(item, 0)
    out = {
        "id": item.id,
        "priceListId": item.price_list_id,
        "productId": item.product_id,
        "basePriceUsd": float(pricing.base_price_usd),
        "markupPct": float(pricing.markup_pct),
        "impuestosPct": float(pricing.impuestos_pct),
        "ivaPct": float(pricing.iva_pct),
        "finalAdminUsd": float(pricing.final_admin_usd),
        "createdAt": _iso(item.created_at),
        "priceList": price_list_to_dict(item.price_list),
    }
    if item.product is not None:
        out["product"] = {"id": item.product.id, "code": item.product.code, "name": item.product.name}
    return out


class CatalogService:
    """Turns extracted rows into a PriceList batch.

    Runs inside the caller's session; with ``session_scope`` the whole batch is
    one transaction, so a failing row leaves no partial PriceList behind.
    """

    def __init__(self, session: Session):
        self.session = session
        self.suppliers = SupplierRepo(session)
        self.products = ProductRepo(session)
        self.price_lists = PriceListRepo(session)

    def resolve_supplier(self, supplier_id: int | None = None, supplier_name: str | None = None) -> Supplier:
        if supplier_id is not None:
            supplier = self.suppliers.get(int(supplier_id))
            if supplier is None:
                raise NotFoundError(f"Proveedor {supplier_id} no existe", code="SUPPLIER_NOT_FOUND")
            return supplier

        name = (supplier_name or "").strip()
        if not name:
            raise SupplierRequired()

        supplier = self.suppliers.find_by_name(name)
        if supplier is None:
            supplier = self.suppliers.create(name=name)
            logger.info("supplier %r created during import (id=%s)", name, supplier.id)
        return supplier

    def import_batch(
        self,
        rows: list[ImportRow],
        *,
        supplier_id: int | None = None,
        supplier_name: str | None = None,
        source_label: str | None = None,
        effective_date: datetime | None = None,
        raw_currency: str | None = None,
    ) -> PriceList:
        if not rows:
            raise NoRowsToImport()

        supplier = self.resolve_supplier(supplier_id, supplier_name)
        price_list = self.price_lists.create(
            supplier.id,
            source_label=source_label or None,
            effective_date=naive_utc(effective_date) or datetime.utcnow(),
            raw_currency=(raw_currency or "").strip().upper() or "USD",
        )

        known = self.products.get_by_codes(supplier.id, [r.code for r in rows])
        created = 0
        for row in rows:
            product = known.get(row.code)
            if product is None:
                product = self._new_product(supplier.id, row)
                known[row.code] = product
                created += 1
            else:
                self._apply_row(product, row)

            self.session.add(
                PriceItem(
                    price_list=price_list,
                    product=product,
                    base_price_usd=dec(row.base_price_usd),
                    markup_pct=dec(row.markup_pct),
                    impuestos_pct=dec(row.impuestos_pct),
                    iva_pct=dec(row.iva_pct),
                )
            )

        self.session.flush()
        logger.info(
            "price list %s imported for supplier %s: %d rows, %d new products",
            price_list.id,
            supplier.id,
            len(rows),
            created,
        )
        return price_list

    def _new_product(self, supplier_id: int, row: ImportRow) -> Product:
        data = row.present()
        product = Product(supplier_id=supplier_id, code=row.code, name=data.pop("name", None) or row.code)
        for key, value in data.items():
            setattr(product, key, value)
        self.session.add(product)
        return product

    @staticmethod
    def _apply_row(product: Product, row: ImportRow) -> None:
        for key, value in row.present().items():
            # An empty name never replaces a known one.
            if key == "name" and not value:
                continue
            setattr(product, key, value)


class ProductService:
    def __init__(self, session: Session):
        self.session = session
        self.products = ProductRepo(session)

    def _priced(self, products: Iterable[Product], discount_pct) -> list[dict]:
        products = list(products)
        latest = self.products.latest_price_items([p.id for p in products])
        out: list[dict] = []
        for p in products:
            item = latest.get(p.id)
            pricing = price_item_pricing(item, discount_pct).to_dict() if item is not None else None
            out.append(product_to_dict(p, pricing))
        return out

    def list_products(
        self,
        *,
        q: str | None = None,
        supplier_id: int | None = None,
        offset: int = 0,
        limit: int = 20,
        discount_pct=0,
    ) -> dict:
        rows, total = self.products.search(q=q or "", supplier_id=supplier_id, offset=offset, limit=limit)
        return {"items": self._priced(rows, discount_pct), "total": total}

    def get_product(self, product_id: int, discount_pct=0) -> dict:
        product = self.products.get(product_id)
        if product is None:
            raise NotFoundError(f"Producto {product_id} no encontrado")
        return self._priced([product], discount_pct)[0]

    def priced_selection(self, ids: list[int], discount_pct=0) -> list[dict]:
        return self._priced(self.products.get_many(ids), discount_pct)

    def update_product(self, product_id: int, changes: dict[str, Any]) -> dict:
        product = self.products.get(product_id)
        if product is None:
            raise NotFoundError(f"Producto {product_id} no encontrado")
        for key, value in changes.items():
            if key == "name" and not value:
                continue
            if key == "photo_url" and value is not None:
                value = str(value)
            setattr(product, key, value)
        self.session.flush()
        return self._priced([product], 0)[0]


class PriceItemService:
    def __init__(self, session: Session):
        self.session = session
        self.items = PriceItemRepo(session)

    def list_items(
        self, *, product_id: int | None = None, price_list_id: int | None = None, latest_only: bool = False
    ) -> list[dict]:
        limit = 1 if (latest_only and product_id is not None) else 200
        rows = self.items.list(product_id=product_id, price_list_id=price_list_id, limit=limit)
        return [price_item_to_dict(it) for it in rows]

    def get_item(self, item_id: int) -> dict:
        item = self.items.get(item_id)
        if item is None:
            raise NotFoundError(f"Ítem de precio {item_id} no encontrado")
        return price_item_to_dict(item)

    def update_item(self, item_id: int, changes: dict[str, Any]) -> dict:
        item = self.items.get(item_id)
        if item is None:
            raise NotFoundError(f"Ítem de precio {item_id} no encontrado")
        for key in PRICE_FIELDS:
            if key in changes:
                setattr(item, key, dec(changes[key]))
        self.session.flush()
        logger.info("price item %s updated: %s", item_id, ", ".join(k for k in PRICE_FIELDS if k in changes))
        return price_item_to_dict(item)

    def bulk_update(self, ids: list[int], changes: dict[str, Any]) -> dict:
        values = {k: dec(changes[k]) for k in PRICE_FIELDS if k in changes}
        count = self.items.update_many(sorted(set(ids)), values)
        logger.info("bulk price update: %d of %d items", count, len(set(ids)))
        return {"count": count}


class SupplierService:
    def __init__(self, session: Session):
        self.session = session
        self.suppliers = SupplierRepo(session)

    def list_suppliers(self) -> list[dict]:
        return [supplier_to_dict(s) for s in self.suppliers.list()]

    def _check_unique(self, name: str | None, slug: str | None, exclude_id: int | None = None) -> None:
        if name:
            other = self.suppliers.find_by_name(name)
            if other is not None and other.id != exclude_id:
                raise ConflictError(f"Ya existe un proveedor llamado {other.name}", code="SUPPLIER_UNIQUE_CONSTRAINT")
        if slug:
            other = self.suppliers.find_by_slug(slug)
            if other is not None and other.id != exclude_id:
                raise ConflictError(f"El slug {slug} ya está en uso", code="SUPPLIER_UNIQUE_CONSTRAINT")

    def create_supplier(self, data: dict[str, Any]) -> dict:
        self._check_unique(data.get("name"), data.get("slug"))
        website = data.get("website_url")
        supplier = self.suppliers.create(
            name=data["name"],
            slug=data.get("slug"),
            website_url=str(website) if website is not None else None,
            is_crestron=bool(data.get("is_crestron") or False),
        )
        return supplier_to_dict(supplier)

    def update_supplier(self, supplier_id: int, changes: dict[str, Any]) -> dict:
        supplier = self.suppliers.get(supplier_id)
        if supplier is None:
            raise NotFoundError(f"Proveedor {supplier_id} no encontrado")
        if changes.get("name") is None:
            changes.pop("name", None)
        self._check_unique(changes.get("name"), changes.get("slug"), exclude_id=supplier.id)
        for key, value in changes.items():
            if key == "website_url" and value is not None:
                value = str(value)
            if key == "is_crestron":
                value = bool(value)
            setattr(supplier, key, value)
        self.session.flush()
        return supplier_to_dict(supplier)


class PriceListService:
    def __init__(self, session: Session):
        self.price_lists = PriceListRepo(session)

    def list_price_lists(self, supplier_id: int | None = None) -> list[dict]:
        return [price_list_to_dict(pl, n) for pl, n in self.price_lists.list_with_counts(supplier_id)]
