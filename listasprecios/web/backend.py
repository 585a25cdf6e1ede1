from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any

from listasprecios.accounts import UserService
from listasprecios.db import check_connection, session_scope
from listasprecios.errors import CatalogImportError
from listasprecios.excel_export import export_selection_to_excel
from listasprecios.excel_import import ExcelImporter, ImportRow
from listasprecios.schemas import (
    ExportRequest,
    PasswordReset,
    PriceItemBulkUpdate,
    PriceItemUpdate,
    PriceListImport,
    ProductListQuery,
    ProductUpdate,
    SupplierCreate,
    SupplierUpdate,
    UserCreate,
    UserUpdate,
)
from listasprecios.services import (
    CatalogService,
    PriceItemService,
    PriceListService,
    ProductService,
    SupplierService,
    page_window,
    price_list_to_dict,
)
from listasprecios.settings import Settings

logger = logging.getLogger(__name__)


class ApiBackend:
    """One method per API operation; each call runs in its own session scope."""

    def __init__(self, session_factory, settings: Settings):
        self._session_factory = session_factory
        self._settings = settings

    def health(self) -> dict:
        return {"ok": True, "app": self._settings.APP_NAME, "database": check_connection(self._session_factory)}

    def caller_discount(self, user_id: Any) -> Decimal:
        if user_id in (None, ""):
            return Decimal("0")
        with session_scope(self._session_factory) as session:
            return UserService(session).caller_discount(user_id)

    # --- Suppliers ---
    def list_suppliers(self) -> dict:
        with session_scope(self._session_factory) as session:
            return {"items": SupplierService(session).list_suppliers()}

    def create_supplier(self, payload: dict) -> dict:
        data = SupplierCreate.model_validate(payload).model_dump(exclude_unset=True)
        with session_scope(self._session_factory) as session:
            return SupplierService(session).create_supplier(data)

    def update_supplier(self, supplier_id: int, payload: dict) -> dict:
        changes = SupplierUpdate.model_validate(payload).model_dump(exclude_unset=True)
        with session_scope(self._session_factory) as session:
            return SupplierService(session).update_supplier(supplier_id, changes)

    # --- Products ---
    def list_products(self, params: dict, discount_pct: Decimal) -> dict:
        query = ProductListQuery.model_validate(params)
        page, size, offset = page_window(
            query.page,
            query.page_size,
            default_size=self._settings.PAGE_SIZE_DEFAULT,
            max_size=self._settings.PAGE_SIZE_MAX,
        )
        with session_scope(self._session_factory) as session:
            data = ProductService(session).list_products(
                q=query.q, supplier_id=query.supplier_id, offset=offset, limit=size, discount_pct=discount_pct
            )
        return {"page": page, "pageSize": size, "total": data["total"], "items": data["items"]}

    def get_product(self, product_id: int, discount_pct: Decimal) -> dict:
        with session_scope(self._session_factory) as session:
            return ProductService(session).get_product(product_id, discount_pct)

    def update_product(self, product_id: int, payload: dict) -> dict:
        changes = ProductUpdate.model_validate(payload).model_dump(exclude_unset=True)
        with session_scope(self._session_factory) as session:
            return ProductService(session).update_product(product_id, changes)

    def export_products(self, payload: dict, discount_pct: Decimal) -> bytes:
        ids = ExportRequest.model_validate(payload).ids
        with session_scope(self._session_factory) as session:
            products = ProductService(session).priced_selection(ids, discount_pct)
        return export_selection_to_excel(products, title=self._settings.APP_NAME)

    # --- Price lists ---
    def list_price_lists(self, supplier_id: int | None) -> dict:
        with session_scope(self._session_factory) as session:
            return {"items": PriceListService(session).list_price_lists(supplier_id)}

    def import_price_list(self, payload: dict) -> dict:
        dto = PriceListImport.model_validate(payload)
        rows = [ImportRow.from_mapping(it.as_row_data()) for it in dto.items]
        with session_scope(self._session_factory) as session:
            pl = CatalogService(session).import_batch(
                rows,
                supplier_id=dto.supplier_id,
                supplier_name=dto.supplier_name,
                source_label=dto.source_label,
                effective_date=dto.effective_date,
                raw_currency=dto.raw_currency,
            )
            return {"ok": True, "priceList": price_list_to_dict(pl, len(rows)), "imported": len(rows)}

    def import_xlsx(
        self,
        xlsx_path: Path,
        *,
        supplier_id: int | None = None,
        supplier_name: str | None = None,
        source_label: str | None = None,
        raw_currency: str | None = None,
    ) -> dict:
        extracted = ExcelImporter(xlsx_path).read_rows()
        if not extracted.rows:
            raise CatalogImportError(
                "No se encontraron filas con código y precio (revisa hoja/encabezados).",
                code="NO_ROWS_PARSED",
                details={"notes": extracted.notes},
            )
        logger.info("%s: %d rows extracted, %d notes", xlsx_path.name, len(extracted.rows), len(extracted.notes))

        with session_scope(self._session_factory) as session:
            pl = CatalogService(session).import_batch(
                extracted.rows,
                supplier_id=supplier_id,
                supplier_name=supplier_name,
                source_label=source_label,
                raw_currency=raw_currency or self._settings.DEFAULT_CURRENCY,
            )
            price_list = price_list_to_dict(pl, len(extracted.rows))

        return {"ok": True, "priceList": price_list, "imported": len(extracted.rows), "notes": extracted.notes}

    # --- Price items ---
    def list_price_items(self, product_id: int | None, price_list_id: int | None, latest_only: bool) -> dict:
        with session_scope(self._session_factory) as session:
            items = PriceItemService(session).list_items(
                product_id=product_id, price_list_id=price_list_id, latest_only=latest_only
            )
        return {"items": items}

    def get_price_item(self, item_id: int) -> dict:
        with session_scope(self._session_factory) as session:
            return PriceItemService(session).get_item(item_id)

    def update_price_item(self, item_id: int, payload: dict) -> dict:
        changes = PriceItemUpdate.model_validate(payload).model_dump(exclude_unset=True)
        with session_scope(self._session_factory) as session:
            return PriceItemService(session).update_item(item_id, changes)

    def bulk_update_price_items(self, payload: dict) -> dict:
        dto = PriceItemBulkUpdate.model_validate(payload)
        changes = dto.model_dump(exclude_unset=True, exclude={"ids"})
        with session_scope(self._session_factory) as session:
            return PriceItemService(session).bulk_update(dto.ids, changes)

    # --- Users ---
    def list_users(self) -> dict:
        with session_scope(self._session_factory) as session:
            return {"items": UserService(session).list_users()}

    def create_user(self, payload: dict) -> dict:
        data = UserCreate.model_validate(payload).model_dump()
        with session_scope(self._session_factory) as session:
            return UserService(session).create_user(data)

    def update_user(self, user_id: int, payload: dict) -> dict:
        changes = UserUpdate.model_validate(payload).model_dump(exclude_unset=True)
        with session_scope(self._session_factory) as session:
            return UserService(session).update_user(user_id, changes)

    def reset_password(self, user_id: int, payload: dict) -> dict:
        new_password = PasswordReset.model_validate(payload).new_password
        with session_scope(self._session_factory) as session:
            return UserService(session).reset_password(user_id, new_password)
