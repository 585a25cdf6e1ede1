from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator, model_validator


class _Request(BaseModel):
    # Accept camelCase from the UI and snake_case from scripts.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SupplierCreate(_Request):
    name: str = Field(min_length=2)
    slug: Optional[str] = Field(default=None, min_length=2)
    website_url: Optional[HttpUrl] = Field(default=None, alias="websiteUrl")
    is_crestron: Optional[bool] = Field(default=None, alias="isCrestron")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("name must have at least 2 characters")
        return v


class SupplierUpdate(SupplierCreate):
    name: Optional[str] = Field(default=None, min_length=2)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class ProductUpdate(_Request):
    name: Optional[str] = Field(default=None, min_length=1)
    brand: Optional[str] = None
    family: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[HttpUrl] = Field(default=None, alias="photoUrl")
    stock_miami: Optional[int] = Field(default=None, alias="stockMiami")
    stock_laredo: Optional[int] = Field(default=None, alias="stockLaredo")
    manufacturer_info: Any = Field(default=None, alias="manufacturerInfo")


class PriceItemUpdate(_Request):
    base_price_usd: Optional[float] = Field(default=None, ge=0, alias="basePriceUsd")
    markup_pct: Optional[float] = Field(default=None, ge=0, le=100, alias="markupPct")
    impuestos_pct: Optional[float] = Field(default=None, ge=0, le=100, alias="impuestosPct")
    iva_pct: Optional[float] = Field(default=None, ge=0, le=100, alias="ivaPct")

    @field_validator("base_price_usd", "markup_pct", "impuestos_pct", "iva_pct")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("value may be omitted but not null")
        return v


class PriceItemBulkUpdate(PriceItemUpdate):
    ids: list[int] = Field(min_length=1)

    @model_validator(mode="after")
    def _needs_a_field(self):
        if not (self.model_fields_set & {"base_price_usd", "markup_pct", "impuestos_pct", "iva_pct"}):
            raise ValueError("At least one field to update is required")
        return self


class ImportItem(_Request):
    code: str = Field(min_length=1)
    name: Optional[str] = None
    brand: Optional[str] = None
    family: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[HttpUrl] = Field(default=None, alias="photoUrl")
    base_price_usd: float = Field(ge=0, alias="basePriceUsd")
    markup_pct: float = Field(default=0, ge=0, alias="markupPct")
    impuestos_pct: float = Field(default=0, ge=0, alias="impuestosPct")
    iva_pct: float = Field(default=0, ge=0, alias="ivaPct")
    stock_miami: Optional[int] = Field(default=None, alias="stockMiami")
    stock_laredo: Optional[int] = Field(default=None, alias="stockLaredo")
    manufacturer_info: Any = Field(default=None, alias="manufacturerInfo")

    def as_row_data(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        if "photo_url" in data and data["photo_url"] is not None:
            data["photo_url"] = str(data["photo_url"])
        data["base_price_usd"] = self.base_price_usd
        return data


class PriceListImport(_Request):
    supplier_id: Optional[int] = Field(default=None, alias="supplierId")
    supplier_name: Optional[str] = Field(default=None, alias="supplierName")
    source_label: Optional[str] = Field(default=None, alias="sourceLabel")
    effective_date: Optional[datetime] = Field(default=None, alias="effectiveDate")
    raw_currency: str = Field(default="USD", alias="rawCurrency")
    items: list[ImportItem] = Field(min_length=1)


class ProductListQuery(_Request):
    q: Optional[str] = None
    supplier_id: Optional[int] = Field(default=None, alias="supplierId")
    page: int = 1
    page_size: int = Field(default=20, alias="pageSize")

    @field_validator("q")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None


class ExportRequest(_Request):
    ids: list[int] = Field(min_length=1, max_length=1000)


Role = Literal["admin", "user"]


def _normalize_email(v: str) -> str:
    v = (v or "").strip().lower()
    if "@" not in v or "." not in v:
        raise ValueError("email inválido")
    return v


class UserCreate(_Request):
    email: str
    password: Optional[str] = None
    role: Role = "user"
    discount_pct: float = Field(default=0, ge=0, le=100, alias="descuentoPct")
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalize_email(v)


class UserUpdate(_Request):
    email: Optional[str] = None
    role: Optional[Role] = None
    discount_pct: Optional[float] = Field(default=None, ge=0, le=100, alias="descuentoPct")
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    @field_validator("email")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _normalize_email(v)


class PasswordReset(_Request):
    new_password: Optional[str] = Field(default=None, alias="newPassword")
