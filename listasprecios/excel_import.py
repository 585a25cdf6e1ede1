from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from listasprecios.errors import CatalogImportError, EmptyOrMalformedFile
from listasprecios.normalize import parse_currency_amount, parse_stock_quantity

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for "the row says nothing about this field"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class ImportRow:
    code: str
    base_price_usd: float
    name: Any = UNSET
    brand: Any = UNSET
    family: Any = UNSET
    description: Any = UNSET
    photo_url: Any = UNSET
    stock_miami: Any = UNSET
    stock_laredo: Any = UNSET
    manufacturer_info: Any = UNSET
    markup_pct: float = 0
    impuestos_pct: float = 0
    iva_pct: float = 0

    # Fields an upsert may overwrite on an existing product.
    PRODUCT_FIELDS = (
        "name",
        "brand",
        "family",
        "description",
        "photo_url",
        "stock_miami",
        "stock_laredo",
        "manufacturer_info",
    )

    def present(self) -> dict[str, Any]:
        return {f: getattr(self, f) for f in self.PRODUCT_FIELDS if getattr(self, f) is not UNSET}

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "ImportRow":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        for pct in ("markup_pct", "impuestos_pct", "iva_pct"):
            if kwargs.get(pct) is None:
                kwargs.pop(pct, None)
        return cls(**kwargs)


@dataclass
class ExtractResult:
    rows: list[ImportRow] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


class ExcelImporter:
    """Reads supplier catalogs laid out as: title row, header row, data rows."""

    HEADER_ROW = 1  # 0-based: second row of the sheet

    # Header vocabulary, matched after strip + casefold.
    HEADER_ALIASES: dict[str, list[str]] = {
        "code": ["código de artículo"],
        "name": ["artículo"],
        "final_price": ["precio final"],
        "currency": ["moneda"],
        "laredo": ["laredo"],
        "miami": ["miami"],
        "manufacturer_info": ["info fábrica"],
        "brand": ["marca"],
        "family": ["familia"],
        "description": ["descripcion", "descripción"],
        "photo": ["foto"],
        "price": ["precio"],
    }

    def __init__(self, xlsx_path: Path, worksheet_name: str | None = None):
        self.xlsx_path = Path(xlsx_path)
        self.worksheet_name = worksheet_name

    @staticmethod
    def _norm(x: Any) -> str:
        return str(x if x is not None else "").strip().casefold()

    @staticmethod
    def _text(value: Any) -> str:
        # Excel stores integer-looking codes as floats (12345.0).
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    def _column_map(self, header_vals: list[Any]) -> dict[str, int]:
        normalized = [self._norm(v) for v in header_vals]
        cols: dict[str, int] = {}
        for key, aliases in self.HEADER_ALIASES.items():
            cols[key] = -1
            for alias in aliases:
                target = self._norm(alias)
                if target in normalized:
                    cols[key] = normalized.index(target)
                    break
        return cols

    def _read_raw_rows(self) -> list[list[Any]]:
        if not self.xlsx_path.exists():
            raise CatalogImportError(f"Archivo no encontrado: {self.xlsx_path.name}", code="FILE_NOT_FOUND")

        try:
            wb = load_workbook(filename=self.xlsx_path, data_only=True, read_only=True)
        except Exception as e:
            raise EmptyOrMalformedFile(f"No se pudo leer el archivo XLSX: {e}") from e

        try:
            if self.worksheet_name and self.worksheet_name in wb.sheetnames:
                ws = wb[self.worksheet_name]
            else:
                ws = wb.worksheets[0]
            return [list(r) for r in ws.iter_rows(values_only=True)]
        finally:
            wb.close()

    def read_rows(self) -> ExtractResult:
        raw = self._read_raw_rows()
        if len(raw) < 3:
            raise EmptyOrMalformedFile()

        cols = self._column_map(raw[self.HEADER_ROW])
        missing = [k for k, idx in cols.items() if idx < 0]
        if missing:
            logger.debug("columns not found in %s: %s", self.xlsx_path.name, ", ".join(missing))

        result = ExtractResult()
        for row_vals in raw[self.HEADER_ROW + 1 :]:
            row = self._build_row(row_vals, cols, result.notes)
            if row is not None:
                result.rows.append(row)

        logger.info(
            "extracted %d rows from %s (%d notes)", len(result.rows), self.xlsx_path.name, len(result.notes)
        )
        return result

    def _build_row(self, row_vals: list[Any], cols: dict[str, int], notes: list[str]) -> ImportRow | None:
        def at(key: str) -> Any:
            i = cols[key]
            return row_vals[i] if 0 <= i < len(row_vals) else None

        def optional_text(key: str) -> Any:
            if cols[key] < 0:
                return UNSET
            v = at(key)
            return self._text(v) if v is not None else UNSET

        code_val = at("code") if cols["code"] >= 0 else None
        if code_val is None or not self._text(code_val).strip():
            return None
        code = self._text(code_val).strip()

        if cols["final_price"] >= 0:
            base = parse_currency_amount(at("final_price"))
        elif cols["price"] >= 0:
            base = parse_currency_amount(at("price"))
        else:
            base = None
        if base is None:
            return None
        if base < 0:
            notes.append(f"Fila con precio negativo omitida para código {code}")
            return None

        if cols["currency"] >= 0:
            cur = at("currency")
            currency = self._text(cur).strip().upper() if cur is not None else ""
            if currency and currency != "USD":
                notes.append(f"Fila con moneda distinta a USD ({currency}) para código {code}")

        name_val = at("name") if cols["name"] >= 0 else None
        name = self._text(name_val) if name_val not in (None, "") else code

        return ImportRow(
            code=code,
            base_price_usd=float(base),
            name=name,
            brand=optional_text("brand"),
            family=optional_text("family"),
            description=optional_text("description"),
            photo_url=optional_text("photo"),
            stock_laredo=parse_stock_quantity(at("laredo")) if cols["laredo"] >= 0 else UNSET,
            stock_miami=parse_stock_quantity(at("miami")) if cols["miami"] >= 0 else UNSET,
            manufacturer_info=optional_text("manufacturer_info"),
        )


def extract_rows(xlsx_path: Path) -> ExtractResult:
    return ExcelImporter(xlsx_path).read_rows()
