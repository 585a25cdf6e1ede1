from __future__ import annotations

from datetime import datetime
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font

HEADERS = ["CÓDIGO", "ARTÍCULO", "MARCA", "PROVEEDOR", "PRECIO USD", "STOCK MIAMI", "STOCK LAREDO"]
COLUMN_WIDTHS = [18, 48, 18, 22, 14, 13, 13]


def export_selection_to_excel(products: list[dict], *, title: str = "Lista de precios") -> bytes:
    """Write priced products (as returned by ProductService) to an XLSX workbook.

    Row 1 carries the title, row 2 the headers, data from row 3: the same
    layout the importer reads. The price column is the caller's price; products
    without a price are written with an empty cell.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Selección"

    ws.cell(row=1, column=1, value=f"{title} - {datetime.now().strftime('%Y-%m-%d %H:%M')}").font = Font(bold=True)
    for c, h in enumerate(HEADERS, start=1):
        ws.cell(row=2, column=c, value=h).font = Font(bold=True)

    write_row = 3
    for p in products:
        pricing = p.get("pricing") or {}
        supplier = p.get("supplier") or {}
        values = [
            str(p.get("code") or ""),
            str(p.get("name") or ""),
            p.get("brand") or "",
            supplier.get("name") or "",
            pricing.get("priceForUserUsd"),
            p.get("stockMiami"),
            p.get("stockLaredo"),
        ]
        for c, v in enumerate(values, start=1):
            ws.cell(row=write_row, column=c, value=v)
        ws.cell(row=write_row, column=5).number_format = "#,##0.00"
        write_row += 1

    for i, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[ws.cell(row=2, column=i).column_letter].width = width

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
