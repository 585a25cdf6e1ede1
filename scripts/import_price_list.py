from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from listasprecios.db import create_engine_from_url, init_db, make_session_factory, session_scope
from listasprecios.errors import AppError
from listasprecios.excel_import import ExcelImporter
from listasprecios.logging_setup import configure_logging
from listasprecios.services import CatalogService
from listasprecios.settings import Settings


def main() -> int:
    p = argparse.ArgumentParser(description="Import a supplier XLSX price list into the database")
    p.add_argument("xlsx", help="Path to the .xlsx file")
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--supplier-id", type=int, help="Existing supplier id")
    g.add_argument("--supplier-name", help="Supplier name (created when missing)")
    p.add_argument("--label", default=None, help="Source label (defaults to the file name)")
    p.add_argument("--currency", default=None, help="Raw currency of the list (default from settings)")
    args = p.parse_args()

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    settings.ensure_instance()

    xlsx = Path(args.xlsx)
    if not xlsx.is_absolute():
        xlsx = (Path.cwd() / xlsx).resolve()

    engine = create_engine_from_url(settings.DATABASE_URL)
    init_db(engine)
    sf = make_session_factory(engine)

    try:
        extracted = ExcelImporter(xlsx_path=xlsx).read_rows()
        with session_scope(sf) as session:
            pl = CatalogService(session).import_batch(
                extracted.rows,
                supplier_id=args.supplier_id,
                supplier_name=args.supplier_name,
                source_label=args.label or xlsx.name,
                raw_currency=args.currency or settings.DEFAULT_CURRENCY,
            )
            price_list_id = pl.id
    except AppError as e:
        print(f"ERROR [{e.code}]: {e.message}", file=sys.stderr)
        return 1

    for note in extracted.notes:
        print("note:", note)
    print("imported", len(extracted.rows), "rows into price list", price_list_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
