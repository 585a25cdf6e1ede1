from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from listasprecios.db import create_engine_from_url
from listasprecios.logging_setup import configure_logging
from listasprecios.models import Base
from listasprecios.settings import Settings


def main() -> int:
    p = argparse.ArgumentParser(description="Drop and recreate every table (suppliers, price lists, products, users)")
    p.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = p.parse_args()

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)

    if not args.yes:
        answer = input(f"Borrar todos los datos de {settings.DATABASE_URL}? escribe BORRAR: ")
        if answer.strip() != "BORRAR":
            print("cancelled")
            return 1

    settings.ensure_instance()
    engine = create_engine_from_url(settings.DATABASE_URL)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    print("OK: database reset")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
