from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from listasprecios.accounts import UserService
from listasprecios.db import create_engine_from_url, init_db, make_session_factory, session_scope
from listasprecios.logging_setup import configure_logging
from listasprecios.settings import Settings


def main() -> int:
    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    settings.ensure_instance()

    engine = create_engine_from_url(settings.DATABASE_URL)
    init_db(engine)
    sf = make_session_factory(engine)

    with session_scope(sf) as session:
        created = UserService(session).ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)

    print("admin created:" if created else "admin already present:", settings.ADMIN_EMAIL)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
