from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, (level or "INFO").upper(), logging.INFO), format=LOG_FORMAT)
    # SQL echo is opt-in through DEBUG on the sqlalchemy logger only.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
