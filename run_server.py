from __future__ import annotations

import argparse
import logging
import socket

from listasprecios.db import create_engine_from_url, init_db, make_session_factory
from listasprecios.logging_setup import configure_logging
from listasprecios.settings import Settings
from listasprecios.web.web_server import create_app

logger = logging.getLogger("listasprecios.server")


def _get_lan_ip() -> str:
    # Infers the primary LAN IP by "connecting" a UDP socket; nothing is sent.
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
            if ip:
                return ip
        finally:
            s.close()
    except OSError:
        pass
    return "127.0.0.1"


def _ensure_port_free(host: str, port: int) -> bool:
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
            return True
        finally:
            s.close()
    except OSError:
        return False


def main() -> int:
    p = argparse.ArgumentParser(description="Listas de Precios - API server")
    p.add_argument("--host", default="0.0.0.0", help="Bind host (use 0.0.0.0 for LAN)")
    p.add_argument("--port", type=int, default=8000, help="Port")
    p.add_argument("--debug", action="store_true", help="Flask debug mode")
    args = p.parse_args()

    settings = Settings()
    configure_logging("DEBUG" if args.debug else settings.LOG_LEVEL)

    if not _ensure_port_free(args.host, args.port):
        logger.error("port busy (server already running?): %s:%s", args.host, args.port)
        return 2

    settings.ensure_instance()

    engine = create_engine_from_url(settings.DATABASE_URL)
    init_db(engine)
    session_factory = make_session_factory(engine)

    app = create_app(session_factory, settings)

    lan_ip = _get_lan_ip() if args.host in ("0.0.0.0", "::") else args.host
    logger.info("serving %s on http://%s:%s/ (health: /health)", settings.APP_NAME, lan_ip, args.port)

    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
