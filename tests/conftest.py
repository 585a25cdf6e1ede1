from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
from openpyxl import Workbook

from listasprecios.db import create_engine_from_url, init_db, make_session_factory, session_scope
from listasprecios.settings import Settings
from listasprecios.web.web_server import create_app

TEST_DB_URL = "sqlite:///:memory:"

HEADERS = [
    "Código de artículo",
    "Artículo",
    "Marca",
    "Familia",
    "Precio final",
    "Moneda",
    "Miami",
    "Laredo",
]


@pytest.fixture()
def engine():
    eng = create_engine_from_url(TEST_DB_URL)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(INSTANCE_DIR=tmp_path / "instance", DATABASE_URL=TEST_DB_URL, UPLOAD_MAX_MB=1)


@pytest.fixture()
def app(session_factory, settings):
    flask_app = create_app(session_factory, settings)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def seed(session_factory) -> Callable:
    """Run ``fn(session)`` in a committed unit of work and return its result."""

    def _seed(fn: Callable) -> Any:
        with session_scope(session_factory) as s:
            return fn(s)

    return _seed


@pytest.fixture()
def make_xlsx(tmp_path: Path) -> Callable[..., Path]:
    """Write a supplier-style workbook: title row, header row, then ``rows``."""

    def _make(rows: list[list[Any]], headers: list[str] | None = None, name: str = "lista.xlsx") -> Path:
        wb = Workbook()
        ws = wb.active
        ws.append(["LISTA DE PRECIOS PROVEEDOR"])
        ws.append(headers if headers is not None else HEADERS)
        for r in rows:
            ws.append(r)
        path = tmp_path / name
        wb.save(path)
        return path

    return _make
