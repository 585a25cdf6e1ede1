from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path
from uuid import uuid4

from flask import Flask, Response, jsonify, request, send_file
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from listasprecios.errors import AppError, CatalogImportError, ValidationError
from listasprecios.settings import Settings
from listasprecios.web.backend import ApiBackend

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CALLER_HEADER = "X-User-Id"


def _error(code: str, message: str, status: int, details=None):
    body = {"ok": False, "error": code, "message": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def _int_arg(source, name: str) -> int | None:
    raw = (source.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} debe ser un entero", details=[{"field": name, "message": "not an integer"}]) from None


def _bool_arg(source, name: str) -> bool:
    return (source.get(name) or "").strip().lower() in ("1", "true", "yes", "si", "sí")


def create_app(session_factory, settings: Settings) -> Flask:
    settings.upload_path.mkdir(parents=True, exist_ok=True)

    backend = ApiBackend(session_factory=session_factory, settings=settings)

    app = Flask(__name__, static_folder=None)
    app.config["MAX_CONTENT_LENGTH"] = int(settings.UPLOAD_MAX_MB) * 1024 * 1024

    # --- Errors ---
    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        if e.status_code >= 500:
            logger.error("%s: %s", e.code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(PydanticValidationError)
    def handle_validation_error(e: PydanticValidationError):
        details = [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]
        return _error("VALIDATION_ERROR", "Datos inválidos", 400, details)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e: IntegrityError):
        logger.warning("integrity error: %s", e.orig)
        return _error("CONFLICT", "Conflicto con un registro existente", 409)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e: RequestEntityTooLarge):
        return _error("FILE_TOO_LARGE", f"El archivo supera {settings.UPLOAD_MAX_MB} MB", 413)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return _error(e.name.upper().replace(" ", "_"), e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return _error("INTERNAL_ERROR", "Error interno", 500)

    def _ok(payload, status: int = 200):
        return jsonify(payload), status

    def _json() -> dict:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    def _caller_discount():
        return backend.caller_discount(request.headers.get(CALLER_HEADER))

    @app.get("/health")
    def health() -> Response:
        return jsonify(backend.health())

    # --- Suppliers ---
    @app.get("/api/suppliers")
    def api_list_suppliers():
        return _ok(backend.list_suppliers())

    @app.post("/api/suppliers")
    def api_create_supplier():
        return _ok(backend.create_supplier(_json()), 201)

    @app.patch("/api/suppliers/<int:supplier_id>")
    def api_update_supplier(supplier_id: int):
        return _ok(backend.update_supplier(supplier_id, _json()))

    # --- Products ---
    @app.get("/api/products")
    def api_list_products():
        return _ok(backend.list_products(request.args.to_dict(), _caller_discount()))

    @app.get("/api/products/<int:product_id>")
    def api_get_product(product_id: int):
        return _ok(backend.get_product(product_id, _caller_discount()))

    @app.patch("/api/products/<int:product_id>")
    def api_update_product(product_id: int):
        return _ok(backend.update_product(product_id, _json()))

    @app.post("/api/products/export")
    def api_export_products():
        content = backend.export_products(_json(), _caller_discount())
        return send_file(
            BytesIO(content),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name="seleccion.xlsx",
        )

    # --- Price lists ---
    @app.get("/api/pricelists")
    def api_list_price_lists():
        return _ok(backend.list_price_lists(_int_arg(request.args, "supplierId")))

    @app.post("/api/pricelists/import")
    def api_import_price_list():
        return _ok(backend.import_price_list(_json()), 201)

    @app.post("/api/pricelists/import-xlsx")
    def api_import_price_list_xlsx():
        f = request.files.get("file")
        if f is None or not f.filename:
            raise CatalogImportError("Archivo requerido", code="FILE_REQUIRED")
        if Path(f.filename).suffix.lower() != ".xlsx":
            raise CatalogImportError("Solo se aceptan archivos .xlsx", code="INVALID_FILE_TYPE")

        values = request.values
        supplier_id = _int_arg(values, "supplierId")
        settings.upload_path.mkdir(parents=True, exist_ok=True)
        tmp = settings.upload_path / f"{uuid4().hex}.xlsx"
        f.save(tmp)
        try:
            res = backend.import_xlsx(
                tmp,
                supplier_id=supplier_id,
                supplier_name=(values.get("supplierName") or "").strip() or None,
                source_label=(values.get("sourceLabel") or "").strip() or f.filename,
                raw_currency=(values.get("rawCurrency") or "").strip() or None,
            )
        finally:
            tmp.unlink(missing_ok=True)
        return _ok(res, 201)

    # --- Price items ---
    @app.get("/api/priceitems")
    def api_list_price_items():
        args = request.args
        return _ok(
            backend.list_price_items(
                _int_arg(args, "productId"),
                _int_arg(args, "priceListId"),
                _bool_arg(args, "latestOnly"),
            )
        )

    @app.get("/api/priceitems/<int:item_id>")
    def api_get_price_item(item_id: int):
        return _ok(backend.get_price_item(item_id))

    @app.patch("/api/priceitems/<int:item_id>")
    def api_update_price_item(item_id: int):
        return _ok(backend.update_price_item(item_id, _json()))

    @app.post("/api/priceitems/bulk-update")
    def api_bulk_update_price_items():
        return _ok(backend.bulk_update_price_items(_json()))

    # --- Users ---
    @app.get("/api/users")
    def api_list_users():
        return _ok(backend.list_users())

    @app.post("/api/users")
    def api_create_user():
        return _ok(backend.create_user(_json()), 201)

    @app.patch("/api/users/<int:user_id>")
    def api_update_user(user_id: int):
        return _ok(backend.update_user(user_id, _json()))

    @app.post("/api/users/<int:user_id>/reset-password")
    def api_reset_password(user_id: int):
        return _ok(backend.reset_password(user_id, _json()))

    return app
