"""Error taxonomy shared by services and the HTTP layer.

Every error carries an HTTP status, a stable machine-readable ``code`` the UI
can switch on, a human message and optional ``details``.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None, *, code: str | None = None, details: Any = None):
        self.message = message or self.__class__.__doc__ or self.code
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        out = {"ok": False, "error": self.code, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


class ValidationError(AppError):
    """Datos inválidos"""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    """No encontrado"""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """Conflicto con un registro existente"""

    status_code = 409
    code = "CONFLICT"


class CatalogImportError(AppError):
    """Importación rechazada"""

    status_code = 400
    code = "IMPORT_ERROR"


class EmptyOrMalformedFile(CatalogImportError):
    """Archivo vacío o con formato inesperado"""

    code = "EMPTY_OR_MALFORMED_FILE"


class NoRowsToImport(CatalogImportError):
    """No hay filas para importar"""

    code = "NO_ROWS_TO_IMPORT"


class SupplierRequired(CatalogImportError):
    """Se requiere supplierId o supplierName"""

    code = "SUPPLIER_REQUIRED"


class InternalError(AppError):
    """Error interno"""

    status_code = 500
    code = "INTERNAL_ERROR"
