"""Exception types shared by the compiler, the engine client and the API."""
from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500


class InputError(CatalogError, ValueError):
    """Missing or malformed caller input.

    ``example`` is echoed back to the caller to show a well-formed request.
    """

    status_code = 400

    def __init__(self, message: str, example: Any = None) -> None:
        super().__init__(message)
        self.example = example


class DocumentNotFound(CatalogError, LookupError):
    status_code = 404

    def __init__(self, doc_id: str, message: str = "Product not found") -> None:
        super().__init__(message)
        self.doc_id = doc_id


class EngineError(CatalogError, RuntimeError):
    """Elasticsearch rejected the request or could not be reached."""

    status_code = 500
