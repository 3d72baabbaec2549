"""
Catalog Backend: Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions for the error taxonomy of the API.
How:   Each exception carries a user-facing message and an optional context
       dict. Handlers registered in main.py translate them to JSON responses.

Exception Hierarchy:
    CatalogError (base)
    ├── ValidationError        → 400 Bad Request
    ├── NotFoundError          → 404 Not Found
    ├── DatabaseError          → 500 Internal Server Error
    └── DecisionServiceError   → 500 via the pipeline's generic error responder
"""

from typing import Any, Dict, Optional


class CatalogError(Exception):
    """
    Base exception for all catalog application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(CatalogError):
    """
    Raised when client input is missing required fields.

    HTTP: 400 Bad Request. Validation is presence-only; the store enforces
    the rest.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        fields: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if fields:
            ctx["fields"] = list(fields)
        super().__init__(message=message, context=ctx)
        self.fields = list(fields or [])


class NotFoundError(CatalogError):
    """
    Raised when an id-keyed operation finds no matching row.

    HTTP: 404 Not Found
    """

    def __init__(
        self,
        resource: str = "Product",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)
        self.resource_id = resource_id


class DatabaseError(CatalogError):
    """
    Raised when a store statement fails (unreachable store, constraint, etc.).

    HTTP: 500. The response message is always generic; the SQL error is
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DecisionServiceError(CatalogError):
    """
    Raised when the rate-limit/bot decision service cannot produce a verdict.

    The admission pipeline forwards it to the generic error responder, so the
    request fails closed instead of being admitted.
    """

    def __init__(
        self,
        message: str = "Decision service unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
