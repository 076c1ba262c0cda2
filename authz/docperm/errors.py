"""
Error types for DocPerm.

This module defines all exception types raised by the engine:
- DocPermError: Base exception
- ResolverError: A permission source (predicate, computed component, team lookup) failed
- SchemaViolation: Write input does not match the document schema
- PermissionDenied: Principal lacks the write component for a path
- NotFoundError: Referenced array element, team or document does not exist
- RegistryFrozenError / DuplicateRegistrationError: schema registration errors

Invariants:
    - All errors inherit from DocPermError
    - Errors include context for debugging
    - Read-path denial is never an error, only omission
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DocPermError(Exception):
    """Base exception for all DocPerm errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCPERM_ERROR"
        self.details = details or {}


class ResolverError(DocPermError):
    """A permission source failed.

    Raised when:
    - The caller-supplied predicate raises
    - A computed component function raises
    - A team cannot be looked up

    The original exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        source: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="RESOLVER_ERROR",
            details={"document_id": document_id, "source": source},
        )
        self.document_id = document_id
        self.source = source


class SchemaViolation(DocPermError):
    """Write input does not match the schema.

    Raised when:
    - Input is not a plain mapping at an object boundary
    - A key does not name a schema path
    - A value has the wrong type for its field
    - An array of subdocuments, a virtual or a populated reference is set directly
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        if suggestions:
            message += f". Did you mean: {', '.join(suggestions)}?"
        super().__init__(
            message,
            code="SCHEMA_VIOLATION",
            details={"path": path, "suggestions": suggestions},
        )
        self.path = path
        self.suggestions = suggestions


class PermissionDenied(DocPermError):
    """Principal lacks the component required to write a path."""

    def __init__(
        self,
        path: Optional[str],
        principal: Optional[str] = None,
        component: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        if message is None:
            message = (
                f"Permission denied: not allowed to write path '{path}'"
                if path
                else f"Permission denied: {principal} lacks component '{component}'"
            )
        super().__init__(
            message,
            code="PERMISSION_DENIED",
            details={"path": path, "principal": principal, "component": component},
        )
        self.path = path
        self.principal = principal
        self.component = component


class NotFoundError(DocPermError):
    """Resource not found.

    Raised when:
    - An array element id does not exist
    - A team or document id is unknown to the store
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RegistryFrozenError(DocPermError):
    """Raised when attempting to modify a frozen schema index."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTRY_FROZEN")


class DuplicateRegistrationError(DocPermError):
    """Raised when attempting to register a duplicate document type."""

    def __init__(self, message: str, type_name: str) -> None:
        super().__init__(message, code="DUPLICATE_REGISTRATION", details={"type_name": type_name})
        self.type_name = type_name
