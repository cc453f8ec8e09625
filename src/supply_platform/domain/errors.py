"""Service error taxonomy.

Every failure the agreement core reports is one of these classes:

- ``ValidationError``: malformed, missing or out-of-range input (HTTP 400)
- ``NotFoundError``: a referenced row does not exist (HTTP 404)
- ``StorageError``: the database rejected or failed a statement (HTTP 500)
- ``ServiceError``: anything else, wrapped at the service boundary (HTTP 500)

They are raised where the problem is detected and travel unchanged through
transaction rollbacks; ``supply_platform.app.errors`` maps them to responses.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for failures raised by the service layer."""

    def __init__(
        self,
        message: str,
        service: str,
        operation: str,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.service = service
        self.operation = operation
        self.cause = cause
        super().__init__(message)


class StorageError(ServiceError):
    """A database statement failed. ``query`` is kept for logs only."""

    def __init__(
        self,
        message: str,
        operation: str,
        query: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.query = query
        super().__init__(message, "DatabaseService", operation, cause)


class NotFoundError(ServiceError):
    """A referenced entity id does not resolve to a row."""

    def __init__(self, entity: str, entity_id: Any, operation: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found", entity, operation)


class ValidationError(ServiceError):
    """Input failed validation. ``field`` and ``value`` name the culprit."""

    def __init__(
        self,
        message: str,
        operation: str,
        field: Optional[str] = None,
        value: Any = None,
    ):
        self.field = field
        self.value = value
        super().__init__(message, "ValidationError", operation)
