from typing import Any, Optional


class MaintenanceError(Exception):
    """Base class for domain errors raised by the lifecycle engine and catalog."""

    status_code: int = 400

    def __init__(self, detail: Any, *, field: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.field = field


class ValidationError(MaintenanceError):
    """Malformed or missing required input."""

    status_code = 422


class NotFoundError(MaintenanceError):
    status_code = 404

    @classmethod
    def for_entity(cls, entity: str, entity_id: Any) -> "NotFoundError":
        return cls(f"{entity} not found with id: {entity_id}")


class ConflictError(MaintenanceError):
    """Uniqueness violation on catalog data (username, email, category name, room number)."""

    status_code = 409


class PermissionDeniedError(MaintenanceError):
    status_code = 403
