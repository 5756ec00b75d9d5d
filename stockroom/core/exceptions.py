"""
Workflow error taxonomy.

Services raise these; the API layer maps each one to an HTTP status and a
``{"error": message}`` body (see ``stockroom.main``).
"""
from typing import Optional


class WarehouseError(Exception):
    """Base class for all business-rule failures."""
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(WarehouseError):
    status_code = 404
    default_message = "Not found"

    @classmethod
    def for_entity(cls, entity: str, key) -> "NotFoundError":
        return cls(f"{entity} {key} not found")


class ForbiddenError(WarehouseError):
    status_code = 403
    default_message = "Forbidden - Insufficient permissions"


class UnauthorizedError(WarehouseError):
    status_code = 401
    default_message = "Unauthorized"


class ValidationError(WarehouseError):
    """Missing or invalid input."""
    status_code = 400
    default_message = "Invalid request"


class ConflictError(WarehouseError):
    """A state precondition was violated (e.g. already processed)."""
    status_code = 400
    default_message = "Operation not allowed in current state"


class InsufficientInventoryError(ConflictError):
    def __init__(self, sku: str, shortfall: int):
        self.sku = sku
        self.shortfall = shortfall
        super().__init__(
            f"Insufficient inventory for SKU {sku}. Short by {shortfall} units."
        )
