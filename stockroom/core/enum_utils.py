"""
Enum Utilities for VARCHAR-based Status Fields

Status columns are stored as VARCHAR(50) holding UPPERCASE values, while the
Python side works with ``str, Enum`` classes. These helpers let code compare
and convert between the two without caring which one it was handed.

USAGE PATTERNS:
    if is_status(order.status, OrderStatus.PENDING): ...
    task.status = get_enum_value(CountTaskStatus.COMPLETED)
"""

from enum import Enum
from typing import Any, Optional


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(OrderStatus.PENDING)
        'PENDING'
        >>> get_enum_value("PENDING")
        'PENDING'
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


# =============================================================================
# COMPARISON HELPERS
# =============================================================================

def is_status(db_value: Optional[str], enum_value: Enum) -> bool:
    """Compare a database string with an enum value."""
    if db_value is None:
        return False
    return db_value == enum_value.value


def status_in(db_value: Optional[str], *enum_values: Enum) -> bool:
    """Check if database value matches any of the given enums."""
    if db_value is None:
        return False
    return db_value in {e.value for e in enum_values}
