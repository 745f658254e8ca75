"""
Centralized constants for the backend application.
Avoid magic strings for statuses, payment methods and add-on types.

Usage:
    from shared.config.constants import OrderStatus, PaymentMethod

    if order.status == OrderStatus.PENDING_PAYMENT:
        ...
"""

from typing import Final


# =============================================================================
# Order lifecycle
# =============================================================================


class OrderStatus:
    """Order status constants (values match the stored column)."""

    PENDING: Final[str] = "Pending"  # Being built by staff, still mutable
    PENDING_PAYMENT: Final[str] = "Pending Payment"  # Submitted, settle at counter
    COMPLETED: Final[str] = "Completed"
    CANCELLED: Final[str] = "Cancelled"

    ALL: Final[list[str]] = [PENDING, PENDING_PAYMENT, COMPLETED, CANCELLED]


# Allowed status transitions; anything else is rejected
ORDER_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PENDING_PAYMENT,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PENDING_PAYMENT: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class OrderType:
    """Order type constants."""

    DINE_IN: Final[str] = "Dine-In"


class PaymentMethod:
    """Payment method constants."""

    PAY_AT_COUNTER: Final[str] = "Pay at Counter"
    CREDIT_CARD: Final[str] = "Credit Card"
    DEBIT_CARD: Final[str] = "Debit Card"

    CARD: Final[frozenset[str]] = frozenset({CREDIT_CARD, DEBIT_CARD})
    ALL: Final[list[str]] = [PAY_AT_COUNTER, CREDIT_CARD, DEBIT_CARD]


# =============================================================================
# Menu
# =============================================================================


class AddonType:
    """Add-on type constants."""

    OPTIONAL: Final[str] = "Optional"
    REQUIRED: Final[str] = "Required"
    CHOICE: Final[str] = "Choice"  # One of a group of alternatives

    ALL: Final[list[str]] = [OPTIONAL, REQUIRED, CHOICE]


class Limits:
    """Validation limits shared by schemas and services."""

    MENU_ID_DIGITS: Final[int] = 3  # M001
    MAX_CATEGORY_PREFIX: Final[int] = 10
    MAX_DISPLAY_ORDER: Final[int] = 999
    MAX_QUANTITY: Final[int] = 99
    MAX_INSTRUCTIONS: Final[int] = 500
    MAX_NAME: Final[int] = 100
