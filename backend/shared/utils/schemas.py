"""
Shared Pydantic schemas used across the application.

Money fields are Decimal; they serialize to JSON as strings ("21.20") so no
binary float ever touches an amount.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.config.constants import Limits
from shared.utils.validators import (
    CARD_NUMBER_PATTERN,
    CVV_PATTERN,
    EXPIRY_PATTERN,
    sanitize_instructions,
    validate_image_path,
)


# =============================================================================
# Common Types
# =============================================================================

OrderStatusLiteral = Literal["Pending", "Pending Payment", "Completed", "Cancelled"]
PaymentMethodLiteral = Literal["Pay at Counter", "Credit Card", "Debit Card"]
AddonTypeLiteral = Literal["Optional", "Required", "Choice"]


class _InstructionsMixin(BaseModel):
    """Normalizes the free-text instructions field."""

    @field_validator("instructions", check_fields=False)
    @classmethod
    def _clean_instructions(cls, v: str | None) -> str | None:
        return sanitize_instructions(v)


# =============================================================================
# Table Schemas
# =============================================================================


class CreateTableRequest(BaseModel):
    """Provision a table (staff)."""

    number: int = Field(ge=1)


class AcquireTableRequest(BaseModel):
    """Occupy a table for the calling session."""

    pax: int = Field(ge=1)


class TableOutput(BaseModel):
    """Availability board entry. The owner token is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int
    is_occupied: bool
    pax: int
    occupied_at: datetime | None = None


class TableAccessOutput(BaseModel):
    """Whether the calling session may use a table."""

    table_id: int
    number: int
    is_occupied: bool
    can_access: bool
    is_owned_by_session: bool
    pax: int
    occupied_at: datetime | None = None


# =============================================================================
# Cart Schemas
# =============================================================================


class AddCartItemRequest(_InstructionsMixin):
    """Add a menu item (with add-ons) to the table's cart."""

    menu_item_id: str = Field(min_length=1, max_length=20)
    quantity: int = Field(default=1, ge=1, le=Limits.MAX_QUANTITY)
    addon_ids: list[int] = Field(default_factory=list)
    instructions: str | None = Field(default=None, max_length=Limits.MAX_INSTRUCTIONS)


class UpdateCartItemRequest(BaseModel):
    """Change a line's quantity. Zero or less removes the line."""

    quantity: int = Field(le=Limits.MAX_QUANTITY)


class UpdateCartItemDetailsRequest(_InstructionsMixin):
    """Replace a line's quantity, instructions and add-on selection."""

    quantity: int = Field(le=Limits.MAX_QUANTITY)
    addon_ids: list[int] = Field(default_factory=list)
    instructions: str | None = Field(default=None, max_length=Limits.MAX_INSTRUCTIONS)


class AddonSelectionOutput(BaseModel):
    """Snapshot of an add-on chosen for a line."""

    model_config = ConfigDict(from_attributes=True)

    addon_id: int
    name: str
    price: Decimal


class CartItemOutput(BaseModel):
    """A cart line for display."""

    id: int
    menu_item_id: str
    menu_item_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    instructions: str | None = None
    addons: list[AddonSelectionOutput] = Field(default_factory=list)
    addons_display: str = ""


class TotalsOutput(BaseModel):
    """Rounded totals as shown to the customer."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal


class CartOutput(BaseModel):
    """Cart of a table. cart_id is None when nothing was added yet."""

    table_id: int
    cart_id: int | None = None
    created_at: datetime | None = None
    items: list[CartItemOutput] = Field(default_factory=list)
    totals: TotalsOutput


class CartSummaryOutput(BaseModel):
    """Lightweight cart status used by the timeout banner."""

    has_cart: bool
    created_at: datetime | None = None
    item_count: int = 0


# =============================================================================
# Checkout and Order Schemas
# =============================================================================


class CardDetails(BaseModel):
    """Card data for electronic payment. Only format is checked here."""

    cardholder_name: str = Field(min_length=1, max_length=Limits.MAX_NAME)
    card_number: str = Field(pattern=CARD_NUMBER_PATTERN)
    expiry_date: str = Field(pattern=EXPIRY_PATTERN)  # MM/YY
    cvv: str = Field(pattern=CVV_PATTERN)


class CheckoutRequest(BaseModel):
    """Turn the table's cart into an order."""

    payment_method: PaymentMethodLiteral
    card: CardDetails | None = None


class SettleOrderRequest(BaseModel):
    """Staff settles an open (Pending) order."""

    payment_method: PaymentMethodLiteral
    card: CardDetails | None = None


class MarkPaidRequest(BaseModel):
    """Batch of Pending Payment orders settled at the counter."""

    order_ids: list[int]


class MarkPaidOutput(BaseModel):
    updated: list[int]


class StaffAddItemRequest(BaseModel):
    """Staff appends an item to the table's open order."""

    menu_item_id: str = Field(min_length=1, max_length=20)
    quantity: int = Field(default=1, ge=1, le=Limits.MAX_QUANTITY)


class OrderItemOutput(BaseModel):
    """A line of an order."""

    id: int
    menu_item_id: str
    menu_item_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    instructions: str | None = None
    addons: list[AddonSelectionOutput] = Field(default_factory=list)
    addons_display: str = ""


class PaymentOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Decimal
    method: str
    payment_date: datetime


class OrderOutput(BaseModel):
    """An order with its lines and payments. total_amount is rounded to cents."""

    id: int
    table_id: int | None = None
    table_number: int | None = None
    user_id: int | None = None
    order_type: str
    status: OrderStatusLiteral
    total_amount: Decimal
    order_date: datetime
    items: list[OrderItemOutput] = Field(default_factory=list)
    payments: list[PaymentOutput] = Field(default_factory=list)


class PendingPaymentGroupOutput(BaseModel):
    """Pending Payment orders of one table, billed together at the counter."""

    table_id: int | None = None
    table_number: int | None = None
    order_ids: list[int]
    items: list[OrderItemOutput]
    total_amount: Decimal
    first_order_date: datetime
    last_order_date: datetime
    payment_method: str | None = None


# =============================================================================
# Catalog Schemas
# =============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME)
    prefix: str = Field(pattern=r"^[A-Za-z]{1,10}$")
    description: str | None = None
    display_order: int = Field(ge=0, le=Limits.MAX_DISPLAY_ORDER)
    is_active: bool = True

    @field_validator("prefix")
    @classmethod
    def _upper_prefix(cls, v: str) -> str:
        return v.upper()


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME)
    prefix: str | None = Field(default=None, pattern=r"^[A-Za-z]{1,10}$")
    description: str | None = None
    display_order: int | None = Field(default=None, ge=0, le=Limits.MAX_DISPLAY_ORDER)
    is_active: bool | None = None

    @field_validator("prefix")
    @classmethod
    def _upper_prefix(cls, v: str | None) -> str | None:
        return v.upper() if v else v


class CategoryOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    prefix: str
    description: str | None = None
    display_order: int
    is_active: bool


class MenuItemCreate(BaseModel):
    category_id: int
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    image_path: str | None = None
    is_available: bool = True

    @field_validator("image_path")
    @classmethod
    def _check_image(cls, v: str | None) -> str | None:
        return validate_image_path(v)


class MenuItemUpdate(BaseModel):
    """Partial update. The id and category never change."""

    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    image_path: str | None = None
    is_available: bool | None = None

    @field_validator("image_path")
    @classmethod
    def _check_image(cls, v: str | None) -> str | None:
        return validate_image_path(v)


class MenuItemOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category_id: int
    name: str
    description: str | None = None
    price: Decimal
    image_path: str
    is_available: bool


class NextIdOutput(BaseModel):
    menu_item_id: str


class AddonCreate(BaseModel):
    menu_item_id: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=Limits.MAX_NAME)
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    is_required: bool = False
    type: AddonTypeLiteral | None = None  # Defaults from is_required
    conflict_ids: list[int] = Field(default_factory=list)


class AddonUpdate(BaseModel):
    """Partial update. conflict_ids replaces the whole set when given."""

    name: str | None = Field(default=None, min_length=1, max_length=Limits.MAX_NAME)
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    is_required: bool | None = None
    type: AddonTypeLiteral | None = None
    is_available: bool | None = None
    conflict_ids: list[int] | None = None


class SetConflictsRequest(BaseModel):
    conflict_ids: list[int]


class AddonOutput(BaseModel):
    id: int
    menu_item_id: str
    name: str
    price: Decimal
    is_required: bool
    is_available: bool
    type: AddonTypeLiteral
    conflicting_addon_ids: list[int] = Field(default_factory=list)
