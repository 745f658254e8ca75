"""
Money helpers.

All amounts are Decimal end to end. Values are kept exact internally and
rounded to cents only when presented, so recomputing a total any number
of times never accumulates rounding error.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from shared.config.settings import settings

CENTS = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    """Round a Decimal to cents (presentation only)."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Render an amount as a fixed two-decimal string ("21.20")."""
    return f"{to_money(value):.2f}"


@dataclass(frozen=True)
class CartTotals:
    """Exact subtotal, tax and total for a set of lines."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> "CartTotals":
        """
        Presentation values.

        Tax is rounded to cents and the displayed total is the subtotal plus
        the displayed tax, so the three numbers on a receipt always add up.
        """
        subtotal = to_money(self.subtotal)
        tax = to_money(self.tax)
        return CartTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def line_subtotal(unit_price: Decimal, quantity: int) -> Decimal:
    return Decimal(unit_price) * quantity


def compute_totals(
    subtotals: Iterable[Decimal],
    tax_rate: Decimal | None = None,
) -> CartTotals:
    """
    Sum line subtotals and apply the tax rate.

    Usage:
        totals = compute_totals([Decimal("20.00")])
        totals.rounded().total  # Decimal("21.20")
    """
    rate = settings.tax_rate if tax_rate is None else tax_rate
    subtotal = sum((Decimal(s) for s in subtotals), Decimal("0"))
    tax = subtotal * rate
    return CartTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)
