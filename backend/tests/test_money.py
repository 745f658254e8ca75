"""
Tests for the money helpers.

Property-based tests check that presentation rounding never leaks into
the exact values and that a displayed receipt always adds up.
"""

from decimal import Decimal

from hypothesis import given, strategies as st

from shared.utils.money import compute_totals, format_money, line_subtotal, to_money

RATE = Decimal("0.06")

prices = st.decimals(min_value=Decimal("0.00"), max_value=Decimal("500.00"), places=2)
lines = st.lists(
    st.tuples(prices, st.integers(min_value=1, max_value=99)),
    max_size=20,
)


class TestMoneyHelpers:
    def test_two_burgers(self):
        totals = compute_totals([line_subtotal(Decimal("10.00"), 2)], RATE)

        assert totals.total == Decimal("21.2")
        assert format_money(totals.rounded().total) == "21.20"

    def test_half_cent_rounds_up(self):
        assert to_money(Decimal("0.015")) == Decimal("0.02")
        assert to_money(Decimal("0.005")) == Decimal("0.01")

    def test_empty(self):
        shown = compute_totals([], RATE).rounded()
        assert (shown.subtotal, shown.tax, shown.total) == (Decimal("0.00"),) * 3


class TestTotalsProperties:
    @given(lines=lines)
    def test_exact_values_follow_tax_policy(self, lines):
        subtotals = [line_subtotal(price, qty) for price, qty in lines]

        totals = compute_totals(subtotals, RATE)

        assert totals.subtotal == sum(subtotals, Decimal("0"))
        assert totals.tax == totals.subtotal * RATE
        assert totals.total == totals.subtotal + totals.tax

    @given(lines=lines)
    def test_displayed_receipt_adds_up(self, lines):
        shown = compute_totals((line_subtotal(p, q) for p, q in lines), RATE).rounded()

        assert shown.total == shown.subtotal + shown.tax
        assert shown.tax == shown.tax.quantize(Decimal("0.01"))

    @given(lines=lines)
    def test_rounding_is_stable_and_close(self, lines):
        totals = compute_totals((line_subtotal(p, q) for p, q in lines), RATE)
        shown = totals.rounded()

        assert shown.rounded() == shown
        assert abs(shown.tax - totals.tax) <= Decimal("0.005")

    @given(data=st.data(), subtotals=st.lists(prices, max_size=10))
    def test_line_order_does_not_matter(self, data, subtotals):
        shuffled = data.draw(st.permutations(subtotals))
        assert compute_totals(subtotals, RATE) == compute_totals(shuffled, RATE)
