# tests/test_pricing.py
"""
Precio de líneas y reconstrucción del porcentaje de descuento
"""
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationFailed
from app.modules.discounts.schemas import RequestLineCreate
from app.modules.discounts.service import (
    DiscountsService, compute_line_amount, solve_discount_percent, round_money
)


class TestLineAmount:

    def test_line_total_example(self):
        first = compute_line_amount(Decimal("1.20"), 3, Decimal("10"))
        second = compute_line_amount(Decimal("0.89"), 2, Decimal("0"))

        assert first == Decimal("3.24")
        assert second == Decimal("1.78")
        assert first + second == Decimal("5.02")

    def test_rounds_half_up(self):
        assert compute_line_amount(Decimal("0.05"), 1, Decimal("50")) == Decimal("0.03")
        assert round_money(Decimal("2.675")) == Decimal("2.68")

    def test_full_discount(self):
        assert compute_line_amount(Decimal("9.99"), 4, Decimal("100")) == Decimal("0.00")


class TestSolveDiscountPercent:

    def test_recovers_stored_discount(self):
        assert solve_discount_percent(Decimal("1.20"), 3, Decimal("3.24")) == Decimal("10.00")

    def test_clamped_to_range(self):
        assert solve_discount_percent(Decimal("1.00"), 1, Decimal("5.00")) == Decimal("0.00")
        assert solve_discount_percent(Decimal("1.00"), 1, Decimal("-1.00")) == Decimal("100.00")

    def test_missing_price(self):
        assert solve_discount_percent(None, 3, Decimal("3.00")) == Decimal("0.00")
        assert solve_discount_percent(Decimal("0"), 3, Decimal("3.00")) == Decimal("0.00")


class TestPriceLines:

    def test_uses_current_article_price(self, db, org):
        lines = DiscountsService(db).price_lines([
            RequestLineCreate(article_id=org.juice, quantity=3, discount_percent=Decimal("10")),
            RequestLineCreate(article_id=org.milk, quantity=2),
        ])

        assert [line["line_amount"] for line in lines] == [Decimal("3.24"), Decimal("1.78")]
        assert [line["discount_percent"] for line in lines] == [Decimal("10.00"), Decimal("0.00")]

    def test_client_line_amount_without_discount_is_back_solved(self, db, org):
        lines = DiscountsService(db).price_lines([
            RequestLineCreate(article_id=org.juice, quantity=3, line_amount=Decimal("3.24")),
        ])

        assert lines[0]["line_amount"] == Decimal("3.24")
        assert lines[0]["discount_percent"] == Decimal("10.00")

    def test_client_line_amount_keeps_explicit_discount(self, db, org):
        lines = DiscountsService(db).price_lines([
            RequestLineCreate(
                article_id=org.juice, quantity=1,
                discount_percent=Decimal("5"), line_amount=Decimal("1.00")
            ),
        ])

        assert lines[0]["line_amount"] == Decimal("1.00")
        assert lines[0]["discount_percent"] == Decimal("5.00")

    def test_unknown_article(self, db, org):
        with pytest.raises(ValidationFailed):
            DiscountsService(db).price_lines([RequestLineCreate(article_id=9999, quantity=1)])
