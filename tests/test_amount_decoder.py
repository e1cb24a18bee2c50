"""Tests for currency amount recognition in component values."""

from __future__ import annotations

from decimal import Decimal

import pytest

from scan_organizer.decoders import amount_token, format_amount_token, parse_amount, to_minor_units


class TestParseAmount:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("49.90 EUR", Decimal("49.90")),
            ("EUR 12", Decimal("12")),
            ("€ 1.234,56", Decimal("1234.56")),
            ("EUR 1,234.56", Decimal("1234.56")),
            ("120,00", Decimal("120.00")),
            ("1.500", Decimal("1500")),
            ("Gesamt: 89,95 €", Decimal("89.95")),
        ],
    )
    def test_recognized(self, value: str, expected: Decimal) -> None:
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", ["9.99 EUR", "5", "", "   ", "Invoice 2024-001", "ABC GmbH"])
    def test_not_an_amount(self, value: str) -> None:
        assert parse_amount(value) is None

    def test_minimum_is_inclusive(self) -> None:
        assert parse_amount("10 EUR") == Decimal("10")


class TestMinorUnits:
    def test_exact_cents(self) -> None:
        assert to_minor_units(Decimal("49.90")) == 4990

    def test_sub_cent_fraction_dropped(self) -> None:
        assert to_minor_units(Decimal("49.999")) == 4999

    def test_token(self) -> None:
        assert format_amount_token(4990) == "EUR4990"
        assert amount_token("49.90 EUR") == "EUR4990"
        assert amount_token("Rechnung") is None
