"""
Row Normalizer Tests

Tests for header matching, value sniffing and conversion of tabular rows
into transaction drafts.
"""

import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from statement_processor.currency import Currency, ExchangeContext
from statement_processor.models import Direction
from statement_processor.row_normalizer import (
    RowNormalizer,
    direction_from_type,
    parse_date,
)


class TestParseDate:
    """Tests for parse_date."""

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-05", date(2024, 1, 5)),
        ("05.01.2024", date(2024, 1, 5)),
        ("05.01.2024 г.", date(2024, 1, 5)),
        ("05/01/2024", date(2024, 1, 5)),
        ("31/12/23", date(2023, 12, 31)),
        ("2024-01-05T10:30:00Z", date(2024, 1, 5)),
        ("2024-01-05 10:30:00.123+02:00", date(2024, 1, 5)),
        ("Jan 5, 2024", date(2024, 1, 5)),
        ("5 Jan 2024", date(2024, 1, 5)),
    ])
    def test_formats(self, value, expected):
        """Day-first and ISO formats are understood."""
        assert parse_date(value) == expected

    def test_invalid(self):
        """Unknown strings give None."""
        assert parse_date("yesterday") is None
        assert parse_date("") is None


class TestDirectionFromType:
    """Tests for type column mapping."""

    @pytest.mark.parametrize("value,expected", [
        ("приход", Direction.INCOME),
        ("Кт", Direction.INCOME),
        ("credit", Direction.INCOME),
        ("разход", Direction.EXPENSE),
        ("D", Direction.EXPENSE),
        ("", None),
        ("other", None),
    ])
    def test_values(self, value, expected):
        assert direction_from_type(value) is expected


class TestRowNormalizer:
    """Tests for RowNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return RowNormalizer()

    def test_mixed_language_headers(self, normalizer):
        """English and Bulgarian headers are matched in the same row."""
        row = {"Date": "01.02.2024", "Сума": "-25.50", "Описание": "KAUFLAND"}

        normalized = normalizer.normalize(row)
        draft = normalizer.to_draft(normalized)

        assert draft.date == date(2024, 2, 1)
        assert draft.amount == Decimal("25.50")
        assert draft.direction is Direction.EXPENSE
        assert draft.description == "KAUFLAND"
        assert draft.source == "tabular"

    def test_debit_credit_columns(self, normalizer):
        """Separate debit/credit columns give the sign."""
        row = {"Дата": "05.01.2024", "Дебит": "", "Кредит": "1 200,00", "Основание": "Заплата"}

        normalized = normalizer.normalize(row)

        assert normalized.amount == Decimal("1200.00")
        assert normalized.direction is Direction.INCOME
        assert normalized.description == "Заплата"

    def test_debit_column(self, normalizer):
        """A filled debit column is an expense."""
        row = {"Date": "2024-01-05", "Money out": "12.50", "Money in": "", "Details": "LIDL"}

        normalized = normalizer.normalize(row)

        assert normalized.amount == Decimal("-12.50")
        assert normalized.direction is Direction.EXPENSE

    def test_both_columns_filled_default_to_expense(self, normalizer):
        """Filled debit and credit columns take the debit as an expense."""
        row = {"Date": "2024-01-05", "Debit": "30.00", "Credit": "30.00", "Details": "Reversal"}

        normalized = normalizer.normalize(row)

        assert normalized.amount == Decimal("-30.00")
        assert normalized.direction is Direction.EXPENSE

    def test_both_columns_filled_with_income_type(self, normalizer):
        row = {
            "Date": "2024-01-05", "Debit": "30.00", "Credit": "45.00",
            "Details": "Refund", "Type": "income",
        }

        normalized = normalizer.normalize(row)

        assert normalized.amount == Decimal("45.00")
        assert normalized.direction is Direction.INCOME

    def test_empty_amount_does_not_use_balance(self, normalizer):
        """An empty named amount column is not replaced by the balance."""
        row = {"Date": "2024-02-01", "Amount": "", "Balance": "1,000.00", "Description": "X"}

        assert normalizer.normalize(row) is None

    def test_balance_column_is_never_sniffed(self, normalizer):
        row = {"Date": "2024-02-01", "Баланс": "1,000.00", "Note": "Shop"}

        assert normalizer.normalize(row) is None

    def test_sniffs_integer_amount(self, normalizer):
        """Headerless rows with whole amounts are still read."""
        row = {"a": "01.02.2024", "b": "-25", "c": "KAUFLAND"}

        normalized = normalizer.normalize(row)
        draft = normalizer.to_draft(normalized)

        assert normalized.date == date(2024, 2, 1)
        assert draft.amount == Decimal("25.00")
        assert draft.direction is Direction.EXPENSE
        assert draft.description == "KAUFLAND"

    def test_decimal_value_preferred_over_integer(self, normalizer):
        row = {"a": "2024-01-05", "b": "4711", "c": "-4.20", "d": "Coffee"}

        assert normalizer.normalize(row).amount == Decimal("-4.20")

    def test_sniffs_unknown_headers(self, normalizer):
        """Columns with unknown names are found from their values."""
        row = {"col1": "2024-03-15", "col2": "Coffee shop", "col3": "-4.20"}

        normalized = normalizer.normalize(row)

        assert normalized.date == date(2024, 3, 15)
        assert normalized.amount == Decimal("-4.20")
        assert normalized.description == "Coffee shop"

    def test_explicit_type_wins_over_sign(self, normalizer):
        """A type column overrides the literal sign."""
        row = {"Date": "2024-02-03", "Amount": "12.00", "Description": "Такси", "Type": "разход"}

        normalized = normalizer.normalize(row)

        assert normalized.amount == Decimal("-12.00")
        assert normalized.direction is Direction.EXPENSE

    def test_currency_from_header(self, normalizer):
        """A currency named in the amount header is applied."""
        row = {"Дата": "05.01.2024", "Сума лв": "-19.56", "Описание": "Магазин"}

        normalized = normalizer.normalize(row)
        draft = normalizer.to_draft(normalized, ExchangeContext())

        assert normalized.currency is Currency.BGN
        assert draft.amount == Decimal("10.00")

    def test_currency_column(self, normalizer):
        """A currency column is used when the amount carries no marker."""
        row = {"Date": "2024-01-01", "Amount": "-19.56", "Currency": "BGN", "Description": "Shop"}

        normalized = normalizer.normalize(row)

        assert normalized.currency is Currency.BGN

    def test_defaults_to_eur(self, normalizer):
        """Without any currency hint amounts are EUR."""
        row = {"Date": "2024-01-01", "Amount": "-5.00", "Description": "Shop"}

        assert normalizer.normalize(row).currency is Currency.EUR

    def test_too_few_fields(self, normalizer):
        """Rows with fewer than two non-empty fields are not transactions."""
        assert normalizer.normalize({"Date": "2024-01-01", "Amount": "", "Description": ""}) is None

    def test_zero_amount(self, normalizer):
        """Zero amounts are not transactions."""
        row = {"Date": "2024-01-01", "Amount": "0.00", "Description": "Info"}

        assert normalizer.normalize(row) is None

    def test_bad_date(self, normalizer):
        """Rows with unparseable dates are skipped."""
        row = {"Date": "yesterday", "Amount": "5.00", "Description": "Info"}

        assert normalizer.normalize(row) is None

    def test_surplus_fields_ignored(self, normalizer):
        """Surplus fields filed under a None key are ignored."""
        row = {"Date": "2024-01-01", "Amount": "5.00", "Description": "A", None: ["x", "y"]}

        assert normalizer.normalize(row).amount == Decimal("5.00")

    def test_custom_synonyms(self):
        """Extra header synonyms are honoured."""
        synonyms = {"date": ("booked",), "amount": ("sum",), "description": ("text",)}
        normalizer = RowNormalizer(synonyms)

        normalized = normalizer.normalize({"Booked": "2024-01-01", "Sum": "-3.00", "Text": "Bus"})

        assert normalized.amount == Decimal("-3.00")
        assert normalized.description == "Bus"

    def test_placeholder_description(self, normalizer):
        """Rows without a usable description get a placeholder."""
        row = {"Date": "2024-01-01", "Amount": "50.00"}

        draft = normalizer.to_draft(normalizer.normalize(row))

        assert draft.description == "Transfer"
