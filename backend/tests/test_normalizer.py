"""Tests for record normalization and keyword classification."""

import json
import pytest
from datetime import date, datetime
from decimal import Decimal

from ledgerkeep.models.transaction import TransactionType
from ledgerkeep.services.normalizer import (
    KeywordRule,
    UNCATEGORIZED,
    classify_description,
    clean_amount,
    description_key,
    infer_transaction_type,
    normalize_date,
    normalize_record,
    parse_finite_amount,
    parse_timestamp,
)


class TestNormalizeDate:

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-15", date(2024, 1, 15)),
        ("01/15/2024", date(2024, 1, 15)),
        ("20240115", date(2024, 1, 15)),
        ("20240115120000[-5:EST]", date(2024, 1, 15)),
        ("20240115120000.000", date(2024, 1, 15)),
        ("2024-01-15T23:30:00Z", date(2024, 1, 15)),
        ("15-Jan-2024", date(2024, 1, 15)),
    ])
    def test_supported_layouts(self, value, expected):
        assert normalize_date(value) == expected

    def test_explicit_format_first(self):
        # Day-first only makes sense with the explicit format
        assert normalize_date("03/04/2024", "%d/%m/%Y") == date(2024, 4, 3)

    def test_datetime_reduced_to_date(self):
        assert normalize_date(datetime(2024, 5, 6, 7, 8)) == date(2024, 5, 6)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2024-02-30", "20241399", 42])
    def test_unparseable_is_none(self, value):
        assert normalize_date(value) is None


class TestAmounts:

    @pytest.mark.parametrize("text,expected", [
        ("-12.50", Decimal("-12.50")),
        ("$1,234.56", Decimal("1234.56")),
        ("(45.00)", Decimal("-45.00")),
        (" 7 ", Decimal("7")),
    ])
    def test_clean_amount(self, text, expected):
        assert clean_amount(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "NaN", "Infinity", "-inf"])
    def test_clean_amount_rejects(self, text):
        assert clean_amount(text) is None

    def test_parse_finite_amount_numbers(self):
        assert parse_finite_amount(12) == Decimal("12")
        assert parse_finite_amount(0.1) == Decimal("0.1")
        assert parse_finite_amount(float("nan")) is None
        assert parse_finite_amount(float("inf")) is None
        assert parse_finite_amount(True) is None
        assert parse_finite_amount([1]) is None


class TestTransactionType:

    def test_explicit_type_wins(self):
        assert infer_transaction_type(Decimal("-5"), "COFFEE", "transfer") == TransactionType.transfer
        assert infer_transaction_type(Decimal("5"), "ANYTHING", "ACCT_XFER") == TransactionType.transfer

    def test_debit_style_marker_is_not_a_type(self):
        assert infer_transaction_type(Decimal("-5"), "COFFEE", "DEBIT_CARD") == TransactionType.expense

    @pytest.mark.parametrize("description", [
        "ONLINE TRANSFER TO SAV ...1234",
        "Zelle payment to Sam",
        "Payment Thank You-Mobile",
        "AUTOPAY 240101",
    ])
    def test_transfer_patterns(self, description):
        assert infer_transaction_type(Decimal("-100"), description) == TransactionType.transfer

    def test_sign_decides_otherwise(self):
        assert infer_transaction_type(Decimal("-3"), "BAKERY") == TransactionType.expense
        assert infer_transaction_type(Decimal("3"), "BAKERY") == TransactionType.income
        assert infer_transaction_type(Decimal("2500"), "PAYROLL DEPOSIT") == TransactionType.income


class TestClassifyDescription:

    def test_first_keyword_wins(self):
        result = classify_description("STARBUCKS COFFEE #1", TransactionType.expense)
        assert result.category == "Restaurants"
        assert result.subcategory == "Coffee"
        assert result.source == "keyword"

    def test_case_insensitive(self):
        assert classify_description("trader joe's", TransactionType.expense).category == "Groceries"

    def test_transfer_category(self):
        result = classify_description("SHELL OIL", TransactionType.transfer)
        assert result.category == "Transfer"
        assert result.source == "transfer"

    def test_no_match_is_uncategorized(self):
        result = classify_description("MYSTERY VENDOR LLC", TransactionType.expense)
        assert result.category == UNCATEGORIZED
        assert result.is_uncategorized
        assert result.source == "fallback"

    def test_custom_table(self):
        rules = (KeywordRule("mystery", "Misc"),)
        assert classify_description("MYSTERY VENDOR", TransactionType.expense, rules).category == "Misc"


class TestNormalizeRecord:

    def test_canonical_fields(self):
        raw = {
            "date": "01/18/2024",
            "amount": Decimal("-5.75"),
            "raw_description": "  DEBIT CARD PURCHASE STARBUCKS  ",
            "transaction_type": "DEBIT_CARD",
            "category": "Food & Drink",
            "notes": None,
            "original_row": {"Details": "DEBIT"},
        }
        record = normalize_record(raw, "Chase Checking", "%m/%d/%Y")
        assert record["date"] == date(2024, 1, 18)
        assert record["description"] == "DEBIT CARD PURCHASE STARBUCKS"
        assert record["type"] == TransactionType.expense
        assert record["account"] == "Chase Checking"
        assert record["category"] == UNCATEGORIZED
        assert record["source_category"] == "Food & Drink"
        assert json.loads(record["original_text"]) == {"Details": "DEBIT"}
        assert record["id"]

    def test_unparseable_values_pass_through_as_none(self):
        record = normalize_record({"date": "someday", "amount": None, "raw_description": "X"}, "A")
        assert record["date"] is None
        assert record["amount"] is None
        assert record["type"] is None


def test_description_key_collapses_whitespace():
    assert description_key("  Whole   Foods\tMarket ") == "WHOLE FOODS MARKET"


def test_parse_timestamp_to_naive_utc():
    assert parse_timestamp("2024-01-01T05:00:00+05:00") == datetime(2024, 1, 1, 0, 0)
    assert parse_timestamp("2024-01-01T10:00:00Z") == datetime(2024, 1, 1, 10, 0)
    assert parse_timestamp("garbage") is None
