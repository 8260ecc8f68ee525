"""Tests for the CSV, OFX and Chase parsers."""

import pytest
from datetime import date
from decimal import Decimal

from ledgerkeep.errors import ParseError
from ledgerkeep.parsers.base import apply_direction
from ledgerkeep.parsers.chase_parser import ChaseParser
from ledgerkeep.parsers.csv_parser import CSVParser, suggest_mapping
from ledgerkeep.parsers.ofx_parser import OFXParser, default_mapping, extract_tag
from ledgerkeep.schemas.import_file import ColumnMapping, SignConvention


class TestCSVParser:
    """Test generic CSV parsing."""

    def test_parse_by_header_name(self, generic_csv):
        mapping = ColumnMapping(date_col="Date", amount_col="Amount", description_col="Description", notes_col="Memo")
        result = CSVParser().parse(generic_csv, mapping)
        assert len(result.transactions) == 3
        first = result.transactions[0]
        assert first["date"] == "2024-02-01"
        assert first["amount"] == Decimal("-64.20")
        assert first["raw_description"] == "TRADER JOE'S #552"
        assert first["notes"] == "weekly shop"

    def test_parse_by_index(self, generic_csv):
        mapping = ColumnMapping(date_col=0, amount_col=2, description_col=1)
        result = CSVParser().parse(generic_csv, mapping)
        assert [t["amount"] for t in result.transactions] == [
            Decimal("-64.20"), Decimal("-41.00"), Decimal("-19.99")
        ]

    def test_mapping_inferred_from_headers(self, generic_csv):
        result = CSVParser().parse(generic_csv)
        assert len(result.transactions) == 3
        assert result.transactions[1]["raw_description"] == "CITY WATER UTILITY"

    def test_missing_required_mapping_is_parse_error(self, generic_csv):
        mapping = ColumnMapping(date_col="Date", description_col="Description")
        with pytest.raises(ParseError):
            CSVParser().parse(generic_csv, mapping)

    def test_unknown_header_name_is_parse_error(self, generic_csv):
        mapping = ColumnMapping(date_col="Posted", amount_col="Amount", description_col="Description")
        with pytest.raises(ParseError):
            CSVParser().parse(generic_csv, mapping)

    def test_empty_content_yields_empty_result(self):
        result = CSVParser().parse("", ColumnMapping(date_col=0, amount_col=1, description_col=2))
        assert result.transactions == []

    def test_blank_rows_skipped(self):
        content = "Date,Description,Amount\n2024-01-01,A,-1.00\n\n,,\n2024-01-02,B,2.00\n"
        result = CSVParser().parse(content)
        assert len(result.transactions) == 2

    def test_debit_credit_columns(self):
        content = (
            "Date,Payee,Withdrawal,Deposit\n"
            "01/05/2024,RENT,\"$1,200.00\",\n"
            "01/06/2024,REFUND,,(15.00)\n"
        )
        result = CSVParser().parse(content)
        assert result.transactions[0]["amount"] == Decimal("-1200.00")
        # A parenthesized credit is still money in
        assert result.transactions[1]["amount"] == Decimal("15.00")

    def test_positive_debits_flipped(self):
        content = "Date,Description,Amount\n2024-01-01,COFFEE,4.50\n"
        mapping = ColumnMapping(
            date_col=0, description_col=1, amount_col=2,
            sign_convention=SignConvention.POSITIVE_DEBITS,
        )
        result = CSVParser().parse(content, mapping)
        assert result.transactions[0]["amount"] == Decimal("-4.50")

    def test_type_column_overrides_sign(self):
        content = "Date,Description,Amount,Dr/Cr\n2024-01-01,FEE,12.00,DR\n2024-01-02,INTEREST,-0.50,CR\n"
        result = CSVParser().parse(content)
        assert result.transactions[0]["amount"] == Decimal("-12.00")
        assert result.transactions[1]["amount"] == Decimal("0.50")

    def test_semicolon_dialect(self):
        content = "Date;Description;Amount\n2024-03-01;BAKERY;-3.20\n"
        result = CSVParser().parse(content)
        assert result.transactions[0]["raw_description"] == "BAKERY"

    def test_skip_rows_before_header(self):
        content = "Account export\nGenerated today\nDate,Description,Amount\n2024-03-01,BAKERY,-3.20\n"
        mapping = ColumnMapping(date_col="Date", description_col="Description", amount_col="Amount", skip_rows=2)
        result = CSVParser().parse(content, mapping)
        assert len(result.transactions) == 1

    def test_bom_tolerated(self, generic_csv):
        result = CSVParser().parse("\ufeff" + generic_csv)
        assert len(result.transactions) == 3

    def test_preview(self, generic_csv):
        headers, rows = CSVParser().get_preview(generic_csv, rows=2)
        assert headers == ["Date", "Description", "Amount", "Memo"]
        assert len(rows) == 2

    def test_suggest_mapping(self):
        mapping = suggest_mapping(["Posted Date", "Payee", "Amount", "Category"])
        assert mapping.date_col == 0
        assert mapping.description_col == 1
        assert mapping.amount_col == 2
        assert mapping.category_col == 3

    def test_suggest_mapping_debit_in_first_column(self):
        mapping = suggest_mapping(["Withdrawal", "Date", "Description"])
        assert mapping.debit_col == 0
        assert mapping.credit_col is None
        assert mapping.confidence == 0.6


class TestApplyDirection:

    def test_debit_marker_forces_negative(self):
        assert apply_direction(Decimal("10"), "DEBIT") == Decimal("-10")

    def test_credit_marker_forces_positive(self):
        assert apply_direction(Decimal("-10"), "credit") == Decimal("10")

    def test_unknown_marker_keeps_sign(self):
        assert apply_direction(Decimal("-10"), "Adjustment") == Decimal("-10")

    def test_none_amount(self):
        assert apply_direction(None, "DEBIT") is None


class TestOFXParser:
    """Test OFX tag grammar parsing."""

    def test_parse_transactions(self, ofx_sample):
        result = OFXParser().parse(ofx_sample)
        assert len(result.transactions) == 3

        fuel = result.transactions[0]
        assert fuel["date"] == "20240115120000[-5:EST]"
        assert fuel["amount"] == Decimal("-42.50")
        assert fuel["raw_description"] == "SHELL OIL 5744"
        assert fuel["notes"] == "Fuel purchase"

        payroll = result.transactions[1]
        assert payroll["amount"] == Decimal("1500.00")

    def test_memo_used_when_name_missing(self, ofx_sample):
        result = OFXParser().parse(ofx_sample)
        assert result.transactions[2]["raw_description"] == "Monthly service fee"
        assert result.transactions[2]["notes"] is None

    def test_account_info(self, ofx_sample):
        info = OFXParser().parse(ofx_sample).account_info
        assert info.institution == "First Example Bank"
        assert info.account_type == "checking"
        assert info.masked_account_number == "****9876"
        assert info.balance == Decimal("3021.45")
        assert info.balance_date == date(2024, 1, 31)

    def test_credit_card_statement(self):
        content = (
            "<OFX><CREDITCARDMSGSRSV1><CCSTMTRS><CCACCTFROM><ACCTID>4111222233334444</CCACCTFROM>"
            "<BANKTRANLIST><STMTTRN><TRNTYPE>DEBIT<DTPOSTED>20240301<TRNAMT>-9.99<NAME>SPOTIFY</STMTTRN>"
            "</BANKTRANLIST></CCSTMTRS></CREDITCARDMSGSRSV1></OFX>"
        )
        result = OFXParser().parse(content)
        assert result.account_info.account_type == "credit"
        assert result.transactions[0]["raw_description"] == "SPOTIFY"

    def test_xml_closing_tags(self):
        content = (
            '<?xml version="1.0"?><?OFX OFXHEADER="200"?><OFX><BANKTRANLIST>'
            "<STMTTRN><DTPOSTED>20240302</DTPOSTED><TRNAMT>-3.50</TRNAMT><NAME>BUS FARE</NAME></STMTTRN>"
            "</BANKTRANLIST></OFX>"
        )
        result = OFXParser().parse(content)
        assert result.transactions[0]["amount"] == Decimal("-3.50")
        assert result.transactions[0]["raw_description"] == "BUS FARE"

    def test_missing_required_tag_reported_not_raised(self):
        content = "<OFX><STMTTRN><NAME>NO AMOUNT HERE<DTPOSTED>20240101</STMTTRN></OFX>"
        record = OFXParser().parse(content).transactions[0]
        assert record["amount"] is None
        assert record["missing_fields"] == ["TRNAMT"]

    def test_transfer_trntype(self):
        content = "<OFX><STMTTRN><TRNTYPE>XFER<DTPOSTED>20240101<TRNAMT>-100<NAME>TO SAVINGS</STMTTRN></OFX>"
        record = OFXParser().parse(content).transactions[0]
        assert record["transaction_type"] == "transfer"

    def test_not_ofx_is_parse_error(self, generic_csv):
        with pytest.raises(ParseError):
            OFXParser().parse(generic_csv)

    def test_empty_content(self):
        assert OFXParser().parse("").transactions == []

    def test_extract_tag_absent(self):
        assert extract_tag("<STMTTRN><NAME>X", "MEMO") is None

    def test_extract_tag_first_match(self):
        assert extract_tag("<NAME>FIRST<NAME>SECOND", "NAME") == "FIRST"

    def test_default_mapping(self):
        mapping = default_mapping()
        assert mapping.has_headers is False
        assert mapping.date_format == "%Y%m%d"
        assert mapping.confidence == 0.9

    def test_preview(self, ofx_sample):
        headers, rows = OFXParser().get_preview(ofx_sample, rows=2)
        assert headers == ["Date", "Amount", "Description", "Type", "ID"]
        assert rows[0][2] == "SHELL OIL 5744"
        assert len(rows) == 2


class TestChaseParser:
    """Test Chase checking and credit card exports."""

    def test_checking_signs_follow_details_column(self, chase_checking_csv):
        result = ChaseParser().parse(chase_checking_csv)
        amounts = [t["amount"] for t in result.transactions]
        # The CHECK row is exported positive but is money out
        assert amounts == [Decimal("-5.75"), Decimal("2500.00"), Decimal("-500.00"), Decimal("-120.00")]

    def test_checking_fields(self, chase_checking_csv):
        result = ChaseParser().parse(chase_checking_csv)
        first = result.transactions[0]
        assert first["date"] == "01/18/2024"
        assert first["raw_description"] == "DEBIT CARD PURCHASE STARBUCKS #123"
        assert first["transaction_type"] == "DEBIT_CARD"
        assert result.transactions[3]["notes"] == "Check/Slip: 1042"

    def test_checking_account_info(self, chase_checking_csv):
        info = ChaseParser().parse(chase_checking_csv, filename="Chase1234_Activity_20240131.CSV").account_info
        assert info.institution == "Chase"
        assert info.account_type == "checking"
        assert info.masked_account_number == "Ending in 1234"
        assert info.balance == Decimal("1234.25")
        assert info.balance_date == date(2024, 1, 18)

    def test_credit_signs_follow_type_column(self, chase_credit_csv):
        result = ChaseParser().parse(chase_credit_csv)
        amounts = [t["amount"] for t in result.transactions]
        assert amounts == [Decimal("-82.14"), Decimal("-15.49"), Decimal("500.00"), Decimal("23.99")]

    def test_credit_fields(self, chase_credit_csv):
        result = ChaseParser().parse(chase_credit_csv)
        assert result.transactions[0]["category"] == "Groceries"
        assert result.transactions[0]["date"] == "01/20/2024"
        assert result.account_info.account_type == "credit"
        assert result.account_info.balance is None

    def test_non_chase_header_is_parse_error(self, generic_csv):
        with pytest.raises(ParseError):
            ChaseParser().parse(generic_csv)

    def test_empty_content(self):
        assert ChaseParser().parse("").transactions == []

    def test_can_parse(self):
        assert ChaseParser().can_parse("Chase5678_Activity.CSV")
        assert not ChaseParser().can_parse("statement.ofx")
