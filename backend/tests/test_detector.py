"""Tests for format detection."""

import pytest

from ledgerkeep.parsers.detector import detect_format, get_parser, score_chase
from ledgerkeep.parsers.chase_parser import ChaseParser
from ledgerkeep.parsers.csv_parser import CSVParser
from ledgerkeep.parsers.ofx_parser import OFXParser


class TestDetectFormat:
    """Test weighted format detection."""

    def test_chase_checking_is_a_match(self, chase_checking_csv):
        result = detect_format(chase_checking_csv, "Chase1234_Activity_20240131.CSV")
        assert result.recognized_format == "chase"
        assert result.confidence > 80
        assert result.is_match is True
        assert result.account_type_hint == "checking"

    def test_chase_credit_hint(self, chase_credit_csv):
        result = detect_format(chase_credit_csv, "activity.csv")
        assert result.recognized_format == "chase"
        assert result.account_type_hint == "credit"
        assert result.is_match is True

    def test_chase_confidence_is_capped(self, chase_checking_csv):
        confidence, _ = score_chase(chase_checking_csv, "chase.csv")
        assert confidence == 95.0

    def test_ofx_detected(self, ofx_sample):
        result = detect_format(ofx_sample, "statement.ofx")
        assert result.recognized_format == "ofx"
        assert result.confidence == 100.0
        assert result.account_type_hint == "checking"

    def test_ofx_detected_without_extension(self, ofx_sample):
        result = detect_format(ofx_sample)
        assert result.recognized_format == "ofx"
        assert result.confidence == 90.0

    def test_generic_csv(self, generic_csv):
        result = detect_format(generic_csv, "export.csv")
        assert result.recognized_format == "generic_csv"
        assert result.is_match is True

    def test_unrelated_csv_reports_no_format(self, unrelated_csv):
        result = detect_format(unrelated_csv, "people.csv")
        assert result.recognized_format is None
        assert result.confidence < 50
        assert result.is_match is False

    def test_personal_finance_csv_is_not_chase(self):
        content = "Date,Payee,Amount,Category\n2024-01-15,Coffee Shop,-4.50,Dining\n2024-01-16,Employer,2500.00,Income\n"
        result = detect_format(content, "budget.csv")
        assert result.candidates["chase"] < 50
        assert result.recognized_format == "generic_csv"

    def test_between_thresholds_reports_candidate_without_match(self):
        content = "Date,Amount,Reference\n2024-01-01,-10.00,X1\n"
        result = detect_format(content)
        assert result.recognized_format == "generic_csv"
        assert 50 <= result.confidence < 80
        assert result.is_match is False

    def test_thresholds_are_configurable(self, generic_csv):
        result = detect_format(generic_csv, match_threshold=90)
        assert result.recognized_format == "generic_csv"
        assert result.is_match is False

    def test_empty_content(self):
        result = detect_format("")
        assert result.recognized_format is None
        assert result.confidence == 0

    def test_tie_prefers_more_specific_format(self, chase_checking_csv, monkeypatch):
        from ledgerkeep.parsers import detector
        monkeypatch.setattr(detector, "SCORERS", {
            "generic_csv": lambda content, filename: (85.0, None),
            "chase": lambda content, filename: (85.0, "checking"),
            "ofx": lambda content, filename: (0.0, None),
        })
        result = detect_format(chase_checking_csv)
        assert result.recognized_format == "chase"

    def test_candidates_reported(self, chase_checking_csv):
        result = detect_format(chase_checking_csv)
        assert set(result.candidates) == {"chase", "ofx", "generic_csv"}


class TestGetParser:

    @pytest.mark.parametrize("name,parser_class", [
        ("chase", ChaseParser),
        ("ofx", OFXParser),
        ("generic_csv", CSVParser),
    ])
    def test_known_formats(self, name, parser_class):
        assert isinstance(get_parser(name), parser_class)

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            get_parser("qif")
