"""
Unit tests for result and test name standardization.

Tests result classification order, dictionary-based name normalization
and panel labelling.
"""

import pytest

from workers.verification.models import TestStatus
from workers.verification.standardizer import (
    TestNameStandardizer,
    detect_categories,
    determine_test_type,
    normalize_test_name,
    standardize_result,
)

pytestmark = pytest.mark.unit


class TestStandardizeResult:
    """Tests for free-text result classification."""

    @pytest.mark.parametrize("raw", [
        "Negative",
        "NON-REACTIVE",
        "Non Reactive",
        "nonreactive",
        "Not Detected",
        "Not reactive",
        "Absent",
        "No evidence of infection",
        "No antibodies detected",
        "HIV antibodies not detected",
    ])
    def test_negative_results(self, raw):
        assert standardize_result(raw) == TestStatus.NEGATIVE

    @pytest.mark.parametrize("raw", ["Immune", "Evidence of immunity"])
    def test_immunity_reads_as_negative(self, raw):
        assert standardize_result(raw) == TestStatus.NEGATIVE

    @pytest.mark.parametrize("raw", ["Positive", "REACTIVE", "Detected", "HIV-1 antibodies detected"])
    def test_positive_results(self, raw):
        assert standardize_result(raw) == TestStatus.POSITIVE

    @pytest.mark.parametrize("raw", ["Pending", "Referred to PHL", "Awaiting confirmation", "12.5 mIU/mL"])
    def test_pending_results(self, raw):
        assert standardize_result(raw) == TestStatus.PENDING

    @pytest.mark.parametrize("raw", ["Indeterminate", "Equivocal", "borderline"])
    def test_indeterminate_results(self, raw):
        assert standardize_result(raw) == TestStatus.INCONCLUSIVE

    @pytest.mark.parametrize("raw", [None, "", "   ", "see comment"])
    def test_unmatched_input_is_inconclusive(self, raw):
        """Nothing falls through to negative."""
        assert standardize_result(raw) == TestStatus.INCONCLUSIVE

    @pytest.mark.parametrize("raw", [0, 12.5, ["Positive"]])
    def test_non_string_input_never_raises(self, raw):
        assert isinstance(standardize_result(raw), TestStatus)

    def test_negation_checked_before_positive(self):
        """'Non-reactive' contains 'reactive' but must not read as positive."""
        assert standardize_result("Non-Reactive") == TestStatus.NEGATIVE


class TestNameNormalization:
    """Tests for TestNameStandardizer."""

    @pytest.fixture
    def standardizer(self, mappings_file):
        return TestNameStandardizer(mappings_path=mappings_file)

    def test_exact_match_is_case_insensitive(self, standardizer):
        assert standardizer.normalize("hiv final interpretation") == "HIV-1/2"

    def test_substring_match(self, standardizer):
        assert standardizer.normalize("HBsAg (surface antigen)") == "Hepatitis B"

    def test_substring_match_uses_file_order(self, standardizer):
        """The first dictionary key found wins, not the first word of the name."""
        assert standardizer.normalize("RPR / HIV final interpretation") == "HIV-1/2"
        assert standardizer.normalize("RPR screen") == "Syphilis"

    def test_title_case_fallback_keeps_acronyms(self, standardizer):
        assert standardizer.normalize("hsv type 2 igg") == "HSV Type 2 Igg"

    def test_fallback_collapses_whitespace(self, standardizer):
        assert standardizer.normalize("  trichomonas   vaginalis ") == "Trichomonas Vaginalis"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_name_is_unknown(self, standardizer, raw):
        assert standardizer.normalize(raw) == "Unknown"

    def test_missing_mappings_file_falls_back(self, tmp_path):
        standardizer = TestNameStandardizer(mappings_path=tmp_path / "missing.yaml")

        assert standardizer.mappings == {}
        assert standardizer.normalize("hiv screen") == "HIV Screen"

    def test_shared_standardizer_uses_project_dictionary(self):
        assert normalize_test_name("HIV Final Interpretation") == "HIV-1/2"
        assert normalize_test_name("Chlamydia trachomatis NAAT") == "Chlamydia"


class TestPanelDetection:
    """Tests for determine_test_type."""

    def test_full_panel(self):
        names = ["HIV-1/2", "Syphilis", "Chlamydia", "Gonorrhea"]
        assert determine_test_type(names) == "Full STI Panel"

    def test_two_categories(self):
        assert determine_test_type(["HIV-1/2", "Syphilis"]) == "HIV & Syphilis Panel"

    def test_three_categories(self):
        names = ["Hepatitis B", "Hepatitis C", "HIV-1/2"]
        assert determine_test_type(names) == "Hepatitis B & Hepatitis C & HIV Panel"

    def test_single_category(self):
        assert determine_test_type(["HIV-1/2", "HIV p24 antigen"]) == "HIV Test"

    def test_no_category(self):
        assert determine_test_type(["Trichomonas"]) == "STI Panel"
        assert determine_test_type([]) == "STI Panel"

    def test_categories_in_first_seen_order(self):
        assert detect_categories(["HSV-2", "RPR", "HSV-1"]) == ["Herpes", "Syphilis"]
