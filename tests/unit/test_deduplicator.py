"""
Unit tests for test result deduplication.

Covers key normalization, the clinical-safety priority (a positive is
never dropped), tie-breaking and conflict reporting.
"""

import logging

import pytest

from workers.verification.deduplicator import (
    STATUS_PRIORITY,
    create_deduplication_key,
    deduplicate_test_results,
    get_status_priority,
    select_best_result,
)
from workers.verification.models import TestResult, TestStatus

pytestmark = pytest.mark.unit


def result(name, text, status):
    return TestResult(name=name, result=text, status=status)


class TestDeduplicationKey:

    @pytest.mark.parametrize("name", ["HIV-1/2", "hiv 1 2", "HIV_1/2", "  HIV   1-2 "])
    def test_variants_share_a_key(self, name):
        assert create_deduplication_key(name) == "hiv 1 2"

    def test_empty_names_never_share_a_key(self):
        first = create_deduplication_key("", 0)
        second = create_deduplication_key("   ", 1)

        assert first != second
        assert first.startswith("__empty_")

    def test_empty_key_depends_only_on_position(self):
        assert create_deduplication_key("", 3) == create_deduplication_key(None, 3)

    @pytest.mark.parametrize("name,key", [(123, "123"), (None, "__empty_0__"), (["HIV"], "__empty_0__")])
    def test_non_string_names(self, name, key):
        assert create_deduplication_key(name) == key


class TestStatusPriority:

    def test_every_status_has_a_priority(self):
        assert set(STATUS_PRIORITY) == set(TestStatus)
        assert all(get_status_priority(status) > 0 for status in TestStatus)

    def test_positive_outranks_everything(self):
        assert get_status_priority(TestStatus.POSITIVE) > get_status_priority(TestStatus.NEGATIVE)
        assert get_status_priority(TestStatus.NEGATIVE) > get_status_priority(TestStatus.PENDING)
        assert get_status_priority(TestStatus.PENDING) > get_status_priority(TestStatus.INCONCLUSIVE)

    def test_plain_strings_accepted(self):
        assert get_status_priority("positive") == get_status_priority(TestStatus.POSITIVE)

    def test_unknown_status_ranks_lowest(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert get_status_priority("weird") == 0
        assert "Unknown test status" in caplog.text


class TestSelectBestResult:

    def test_higher_priority_wins(self):
        occurrences = [
            result("HIV", "Non-Reactive, confirmed by repeat testing", TestStatus.NEGATIVE),
            result("HIV", "Reactive", TestStatus.POSITIVE),
        ]
        assert select_best_result(occurrences).status == TestStatus.POSITIVE

    def test_longer_result_wins_on_equal_priority(self):
        occurrences = [
            result("HIV", "Negative", TestStatus.NEGATIVE),
            result("HIV", "Negative (final)", TestStatus.NEGATIVE),
        ]
        assert select_best_result(occurrences).result == "Negative (final)"

    def test_first_seen_wins_remaining_tie(self):
        first = result("HIV", "Negative", TestStatus.NEGATIVE)
        second = result("hiv", "NEGATIVE", TestStatus.NEGATIVE)
        assert select_best_result([first, second]) is first


class TestDeduplicateTestResults:

    def test_empty_input(self):
        dedup = deduplicate_test_results([])

        assert dedup.tests == []
        assert dedup.conflicts == []
        assert dedup.stats.total_input == 0
        assert dedup.stats.unique_tests == 0

    @pytest.mark.parametrize("positive_first", [False, True])
    def test_positive_is_never_dropped(self, positive_first):
        """HIV negative on one page and positive on another keeps the positive."""
        negative = result("HIV-1/2", "Non-Reactive, confirmed on repeat testing", TestStatus.NEGATIVE)
        positive = result("HIV 1/2", "Positive", TestStatus.POSITIVE)
        tests = [positive, negative] if positive_first else [negative, positive]

        dedup = deduplicate_test_results(tests)

        assert len(dedup.tests) == 1
        assert dedup.tests[0] is positive
        assert len(dedup.conflicts) == 1
        assert dedup.conflicts[0].suggested is positive
        assert dedup.conflicts[0].occurrences == tests

    def test_non_string_names_and_results(self):
        tests = [
            result(123, 5, TestStatus.PENDING),
            result("123", "Pending", TestStatus.PENDING),
            result(None, None, TestStatus.INCONCLUSIVE),
        ]

        dedup = deduplicate_test_results(tests)

        assert dedup.tests == [tests[1], tests[2]]
        assert dedup.stats.duplicates_removed == 1

    def test_same_status_duplicates_collapse_without_conflict(self):
        tests = [
            result("Syphilis", "Non-Reactive", TestStatus.NEGATIVE),
            result("SYPHILIS", "Non-Reactive (RPR)", TestStatus.NEGATIVE),
        ]

        dedup = deduplicate_test_results(tests)

        assert dedup.tests == [tests[1]]
        assert dedup.conflicts == []
        assert dedup.stats.duplicates_removed == 1

    def test_output_follows_first_appearance(self):
        tests = [
            result("HIV", "Negative", TestStatus.NEGATIVE),
            result("Syphilis", "Negative", TestStatus.NEGATIVE),
            result("hiv", "Pending", TestStatus.PENDING),
            result("Chlamydia", "Not Detected", TestStatus.NEGATIVE),
        ]

        dedup = deduplicate_test_results(tests)

        assert [t.name for t in dedup.tests] == ["HIV", "Syphilis", "Chlamydia"]

    def test_stats_add_up(self):
        tests = [
            result("HIV", "Negative", TestStatus.NEGATIVE),
            result("HIV", "Positive", TestStatus.POSITIVE),
            result("HIV", "Pending", TestStatus.PENDING),
            result("Syphilis", "Negative", TestStatus.NEGATIVE),
            result("Syphilis", "Negative", TestStatus.NEGATIVE),
            result("Chlamydia", "Not Detected", TestStatus.NEGATIVE),
        ]

        stats = deduplicate_test_results(tests).stats

        assert stats.total_input == 6
        assert stats.unique_tests == 3
        assert stats.duplicates_removed == 3
        assert stats.conflicts_detected == 1
        assert stats.unique_tests + stats.duplicates_removed == stats.total_input

    def test_empty_names_are_kept_separately(self):
        tests = [
            result("", "Negative", TestStatus.NEGATIVE),
            result("", "Positive", TestStatus.POSITIVE),
        ]

        dedup = deduplicate_test_results(tests)

        assert len(dedup.tests) == 2
        assert dedup.conflicts == []

    def test_unknown_status_loses_to_known(self):
        tests = [
            result("HIV", "??", "mystery"),
            result("HIV", "Inconclusive", TestStatus.INCONCLUSIVE),
        ]

        dedup = deduplicate_test_results(tests)

        assert dedup.tests[0].status == TestStatus.INCONCLUSIVE

    def test_conflict_is_logged(self, caplog):
        tests = [
            result("HIV", "Negative", TestStatus.NEGATIVE),
            result("HIV", "Positive", TestStatus.POSITIVE),
        ]

        with caplog.at_level(logging.WARNING):
            deduplicate_test_results(tests)

        assert "Conflicting results for 'HIV'" in caplog.text
