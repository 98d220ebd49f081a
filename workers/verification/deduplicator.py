"""
Test Result Deduplication Module.

Users often upload several overlapping screenshots or pages of one lab
report, so the same test shows up more than once. Results are grouped by a
normalized name key; same-status duplicates collapse to the most detailed
entry, and disagreeing statuses are reported as conflicts with a suggested
pick that never drops a positive.
"""

import re
import logging
from typing import Any, Dict, List, Union

from workers.verification.models import (
    Conflict,
    DeduplicationResult,
    DeduplicationStats,
    TestResult,
    TestStatus,
    as_text,
)

logger = logging.getLogger(__name__)


# Clinical-safety order: a positive must never lose to anything else
STATUS_PRIORITY: Dict[TestStatus, int] = {
    TestStatus.POSITIVE: 4,
    TestStatus.NEGATIVE: 3,
    TestStatus.PENDING: 2,
    TestStatus.INCONCLUSIVE: 1,
}


def get_status_priority(status: Union[TestStatus, str]) -> int:
    """Priority of a status; unknown values rank lowest (0) and are logged."""
    try:
        return STATUS_PRIORITY[TestStatus(status)]
    except (ValueError, KeyError):
        logger.warning(f"Unknown test status encountered: {status!r}")
        return 0


def create_deduplication_key(test_name: Any, position: int = 0) -> str:
    """
    Build the grouping key for a test name.

    Lowercases, turns -, _ and / into spaces and collapses whitespace, so
    "HIV-1/2", "hiv 1/2" and "HIV_1/2" share a key. A blank name gets a
    sentinel built from its position in the input, so blank names never
    group together.
    """
    normalized = (as_text(test_name) or "").lower()
    normalized = re.sub(r"[-_/]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()

    if not normalized:
        logger.warning(f"Empty test name encountered in deduplication: {test_name!r}")
        return f"__empty_{position}__"

    return normalized


def _result_length(test: TestResult) -> int:
    return len(as_text(test.result) or "")


def select_best_result(occurrences: List[TestResult]) -> TestResult:
    """
    Pick the representative among occurrences of one test.

    Highest status priority wins; on equal priority the longest result text
    wins, and the first seen wins a remaining tie.
    """
    best = occurrences[0]
    best_priority = get_status_priority(best.status)

    for current in occurrences[1:]:
        priority = get_status_priority(current.status)
        if priority > best_priority or (
            priority == best_priority and _result_length(current) > _result_length(best)
        ):
            best = current
            best_priority = priority

    return best


def deduplicate_test_results(results: List[TestResult]) -> DeduplicationResult:
    """
    Deduplicate test results gathered from one or more document images.

    Args:
        results: Normalized test results, possibly with repeats

    Returns:
        DeduplicationResult with unique tests (first-seen key order),
        conflicts and statistics
    """
    if not results:
        return DeduplicationResult(
            tests=[],
            conflicts=[],
            stats=DeduplicationStats(
                total_input=0,
                unique_tests=0,
                duplicates_removed=0,
                conflicts_detected=0,
            ),
        )

    logger.info(f"Starting test result deduplication: {len(results)} inputs")

    # Dicts keep insertion order, so output follows first appearance
    groups: Dict[str, List[TestResult]] = {}
    for position, result in enumerate(results):
        groups.setdefault(create_deduplication_key(result.name, position), []).append(result)

    unique_tests: List[TestResult] = []
    conflicts: List[Conflict] = []
    duplicates_removed = 0

    for occurrences in groups.values():
        if len(occurrences) == 1:
            unique_tests.append(occurrences[0])
            continue

        duplicates_removed += len(occurrences) - 1
        statuses = []
        for o in occurrences:
            if o.status not in statuses:
                statuses.append(o.status)

        suggested = select_best_result(occurrences)
        unique_tests.append(suggested)

        if len(statuses) == 1:
            logger.info(
                f"Collapsed {len(occurrences)} duplicates of '{occurrences[0].name}' "
                f"with status {getattr(suggested.status, 'value', suggested.status)}"
            )
        else:
            conflicts.append(Conflict(
                test_name=occurrences[0].name,
                occurrences=list(occurrences),
                suggested=suggested,
            ))
            logger.warning(
                f"Conflicting results for '{occurrences[0].name}': "
                f"statuses={[str(getattr(s, 'value', s)) for s in statuses]}, "
                f"selected={getattr(suggested.status, 'value', suggested.status)}"
            )

    stats = DeduplicationStats(
        total_input=len(results),
        unique_tests=len(unique_tests),
        duplicates_removed=duplicates_removed,
        conflicts_detected=len(conflicts),
    )
    logger.info(f"Deduplication complete: {stats}")

    return DeduplicationResult(tests=unique_tests, conflicts=conflicts, stats=stats)
