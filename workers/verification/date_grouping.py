"""
Date Grouping of Parsed Documents.

Combines per-document results into one clinical summary per collection
date: tests are re-deduplicated across the group, the panel label and
overall status are recomputed, and verification is merged. Documents with
no date all land in a single "date unknown" group.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from workers.verification.deduplicator import deduplicate_test_results
from workers.verification.merger import merge_verification_results
from workers.verification.models import (
    DateGroupedResult,
    ParsedDocument,
    TestResult,
    TestStatus,
    VerificationDetails,
    VerificationResult,
)
from workers.verification.standardizer import DEFAULT_PANEL_LABEL, determine_test_type

logger = logging.getLogger(__name__)

NO_DATE_KEY = "__no_date__"
NOTES_SEPARATOR = "\n\n"


@dataclass
class _GroupAccumulator:
    tests: List[TestResult] = field(default_factory=list)
    verified: bool = False
    verification_details: List[VerificationDetails] = field(default_factory=list)
    verifications: List[VerificationResult] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    detected_test_type: Optional[str] = None
    source_doc_indices: List[int] = field(default_factory=list)


def compute_overall_status(tests: List[TestResult]) -> TestStatus:
    """
    Overall status of a set of tests.

    positive if any test is positive, negative if every test is negative,
    otherwise (mixed pending/inconclusive, or no tests) pending.
    """
    if not tests:
        return TestStatus.PENDING
    if any(t.status == TestStatus.POSITIVE for t in tests):
        return TestStatus.POSITIVE
    if all(t.status == TestStatus.NEGATIVE for t in tests):
        return TestStatus.NEGATIVE
    return TestStatus.PENDING


def group_parsed_documents_by_date(documents: List[ParsedDocument]) -> List[DateGroupedResult]:
    """
    Group parsed documents by collection date.

    Args:
        documents: Successfully parsed documents (failures filtered out)

    Returns:
        One DateGroupedResult per distinct date, in first-seen order.
        Groups whose documents carried no tests are still returned.
    """
    if not documents:
        return []

    buckets: Dict[str, _GroupAccumulator] = {}

    for index, doc in enumerate(documents):
        acc = buckets.setdefault(doc.collection_date or NO_DATE_KEY, _GroupAccumulator())
        acc.source_doc_indices.append(index)

        if not acc.detected_test_type and doc.test_type:
            acc.detected_test_type = doc.test_type
        if doc.notes:
            acc.notes.append(doc.notes)
        if doc.is_verified:
            acc.verified = True
        if doc.verification is not None:
            acc.verifications.append(doc.verification)

        details = doc.verification_details
        if details is not None and not any(
            v.lab_name == details.lab_name for v in acc.verification_details
        ):
            acc.verification_details.append(details)

        acc.tests.extend(doc.tests)

    groups: List[DateGroupedResult] = []

    for key, acc in buckets.items():
        date = None if key == NO_DATE_KEY else key
        merged_verification = merge_verification_results(acc.verifications)

        if acc.tests:
            dedup = deduplicate_test_results(acc.tests)
            tests = dedup.tests
            conflicts = dedup.conflicts
            test_type = determine_test_type(t.name for t in tests)
        else:
            tests = []
            conflicts = []
            test_type = acc.detected_test_type or DEFAULT_PANEL_LABEL

        groups.append(DateGroupedResult(
            date=date,
            tests=tests,
            test_type=test_type,
            overall_status=compute_overall_status(tests),
            is_verified=acc.verified,
            verification_details=acc.verification_details,
            notes=NOTES_SEPARATOR.join(acc.notes),
            conflicts=conflicts,
            source_doc_indices=acc.source_doc_indices,
            verification=merged_verification,
        ))

    logger.info(f"Grouped {len(documents)} documents into {len(groups)} date groups")
    return groups
