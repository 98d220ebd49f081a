"""
Cross-Document Verification Merging.

When several pages or files share one collection date, each is scored on
its own. Merging takes the best-scoring occurrence of each check across the
documents (page one shows the letterhead, page two the accession number),
while the hard-gate flags combine worst-case: one future-dated page blocks
the whole group.
"""

import logging
from typing import Dict, List, Optional

from workers.verification.models import VerificationCheck, VerificationResult
from workers.verification.scoring import score_and_gate

logger = logging.getLogger(__name__)


def merge_verification_results(
    results: List[VerificationResult],
) -> Optional[VerificationResult]:
    """
    Merge per-document verification results for one date group.

    Args:
        results: Verification results of the documents in the group

    Returns:
        None for no input, the single input itself for one, otherwise a new
        merged VerificationResult
    """
    if not results:
        return None
    if len(results) == 1:
        return results[0]

    best_checks: Dict[str, VerificationCheck] = {}
    for result in results:
        for check in result.checks:
            existing = best_checks.get(check.name)
            if existing is None or check.points > existing.points:
                best_checks[check.name] = check

    # First document's order, then anything only later documents reported
    merged_checks: List[VerificationCheck] = []
    for check in results[0].checks:
        if check.name in best_checks:
            merged_checks.append(best_checks.pop(check.name))
    merged_checks.extend(best_checks.values())

    has_future_date = any(r.has_future_date for r in results)
    is_suspiciously_fast = any(r.is_suspiciously_fast for r in results)
    is_older_than_2_years = any(r.is_older_than_2_years for r in results)

    outcome = score_and_gate(merged_checks, has_future_date=has_future_date)

    logger.info(
        f"Merged {len(results)} verification results: score {outcome.score} "
        f"({outcome.level.value}), verified={outcome.is_verified}"
    )

    return VerificationResult(
        score=outcome.score,
        level=outcome.level,
        checks=merged_checks,
        is_verified=outcome.is_verified,
        has_future_date=has_future_date,
        is_suspiciously_fast=is_suspiciously_fast,
        is_older_than_2_years=is_older_than_2_years,
    )
