"""
Name-Match Reverification.

When a user edits their profile name, stored results that failed (or
passed) the name check may flip. This re-runs only the name match against
the stored extracted patient name and recomputes score, level and verified,
without touching OCR or the LLM. Results whose outcome did not change are
left alone.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlmodel import Session, select

from backend.models.db import LabResultRecord
from workers.verification.models import (
    IdentityProfile,
    NoProfile,
    VerificationCheck,
    VerificationLevel,
    as_identity_profile,
)
from workers.verification.name_matching import match_names
from workers.verification.scoring import COLLECTION_DATE, NAME_MATCH, score_and_gate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NameMatchUpdate:
    """Recomputed verification for one stored result."""
    checks: List[VerificationCheck]
    score: int
    level: VerificationLevel
    is_verified: bool


def future_date_from_checks(checks: List[VerificationCheck]) -> bool:
    """Derive the future-date gate from a stored collection_date check (legacy rows)."""
    date_check = next((c for c in checks if c.name == COLLECTION_DATE), None)
    if date_check is None or date_check.passed:
        return False
    return "future" in (date_check.details or "").lower()


def recalculate_name_match(
    checks: List[VerificationCheck],
    extracted_patient_name: Optional[str],
    profile: IdentityProfile,
    has_future_date: Optional[bool] = None,
) -> Optional[NameMatchUpdate]:
    """
    Re-run the name check for one result.

    Args:
        checks: The stored checks
        extracted_patient_name: Patient name as extracted from the document
        profile: The user's new identity
        has_future_date: Stored future-date flag; None falls back to the
            stored collection_date check

    Returns:
        NameMatchUpdate when the name outcome changed, otherwise None
    """
    index = next((i for i, c in enumerate(checks) if c.name == NAME_MATCH), None)
    if index is None or not extracted_patient_name:
        return None

    old_check = checks[index]
    matched = match_names(extracted_patient_name, profile)
    if old_check.passed == matched:
        return None

    updated_checks = list(checks)
    updated_checks[index] = replace(
        old_check,
        passed=matched,
        points=old_check.max_points if matched else 0,
        details="Patient name matches profile" if matched else "Patient name does not match profile",
    )

    if has_future_date is None:
        has_future_date = future_date_from_checks(checks)

    outcome = score_and_gate(updated_checks, has_future_date=has_future_date)
    return NameMatchUpdate(
        checks=updated_checks,
        score=outcome.score,
        level=outcome.level,
        is_verified=outcome.is_verified,
    )


def reverify_name_matches(session: Session, user_id: str, new_profile: Any) -> int:
    """
    Re-verify all of a user's stored results against an updated profile.

    Args:
        session: Database session
        user_id: Owner of the results
        new_profile: The updated name (Profile, dict or None)

    Returns:
        Number of results updated
    """
    profile = as_identity_profile(new_profile)
    if isinstance(profile, NoProfile):
        logger.info(f"Reverification skipped for user {user_id}: no profile name")
        return 0

    records = session.exec(
        select(LabResultRecord)
        .where(LabResultRecord.user_id == user_id)
        .where(LabResultRecord.extracted_patient_name.isnot(None))
    ).all()

    updated = 0
    for record in records:
        if not record.verification_checks:
            continue

        checks = [VerificationCheck.from_dict(c) for c in record.verification_checks]
        update = recalculate_name_match(
            checks,
            record.extracted_patient_name,
            profile,
            has_future_date=record.has_future_date,
        )
        if update is None:
            continue

        record.verification_checks = [c.to_dict() for c in update.checks]
        record.verification_score = update.score
        record.verification_level = update.level.value
        record.is_verified = update.is_verified
        record.updated_at = datetime.now(timezone.utc)
        session.add(record)
        updated += 1

        logger.info(
            f"Reverified result {record.id}: score {update.score} "
            f"({update.level.value}), verified={update.is_verified}"
        )

    if updated:
        session.commit()

    logger.info(f"Reverification updated {updated} of {len(records)} results for user {user_id}")
    return updated
