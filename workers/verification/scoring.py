"""
Document Verification Scoring.

Turns one LLM extraction into a 0-100 confidence score from seven
independent checks, a discrete level, and a hard-gated verified decision:

| Check                    | Points |
|--------------------------|--------|
| recognized_lab           | 25     |
| health_card              | 20     |
| accession_number         | 15     |
| name_match               | 15     |
| collection_date          | 10     |
| structural_completeness  | 10     |
| multi_signal_agreement   | 5      |

Verified requires score >= threshold, a matching name when a profile is
known, and no future collection date. A suspiciously fast upload is
surfaced but does not block.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from backend.core.config import get_settings
from workers.verification.date_validator import validate_collection_date
from workers.verification.lab_lookup import LabDirectory, LabRecord, get_lab_directory
from workers.verification.models import (
    IdentityProfile,
    LLMResponse,
    NoProfile,
    VerificationCheck,
    VerificationLevel,
    VerificationResult,
    as_identity_profile,
    as_text,
)
from workers.verification.name_matching import match_names

logger = logging.getLogger(__name__)


RECOGNIZED_LAB = "recognized_lab"
HEALTH_CARD = "health_card"
ACCESSION_NUMBER = "accession_number"
NAME_MATCH = "name_match"
COLLECTION_DATE = "collection_date"
STRUCTURAL_COMPLETENESS = "structural_completeness"
MULTI_SIGNAL_AGREEMENT = "multi_signal_agreement"

# Check order is the reporting order; max points must sum to 100
CHECK_MAX_POINTS: Dict[str, int] = {
    RECOGNIZED_LAB: 25,
    HEALTH_CARD: 20,
    ACCESSION_NUMBER: 15,
    NAME_MATCH: 15,
    COLLECTION_DATE: 10,
    STRUCTURAL_COMPLETENESS: 10,
    MULTI_SIGNAL_AGREEMENT: 5,
}

# Accession present but its format could not be confirmed against the lab
ACCESSION_UNVERIFIED_POINTS = 8

IDENTITY_SIGNAL_COUNT = 4


@dataclass(frozen=True)
class GateOutcome:
    score: int
    level: VerificationLevel
    is_verified: bool


def score_to_level(score: int) -> VerificationLevel:
    """Map a score onto its verification level."""
    thresholds = get_settings().verification.level_thresholds
    if score >= thresholds.high:
        return VerificationLevel.HIGH
    if score >= thresholds.moderate:
        return VerificationLevel.MODERATE
    if score >= thresholds.low:
        return VerificationLevel.LOW
    if score >= thresholds.unverified:
        return VerificationLevel.UNVERIFIED
    return VerificationLevel.NO_SIGNALS


def score_and_gate(
    checks: List[VerificationCheck],
    has_future_date: bool,
    require_name_match: bool = True,
) -> GateOutcome:
    """
    Recompute score, level and verified from a full check list.

    Shared by the scorer, the cross-document merger and reverification so the
    thresholds and hard gates can't drift apart.

    Args:
        checks: The current checks; score is their plain sum
        has_future_date: Future-dated collection blocks verification
        require_name_match: False when no identity profile is known

    Returns:
        GateOutcome with score, level and is_verified
    """
    score = sum(check.points for check in checks)

    name_passed = True
    if require_name_match:
        name_check = next((c for c in checks if c.name == NAME_MATCH), None)
        name_passed = name_check.passed if name_check is not None else True

    threshold = get_settings().verification.verified_threshold
    is_verified = score >= threshold and name_passed and not has_future_date

    return GateOutcome(score=score, level=score_to_level(score), is_verified=is_verified)


def _check(name: str, passed: bool, points: int, details: str) -> VerificationCheck:
    max_points = CHECK_MAX_POINTS[name]
    return VerificationCheck(
        name=name,
        passed=passed,
        points=max(0, min(points, max_points)),
        max_points=max_points,
        details=details,
    )


def _check_lab(lab_name: Optional[str], lab: Optional[LabRecord]) -> VerificationCheck:
    if lab is not None:
        return _check(RECOGNIZED_LAB, True, CHECK_MAX_POINTS[RECOGNIZED_LAB],
                      f"Matched: {lab.canonical_name}")
    if not lab_name:
        return _check(RECOGNIZED_LAB, False, 0, "No lab name extracted")
    return _check(RECOGNIZED_LAB, False, 0, f"Lab not recognized: {lab_name}")


def _check_accession(accession: Optional[str], lab: Optional[LabRecord]) -> VerificationCheck:
    if not accession or not accession.strip():
        return _check(ACCESSION_NUMBER, False, 0, "No accession number detected")

    if lab is not None and lab.accession_format is not None:
        if lab.accepts_accession(accession):
            return _check(ACCESSION_NUMBER, True, CHECK_MAX_POINTS[ACCESSION_NUMBER],
                          f"Accession matches {lab.canonical_name} format")
        return _check(ACCESSION_NUMBER, True, ACCESSION_UNVERIFIED_POINTS,
                      f"Accession present but doesn't match {lab.canonical_name} format")

    return _check(ACCESSION_NUMBER, True, ACCESSION_UNVERIFIED_POINTS,
                  "Accession number present (format unverified)")


def _check_name(patient_name: Optional[str], profile: IdentityProfile) -> VerificationCheck:
    if isinstance(profile, NoProfile):
        return _check(NAME_MATCH, False, 0, "No user profile provided, name check skipped")
    if not patient_name:
        return _check(NAME_MATCH, False, 0, "No patient name extracted")
    if match_names(patient_name, profile):
        return _check(NAME_MATCH, True, CHECK_MAX_POINTS[NAME_MATCH], "Patient name matches profile")
    return _check(NAME_MATCH, False, 0, "Patient name does not match profile")


def _check_structure(extraction: LLMResponse) -> VerificationCheck:
    test_count = len(extraction.tests)
    if test_count == 0:
        return _check(STRUCTURAL_COMPLETENESS, False, 0, "No tests extracted")
    if not extraction.test_type:
        return _check(STRUCTURAL_COMPLETENESS, False, 0, f"{test_count} tests but no test type")
    return _check(STRUCTURAL_COMPLETENESS, True, CHECK_MAX_POINTS[STRUCTURAL_COMPLETENESS],
                  f"{test_count} tests with type \"{extraction.test_type}\"")


def _check_agreement(signals: List[bool]) -> VerificationCheck:
    present = sum(1 for s in signals if s)
    required = get_settings().verification.min_agreeing_signals
    if present >= required:
        return _check(MULTI_SIGNAL_AGREEMENT, True, CHECK_MAX_POINTS[MULTI_SIGNAL_AGREEMENT],
                      f"{present} of {IDENTITY_SIGNAL_COUNT} verification signals present")
    return _check(MULTI_SIGNAL_AGREEMENT, False, 0,
                  f"Only {present} of {IDENTITY_SIGNAL_COUNT} verification signals present "
                  f"(need {required}+)")


def calculate_verification_score(
    extraction: Union[LLMResponse, Dict[str, Any]],
    identity_profile: Optional[IdentityProfile] = None,
    reference_time: Optional[datetime] = None,
    lab_directory: Optional[LabDirectory] = None,
) -> VerificationResult:
    """
    Score one extraction.

    Args:
        extraction: LLM record (or its dict form)
        identity_profile: The user's name; None or NoProfile skips the name gate
        reference_time: Upload time for date checks. Defaults to now.
        lab_directory: Lab lookup to use. Defaults to the shared directory.

    Returns:
        VerificationResult with exactly seven checks
    """
    if isinstance(extraction, dict):
        extraction = LLMResponse.from_dict(extraction)
    profile = as_identity_profile(identity_profile)
    directory = lab_directory or get_lab_directory()

    lab_name = as_text(extraction.lab_name)
    accession = as_text(extraction.accession_number)

    lab = directory.find_lab_by_name(lab_name)
    has_health_card = extraction.health_card_present is True
    has_accession = bool(accession and accession.strip())
    date_result = validate_collection_date(extraction.collection_date, reference_time)

    lab_check = _check_lab(lab_name, lab)
    name_check = _check_name(as_text(extraction.patient_name), profile)

    checks = [
        lab_check,
        _check(HEALTH_CARD, has_health_card,
               CHECK_MAX_POINTS[HEALTH_CARD] if has_health_card else 0,
               "Health card number detected" if has_health_card else "No health card detected"),
        _check_accession(accession, lab),
        name_check,
        _check(COLLECTION_DATE, date_result.is_valid,
               CHECK_MAX_POINTS[COLLECTION_DATE] if date_result.is_valid else 0,
               date_result.details),
        _check_structure(extraction),
        _check_agreement([lab_check.passed, has_health_card, has_accession, name_check.passed]),
    ]

    outcome = score_and_gate(
        checks,
        has_future_date=date_result.is_future,
        require_name_match=not isinstance(profile, NoProfile),
    )

    logger.debug(
        "Verification checks: " + ", ".join(f"{c.name}={c.points}/{c.max_points}" for c in checks)
    )
    logger.info(
        f"Verification score {outcome.score} ({outcome.level.value}), "
        f"verified={outcome.is_verified}"
    )

    return VerificationResult(
        score=outcome.score,
        level=outcome.level,
        checks=checks,
        is_verified=outcome.is_verified,
        has_future_date=date_result.is_future,
        is_suspiciously_fast=date_result.is_suspiciously_fast,
        is_older_than_2_years=date_result.is_older_than_2_years,
    )
