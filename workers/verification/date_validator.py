"""
Collection Date Validation.

Checks the collection date an LLM extracted from a lab document before it
feeds verification scoring. All comparisons are in UTC.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from backend.core.config import get_settings
from workers.verification.models import as_text

logger = logging.getLogger(__name__)

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Extra layouts accepted when normalizing an LLM date for display/grouping
LOOSE_DATE_FORMATS = [
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%d-%b-%Y",
]


@dataclass(frozen=True)
class DateValidationResult:
    """Outcome of validating one collection date."""
    is_valid: bool = False
    is_future: bool = False
    is_older_than_2_years: bool = False
    is_suspiciously_fast: bool = False
    parsed_date: Optional[datetime] = None
    details: str = ""


def parse_as_utc(date_string: str) -> Optional[datetime]:
    """
    Parse YYYY-MM-DD (UTC midnight) or an ISO 8601 timestamp.

    Naive timestamps are taken as UTC. Returns None when parsing fails.
    """
    trimmed = date_string.strip()
    if not trimmed:
        return None

    try:
        if DATE_ONLY_PATTERN.match(trimmed):
            return datetime.strptime(trimmed, "%Y-%m-%d").replace(tzinfo=timezone.utc)

        iso = trimmed[:-1] + "+00:00" if trimmed.endswith(("Z", "z")) else trimmed
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def validate_collection_date(
    date_string: Optional[str],
    reference_time: Optional[datetime] = None,
) -> DateValidationResult:
    """
    Validate a collection date extracted from a lab document.

    Checks in order: presence, parsability, future date (invalid), older
    than the max age (valid, flagged), and, only when a reference (upload)
    time is given, a collection less than the suspicious gap before upload
    (valid, flagged).

    Args:
        date_string: Date as extracted, usually YYYY-MM-DD; None is expected
        reference_time: When the document was uploaded. Defaults to now.

    Returns:
        DateValidationResult describing the outcome
    """
    date_string = as_text(date_string)
    if date_string is None or not date_string.strip():
        return DateValidationResult(details="No collection date provided")

    parsed = parse_as_utc(date_string)
    if parsed is None:
        return DateValidationResult(
            details=(
                "Unable to parse date string: expected YYYY-MM-DD or ISO 8601 format, "
                f"received \"{date_string}\""
            ),
        )

    settings = get_settings().dates
    reference = _as_utc(reference_time) if reference_time else datetime.now(timezone.utc)
    diff = reference - parsed

    if diff < timedelta(0):
        return DateValidationResult(
            is_future=True,
            parsed_date=parsed,
            details="Collection date is in the future",
        )

    if diff > timedelta(days=settings.max_age_days):
        return DateValidationResult(
            is_valid=True,
            is_older_than_2_years=True,
            parsed_date=parsed,
            details="Collection date is more than 2 years old",
        )

    if reference_time is not None and diff < timedelta(hours=settings.suspicious_gap_hours):
        return DateValidationResult(
            is_valid=True,
            is_suspiciously_fast=True,
            parsed_date=parsed,
            details="Collection date is unusually close to upload time",
        )

    return DateValidationResult(
        is_valid=True,
        parsed_date=parsed,
        details="Collection date is valid",
    )


def format_collection_date(date_string: Optional[str]) -> Optional[str]:
    """Normalize an extracted date to YYYY-MM-DD, or None when it can't be read."""
    date_string = as_text(date_string)
    if not date_string or not date_string.strip():
        return None

    trimmed = date_string.strip()
    if DATE_ONLY_PATTERN.match(trimmed):
        return trimmed

    parsed = parse_as_utc(trimmed)
    if parsed is not None:
        return parsed.strftime("%Y-%m-%d")

    for fmt in LOOSE_DATE_FORMATS:
        try:
            return datetime.strptime(trimmed, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue

    logger.warning(f"Could not format collection date: {date_string!r}")
    return None
