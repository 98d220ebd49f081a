"""
Data model for STI result verification.

Value objects shared by the normalizer, deduplicator, scorer, merger,
date grouper and reverification. Everything here is immutable: a changed
value is a new instance built with ``dataclasses.replace``.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class TestStatus(str, Enum):
    """Canonical clinical status of a single test result."""
    NEGATIVE = "negative"
    POSITIVE = "positive"
    PENDING = "pending"
    INCONCLUSIVE = "inconclusive"

    __test__ = False


class VerificationLevel(str, Enum):
    """Discrete confidence band derived from a verification score."""
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    UNVERIFIED = "unverified"
    NO_SIGNALS = "no_signals"


def coerce_status(value: Any) -> Union[TestStatus, str]:
    """Map a raw status string onto TestStatus, keeping unknown values as-is."""
    if isinstance(value, TestStatus):
        return value
    try:
        return TestStatus(str(value).lower())
    except ValueError:
        return str(value)


LEVEL_ALIASES = {"self_reported": VerificationLevel.NO_SIGNALS}


def parse_level(label: Any, score: int) -> VerificationLevel:
    """Read a stored level label; unknown labels are re-derived from the score."""
    if isinstance(label, VerificationLevel):
        return label
    if isinstance(label, str) and label in LEVEL_ALIASES:
        return LEVEL_ALIASES[label]
    try:
        return VerificationLevel(label)
    except (ValueError, TypeError):
        from workers.verification.scoring import score_to_level
        return score_to_level(score)


def as_text(value: Any) -> Optional[str]:
    """
    Read an extracted field as text.

    LLM output is loosely typed: accession numbers and dates often come back
    as numbers. Scalars become strings, None stays None and anything else
    (lists, objects) is dropped.
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    return None


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# =============================================================================
# Test results
# =============================================================================

@dataclass(frozen=True)
class TestResult:
    """One normalized test entry extracted from a lab document."""
    name: str
    result: str
    status: Union[TestStatus, str]

    __test__ = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "result": self.result, "status": _enum_value(self.status)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestResult":
        return cls(
            name=as_text(data.get("name")) or "",
            result=as_text(data.get("result")) or "",
            status=coerce_status(data.get("status", TestStatus.INCONCLUSIVE)),
        )


@dataclass(frozen=True)
class Conflict:
    """Two or more occurrences of one test whose statuses disagree."""
    test_name: str
    occurrences: List[TestResult]
    suggested: TestResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_name": self.test_name,
            "occurrences": [o.to_dict() for o in self.occurrences],
            "suggested": self.suggested.to_dict(),
        }


@dataclass(frozen=True)
class DeduplicationStats:
    total_input: int
    unique_tests: int
    duplicates_removed: int
    conflicts_detected: int


@dataclass(frozen=True)
class DeduplicationResult:
    tests: List[TestResult]
    conflicts: List[Conflict]
    stats: DeduplicationStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tests": [t.to_dict() for t in self.tests],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "stats": asdict(self.stats),
        }


# =============================================================================
# Verification
# =============================================================================

@dataclass(frozen=True)
class VerificationCheck:
    """Outcome of one of the seven fixed verification checks."""
    name: str
    passed: bool
    points: int
    max_points: int
    details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "points": self.points,
            "max_points": self.max_points,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationCheck":
        return cls(
            name=data["name"],
            passed=bool(data.get("passed", False)),
            points=int(data.get("points", 0)),
            max_points=int(data.get("max_points", data.get("maxPoints", 0))),
            details=data.get("details"),
        )


@dataclass(frozen=True)
class VerificationResult:
    """Scored verification of one document (or one merged date group)."""
    score: int
    level: VerificationLevel
    checks: List[VerificationCheck]
    is_verified: bool
    has_future_date: bool = False
    is_suspiciously_fast: bool = False
    is_older_than_2_years: bool = False

    def get_check(self, name: str) -> Optional[VerificationCheck]:
        for check in self.checks:
            if check.name == name:
                return check
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": _enum_value(self.level),
            "checks": [c.to_dict() for c in self.checks],
            "is_verified": self.is_verified,
            "has_future_date": self.has_future_date,
            "is_suspiciously_fast": self.is_suspiciously_fast,
            "is_older_than_2_years": self.is_older_than_2_years,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationResult":
        score = int(data.get("score", 0))
        return cls(
            score=score,
            level=parse_level(data.get("level"), score),
            checks=[VerificationCheck.from_dict(c) for c in data.get("checks", [])],
            is_verified=bool(data.get("is_verified", False)),
            has_future_date=bool(data.get("has_future_date", False)),
            is_suspiciously_fast=bool(data.get("is_suspiciously_fast", False)),
            is_older_than_2_years=bool(data.get("is_older_than_2_years", False)),
        )


# =============================================================================
# Identity profile
# =============================================================================

@dataclass(frozen=True)
class NoProfile:
    """No identity is known: the name check is reported but never gates."""


@dataclass(frozen=True)
class Profile:
    """The user's known name parts."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None


IdentityProfile = Union[NoProfile, Profile]

NO_PROFILE = NoProfile()


def as_identity_profile(value: Any) -> IdentityProfile:
    """Accept None, a mapping with first_name/last_name, or a profile object."""
    if value is None:
        return NO_PROFILE
    if isinstance(value, (NoProfile, Profile)):
        return value
    if isinstance(value, dict):
        return Profile(first_name=value.get("first_name"), last_name=value.get("last_name"))
    return Profile(
        first_name=getattr(value, "first_name", None),
        last_name=getattr(value, "last_name", None),
    )


# =============================================================================
# LLM extraction (upstream record)
# =============================================================================

@dataclass(frozen=True)
class ExtractedTest:
    name: str
    result: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class LLMResponse:
    """Structured record produced by the LLM from a document's raw text."""
    collection_date: Optional[str] = None
    tests: List[ExtractedTest] = field(default_factory=list)
    test_type: Optional[str] = None
    specimen_source: Optional[str] = None
    notes: Optional[str] = None
    lab_name: Optional[str] = None
    patient_name: Optional[str] = None
    health_card_present: Optional[bool] = None
    accession_number: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LLMResponse":
        raw_tests = data.get("tests")
        if not isinstance(raw_tests, list):
            raw_tests = []

        tests = []
        for t in raw_tests:
            if not isinstance(t, dict):
                t = {}
            tests.append(ExtractedTest(
                name=as_text(t.get("name")) or "",
                result=as_text(t.get("result")) or "",
                notes=as_text(t.get("notes")),
            ))

        return cls(
            collection_date=as_text(data.get("collection_date")),
            tests=tests,
            test_type=as_text(data.get("test_type")),
            specimen_source=as_text(data.get("specimen_source")),
            notes=as_text(data.get("notes")),
            lab_name=as_text(data.get("lab_name")),
            patient_name=as_text(data.get("patient_name")),
            health_card_present=data.get("health_card_present"),
            accession_number=as_text(data.get("accession_number")),
        )


# =============================================================================
# Parsed documents and date groups
# =============================================================================

@dataclass(frozen=True)
class VerificationDetails:
    lab_name: Optional[str] = None
    patient_name: Optional[str] = None
    has_health_card: bool = False
    has_accession_number: bool = False
    name_matched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerificationDetails":
        return cls(
            lab_name=as_text(data.get("lab_name")),
            patient_name=as_text(data.get("patient_name")),
            has_health_card=bool(data.get("has_health_card", False)),
            has_accession_number=bool(data.get("has_accession_number", False)),
            name_matched=bool(data.get("name_matched", False)),
        )


@dataclass(frozen=True)
class ParsedDocument:
    """One successfully parsed, normalized and scored document."""
    collection_date: Optional[str]
    tests: List[TestResult]
    test_type: Optional[str] = None
    notes: Optional[str] = None
    is_verified: bool = False
    verification_details: Optional[VerificationDetails] = None
    verification: Optional[VerificationResult] = None
    conflicts: List[Conflict] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedDocument":
        details = data.get("verification_details")
        verification = data.get("verification")
        return cls(
            collection_date=as_text(data.get("collection_date")),
            tests=[TestResult.from_dict(t) for t in data.get("tests") or []],
            test_type=as_text(data.get("test_type")),
            notes=as_text(data.get("notes")),
            is_verified=bool(data.get("is_verified", False)),
            verification_details=VerificationDetails.from_dict(details) if details else None,
            verification=VerificationResult.from_dict(verification) if verification else None,
        )


@dataclass(frozen=True)
class DateGroupedResult:
    """Clinical summary of every document sharing one collection date."""
    date: Optional[str]
    tests: List[TestResult]
    test_type: str
    overall_status: TestStatus
    is_verified: bool
    verification_details: List[VerificationDetails]
    notes: str
    conflicts: List[Conflict]
    source_doc_indices: List[int]
    verification: Optional[VerificationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "tests": [t.to_dict() for t in self.tests],
            "test_type": self.test_type,
            "overall_status": _enum_value(self.overall_status),
            "is_verified": self.is_verified,
            "verification_details": [v.to_dict() for v in self.verification_details],
            "notes": self.notes,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "source_doc_indices": list(self.source_doc_indices),
            "verification": self.verification.to_dict() if self.verification else None,
        }
