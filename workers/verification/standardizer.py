"""
Result and Test Name Standardization Module.

Maps the free text an LLM pulls off an STI lab report onto canonical values:
1. Result strings -> TestStatus (ordered pattern groups, first match wins)
2. Test names -> canonical labels (exact, then substring dictionary match,
   then title-casing with an acronym allowlist)
3. A set of test names -> a panel label ("Full STI Panel", "HIV & Syphilis Panel", ...)

The dictionary lives in config/test_mappings.yaml.
"""

import re
import yaml
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from backend.core.config import get_settings, project_root
from workers.verification.models import TestStatus, as_text

logger = logging.getLogger(__name__)


# =============================================================================
# Result patterns (checked in this order)
# =============================================================================

NEGATIVE_PATTERNS = [
    r"\bnegative\b",
    r"\bnon[- ]?reactive\b",
    r"\bnot detected\b",
    r"\bnot reactive\b",
    r"^absent\b",
    r"no evidence",
    r"no antibodies detected",
    r"no hiv.*detected",
]

# Immunity is a good outcome, so it reads as negative
IMMUNITY_PATTERNS = [
    r"evidence of immunity",
    r"\bimmune\b",
]

POSITIVE_PATTERNS = [
    r"\bpositive\b",
    r"\breactive\b",
    r"\bdetected\b",
    r"antibodies detected",
    r"hiv.*detected",
]

PENDING_PATTERNS = [
    r"pending",
    r"referred to phl",
    r"awaiting",
    r"^\d+\.?\d*\s*[a-z/%]+$",  # bare quantitative value, needs review
]

INDETERMINATE_PATTERNS = [
    r"borderline",
    r"unclear",
    r"equivocal",
    r"indeterminate",
]

RESULT_RULES = [
    (NEGATIVE_PATTERNS, TestStatus.NEGATIVE),
    (IMMUNITY_PATTERNS, TestStatus.NEGATIVE),
    (POSITIVE_PATTERNS, TestStatus.POSITIVE),
    (PENDING_PATTERNS, TestStatus.PENDING),
    (INDETERMINATE_PATTERNS, TestStatus.INCONCLUSIVE),
]

DEFAULT_ACRONYMS = ["HIV", "HSV", "HPV", "HBV", "HCV", "HAV", "RPR", "STI", "STD"]


def standardize_result(raw_result: Any) -> TestStatus:
    """
    Classify a free-text lab result.

    Unmatched or empty input is inconclusive; it never falls through to negative.
    """
    raw_result = as_text(raw_result)
    if not raw_result or not raw_result.strip():
        return TestStatus.INCONCLUSIVE

    cleaned = raw_result.strip().lower()

    for patterns, status in RESULT_RULES:
        if any(re.search(p, cleaned) for p in patterns):
            return status

    return TestStatus.INCONCLUSIVE


# =============================================================================
# Test name normalization
# =============================================================================

class TestNameStandardizer:
    """
    Normalizes raw lab test names against the terminology dictionary.

    Tier 1: Exact match on the uppercased name
    Tier 2: Dictionary key contained in the name (file order)
    Tier 3: Title case, with allowlisted acronyms kept uppercase
    """

    __test__ = False

    def __init__(self, mappings_path: Optional[Path] = None):
        """
        Initialize the standardizer.

        Args:
            mappings_path: Path to test_mappings.yaml. Defaults to the configured path.
        """
        if mappings_path is None:
            mappings_path = Path(get_settings().standardization.mappings_path)
        if not mappings_path.is_absolute():
            mappings_path = project_root / mappings_path

        self.mappings: Dict[str, str] = {}
        self.acronyms: Set[str] = set(DEFAULT_ACRONYMS)

        self._load_mappings(mappings_path)

    def _load_mappings(self, path: Path) -> None:
        """Load the terminology dictionary from YAML."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Dict order is file order, which decides substring precedence
            self.mappings = {
                str(raw).upper(): str(canonical)
                for raw, canonical in (data.get('mappings') or {}).items()
            }
            acronyms = data.get('acronyms')
            if acronyms:
                self.acronyms = {str(a).upper() for a in acronyms}

            logger.info(f"Loaded {len(self.mappings)} test name mappings")

        except Exception as e:
            logger.error(f"Failed to load test mappings from {path}: {e}")
            self.mappings = {}

    def normalize(self, raw_name: Any) -> str:
        raw_name = as_text(raw_name)
        if not raw_name or not raw_name.strip():
            return "Unknown"

        upper = raw_name.strip().upper()

        if upper in self.mappings:
            return self.mappings[upper]

        for key, canonical in self.mappings.items():
            if key in upper:
                return canonical

        return self._title_case(raw_name.strip())

    def _title_case(self, name: str) -> str:
        def fix_word(match: re.Match) -> str:
            word = match.group(0)
            if word.upper() in self.acronyms:
                return word.upper()
            return word[0].upper() + word[1:].lower()

        collapsed = re.sub(r"\s+", " ", name)
        return re.sub(r"[A-Za-z]+", fix_word, collapsed)


@lru_cache()
def get_standardizer() -> TestNameStandardizer:
    """Get the shared standardizer loaded from the configured dictionary."""
    return TestNameStandardizer()


def normalize_test_name(raw_name: Any) -> str:
    """Normalize a raw test name with the shared standardizer."""
    return get_standardizer().normalize(raw_name)


# =============================================================================
# Panel detection
# =============================================================================

# Category -> patterns matched against the lowercased test name
CATEGORY_PATTERNS = [
    ("HIV", [r"hiv"]),
    ("Hepatitis A", [r"hepatitis a\b", r"\bhep a\b", r"^hav$"]),
    ("Hepatitis B", [r"hepatitis b\b", r"\bhep b\b", r"^hbv$"]),
    ("Hepatitis C", [r"hepatitis c\b", r"\bhep c\b", r"^hcv$"]),
    ("Syphilis", [r"syphilis", r"\brpr\b", r"\bvdrl\b"]),
    ("Gonorrhea", [r"gonorrh", r"\bgc\b", r"neisseria"]),
    ("Chlamydia", [r"chlamydia", r"\bct\b"]),
    ("Herpes", [r"herpes", r"hsv"]),
]

FULL_PANEL_MIN_CATEGORIES = 4
FULL_PANEL_LABEL = "Full STI Panel"
DEFAULT_PANEL_LABEL = "STI Panel"


def detect_categories(test_names: Iterable[str]) -> List[str]:
    """Return the distinct STI categories covered by the names, in first-seen order."""
    categories: List[str] = []
    for name in test_names:
        lowered = (name or "").lower().strip()
        for category, patterns in CATEGORY_PATTERNS:
            if category in categories:
                continue
            if any(re.search(p, lowered) for p in patterns):
                categories.append(category)
    return categories


def determine_test_type(test_names: Iterable[str]) -> str:
    """
    Label a document or date group by the categories its tests cover.

    4+ categories -> "Full STI Panel"; 2-3 -> "A & B Panel" (or "A & B & C Panel"); 1 -> "A Test";
    none -> "STI Panel".
    """
    categories = detect_categories(test_names)

    if len(categories) >= FULL_PANEL_MIN_CATEGORIES:
        return FULL_PANEL_LABEL
    if len(categories) >= 2:
        return " & ".join(categories[:3]) + " Panel"
    if len(categories) == 1:
        return f"{categories[0]} Test"
    return DEFAULT_PANEL_LABEL
