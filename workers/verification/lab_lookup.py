"""
Lab Reference Directory.

Matches the lab name an LLM read off a report against known Canadian
laboratories (config/labs.yaml). Matching is case and accent insensitive
and tries, in order:
1. Exact abbreviation ("PHO")
2. Exact canonical name or variation
3. Substring containment either way
4. Fuzzy match using RapidFuzz (OCR typos)
"""

import re
import yaml
import logging
import unicodedata
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Tuple

from rapidfuzz import fuzz, process

from backend.core.config import get_settings, project_root
from workers.verification.models import as_text

logger = logging.getLogger(__name__)

# Shorter inputs may only match exactly, never as a substring of a variation
MIN_CONTAINED_INPUT_LENGTH = 4


@dataclass(frozen=True)
class LabRecord:
    """One known laboratory."""
    lab_id: str
    canonical_name: str
    province: Optional[str] = None
    health_card_type: Optional[str] = None
    accession_format: Optional[Pattern] = None
    abbreviations: Tuple[str, ...] = ()
    variations: Tuple[str, ...] = field(default_factory=tuple)

    def accepts_accession(self, accession_number: str) -> bool:
        """True when the lab's known accession format matches the full number."""
        if self.accession_format is None:
            return False
        return self.accession_format.fullmatch(accession_number.strip()) is not None


def fold_lab_name(name: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped.lower()).strip()


class LabDirectory:
    """
    Known laboratories with name lookup.

    Usage:
        directory = LabDirectory()
        lab = directory.find_lab_by_name("LifeLabs Medical Laboratory")
    """

    def __init__(
        self,
        labs_path: Optional[Path] = None,
        fuzzy_threshold: Optional[float] = None,
        labs: Optional[List[LabRecord]] = None,
    ):
        """
        Initialize the directory.

        Args:
            labs_path: Path to labs.yaml. Defaults to the configured path.
            fuzzy_threshold: Minimum similarity (0-1) for a fuzzy match
            labs: Explicit lab records; skips loading from YAML
        """
        settings = get_settings()
        self.fuzzy_threshold = (
            fuzzy_threshold if fuzzy_threshold is not None
            else settings.lab_lookup.fuzzy_threshold
        )

        if labs is not None:
            self.labs = list(labs)
        else:
            if labs_path is None:
                labs_path = Path(settings.lab_lookup.labs_path)
            if not labs_path.is_absolute():
                labs_path = project_root / labs_path
            self.labs = self._load_labs(labs_path)

        self._build_indexes()

    def _load_labs(self, path: Path) -> List[LabRecord]:
        """Load lab records from YAML."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            labs = []
            for entry in data.get('labs', []):
                pattern = entry.get('accession_format')
                labs.append(LabRecord(
                    lab_id=entry['id'],
                    canonical_name=entry['canonical_name'],
                    province=entry.get('province'),
                    health_card_type=entry.get('health_card_type'),
                    accession_format=re.compile(pattern) if pattern else None,
                    abbreviations=tuple(entry.get('abbreviations') or ()),
                    variations=tuple(entry.get('variations') or ()),
                ))

            logger.info(f"Loaded {len(labs)} labs from {path}")
            return labs

        except Exception as e:
            logger.error(f"Failed to load labs from {path}: {e}")
            return []

    def _build_indexes(self) -> None:
        self._abbreviations: Dict[str, LabRecord] = {}
        self._names: Dict[str, LabRecord] = {}
        self._variations: List[Tuple[str, LabRecord]] = []

        for lab in self.labs:
            for abbr in lab.abbreviations:
                self._abbreviations.setdefault(fold_lab_name(abbr), lab)
            for name in (lab.canonical_name,) + lab.variations:
                folded = fold_lab_name(name)
                self._names.setdefault(folded, lab)
                self._variations.append((folded, lab))

    def find_lab_by_name(self, raw_name: Any) -> Optional[LabRecord]:
        """
        Find the lab a raw name refers to.

        Args:
            raw_name: Lab name as extracted from the document

        Returns:
            The matching LabRecord, or None
        """
        raw_name = as_text(raw_name)
        if not raw_name or not raw_name.strip():
            return None

        normalized = fold_lab_name(raw_name)

        if normalized in self._abbreviations:
            return self._abbreviations[normalized]

        if normalized in self._names:
            return self._names[normalized]

        for variation, lab in self._variations:
            if variation in normalized:
                return lab
            if len(normalized) >= MIN_CONTAINED_INPUT_LENGTH and normalized in variation:
                return lab

        return self._fuzzy_match(normalized)

    def _fuzzy_match(self, normalized: str) -> Optional[LabRecord]:
        if not self._variations:
            return None

        choices = [variation for variation, _ in self._variations]
        match = process.extractOne(
            normalized,
            choices,
            scorer=fuzz.ratio,
            score_cutoff=self.fuzzy_threshold * 100,
        )
        if match is None:
            return None

        _, score, index = match
        lab = self._variations[index][1]
        logger.debug(f"Fuzzy lab match '{normalized}' -> {lab.canonical_name} ({score:.1f})")
        return lab


@lru_cache()
def get_lab_directory() -> LabDirectory:
    """Get the shared directory loaded from the configured reference file."""
    return LabDirectory()


def find_lab_by_name(raw_name: Any) -> Optional[LabRecord]:
    """Look up a lab in the shared directory."""
    return get_lab_directory().find_lab_by_name(raw_name)
