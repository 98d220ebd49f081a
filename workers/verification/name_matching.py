"""
Patient name matching against the user's identity profile.

Names coming off a lab report are in any order ("SMITH, JOHN"), may carry
accents the profile lacks, and may include initials. Matching is done on
word parts, order-free.
"""

import re
import unicodedata
from typing import List, Optional

from workers.verification.models import IdentityProfile, Profile, as_identity_profile, as_text

# Parts shorter than this are dropped (initials would match too easily)
MIN_PART_LENGTH = 2

# Minimum length of the shorter word for a substring match to count
MIN_SUBSTRING_LENGTH = 3


def normalize_person_name(name: Optional[str]) -> str:
    """Strip diacritics, lowercase, turn punctuation into spaces and collapse whitespace."""
    name = as_text(name)
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    lowered = stripped.lower()
    spaced = re.sub(r"[^\w\s]|_", " ", lowered)
    return re.sub(r"\s+", " ", spaced).strip()


def name_parts(name: Optional[str]) -> List[str]:
    return [p for p in normalize_person_name(name).split(" ") if len(p) >= MIN_PART_LENGTH]


def _words_match(user_word: str, extracted_word: str) -> bool:
    if user_word == extracted_word:
        return True
    shorter, longer = sorted((user_word, extracted_word), key=len)
    return len(shorter) >= MIN_SUBSTRING_LENGTH and shorter in longer


def match_names(extracted_name: Optional[str], profile: Optional[IdentityProfile]) -> bool:
    """
    Check whether the name on the document belongs to the profile's owner.

    At least min(2, number of user name parts) user parts must match an
    extracted part, so first and last must both match when both are known.
    Returns False when either side is missing.
    """
    profile = as_identity_profile(profile)
    if not isinstance(profile, Profile) or not extracted_name:
        return False

    extracted_parts = name_parts(extracted_name)
    user_parts = name_parts(profile.first_name) + name_parts(profile.last_name)
    if not extracted_parts or not user_parts:
        return False

    matched = sum(
        1 for user_word in user_parts
        if any(_words_match(user_word, extracted) for extracted in extracted_parts)
    )
    return matched >= min(2, len(user_parts))
