"""
Verification Routes - stateless scoring, merging and date grouping.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from workers.verification.date_grouping import group_parsed_documents_by_date
from workers.verification.merger import merge_verification_results
from workers.verification.models import ParsedDocument, Profile, VerificationResult
from workers.verification.scoring import calculate_verification_score

router = APIRouter(tags=["Verification"])


class ProfileIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def to_profile(self) -> Profile:
        return Profile(first_name=self.first_name, last_name=self.last_name)


class ScoreRequest(BaseModel):
    extraction: Dict[str, Any]
    profile: Optional[ProfileIn] = None
    reference_time: Optional[datetime] = None


@router.post("/verification/score")
def score_document(request: ScoreRequest):
    """Score one LLM extraction."""
    result = calculate_verification_score(
        request.extraction,
        identity_profile=request.profile.to_profile() if request.profile else None,
        reference_time=request.reference_time,
    )
    return result.to_dict()


@router.post("/verification/merge")
def merge_results(results: List[Dict[str, Any]]):
    """Merge the verification results of documents sharing a collection date."""
    merged = merge_verification_results([VerificationResult.from_dict(r) for r in results])
    return merged.to_dict() if merged else None


@router.post("/documents/group")
def group_documents(documents: List[Dict[str, Any]]):
    """Group parsed documents into one summary per collection date."""
    groups = group_parsed_documents_by_date([ParsedDocument.from_dict(d) for d in documents])
    return [g.to_dict() for g in groups]
