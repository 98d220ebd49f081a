"""
Result Routes - stored per-date results and profile reverification.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from backend.api.verification import ProfileIn
from backend.core.database import get_session
from backend.models.db import LabResultRecord
from workers.verification.date_grouping import group_parsed_documents_by_date
from workers.verification.errors import DocumentParsingError
from workers.verification.models import DateGroupedResult, Profile
from workers.verification.pipeline import build_parsed_document
from workers.verification.reverify import reverify_name_matches

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Results"])


class SubmitResultsRequest(BaseModel):
    user_id: str
    documents: List[Dict[str, Any]]
    profile: Optional[ProfileIn] = None
    reference_time: Optional[datetime] = None


class ReverifyRequest(BaseModel):
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


# =============================================================================
# Persistence helpers
# =============================================================================

def record_from_group(user_id: str, group: DateGroupedResult) -> LabResultRecord:
    """Build the stored row for one date group."""
    verification = group.verification
    patient_name = next((d.patient_name for d in group.verification_details if d.patient_name), None)
    lab_name = next((d.lab_name for d in group.verification_details if d.lab_name), None)

    return LabResultRecord(
        user_id=user_id,
        collection_date=group.date,
        test_type=group.test_type,
        status=group.overall_status.value,
        tests=[t.to_dict() for t in group.tests],
        notes=group.notes or None,
        # Merged gate when available so verified always implies the score threshold
        is_verified=verification.is_verified if verification else group.is_verified,
        verification_score=verification.score if verification else None,
        verification_level=verification.level.value if verification else None,
        verification_checks=[c.to_dict() for c in verification.checks] if verification else None,
        has_future_date=verification.has_future_date if verification else None,
        extracted_patient_name=patient_name,
        extracted_lab_name=lab_name,
    )


def save_date_groups(session: Session, user_id: str, groups: List[DateGroupedResult]) -> List[LabResultRecord]:
    """Persist one row per date group."""
    records = [record_from_group(user_id, group) for group in groups]
    for record in records:
        session.add(record)
    session.commit()
    for record in records:
        session.refresh(record)

    logger.info(f"Saved {len(records)} results for user {user_id}")
    return records


def record_to_dict(record: LabResultRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "collection_date": record.collection_date,
        "test_type": record.test_type,
        "status": record.status,
        "tests": record.tests,
        "notes": record.notes,
        "is_verified": record.is_verified,
        "verification_score": record.verification_score,
        "verification_level": record.verification_level,
        "verification_checks": record.verification_checks,
        "has_future_date": record.has_future_date,
        "extracted_patient_name": record.extracted_patient_name,
        "extracted_lab_name": record.extracted_lab_name,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


# =============================================================================
# Routes
# =============================================================================

@router.post("/results")
def submit_results(request: SubmitResultsRequest, session: Session = Depends(get_session)):
    """Parse, group and store a batch of LLM extractions."""
    profile = request.profile.to_profile() if request.profile else None
    reference_time = request.reference_time or datetime.now(timezone.utc)

    documents = []
    errors = []
    for index, extraction in enumerate(request.documents):
        try:
            documents.append(build_parsed_document(
                extraction,
                profile=profile,
                reference_time=reference_time,
                file_identifier=f"document_{index}",
            ))
        except DocumentParsingError as e:
            logger.error(f"Document {index} for user {request.user_id} failed: {e.message}")
            errors.append(e.to_dict())

    groups = group_parsed_documents_by_date(documents)
    records = save_date_groups(session, request.user_id, groups)

    return {
        "results": [record_to_dict(r) for r in records],
        "errors": errors,
    }


@router.get("/results")
def list_results(
    user_id: str = Query(..., description="Owner of the results"),
    session: Session = Depends(get_session),
):
    """List a user's stored results, newest collection date first."""
    records = session.exec(
        select(LabResultRecord)
        .where(LabResultRecord.user_id == user_id)
        .order_by(LabResultRecord.collection_date.desc())
    ).all()
    return {"results": [record_to_dict(r) for r in records], "total": len(records)}


@router.get("/results/{result_id}")
def get_result(result_id: str, session: Session = Depends(get_session)):
    record = session.get(LabResultRecord, result_id)
    if not record:
        raise HTTPException(status_code=404, detail="Result not found")
    return record_to_dict(record)


@router.post("/profile/reverify")
def reverify_profile(request: ReverifyRequest, session: Session = Depends(get_session)):
    """Re-run the name check on a user's stored results after a name change."""
    profile = None
    if request.first_name or request.last_name:
        profile = Profile(first_name=request.first_name, last_name=request.last_name)

    updated = reverify_name_matches(session, request.user_id, profile)
    return {"updated": updated}
