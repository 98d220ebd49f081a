from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from uuid import uuid4
from sqlmodel import Field, SQLModel, Column, JSON


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LabResultRecord(SQLModel, table=True):
    """
    Stored STI result for one collection date of one user.

    Keeps the verification outcome together with the extraction fields that
    reverification needs, so scores can be recomputed without re-running
    OCR or the LLM.
    """
    __tablename__ = "test_result"

    id: str = Field(default_factory=_new_id, primary_key=True)
    user_id: str = Field(index=True)

    # Clinical summary
    collection_date: Optional[str] = Field(default=None, index=True)  # YYYY-MM-DD
    test_type: str = Field(default="STI Panel")
    status: str = Field(default="pending")  # overall: positive, negative, pending
    tests: List[Dict[str, Any]] = Field(default=[], sa_column=Column(JSON))
    notes: Optional[str] = Field(default=None)

    # Verification
    is_verified: bool = Field(default=False)
    verification_score: Optional[int] = Field(default=None)
    verification_level: Optional[str] = Field(default=None)
    verification_checks: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    has_future_date: Optional[bool] = Field(default=None)  # NULL on rows stored before the flag existed

    # Extraction fields kept for reverification
    extracted_patient_name: Optional[str] = Field(default=None)
    extracted_lab_name: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
