# schemas.py

from datetime import date, datetime
from typing import Dict, List

from pydantic import BaseModel, Field

from cvscreen.models import ApplicationStatus


class ParseCvRequest(BaseModel):
    applicant_id: str = Field(..., min_length=1)
    cv_file_path: str = Field(..., min_length=1)
    custom_keywords: List[str] = []


class ScoreResult(BaseModel):
    score: int = Field(..., ge=0, le=100)
    matched_keywords: List[str] = []
    outcome: str
    extracted_text_length: int


class ParseCvResponse(ScoreResult):
    success: bool = True


class Applicant(BaseModel):
    id: str
    full_name: str
    date_of_birth: date
    email: str
    highest_degree: str
    years_of_experience: int
    preferred_course: str
    cv_file_path: str
    comments: str | None = None
    keyword_match_score: float | None = None
    matched_keywords: List[str] | None = None
    status: ApplicationStatus
    created_at: datetime | None = None

    class Config:
        from_attributes = True  # read straight from the SQLAlchemy model


class SubmissionResponse(BaseModel):
    applicant: Applicant
    screening: ScoreResult | None = None


class StatusUpdate(BaseModel):
    status: ApplicationStatus


class StatusUpdateResponse(BaseModel):
    applicant: Applicant
    notification_sent: bool


class VocabularyResponse(BaseModel):
    version: str
    categories: Dict[str, List[str]]


# --- Batch Models ---

class BatchItem(BaseModel):
    filename: str
    rank: int
    score: int
    matched_keywords: List[str]
    outcome: str


class BatchScoreResponse(BaseModel):
    batch_id: str
    processed_count: int
    results: List[BatchItem]


# --- Rescoring Models ---

class RescoreRequest(BaseModel):
    custom_keywords: List[str] = []


class RescoreItem(BaseModel):
    applicant_id: str
    status: str
    score: int | None = None
    matched_keywords: List[str] = []


class RescoreResponse(BaseModel):
    processed_count: int
    scored_count: int
    skipped_count: int
    failed_count: int
    results: List[RescoreItem]
