# models.py
# Defines the applicants table using SQLAlchemy ORM.

import enum
import re
import uuid

from sqlalchemy import (Column, Integer, String, Float, Date, DateTime, Text, JSON,
                        Enum as SAEnum)
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from cvscreen.database import Base


class ApplicationStatus(str, enum.Enum):
    pending = "pending"
    reviewed = "reviewed"
    accepted = "accepted"
    rejected = "rejected"


def _new_id() -> str:
    return str(uuid.uuid4())


class Applicant(Base):
    __tablename__ = "applicants"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=False)
    email = Column(String, index=True, nullable=False)
    highest_degree = Column(String, nullable=False)
    years_of_experience = Column(Integer, nullable=False)
    preferred_course = Column(String, index=True, nullable=False)
    cv_file_path = Column(String, nullable=False)
    comments = Column(Text, nullable=True)

    # Screening output, written by the CV parsing pipeline
    cv_extracted_text = Column(Text, nullable=True)
    matched_keywords = Column(JSON, nullable=True)
    keyword_match_score = Column(Float, nullable=True, default=0)

    status = Column(SAEnum(ApplicationStatus, name="application_status"),
                    nullable=False, default=ApplicationStatus.pending, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @validates('email')
    def validate_email(self, key, address):
        if address and not re.match(r"[^@]+@[^@]+\.[^@]+", address):
            raise ValueError("Invalid email address format")
        return address

    @validates('keyword_match_score')
    def validate_score(self, key, score):
        if score is not None and not 0 <= score <= 100:
            raise ValueError("Score must be between 0 and 100")
        return score
