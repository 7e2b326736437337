# crud.py
# Handles all Create, Read, Update operations for applicants.

import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from cvscreen import models
from cvscreen.config import MAX_STORED_TEXT_CHARS

logger = logging.getLogger(__name__)


async def create_applicant(db: AsyncSession, applicant_data: dict) -> models.Applicant:
    """Inserts a new applicant with proper transaction handling."""
    try:
        db_applicant = models.Applicant(**applicant_data)
        db.add(db_applicant)
        await db.commit()
        await db.refresh(db_applicant)
        logger.info(f"Created applicant {db_applicant.id} ({db_applicant.cv_file_path})")
        return db_applicant
    except Exception as e:
        logger.error(f"Database error during applicant creation: {e}", exc_info=True)
        await db.rollback()
        raise


async def get_applicant(db: AsyncSession, applicant_id: str) -> Optional[models.Applicant]:
    """Fetches a single applicant by its ID."""
    result = await db.execute(select(models.Applicant).where(models.Applicant.id == applicant_id))
    return result.scalar_one_or_none()


async def list_applicants(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    status: Optional[models.ApplicationStatus] = None,
) -> List[models.Applicant]:
    """Retrieves applicants with pagination, newest first."""
    query = select(models.Applicant)
    if status is not None:
        query = query.where(models.Applicant.status == status)
    query = query.order_by(models.Applicant.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def list_cv_paths(db: AsyncSession) -> List[Tuple[str, str]]:
    """Every applicant's (id, cv_file_path), oldest first."""
    result = await db.execute(
        select(models.Applicant.id, models.Applicant.cv_file_path).order_by(models.Applicant.created_at)
    )
    return [(row.id, row.cv_file_path) for row in result.all()]


async def save_screening_result(
    db: AsyncSession,
    applicant_id: str,
    extracted_text: str,
    matched_keywords: List[str],
    score: int,
) -> Optional[models.Applicant]:
    """
    Stores the screening output on the applicant row.
    The extracted text is truncated to MAX_STORED_TEXT_CHARS before storage.
    """
    applicant = await get_applicant(db, applicant_id)
    if applicant is None:
        return None
    try:
        applicant.cv_extracted_text = extracted_text[:MAX_STORED_TEXT_CHARS]
        applicant.matched_keywords = list(matched_keywords)
        applicant.keyword_match_score = score
        await db.commit()
        await db.refresh(applicant)
        return applicant
    except Exception as e:
        logger.error(f"Database error while saving screening result for {applicant_id}: {e}", exc_info=True)
        await db.rollback()
        raise


async def update_status(
    db: AsyncSession, applicant_id: str, status: models.ApplicationStatus
) -> Optional[models.Applicant]:
    applicant = await get_applicant(db, applicant_id)
    if applicant is None:
        return None
    try:
        applicant.status = status
        await db.commit()
        await db.refresh(applicant)
        return applicant
    except Exception as e:
        logger.error(f"Database error while updating status for {applicant_id}: {e}", exc_info=True)
        await db.rollback()
        raise
