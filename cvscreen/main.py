# main.py

import io
import re
import uuid
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, UploadFile, HTTPException, Form, Depends, Query, Security, status
from fastapi.security import APIKeyHeader
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from loguru import logger

from cvscreen import crud
from cvscreen.analysis_engine import pipeline
from cvscreen.analysis_engine.vocabulary import get_vocabulary
from cvscreen.config import APP_API_KEY, CV_STORAGE_DIR, LOG_FORMAT, LOG_LEVEL, MAX_FILE_BYTES, BATCH_CONCURRENCY
from cvscreen.database import engine, Base, AsyncSessionLocal
from cvscreen.models import ApplicationStatus
from cvscreen.notifications import LogNotifier, Notifier, build_status_message
from cvscreen.schemas import (Applicant as ApplicantSchema, BatchScoreResponse, ParseCvRequest, ParseCvResponse,
                              RescoreRequest, RescoreResponse, ScoreResult, StatusUpdate, StatusUpdateResponse,
                              SubmissionResponse, VocabularyResponse)
from cvscreen.storage import (ApiKeyIdentityProvider, DocumentNotFoundError, DocumentStore, Identity,
                              IdentityProvider, LocalDocumentStore, SqlResultStore)

logger.add("logs/file_{time}.log", rotation="1 week", level=LOG_LEVEL, format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    vocabulary = get_vocabulary()
    Path(CV_STORAGE_DIR).mkdir(parents=True, exist_ok=True)
    logger.info(f"Vocabulary {vocabulary.version} loaded ({len(vocabulary)} terms), database tables checked/created.")
    yield
    logger.info("Application shutdown...")
    await engine.dispose()

app = FastAPI(
    title="cvscreen",
    description="Applicant CV screening: PDF text extraction and keyword match scoring.",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- DEPENDENCIES ---

async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_document_store() -> DocumentStore:
    return LocalDocumentStore(CV_STORAGE_DIR)


def get_identity_provider() -> IdentityProvider:
    return ApiKeyIdentityProvider(APP_API_KEY)


def get_notifier() -> Notifier:
    return LogNotifier()


API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


async def require_user(
    api_key: Optional[str] = Security(api_key_header),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    user = identity_provider.current_user(api_key)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
        )
    return user


async def _read_pdf_upload(file: UploadFile) -> bytes:
    if file.content_type != "application/pdf" and not (file.filename or "").lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Please upload a PDF file only")

    file.file.seek(0, 2)
    file_size = file.file.tell()
    await file.seek(0)
    if file_size > MAX_FILE_BYTES:
        raise HTTPException(status_code=413, detail="File too large. Maximum size is 10MB.")

    return await file.read()


def _split_keywords(raw: Optional[str]) -> List[str]:
    return [k.strip() for k in (raw or "").split(",") if k.strip()]


# --- APPLICATIONS ---

@app.post("/applicants/", response_model=SubmissionResponse, status_code=201, tags=["Applications"])
async def submit_application(
    full_name: str = Form(..., min_length=2, max_length=100),
    date_of_birth: date = Form(...),
    email: str = Form(..., max_length=255),
    highest_degree: str = Form(..., min_length=1),
    years_of_experience: int = Form(..., ge=0, le=50),
    preferred_course: str = Form(..., min_length=1),
    comments: Optional[str] = Form(None, max_length=1000),
    cv: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
):
    try:
        content = await _read_pdf_upload(cv)
        cv_file_path = await documents.save_document(cv.filename or "cv.pdf", content)

        applicant = await crud.create_applicant(db, {
            "full_name": full_name,
            "date_of_birth": date_of_birth,
            "email": email,
            "highest_degree": highest_degree,
            "years_of_experience": years_of_experience,
            "preferred_course": preferred_course,
            "comments": comments,
            "cv_file_path": cv_file_path,
        })

        applicant_id = applicant.id

        # Screening problems must not fail the submission itself
        screening = None
        try:
            result = await pipeline.process_applicant_cv(
                applicant_id, cv_file_path, [], documents, SqlResultStore(db)
            )
            screening = ScoreResult(**result.to_dict())
        except Exception as e:
            logger.error(f"CV parsing error (non-blocking) for {applicant_id}: {e}", exc_info=True)

        await db.refresh(applicant)
        return SubmissionResponse(applicant=ApplicantSchema.model_validate(applicant), screening=screening)

    except HTTPException as he:
        raise he
    except ValueError as e:
        logger.warning(f"Validation Error: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error in /applicants/ endpoint: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An internal server error occurred.")


@app.get("/applicants/", response_model=list[ApplicantSchema], tags=["Applications"])
async def list_applicants(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    user: Identity = Depends(require_user),
):
    return await crud.list_applicants(db, skip=skip, limit=limit, status=status_filter)


@app.get("/applicants/{applicant_id}", response_model=ApplicantSchema, tags=["Applications"])
async def get_applicant(
    applicant_id: str,
    db: AsyncSession = Depends(get_db),
    user: Identity = Depends(require_user),
):
    applicant = await crud.get_applicant(db, applicant_id)
    if applicant is None:
        raise HTTPException(status_code=404, detail="Applicant not found")
    return applicant


@app.patch("/applicants/{applicant_id}/status", response_model=StatusUpdateResponse, tags=["Applications"])
async def update_applicant_status(
    applicant_id: str,
    update: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: Identity = Depends(require_user),
):
    applicant = await crud.update_status(db, applicant_id, update.status)
    if applicant is None:
        raise HTTPException(status_code=404, detail="Applicant not found")

    logger.info(f"Status of {applicant_id} set to {update.status.value} by {user.user_id}")
    message = build_status_message(update.status.value, applicant.full_name, applicant.preferred_course)
    try:
        await run_in_threadpool(notifier.send, applicant.email, message)
        notification_sent = True
    except Exception as e:
        logger.error(f"Error sending status notification to {applicant.email}: {e}", exc_info=True)
        notification_sent = False

    return StatusUpdateResponse(applicant=ApplicantSchema.model_validate(applicant),
                                notification_sent=notification_sent)


def _download_name(full_name: str) -> str:
    # header-safe: ASCII letters, digits, dot, dash, underscore
    return re.sub(r"[^A-Za-z0-9._-]+", "_", full_name.strip()) + "_CV.pdf"


@app.get("/applicants/{applicant_id}/cv", tags=["Applications"])
async def download_cv(
    applicant_id: str,
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
    user: Identity = Depends(require_user),
):
    applicant = await crud.get_applicant(db, applicant_id)
    if applicant is None:
        raise HTTPException(status_code=404, detail="Applicant not found")
    try:
        content = await documents.fetch_document_bytes(applicant.cv_file_path)
    except DocumentNotFoundError as e:
        logger.warning(f"CV missing for {applicant_id}: {e}")
        raise HTTPException(status_code=404, detail="CV not found")

    logger.info(f"CV of {applicant_id} downloaded by {user.user_id}")
    return StreamingResponse(io.BytesIO(content), media_type="application/pdf",
        headers={"Content-Disposition": f"attachment;filename={_download_name(applicant.full_name)}"})


@app.post("/applicants/rescore", response_model=RescoreResponse, tags=["Batch Processing"])
async def rescore_all_applicants(
    request: Optional[RescoreRequest] = None,
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
    user: Identity = Depends(require_user),
):
    """Re-screens every stored CV; CVs without usable text keep their previous result."""
    custom_keywords = request.custom_keywords if request else []
    applicants = await crud.list_cv_paths(db)
    logger.info(f"Rescoring {len(applicants)} applicants, requested by {user.user_id}")

    outcomes = await pipeline.rescore_applicants(
        applicants, custom_keywords, documents, SqlResultStore(db), BATCH_CONCURRENCY
    )

    results = [
        {
            "applicant_id": applicant_id,
            "status": outcome.value,
            "score": result.score if outcome == pipeline.RescoreStatus.scored else None,
            "matched_keywords": list(result.matched_keywords) if outcome == pipeline.RescoreStatus.scored else [],
        }
        for applicant_id, outcome, result in outcomes
    ]
    counts = {s: sum(1 for r in results if r["status"] == s.value) for s in pipeline.RescoreStatus}
    return {
        "processed_count": len(results),
        "scored_count": counts[pipeline.RescoreStatus.scored],
        "skipped_count": counts[pipeline.RescoreStatus.skipped],
        "failed_count": counts[pipeline.RescoreStatus.failed],
        "results": results,
    }


# --- SCREENING ---

@app.post("/parse-cv/", response_model=ParseCvResponse, tags=["Core Functionality"])
async def parse_cv(
    request: ParseCvRequest,
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
):
    try:
        result = await pipeline.process_applicant_cv(
            request.applicant_id,
            request.cv_file_path,
            request.custom_keywords,
            documents,
            SqlResultStore(db),
        )
        return ParseCvResponse(success=True, **result.to_dict())
    except LookupError as e:
        logger.warning(f"Lookup Error: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        logger.warning(f"Validation Error: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing CV for {request.applicant_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An internal server error occurred.")


@app.post("/score/", response_model=ScoreResult, tags=["Core Functionality"])
async def score_cv(
    file: UploadFile = File(...),
    custom_keywords: Optional[str] = Form(None),
):
    """Scores an uploaded CV without storing anything."""
    content = await _read_pdf_upload(file)
    logger.info(f"Scoring file: {file.filename}")
    result = await run_in_threadpool(pipeline.screen_document, content, _split_keywords(custom_keywords))
    return ScoreResult(**result.to_dict())


@app.post("/score-batch/", response_model=BatchScoreResponse, tags=["Batch Processing"])
async def score_batch(
    files: List[UploadFile] = File(...),
    custom_keywords: Optional[str] = Form(None),
):
    batch_id = str(uuid.uuid4())
    logger.info(f"Starting batch scoring {batch_id} for {len(files)} files")

    documents = []
    for file in files:
        file.file.seek(0, 2)
        size = file.file.tell()
        await file.seek(0)
        if size > MAX_FILE_BYTES:
            logger.warning(f"File {file.filename} skipped (Too Large)")
            continue
        documents.append((file.filename, await file.read()))

    screened = await pipeline.screen_many(documents, _split_keywords(custom_keywords), BATCH_CONCURRENCY)

    # Rank by score (descending); ties keep upload order
    screened.sort(key=lambda item: item[1].score, reverse=True)

    results = [
        {
            "filename": filename,
            "rank": rank,
            "score": result.score,
            "matched_keywords": list(result.matched_keywords),
            "outcome": result.outcome.value,
        }
        for rank, (filename, result) in enumerate(screened, 1)
    ]
    return {"batch_id": batch_id, "processed_count": len(results), "results": results}


@app.get("/vocabulary/", response_model=VocabularyResponse, tags=["Core Functionality"])
async def vocabulary():
    vocab = get_vocabulary()
    return VocabularyResponse(version=vocab.version, categories=vocab.categories)
