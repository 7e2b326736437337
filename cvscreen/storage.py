# storage.py
# Capability interfaces the screening pipeline depends on, plus the default adapters.

import abc
import asyncio
import hmac
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from cvscreen import crud

logger = logging.getLogger(__name__)


class DocumentNotFoundError(LookupError):
    pass


class ApplicantNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_admin: bool = True


# --- Interfaces ---

class DocumentStore(abc.ABC):
    @abc.abstractmethod
    async def fetch_document_bytes(self, path: str) -> bytes:
        """Return the raw bytes of a stored document or raise DocumentNotFoundError."""

    @abc.abstractmethod
    async def save_document(self, filename: str, data: bytes) -> str:
        """Store a document and return the path it can be fetched with."""


class ResultStore(abc.ABC):
    @abc.abstractmethod
    async def persist_result(self, applicant_id: str, result) -> None:
        """Store a ScreeningResult against an applicant."""


class IdentityProvider(abc.ABC):
    @abc.abstractmethod
    def current_user(self, credential: Optional[str]) -> Optional[Identity]:
        """Resolve the caller's identity, None when unauthenticated."""


# --- Default adapters ---

def _write_new_file(target: Path, data: bytes) -> None:
    # "xb" refuses to replace an existing document
    with open(target, "xb") as fh:
        fh.write(data)


class LocalDocumentStore(DocumentStore):
    """Keeps uploaded CVs as files under a single root directory."""

    def __init__(self, root):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise DocumentNotFoundError(f"Document path escapes storage root: {path}")
        return target

    async def fetch_document_bytes(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise DocumentNotFoundError(f"Document not found: {path}")
        return await run_in_threadpool(target.read_bytes)

    async def save_document(self, filename: str, data: bytes) -> str:
        name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}-{Path(filename).name}"
        target = self._resolve(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        await run_in_threadpool(_write_new_file, target, data)
        logger.info(f"Stored document {name} ({len(data)} bytes)")
        return name


class SqlResultStore(ResultStore):
    def __init__(self, session: AsyncSession):
        self.session = session
        # one AsyncSession must not run two transactions at once
        self._lock = asyncio.Lock()

    async def persist_result(self, applicant_id: str, result) -> None:
        async with self._lock:
            applicant = await crud.save_screening_result(
                self.session,
                applicant_id,
                result.extracted_text,
                result.matched_keywords,
                result.score,
            )
        if applicant is None:
            raise ApplicantNotFoundError(f"Applicant not found: {applicant_id}")


class ApiKeyIdentityProvider(IdentityProvider):
    """
    Checks an API key header against the configured key.
    With no key configured the service runs in open mode.
    """

    def __init__(self, expected_key: Optional[str]):
        self.expected_key = expected_key

    def current_user(self, credential: Optional[str]) -> Optional[Identity]:
        if not self.expected_key:
            return Identity(user_id="anonymous")
        if credential and hmac.compare_digest(credential.encode(), self.expected_key.encode()):
            return Identity(user_id="api-key")
        return None
