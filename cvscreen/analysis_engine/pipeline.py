import asyncio
import enum
import hashlib
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from starlette.concurrency import run_in_threadpool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from cvscreen.config import BATCH_CONCURRENCY, FETCH_ATTEMPTS, SCREENING_CACHE_SIZE
from .keyword_scorer import KeywordScorer
from .text_extractor import DocumentParseError, extract_pages, is_usable_text, join_pages
from .vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)


class ScreeningOutcome(str, enum.Enum):
    scored = "scored"
    no_usable_text = "no_usable_text"


@dataclass(frozen=True)
class ScreeningResult:
    extracted_text: str
    score: int
    matched_keywords: Tuple[str, ...] = ()
    outcome: ScreeningOutcome = ScreeningOutcome.scored

    def to_dict(self, include_text: bool = False) -> dict:
        data = {
            "score": self.score,
            "matched_keywords": list(self.matched_keywords),
            "outcome": self.outcome.value,
            "extracted_text_length": len(self.extracted_text),
        }
        if include_text:
            data["extracted_text"] = self.extracted_text
        return data


class ScreeningCache:
    """Bounded LRU of screening results keyed on document bytes + vocabulary."""

    def __init__(self, max_size: int = 128):
        self.max_size = max_size
        self._entries: "OrderedDict[str, ScreeningResult]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def fingerprint(data: bytes, terms: Sequence[str]) -> str:
        digest = hashlib.sha256(data)
        digest.update(b"\x00")
        digest.update("\n".join(terms).encode("utf-8"))
        return digest.hexdigest()

    def get(self, key: str) -> Optional[ScreeningResult]:
        with self._lock:
            result = self._entries.get(key)
            if result is not None:
                self._entries.move_to_end(key)
            return result

    def put(self, key: str, result: ScreeningResult) -> None:
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def __len__(self):
        return len(self._entries)


_CACHE: Optional[ScreeningCache] = ScreeningCache(SCREENING_CACHE_SIZE) if SCREENING_CACHE_SIZE > 0 else None


def screen_document(
    data: bytes,
    custom_keywords: Optional[Iterable[str]] = None,
    vocabulary: Optional[Vocabulary] = None,
    cache: Optional[ScreeningCache] = None,
) -> ScreeningResult:
    """Extract the text of a PDF and score it against the vocabulary."""
    if vocabulary is None:
        vocabulary = get_vocabulary()
    cache = cache if cache is not None else _CACHE
    custom_keywords = list(custom_keywords or [])

    key = None
    if cache is not None:
        key = cache.fingerprint(data, vocabulary.effective_terms(custom_keywords))
        cached = cache.get(key)
        if cached is not None:
            logger.debug("Screening cache hit for %s", key[:12])
            return cached

    try:
        text = join_pages(extract_pages(data))
    except DocumentParseError as exc:
        logger.warning("PDF extraction failed: %s", exc, exc_info=True)
        text = ""

    logger.info("Extracted %d characters from PDF", len(text))

    if not is_usable_text(text):
        result = ScreeningResult(extracted_text=text, score=0, matched_keywords=(),
                                 outcome=ScreeningOutcome.no_usable_text)
    else:
        match = KeywordScorer(vocabulary).calculate_keyword_match(text, custom_keywords)
        result = ScreeningResult(extracted_text=text, score=match["score"],
                                 matched_keywords=tuple(match["matched_keywords"]))
        logger.info("Match score: %d%%, matched keywords: %s", result.score, ", ".join(result.matched_keywords))

    if key is not None:
        cache.put(key, result)
    return result


@retry(
    wait=wait_random_exponential(min=1, max=10),
    stop=stop_after_attempt(FETCH_ATTEMPTS),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
async def _fetch_document(documents, path: str) -> bytes:
    return await documents.fetch_document_bytes(path)


async def process_applicant_cv(
    applicant_id: str,
    cv_file_path: str,
    custom_keywords: Optional[Iterable[str]],
    documents,
    results,
    skip_unusable: bool = False,
) -> ScreeningResult:
    """
    Fetch an applicant's CV from the document store, screen it and persist the
    outcome through the result store.
    With skip_unusable, a CV without usable text leaves the stored result untouched.
    """
    logger.info("Processing CV for applicant: %s, file: %s", applicant_id, cv_file_path)
    data = await _fetch_document(documents, cv_file_path)
    result = await run_in_threadpool(screen_document, data, custom_keywords)
    if skip_unusable and result.outcome == ScreeningOutcome.no_usable_text:
        logger.info("No usable text for applicant %s, stored result kept", applicant_id)
        return result
    await results.persist_result(applicant_id, result)
    return result


async def screen_many(
    documents: Sequence[Tuple[str, bytes]],
    custom_keywords: Optional[Iterable[str]] = None,
    concurrency: int = BATCH_CONCURRENCY,
) -> List[Tuple[str, ScreeningResult]]:
    """Screen independent documents in parallel, at most `concurrency` at a time."""
    sem = asyncio.Semaphore(max(1, concurrency))
    custom_keywords = list(custom_keywords or [])

    async def _screen(name: str, data: bytes):
        async with sem:
            return name, await run_in_threadpool(screen_document, data, custom_keywords)

    return list(await asyncio.gather(*(_screen(name, data) for name, data in documents)))


class RescoreStatus(str, enum.Enum):
    scored = "scored"
    skipped = "skipped"
    failed = "failed"


async def rescore_applicants(
    applicants: Sequence[Tuple[str, str]],
    custom_keywords: Optional[Iterable[str]],
    documents,
    results,
    concurrency: int = BATCH_CONCURRENCY,
) -> List[Tuple[str, RescoreStatus, Optional[ScreeningResult]]]:
    """
    Re-screen every (applicant_id, cv_file_path) pair, at most `concurrency` at a time.
    CVs without usable text are skipped and a failing applicant does not stop the run.
    """
    sem = asyncio.Semaphore(max(1, concurrency))
    custom_keywords = list(custom_keywords or [])

    async def _rescore(applicant_id: str, cv_file_path: str):
        async with sem:
            try:
                result = await process_applicant_cv(
                    applicant_id, cv_file_path, custom_keywords, documents, results, skip_unusable=True
                )
            except Exception as exc:
                logger.error("Rescoring failed for applicant %s: %s", applicant_id, exc, exc_info=True)
                return applicant_id, RescoreStatus.failed, None
            if result.outcome == ScreeningOutcome.no_usable_text:
                return applicant_id, RescoreStatus.skipped, result
            return applicant_id, RescoreStatus.scored, result

    return list(await asyncio.gather(*(_rescore(aid, path) for aid, path in applicants)))
