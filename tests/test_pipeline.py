import asyncio
import dataclasses

import pytest
from tenacity import wait_none

from cvscreen.analysis_engine import pipeline
from cvscreen.analysis_engine.pipeline import ScreeningCache, ScreeningOutcome, screen_document, screen_many
from cvscreen.analysis_engine.vocabulary import Vocabulary
from cvscreen.storage import DocumentNotFoundError


class MemoryDocuments:
    def __init__(self, files, failures=0):
        self.files = files
        self.failures = failures
        self.calls = 0

    async def fetch_document_bytes(self, path):
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise OSError("storage temporarily unavailable")
        if path not in self.files:
            raise DocumentNotFoundError(path)
        return self.files[path]

    async def save_document(self, filename, data):
        self.files[filename] = data
        return filename


class MemoryResults:
    def __init__(self):
        self.saved = {}

    async def persist_result(self, applicant_id, result):
        self.saved[applicant_id] = result


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(pipeline, "_fetch_document", pipeline._fetch_document.retry_with(wait=wait_none()))


def test_screen_document_scores_resume(resume_pdf):
    result = screen_document(resume_pdf)
    assert result.outcome == ScreeningOutcome.scored
    assert result.extracted_text.startswith("Jane Doe")
    for term in ("python", "aws", "docker", "kubernetes", "n2", "senior", "bachelor"):
        assert term in result.matched_keywords
    assert result.score == min(100, 10 * len(result.matched_keywords))


def test_screen_document_flags_unreadable_pdf():
    result = screen_document(b"corrupted bytes")
    assert result.outcome == ScreeningOutcome.no_usable_text
    assert result.extracted_text == ""
    assert result.score == 0
    assert result.matched_keywords == ()


def test_screen_document_flags_too_short_text(make_pdf):
    result = screen_document(make_pdf("Python CV"))
    assert result.outcome == ScreeningOutcome.no_usable_text
    assert result.extracted_text == "Python CV"
    assert result.score == 0


def test_screen_document_uses_custom_keywords(make_pdf):
    vocab = Vocabulary({"tech": ["python"]})
    data = make_pdf("Python engineer relocating to Tokyo next spring")
    result = screen_document(data, ["tokyo"], vocabulary=vocab)
    assert result.matched_keywords == ("python", "tokyo")
    assert result.to_dict() == {
        "score": 20,
        "matched_keywords": ["python", "tokyo"],
        "outcome": "scored",
        "extracted_text_length": len(result.extracted_text),
    }


def test_cache_returns_stored_result(resume_pdf):
    cache = ScreeningCache(max_size=4)
    first = screen_document(resume_pdf, cache=cache)
    assert screen_document(resume_pdf, cache=cache) is first
    assert screen_document(resume_pdf, ["tokyo"], cache=cache) is not first
    assert len(cache) == 2


def test_cache_evicts_least_recently_used():
    cache = ScreeningCache(max_size=2)
    results = [pipeline.ScreeningResult(extracted_text=str(i), score=0) for i in range(3)]
    keys = [cache.fingerprint(str(i).encode(), ["python"]) for i in range(3)]
    cache.put(keys[0], results[0])
    cache.put(keys[1], results[1])
    cache.get(keys[0])
    cache.put(keys[2], results[2])
    assert cache.get(keys[1]) is None
    assert cache.get(keys[0]) is results[0]
    assert cache.get(keys[2]) is results[2]


def test_fingerprint_depends_on_document_and_vocabulary():
    base = ScreeningCache.fingerprint(b"doc", ["python"])
    assert base == ScreeningCache.fingerprint(b"doc", ["python"])
    assert base != ScreeningCache.fingerprint(b"other", ["python"])
    assert base != ScreeningCache.fingerprint(b"doc", ["python", "go"])


def test_process_applicant_cv_persists_result(resume_pdf):
    documents = MemoryDocuments({"cv.pdf": resume_pdf})
    results = MemoryResults()
    result = asyncio.run(pipeline.process_applicant_cv("abc", "cv.pdf", ["kubernetes"], documents, results))
    assert results.saved["abc"] is result
    assert "kubernetes" in result.matched_keywords


def test_process_applicant_cv_retries_transient_storage_errors(resume_pdf):
    documents = MemoryDocuments({"cv.pdf": resume_pdf}, failures=2)
    results = MemoryResults()
    asyncio.run(pipeline.process_applicant_cv("abc", "cv.pdf", [], documents, results))
    assert documents.calls == 3
    assert "abc" in results.saved


def test_process_applicant_cv_gives_up_after_three_attempts(resume_pdf):
    documents = MemoryDocuments({"cv.pdf": resume_pdf}, failures=5)
    with pytest.raises(OSError):
        asyncio.run(pipeline.process_applicant_cv("abc", "cv.pdf", [], documents, MemoryResults()))
    assert documents.calls == 3


def test_missing_document_is_not_retried():
    documents = MemoryDocuments({})
    results = MemoryResults()
    with pytest.raises(DocumentNotFoundError):
        asyncio.run(pipeline.process_applicant_cv("abc", "missing.pdf", [], documents, results))
    assert documents.calls == 1
    assert results.saved == {}


def test_screen_many_keeps_input_order(make_pdf):
    docs = [
        ("a.pdf", make_pdf("Python and Docker engineer with AWS experience")),
        ("b.pdf", b"broken"),
        ("c.pdf", make_pdf("Junior Java developer familiar with SQL and Git")),
    ]
    screened = asyncio.run(screen_many(docs, concurrency=2))
    assert [name for name, _ in screened] == ["a.pdf", "b.pdf", "c.pdf"]
    assert screened[1][1].outcome == ScreeningOutcome.no_usable_text
    assert screened[0][1].score > 0 and screened[2][1].score > 0


def test_adjacent_runs_are_scored_as_separate_words(make_adjacent_runs_pdf):
    data = make_adjacent_runs_pdf("Senior", "Python", "Developer", "experienced", "with", "Docker")
    result = screen_document(data)
    assert result.outcome == ScreeningOutcome.scored
    assert result.matched_keywords == ("python", "docker", "senior", "developer")


def test_cached_results_cannot_be_mutated(resume_pdf):
    cache = ScreeningCache(max_size=2)
    first = screen_document(resume_pdf, cache=cache)
    with pytest.raises(dataclasses.FrozenInstanceError):
        first.score = 0
    assert isinstance(first.matched_keywords, tuple)
    assert screen_document(resume_pdf, cache=cache).matched_keywords == first.matched_keywords


class BrokenResults(MemoryResults):
    async def persist_result(self, applicant_id, result):
        if applicant_id == "ghost":
            raise LookupError(applicant_id)
        await super().persist_result(applicant_id, result)


def test_skip_unusable_leaves_stored_result_alone():
    results = MemoryResults()
    result = asyncio.run(pipeline.process_applicant_cv(
        "abc", "scan.pdf", [], MemoryDocuments({"scan.pdf": b"image only"}), results, skip_unusable=True
    ))
    assert result.outcome == ScreeningOutcome.no_usable_text
    assert results.saved == {}


def test_rescore_applicants_reports_each_applicant(resume_pdf):
    documents = MemoryDocuments({"a.pdf": resume_pdf, "scan.pdf": b"image only"})
    results = BrokenResults()
    applicants = [("a", "a.pdf"), ("b", "scan.pdf"), ("c", "missing.pdf"), ("ghost", "a.pdf")]
    outcomes = asyncio.run(pipeline.rescore_applicants(applicants, ["jane"], documents, results, concurrency=2))

    assert [(aid, status) for aid, status, _ in outcomes] == [
        ("a", pipeline.RescoreStatus.scored),
        ("b", pipeline.RescoreStatus.skipped),
        ("c", pipeline.RescoreStatus.failed),
        ("ghost", pipeline.RescoreStatus.failed),
    ]
    assert list(results.saved) == ["a"]
    assert results.saved["a"].matched_keywords[-1] == "jane"
