import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from cvscreen.config import KEYWORDS_FILE

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS_PATH = Path(__file__).resolve().parent.parent / "data" / "keywords.json"


class VocabularyError(ValueError):
    """Raised when a keyword file is missing or malformed."""


class VocabularyFile(BaseModel):
    version: str
    categories: Dict[str, List[str]]


def _dedupe(terms: Iterable[str]) -> List[str]:
    """Lower-case, strip and dedupe terms, keeping the first occurrence of each."""
    cleaned = (t.strip().lower() for t in terms)
    return list(dict.fromkeys(t for t in cleaned if t))


class Vocabulary:
    """Built-in keyword list grouped by category (programming languages, databases, ...)."""

    def __init__(self, categories: Dict[str, List[str]], version: str = "unversioned"):
        self.version = version
        self.categories = {name: _dedupe(terms) for name, terms in categories.items()}
        self._terms = _dedupe(t for terms in self.categories.values() for t in terms)

    @property
    def terms(self) -> List[str]:
        return list(self._terms)

    def effective_terms(self, custom_terms: Optional[Iterable[str]] = None) -> List[str]:
        """
        Built-in terms in category order, followed by the custom terms that are
        not already present (compared case-insensitively), in the order given.
        """
        if not custom_terms:
            return self.terms
        return _dedupe([*self._terms, *custom_terms])

    def __len__(self):
        return len(self._terms)

    def __repr__(self):
        return f"Vocabulary(version={self.version!r}, terms={len(self._terms)})"


def load_vocabulary(path: Optional[str] = None) -> Vocabulary:
    path = Path(path or KEYWORDS_FILE or DEFAULT_KEYWORDS_PATH)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        parsed = VocabularyFile.model_validate(raw)
    except FileNotFoundError as exc:
        raise VocabularyError(f"Keyword file not found: {path}") from exc
    except (json.JSONDecodeError, ValidationError) as exc:
        raise VocabularyError(f"Invalid keyword file {path}: {exc}") from exc

    vocabulary = Vocabulary(parsed.categories, version=parsed.version)
    logger.info("Loaded vocabulary %s with %d terms from %s", vocabulary.version, len(vocabulary), path)
    return vocabulary


# --- Process-wide vocabulary, loaded once ---
_VOCABULARY: Optional[Vocabulary] = None


def get_vocabulary() -> Vocabulary:
    global _VOCABULARY
    if _VOCABULARY is None:
        _VOCABULARY = load_vocabulary()
    return _VOCABULARY
