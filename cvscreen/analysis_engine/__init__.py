from .text_extractor import extract_text, extract_pages, join_pages, is_usable_text, DocumentParseError
from .vocabulary import Vocabulary, VocabularyError, load_vocabulary, get_vocabulary
from .keyword_scorer import KeywordScorer, calculate_keyword_match, keyword_exists
from .pipeline import (
    ScreeningCache,
    ScreeningOutcome,
    ScreeningResult,
    screen_document,
    screen_many,
    process_applicant_cv,
    rescore_applicants,
    RescoreStatus,
)
