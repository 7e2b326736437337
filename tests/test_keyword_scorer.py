import pytest

from cvscreen.analysis_engine import keyword_scorer
from cvscreen.analysis_engine.keyword_scorer import KeywordScorer, keyword_exists
from cvscreen.analysis_engine.vocabulary import Vocabulary


@pytest.fixture
def small_vocab():
    return Vocabulary({"tech": ["python", "aws", "docker"], "levels": ["senior", "n2"]})


def test_word_boundary_prevents_partial_matches():
    assert not keyword_exists("i am going home", "go")
    assert keyword_exists("i use go daily", "go")
    assert not keyword_exists("javascript developer", "java")


def test_symbol_terms_use_substring_matching():
    text = "Experienced in C++ and CI/CD pipelines".lower()
    assert keyword_exists(text, "c++")
    assert keyword_exists(text, "ci/cd")
    assert keyword_exists("strong problem-solving skills", "problem-solving")


def test_multi_word_terms_match_as_phrases():
    assert keyword_exists("led project management for two teams", "project management")
    assert not keyword_exists("project planning and management", "project management")


def test_non_ascii_neighbours_count_as_boundaries():
    assert keyword_exists("jlptのn2を取得", "n2")
    assert keyword_exists("日本語とpython", "python")


def test_example_scenario_with_small_vocabulary(small_vocab):
    text = "Senior Python developer with AWS and Docker experience, JLPT N2 certified"
    result = KeywordScorer(small_vocab).calculate_keyword_match(text)
    assert result == {"score": 50, "matched_keywords": ["python", "aws", "docker", "senior", "n2"]}


def test_example_scenario_with_bundled_vocabulary():
    text = "Senior Python developer with AWS and Docker experience, JLPT N2 certified"
    result = keyword_scorer.calculate_keyword_match(text)
    assert result["matched_keywords"] == ["python", "aws", "docker", "jlpt", "n2", "senior", "developer"]
    assert result["score"] == 70


def test_each_term_counts_once(small_vocab):
    result = KeywordScorer(small_vocab).calculate_keyword_match("python python PYTHON Python")
    assert result == {"score": 10, "matched_keywords": ["python"]}


def test_duplicate_custom_term_does_not_double_count(small_vocab):
    result = KeywordScorer(small_vocab).calculate_keyword_match("I write Python", ["PYTHON", "python "])
    assert result["matched_keywords"] == ["python"]
    assert result["score"] == 10


def test_custom_terms_are_scanned_after_builtin_terms(small_vocab):
    text = "Tokyo based FastAPI engineer using Docker"
    result = KeywordScorer(small_vocab).calculate_keyword_match(text, ["Tokyo", "FastAPI", "Osaka"])
    assert result["matched_keywords"] == ["docker", "tokyo", "fastapi"]
    assert result["score"] == 30


def test_score_saturates_at_100():
    terms = [f"skill{i}" for i in range(12)]
    vocab = Vocabulary({"many": terms})
    result = KeywordScorer(vocab).calculate_keyword_match(" ".join(terms))
    assert len(result["matched_keywords"]) == 12
    assert result["score"] == 100


@pytest.mark.parametrize("text", [
    "",
    "nothing relevant here",
    "python",
    "Python, AWS, Docker, React, SQL, Git, Linux, Agile, Scrum, REST, GraphQL, Java",
])
def test_score_matches_formula(text):
    result = keyword_scorer.calculate_keyword_match(text)
    assert 0 <= result["score"] <= 100
    assert result["score"] == min(100, len(result["matched_keywords"]) * 10)


def test_empty_text_scores_zero(small_vocab):
    assert KeywordScorer(small_vocab).calculate_keyword_match("", ["python"]) == {"score": 0, "matched_keywords": []}


def test_empty_vocabulary_scores_zero():
    result = KeywordScorer(Vocabulary({})).calculate_keyword_match("Python and Docker")
    assert result == {"score": 0, "matched_keywords": []}


def test_blank_custom_terms_are_ignored():
    result = KeywordScorer(Vocabulary({})).calculate_keyword_match("Python and Docker", ["", "   "])
    assert result == {"score": 0, "matched_keywords": []}


def test_scoring_is_repeatable(small_vocab):
    scorer = KeywordScorer(small_vocab)
    text = "Senior engineer, Docker and AWS"
    assert scorer.calculate_keyword_match(text, ["engineer"]) == scorer.calculate_keyword_match(text, ["engineer"])
