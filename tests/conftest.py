import os
import tempfile

import pytest
from fpdf import FPDF

# Point the app at throwaway storage before any cvscreen module reads its config
_TMP_DIR = tempfile.mkdtemp(prefix="cvscreen-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["CV_STORAGE_DIR"] = os.path.join(_TMP_DIR, "cvs")
os.environ.pop("APP_API_KEY", None)
os.environ.pop("KEYWORDS_FILE", None)


def build_pdf(*pages: str) -> bytes:
    """One PDF page per argument; an empty string gives a page without text."""
    pdf = FPDF()
    pdf.set_font("Helvetica", size=12)
    for text in pages:
        pdf.add_page()
        if text:
            pdf.multi_cell(0, 10, text)
    return bytes(pdf.output())


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def resume_pdf():
    return build_pdf(
        "Jane Doe - Senior Python Developer",
        "Experience with AWS, Docker and Kubernetes. JLPT N2 certified. Bachelor degree.",
    )


def build_adjacent_runs_pdf(*runs: str) -> bytes:
    """Single-line page where each run is its own text object with no gap between them."""
    pdf = FPDF()
    pdf.set_font("Helvetica", size=12)
    pdf.add_page()
    pdf.c_margin = 0
    for run in runs:
        pdf.cell(None, 10, run)
    return bytes(pdf.output())


@pytest.fixture
def make_adjacent_runs_pdf():
    return build_adjacent_runs_pdf
