"""
Reading raw invoice text from files.

PDF files are read with pdfplumber; any other file is read as UTF-8 text.
"""

from pathlib import Path

import pdfplumber

from .config import logger


def extract_text_from_pdf(pdf_path: Path) -> str:
    """Text of all pages joined by newlines; pages without a text layer are skipped."""
    with pdfplumber.open(pdf_path) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(page for page in pages if page)


def read_source_text(path: Path) -> str:
    """
    Read the raw text of an invoice document.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the PDF cannot be opened or no text could be read from the file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    if path.suffix.lower() == ".pdf":
        logger.info(f"Reading PDF: {path.name}")
        try:
            text = extract_text_from_pdf(path)
        except Exception as e:
            raise ValueError(f"Could not read PDF {path.name}: {e}") from e
    else:
        text = path.read_text(encoding="utf-8", errors="replace")

    if not text.strip():
        raise ValueError(f"No text could be read from {path.name}")

    return text
