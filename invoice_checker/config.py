"""
Configuration constants and enums for the Invoice Checker.
"""

import logging
import os
from enum import Enum
from typing import Final

from dotenv import load_dotenv

load_dotenv()

# ============================================================================
# Backends
# ============================================================================

OPENAI_API_KEY: Final[str] = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL: Final[str] = os.getenv("OPENAI_MODEL", "gpt-4o")
# Client-level timeout; the per-tier race below is always shorter
OPENAI_CLIENT_TIMEOUT_MS: Final[int] = 30000

OLLAMA_URL: Final[str] = os.getenv("OLLAMA_URL", "http://localhost:11434").rstrip("/")
OLLAMA_MODEL: Final[str] = os.getenv("OLLAMA_MODEL", "mistral")

PROBE_TIMEOUT_MS: Final[int] = 2000

# Per-tier call budgets, keyed by extraction schema name
CLOUD_TIMEOUTS_MS: Final[dict[str, int]] = {
    "invoice": 25000,
    "payment": 15000,
}
LOCAL_TIMEOUTS_MS: Final[dict[str, int]] = {
    "invoice": 60000,
    "payment": 60000,
}

INVOICE_MAX_TOKENS: Final[int] = 500
PAYMENT_MAX_TOKENS: Final[int] = 300
PAYMENT_PROMPT_CHARS: Final[int] = 1000

# ============================================================================
# Validation
# ============================================================================

# Tolerance for floating-point amount comparisons (net + VAT ≈ gross)
AMOUNT_TOLERANCE: Final[float] = float(os.getenv("AMOUNT_TOLERANCE", "0.01"))

DEFAULT_VAT_RATE: Final[int] = 19
MIN_INVOICE_NUMBER_LENGTH: Final[int] = 2

# Currency shown in formatted check values (e.g. "CHF 119,00")
CURRENCY: Final[str] = os.getenv("CURRENCY", "CHF")

# ============================================================================
# Extraction Patterns
# ============================================================================

# Regex fragments; each list is joined into one alternation
INVOICE_NUMBER_LABELS: Final[list[str]] = [
    r"Rechnungs?nr\.?",
    r"Rechnungs?nummer",
    r"Invoice\s?No\.?",
    r"Invoice\s+Number",
    r"RN",
]

DATE_LABELS: Final[list[str]] = [
    r"Rechnungs?datum",
    r"Datum",
    r"Date",
]

NET_LABELS: Final[list[str]] = [
    r"Summe\s+Netto",
    r"Netto",
    r"Subtotal",
    r"Net",
]

VAT_LABELS: Final[list[str]] = [
    r"MwSt\.?",
    r"VAT",
    r"Mehrwertsteuer",
    r"Steuerbetrag",
    r"Tax",
]

GROSS_LABELS: Final[list[str]] = [
    r"Brutto",
    r"Grand\s+Total",
    r"Total",
    r"Gesamtbetrag",
    r"Amount\s+Due",
]

VAT_RATE_LABELS: Final[list[str]] = [
    r"MwSt\.?-?Satz",
    r"VAT\s+Rate",
    r"Steuersatz",
]

# Labels for supplier identification
SUPPLIER_LABELS: Final[list[str]] = [
    "lieferant:",
    "rechnungssteller:",
    "absender:",
    "von:",
    "from:",
    "supplier:",
    "seller:",
    "vendor:",
]

# Labels for recipient identification
RECIPIENT_LABELS: Final[list[str]] = [
    "rechnungsempfänger:",
    "empfänger:",
    "kunde:",
    "an:",
    "bill to:",
    "customer:",
    "recipient:",
    "to:",
]

# ============================================================================
# Error Code Prefixes
# ============================================================================

class ErrorCategory(str, Enum):
    """Categories for validation rules."""
    MISSING_FIELD = "missing_field"
    FORMAT_ERROR = "format_error"
    BUSINESS_RULE = "business_rule"


# ============================================================================
# API Configuration
# ============================================================================

APP_NAME: Final[str] = "Invoice Checker"
API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "3000"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("invoice_checker")


logger = setup_logging()
