"""
Invoice Checker

Extracts structured fields from invoice text with a tiered fallback
(OpenAI, local Ollama model, pattern matcher) and checks the result for
completeness and arithmetic consistency.
"""

__version__ = "0.1.0"

from .schemas import InvoiceRecord, PaymentRecord, ValidationResult, CheckResult
from .extractor import StructuredExtractor, INVOICE_SCHEMA, PAYMENT_SCHEMA
from .validator import validate_invoice
from .pipeline import check_invoice_text, extract_payment

__all__ = [
    "InvoiceRecord",
    "PaymentRecord",
    "ValidationResult",
    "CheckResult",
    "StructuredExtractor",
    "INVOICE_SCHEMA",
    "PAYMENT_SCHEMA",
    "validate_invoice",
    "check_invoice_text",
    "extract_payment",
]
