"""
Invoice check pipeline: extract, enrich with payment data, validate.
"""

from typing import Optional

from .config import logger
from .errors import InputContractError
from .extractor import INVOICE_SCHEMA, PAYMENT_SCHEMA, StructuredExtractor
from .matcher import find_payment_text
from .schemas import CheckResult, PaymentRecord
from .validator import validate_invoice


async def extract_payment(raw_text: str, extractor: StructuredExtractor) -> Optional[PaymentRecord]:
    """
    Extract payment data from text.

    Returns None when the text holds no QR-bill payload or IBAN.

    Raises:
        InputContractError: If raw_text is not a string
    """
    if not isinstance(raw_text, str):
        raise InputContractError(f"expected raw text as str, got {type(raw_text).__name__}")

    payment_text = find_payment_text(raw_text)
    if payment_text is None:
        logger.info("No payment data found in text")
        return None
    return await extractor.extract(payment_text, PAYMENT_SCHEMA)


async def check_invoice_text(raw_text: str, extractor: StructuredExtractor) -> CheckResult:
    """
    Run the full check on the raw text of one invoice.

    The invoice record always exists (the pattern matcher is the last tier).
    When payment text is found it is extracted separately and attached as
    payment_data before the record is validated once.

    Raises:
        InputContractError: If raw_text is not a string
    """
    invoice = await extractor.extract(raw_text, INVOICE_SCHEMA)

    payment_text = find_payment_text(raw_text)
    if payment_text is not None:
        payment = await extractor.extract(payment_text, PAYMENT_SCHEMA)
        if payment is not None:
            invoice = invoice.model_copy(update={"payment_data": payment})

    validation = validate_invoice(invoice)
    logger.info(
        f"Checked invoice {invoice.invoice_number} "
        f"({invoice.ai_engine or 'pattern matcher'}): "
        f"{'valid' if validation.is_valid else 'invalid'}"
    )

    return CheckResult(invoice=invoice, validation=validation, payment_text=payment_text)
