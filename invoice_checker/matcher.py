"""
Pattern-based invoice field extraction.

This is the last extraction tier and is always available. It reads fields
from the literal text using labeled regex rules and never fails: when no
evidence is found the field stays None.

- Labeled invoice number, date, amounts and VAT rate
- Numeric-gap recovery for amounts that carry no label
- Supplier / recipient from labeled lines
- Payment text (Swiss QR-bill payload or IBAN) and its fields
"""

import math
import re
from typing import Optional

from .config import (
    DATE_LABELS,
    DEFAULT_VAT_RATE,
    GROSS_LABELS,
    INVOICE_NUMBER_LABELS,
    NET_LABELS,
    RECIPIENT_LABELS,
    SUPPLIER_LABELS,
    VAT_LABELS,
    VAT_RATE_LABELS,
    logger,
)
from .errors import InputContractError
from .schemas import InvoiceRecord, PaymentRecord


# ============================================================================
# Patterns
# ============================================================================

def _labeled(labels: list[str], value: str) -> re.Pattern:
    """Build "<label>[: ]+<value>" with the label list as one alternation."""
    return re.compile(rf"\b(?:{'|'.join(labels)})[:\s]+{value}", re.IGNORECASE)


# Two-decimal amount, optionally with thousands separators (1.234,56 / 1'234.56).
# Date-shaped tokens such as 15.03.2024 are not amounts.
AMOUNT_TOKEN = r"(?:\d{1,3}(?:[.,'’]\d{3})+|\d+)[.,]\d{2}(?![.,]?\d)"
AMOUNT_TOKEN_PATTERN = re.compile(rf"(?<![\d.,'’]){AMOUNT_TOKEN}")

DATE_TOKEN = r"\d{1,2}[./-]\d{1,2}[./-]\d{4}"
BARE_DATE_PATTERN = re.compile(rf"(?<!\d)({DATE_TOKEN})(?!\d)")

INVOICE_NUMBER_PATTERN = _labeled(INVOICE_NUMBER_LABELS, r"([A-Z0-9\-/]+)")
DATE_PATTERN = _labeled(DATE_LABELS, rf"({DATE_TOKEN})(?!\d)")
NET_PATTERN = _labeled(NET_LABELS, rf"({AMOUNT_TOKEN})")
VAT_PATTERN = _labeled(VAT_LABELS, rf"({AMOUNT_TOKEN})")
GROSS_PATTERN = _labeled(GROSS_LABELS, rf"({AMOUNT_TOKEN})")
VAT_RATE_PATTERN = _labeled(VAT_RATE_LABELS, r"(\d{1,2})\s*%")

# Greedy candidate; find_iban() trims it back to the part that passes the checksum
IBAN_PATTERN = re.compile(r"\b[A-Z]{2}\d{2}(?: ?[A-Z0-9]{4}){3,7}(?: ?[A-Z0-9]{1,3})?\b")
IBAN_MIN_LENGTH = 15
IBAN_MAX_LENGTH = 34
# Swiss QR-bill payload: "SPC" header up to the "EPD" trailer (or end of text)
QR_BILL_PATTERN = re.compile(r"^SPC[ \t]*[/\r\n][\s\S]*?(?:^EPD\b|\Z)", re.MULTILINE)

# Line positions in a Swiss QR-bill payload (Implementation Guidelines v2.x)
QR_IBAN_LINE = 3
QR_CREDITOR_LINE = 5
QR_AMOUNT_LINE = 18
QR_REFERENCE_LINE = 28
QR_MESSAGE_LINE = 29


# ============================================================================
# Value Helpers
# ============================================================================

def parse_number(value) -> Optional[float]:
    """
    Parse a numeric value from various formats.

    Handles both:
    - European format: 1.234,56 or 257,04 (comma = decimal)
    - US/UK/Swiss format: 1,234.56 or 1'234.56 (period = decimal)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    value_str = str(value).strip()
    if not value_str:
        return None

    # Remove currency codes/symbols, apostrophe separators and whitespace
    value_str = re.sub(r"(?i)chf|eur|usd|fr\.|[\$€£'’\s]", "", value_str)

    if "," in value_str:
        comma_pos = value_str.rfind(",")
        period_pos = value_str.rfind(".")

        if period_pos < comma_pos:
            # European format: periods are thousand separators
            value_str = value_str.replace(".", "").replace(",", ".")
        else:
            # US format: commas are thousand separators
            value_str = value_str.replace(",", "")

    try:
        number = float(value_str)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def normalize_date(value: str) -> str:
    """Rewrite a D.M.YYYY-shaped date with '.' separators; other text is returned unchanged."""
    value = value.strip()
    if re.fullmatch(DATE_TOKEN, value):
        return re.sub(r"[/-]", ".", value)
    return value


def normalize_iban(value: str) -> str:
    return re.sub(r"\s+", "", value).upper()


def iban_checksum_valid(iban: str) -> bool:
    """ISO 13616 mod-97 check on a compact IBAN."""
    if not IBAN_MIN_LENGTH <= len(iban) <= IBAN_MAX_LENGTH or not re.fullmatch(r"[A-Z0-9]+", iban):
        return False
    rearranged = iban[4:] + iban[:4]
    digits = "".join(str(int(char, 36)) for char in rearranged)
    return int(digits) % 97 == 1


def find_iban(text: str) -> Optional[str]:
    """
    Return the first IBAN in text as written (spaces kept).

    A candidate match can run into a following short word (e.g. "... 7034 CHF");
    trailing space-separated parts are dropped until the checksum holds.
    Candidates that never pass the checksum are skipped.
    """
    for match in IBAN_PATTERN.finditer(text):
        parts = match.group(0).split(" ")
        while parts:
            if iban_checksum_valid("".join(parts)):
                return " ".join(parts)
            parts.pop()
    return None


# ============================================================================
# Field Extraction
# ============================================================================

def extract_invoice_number(text: str) -> Optional[str]:
    """First labeled invoice/reference number, e.g. "Rechnungsnummer: INV-2024-001"."""
    match = INVOICE_NUMBER_PATTERN.search(text)
    return match.group(1).strip() if match else None


def extract_date(text: str) -> Optional[str]:
    """
    Extract the invoice date.

    A labeled date wins; otherwise the first bare date-shaped token in the
    text is used.
    """
    match = DATE_PATTERN.search(text) or BARE_DATE_PATTERN.search(text)
    if match:
        return normalize_date(match.group(1))
    return None


def extract_labeled_amount(text: str, pattern: re.Pattern) -> Optional[float]:
    match = pattern.search(text)
    return parse_number(match.group(1)) if match else None


def extract_amount_tokens(text: str) -> list[float]:
    """All two-decimal numeric tokens in document order."""
    amounts = []
    for match in AMOUNT_TOKEN_PATTERN.finditer(text):
        amount = parse_number(match.group(0))
        if amount is not None:
            amounts.append(amount)
    return amounts


def recover_amount_gaps(
    text: str,
    net: Optional[float],
    vat: Optional[float],
    gross: Optional[float],
) -> tuple[Optional[float], Optional[float], Optional[float]]:
    """
    Fill missing amounts from the last three numeric tokens in the text.

    Third-to-last becomes net, second-to-last VAT, last gross. Amounts that
    were already matched by label are never replaced, and nothing happens
    when fewer than three tokens exist.
    """
    if net is not None and vat is not None and gross is not None:
        return net, vat, gross

    tokens = extract_amount_tokens(text)
    if len(tokens) < 3:
        return net, vat, gross

    logger.debug(f"Recovering missing amounts from {len(tokens)} numeric tokens")
    if net is None:
        net = tokens[-3]
    if vat is None:
        vat = tokens[-2]
    if gross is None:
        gross = tokens[-1]
    return net, vat, gross


def extract_vat_rate(text: str) -> int:
    match = VAT_RATE_PATTERN.search(text)
    return int(match.group(1)) if match else DEFAULT_VAT_RATE


def extract_party(text: str, labels: list[str]) -> Optional[str]:
    """
    Extract a party name from a labeled line.

    The name is taken from the rest of the label line, or from the next
    non-empty line when the label stands alone.
    """
    lines = text.split("\n")

    for i, line in enumerate(lines):
        stripped = line.strip()
        line_lower = stripped.lower()
        for label in labels:
            if not line_lower.startswith(label):
                continue
            remaining = stripped[len(label):].strip()
            if remaining:
                return remaining
            for following in lines[i + 1:i + 4]:
                if following.strip():
                    return following.strip()
            return None

    return None


# ============================================================================
# Payment Text
# ============================================================================

def find_payment_text(text: str) -> Optional[str]:
    """
    Find embedded payment data: a Swiss QR-bill payload, else the first IBAN.
    """
    match = QR_BILL_PATTERN.search(text)
    if match:
        logger.debug("QR-bill payload found in text")
        return match.group(0).strip()

    iban = find_iban(text)
    if iban:
        logger.debug("IBAN found in text")
        return iban

    return None


def _qr_line(lines: list[str], index: int) -> Optional[str]:
    if index < len(lines) and lines[index].strip():
        return lines[index].strip()
    return None


def parse_payment_text(text: str) -> Optional[PaymentRecord]:
    """
    Pattern-based payment extraction.

    Returns None when the text contains no payment data at all.
    """
    _require_text(text)

    payment_text = find_payment_text(text)
    if payment_text is None:
        return None

    if re.match(r"SPC[ \t]*\r?\n", payment_text):
        lines = payment_text.splitlines()
        iban = _qr_line(lines, QR_IBAN_LINE)
        return PaymentRecord(
            iban=normalize_iban(iban) if iban else None,
            amount=parse_number(_qr_line(lines, QR_AMOUNT_LINE)),
            creditor=_qr_line(lines, QR_CREDITOR_LINE),
            reference=_qr_line(lines, QR_REFERENCE_LINE),
            description=_qr_line(lines, QR_MESSAGE_LINE),
        )

    iban = find_iban(payment_text)
    return PaymentRecord(iban=normalize_iban(iban) if iban else None)


# ============================================================================
# Main Entry Point
# ============================================================================

def _require_text(text) -> None:
    if not isinstance(text, str):
        raise InputContractError(f"expected invoice text as str, got {type(text).__name__}")


def parse_invoice_text(text: str) -> InvoiceRecord:
    """
    Extract an InvoiceRecord from raw invoice text using patterns only.

    Always returns a record; fields without evidence stay None and the VAT
    rate falls back to the default. The record carries no ai_engine tag.
    """
    _require_text(text)

    net = extract_labeled_amount(text, NET_PATTERN)
    vat = extract_labeled_amount(text, VAT_PATTERN)
    gross = extract_labeled_amount(text, GROSS_PATTERN)
    net, vat, gross = recover_amount_gaps(text, net, vat, gross)

    record = InvoiceRecord(
        invoice_number=extract_invoice_number(text),
        date=extract_date(text),
        supplier=extract_party(text, SUPPLIER_LABELS),
        recipient=extract_party(text, RECIPIENT_LABELS),
        net_amount=net,
        vat_amount=vat,
        gross_amount=gross,
        vat_rate=extract_vat_rate(text),
    )

    logger.info(f"Pattern matcher extracted invoice: {record.invoice_number}")
    return record
