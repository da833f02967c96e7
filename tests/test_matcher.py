"""
Tests for the pattern matcher.

These tests verify number parsing, labeled field extraction, numeric-gap
recovery and payment text parsing.
"""

import pytest

from invoice_checker.config import RECIPIENT_LABELS, SUPPLIER_LABELS
from invoice_checker.errors import InputContractError
from invoice_checker.matcher import (
    extract_amount_tokens,
    extract_date,
    extract_invoice_number,
    extract_party,
    extract_vat_rate,
    find_iban,
    find_payment_text,
    iban_checksum_valid,
    normalize_date,
    parse_invoice_text,
    parse_number,
    parse_payment_text,
    recover_amount_gaps,
)


SAMPLE_TEXT = (
    "Rechnungsnummer: INV-2024-001\n"
    "Datum: 15.03.2024\n"
    "Netto: 100,00\n"
    "MwSt: 19,00\n"
    "Brutto: 119,00"
)

QR_PAYLOAD_LINES = [
    "SPC",
    "0200",
    "1",
    "CH4431999123000889012",
    "S",
    "Muster AG",
    "Musterstrasse",
    "1",
    "8000",
    "Zürich",
    "CH",
    "", "", "", "", "", "", "",
    "119.00",
    "CHF",
    "S",
    "Beispiel GmbH",
    "Hauptstrasse",
    "5",
    "3000",
    "Bern",
    "CH",
    "QRR",
    "210000000003139471430009017",
    "Rechnung INV-2024-001",
    "EPD",
]


@pytest.fixture
def qr_payload() -> str:
    return "\n".join(QR_PAYLOAD_LINES)


# ============================================================================
# Number and Date Parsing
# ============================================================================

class TestParseNumber:
    """Tests for parse_number()."""

    @pytest.mark.parametrize("value,expected", [
        ("119,00", 119.0),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("1'234.50", 1234.5),
        ("CHF 119.00", 119.0),
        ("€ 42,10", 42.1),
        (19, 19.0),
        (0, 0.0),
    ])
    def test_formats(self, value, expected):
        assert parse_number(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "abc", True, float("inf"), "nan"])
    def test_unparseable(self, value):
        assert parse_number(value) is None


class TestDates:
    """Tests for date extraction."""

    def test_labeled_date(self):
        assert extract_date("Rechnungsdatum: 01.02.2024") == "01.02.2024"

    def test_slash_date_is_normalized(self):
        assert extract_date("Date: 12/05/2024") == "12.05.2024"

    def test_bare_date_fallback(self):
        assert extract_date("Zürich, 3.7.2024\nVielen Dank") == "3.7.2024"

    def test_no_date(self):
        assert extract_date("Netto: 100,00") is None

    def test_normalize_leaves_other_text(self):
        assert normalize_date("March 15, 2024") == "March 15, 2024"


# ============================================================================
# Labeled Fields
# ============================================================================

class TestLabeledFields:
    """Tests for labeled field extraction."""

    @pytest.mark.parametrize("text,expected", [
        ("Rechnungsnummer: INV-2024-001", "INV-2024-001"),
        ("Rechnungsnr. 4711", "4711"),
        ("Invoice No: A/17-3", "A/17-3"),
        ("Invoice Number 2024-99", "2024-99"),
    ])
    def test_invoice_number(self, text, expected):
        assert extract_invoice_number(text) == expected

    def test_invoice_number_missing(self):
        assert extract_invoice_number("Netto: 100,00") is None

    def test_subtotal_is_not_gross(self):
        record = parse_invoice_text("Subtotal: 100.00\nVAT: 19.00\nTotal: 119.00")
        assert record.net_amount == 100.0
        assert record.vat_amount == 19.0
        assert record.gross_amount == 119.0

    def test_vat_rate(self):
        assert extract_vat_rate("Steuersatz: 7 %") == 7
        assert extract_vat_rate("VAT Rate: 8%") == 8

    def test_vat_rate_default(self):
        assert extract_vat_rate("Netto: 100,00") == 19

    def test_party_on_same_line(self):
        assert extract_party("Lieferant: Muster AG\nNetto: 1,00", SUPPLIER_LABELS) == "Muster AG"

    def test_party_on_next_line(self):
        text = "Kunde:\n\nBeispiel GmbH\nBahnhofstrasse 1"
        assert extract_party(text, RECIPIENT_LABELS) == "Beispiel GmbH"

    def test_party_missing(self):
        assert extract_party(SAMPLE_TEXT, SUPPLIER_LABELS) is None


# ============================================================================
# Numeric-Gap Recovery
# ============================================================================

class TestAmountRecovery:
    """Tests for filling unlabeled amounts from numeric tokens."""

    def test_dates_are_not_amount_tokens(self):
        assert extract_amount_tokens("15.03.2024 100,00 1.234,56") == [100.0, 1234.56]

    def test_three_unlabeled_tokens(self):
        record = parse_invoice_text("Leistung 100,00\nAbgabe 19,00\nEndbetrag 119,00")
        assert record.net_amount == 100.0
        assert record.vat_amount == 19.0
        assert record.gross_amount == 119.0

    def test_labeled_amounts_are_kept(self):
        net, vat, gross = recover_amount_gaps("5,00 6,00 7,00", 100.0, None, 119.0)
        assert (net, vat, gross) == (100.0, 6.0, 119.0)

    def test_fewer_than_three_tokens(self):
        assert recover_amount_gaps("5,00 6,00", None, None, None) == (None, None, None)


# ============================================================================
# Full Invoice Extraction
# ============================================================================

class TestParseInvoiceText:
    """Tests for parse_invoice_text()."""

    def test_sample_invoice(self):
        record = parse_invoice_text(SAMPLE_TEXT)
        assert record.invoice_number == "INV-2024-001"
        assert record.date == "15.03.2024"
        assert record.net_amount == 100.0
        assert record.vat_amount == 19.0
        assert record.gross_amount == 119.0
        assert record.vat_rate == 19
        assert record.ai_engine is None
        assert record.line_items == []

    def test_empty_text(self):
        record = parse_invoice_text("")
        assert record.invoice_number is None
        assert record.net_amount is None
        assert record.vat_rate == 19

    def test_non_string_input(self):
        with pytest.raises(InputContractError):
            parse_invoice_text(b"Rechnungsnummer: 1")


# ============================================================================
# Payment Text
# ============================================================================

class TestPaymentText:
    """Tests for QR-bill and IBAN detection and parsing."""

    def test_find_qr_payload(self, qr_payload):
        text = f"Rechnung\n{qr_payload}\nSeite 2"
        found = find_payment_text(text)
        assert found.startswith("SPC")
        assert found.endswith("EPD")

    def test_find_iban(self):
        assert find_payment_text("IBAN: CH44 3199 9123 0008 8901 2") == "CH44 3199 9123 0008 8901 2"

    def test_no_payment_text(self):
        assert find_payment_text(SAMPLE_TEXT) is None

    def test_parse_qr_payload(self, qr_payload):
        payment = parse_payment_text(qr_payload)
        assert payment.iban == "CH4431999123000889012"
        assert payment.amount == 119.0
        assert payment.creditor == "Muster AG"
        assert payment.reference == "210000000003139471430009017"
        assert payment.description == "Rechnung INV-2024-001"
        assert payment.ai_engine is None

    def test_parse_iban_only(self):
        payment = parse_payment_text("Bitte überweisen auf CH44 3199 9123 0008 8901 2")
        assert payment.iban == "CH4431999123000889012"
        assert payment.amount is None

    def test_parse_without_payment_data(self):
        assert parse_payment_text("Vielen Dank für Ihren Auftrag") is None


class TestIban:
    """Tests for IBAN detection and the mod-97 checksum."""

    def test_checksum(self):
        assert iban_checksum_valid("CH4431999123000889012") is True
        assert iban_checksum_valid("DE89370400440532013000") is True
        assert iban_checksum_valid("CH4531999123000889012") is False

    @pytest.mark.parametrize("value", ["CH44", "ch4431999123000889012", "CH44 3199 9123 0008 8901 2"])
    def test_checksum_rejects_malformed(self, value):
        assert iban_checksum_valid(value) is False

    def test_following_currency_is_not_part_of_iban(self):
        assert find_payment_text("Konto BE68539007547034 CHF 100.00") == "BE68539007547034"

    def test_following_word_is_trimmed(self):
        assert find_iban("BE68 5390 0754 7034 DANK") == "BE68 5390 0754 7034"

    def test_invalid_checksum_is_skipped(self):
        text = "Alt: CH45 3199 9123 0008 8901 2, neu: CH44 3199 9123 0008 8901 2"
        assert find_iban(text) == "CH44 3199 9123 0008 8901 2"

    def test_only_invalid_candidates(self):
        assert find_iban("Referenz AB12 3456 7890 1234") is None
        assert parse_payment_text("Referenz AB12 3456 7890 1234") is None
