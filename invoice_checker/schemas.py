"""
Pydantic models for invoice data and validation results.

This module defines the core data structures used throughout the Invoice Checker:
- InvoiceRecord, LineItem and PaymentRecord for extracted data
- ValidationCheck and ValidationResult for consistency check outcomes
- AvailabilityStatus for the backend status snapshot
- Request/response models for the HTTP API
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    """
    Represents a single line item in an invoice.

    Reserved for future use: no extractor populates line items yet.
    """
    description: str = Field(..., min_length=1, description="Item or service description")
    quantity: float = Field(..., ge=0, description="Number of units")
    unit_price: float = Field(..., description="Price per unit")
    line_total: float = Field(..., description="Total for this line item")


class PaymentRecord(BaseModel):
    """
    Payment data found in a QR-bill payload or IBAN on the invoice.
    """
    iban: Optional[str] = Field(None, description="IBAN without spaces")
    amount: Optional[float] = Field(None, allow_inf_nan=False, description="Amount to pay")
    creditor: Optional[str] = Field(None, description="Name of the payee")
    reference: Optional[str] = Field(None, description="Payment reference (QRR/SCOR)")
    description: Optional[str] = Field(None, description="Unstructured payment message")
    ai_engine: Optional[str] = Field(
        None,
        description="Backend that produced the record; null for the pattern matcher",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "iban": "CH4431999123000889012",
                    "amount": 119.0,
                    "creditor": "Muster AG",
                    "reference": "210000000003139471430009017",
                    "description": "Rechnung INV-2024-001",
                    "ai_engine": "OpenAI gpt-4o",
                }
            ]
        }
    }


class InvoiceRecord(BaseModel):
    """
    Structured invoice data extracted from free-form invoice text.

    Every field may be missing: extraction is best effort and the
    Consistency Validator reports what is absent or inconsistent.
    """

    # ========================================================================
    # Identifiers and Parties
    # ========================================================================
    invoice_number: Optional[str] = Field(None, description="Invoice or reference number")
    date: Optional[str] = Field(
        None,
        description="Invoice date as day.month.year text (not calendar-validated)",
    )
    supplier: Optional[str] = Field(None, description="Name of the supplier")
    recipient: Optional[str] = Field(None, description="Name of the recipient")

    # ========================================================================
    # Line Items
    # ========================================================================
    line_items: list[LineItem] = Field(
        default_factory=list,
        description="Itemized list (reserved, currently always empty)",
    )

    # ========================================================================
    # Financial Information
    # ========================================================================
    net_amount: Optional[float] = Field(None, allow_inf_nan=False, description="Total before VAT")
    vat_amount: Optional[float] = Field(None, allow_inf_nan=False, description="VAT amount")
    gross_amount: Optional[float] = Field(None, allow_inf_nan=False, description="Total including VAT")
    vat_rate: int = Field(19, description="VAT rate in percent")

    # ========================================================================
    # Provenance and Payment
    # ========================================================================
    ai_engine: Optional[str] = Field(
        None,
        description="Backend that produced the record; null for the pattern matcher",
    )
    payment_data: Optional[PaymentRecord] = Field(
        None,
        description="Payment data, attached when payment text was found in the source",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "invoice_number": "INV-2024-001",
                    "date": "15.03.2024",
                    "supplier": "Muster AG",
                    "recipient": "Beispiel GmbH",
                    "line_items": [],
                    "net_amount": 100.0,
                    "vat_amount": 19.0,
                    "gross_amount": 119.0,
                    "vat_rate": 19,
                    "ai_engine": None,
                    "payment_data": None,
                }
            ]
        }
    }


class ValidationCheck(BaseModel):
    """A successful check, kept for audit display."""
    name: str = Field(..., description="What was checked")
    status: str = Field("OK", description="Check status")
    value: str = Field(..., description="Checked value, formatted for display")


class ValidationResult(BaseModel):
    """
    Outcome of the Consistency Validator for a single invoice.

    Entries appear in rule evaluation order.
    """
    errors: list[str] = Field(default_factory=list, description="Blocking issues")
    warnings: list[str] = Field(default_factory=list, description="Non-blocking issues")
    checks: list[ValidationCheck] = Field(default_factory=list, description="Successful checks")
    is_valid: bool = Field(..., description="True if no errors were found")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "errors": ["invoice number not found"],
                    "warnings": [],
                    "checks": [
                        {"name": "invoice date", "status": "OK", "value": "15.03.2024"},
                    ],
                    "is_valid": False,
                }
            ]
        }
    }


class ActiveMode(str, Enum):
    """Tier that handles extraction requests first."""
    CLOUD = "cloud"
    LOCAL = "local"
    DETERMINISTIC = "deterministic"


class AvailabilityStatus(BaseModel):
    """Read-only view of which backends are reachable."""
    cloud: bool = Field(..., description="Cloud backend available")
    local: bool = Field(..., description="Local backend available")
    fallback_always_available: bool = Field(True, description="Pattern matcher is always available")
    active_mode: ActiveMode = Field(..., description="First tier tried for new requests")


class CheckResult(BaseModel):
    """Pipeline output: the extracted record and its validation."""
    invoice: InvoiceRecord
    validation: ValidationResult
    payment_text: Optional[str] = Field(
        None,
        description="Raw QR-bill or IBAN text found in the source",
    )


# ============================================================================
# API Request/Response Models
# ============================================================================

class ExtractRequest(BaseModel):
    """Request body for the extraction endpoints."""
    raw_text: str = Field(..., description="Text of the invoice document")


class ValidateRequest(BaseModel):
    """
    Request body for the /api/validate endpoint.

    Invoice number, net and gross amount are required; a missing VAT
    amount counts as 0.
    """
    invoice_number: str = Field(..., description="Invoice or reference number")
    net_amount: float = Field(..., allow_inf_nan=False, description="Total before VAT")
    gross_amount: float = Field(..., allow_inf_nan=False, description="Total including VAT")
    vat_amount: float = Field(0.0, allow_inf_nan=False, description="VAT amount")
    date: Optional[str] = None
    supplier: Optional[str] = None
    recipient: Optional[str] = None
    vat_rate: int = 19

    def to_record(self) -> InvoiceRecord:
        """Convert the request into an InvoiceRecord for validation."""
        return InvoiceRecord(**self.model_dump())

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "invoice_number": "INV-2024-001",
                    "date": "15.03.2024",
                    "net_amount": 100.0,
                    "vat_amount": 19.0,
                    "gross_amount": 119.0,
                }
            ]
        }
    }


class ValidateResponse(BaseModel):
    """Response for the /api/validate endpoint."""
    invoice: InvoiceRecord
    validation: ValidationResult


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class StatusResponse(BaseModel):
    """Service status including backend availability."""
    application: str
    version: str
    status: str
    uptime: str
    uptime_seconds: float
    timestamp: str
    ai: AvailabilityStatus
