"""
Consistency rules for extracted invoices.

Rules are evaluated in registry order and each one contributes errors,
warnings or successful checks:
- Completeness rules: invoice number and date must be present
- Amount rules: net + VAT must equal gross within tolerance
- Format and business rules: invoice number length, net not above gross

The order of the registry is the order in which messages are reported.
"""

from dataclasses import dataclass, field
from typing import Callable

from .config import AMOUNT_TOLERANCE, CURRENCY, MIN_INVOICE_NUMBER_LENGTH, ErrorCategory
from .schemas import InvoiceRecord, ValidationCheck


MSG_INVOICE_NUMBER_MISSING = "invoice number not found"
MSG_INVOICE_DATE_MISSING = "invoice date not found"
MSG_AMOUNTS_INCOMPLETE = "not all amount fields could be recognized"
MSG_INVOICE_NUMBER_TOO_SHORT = "invoice number invalid or too short"
MSG_NET_EXCEEDS_GROSS = "net amount must not exceed gross amount"
MSG_SUM_MISMATCH = "sum check failed"


@dataclass
class RuleOutcome:
    """What a single rule contributes to the ValidationResult."""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    checks: list[ValidationCheck] = field(default_factory=list)


RuleCheckFn = Callable[[InvoiceRecord], RuleOutcome]


@dataclass
class ValidationRule:
    """
    Represents a single validation rule.

    Attributes:
        code: Machine-readable rule code (e.g., "missing_field:invoice_number")
        description: Human-readable description of the rule
        category: Category of the rule
        check: Function that evaluates the rule
    """
    code: str
    description: str
    category: ErrorCategory
    check: RuleCheckFn


def format_amount(value: float) -> str:
    """Format an amount for display, e.g. 1234.5 -> "CHF 1234,50"."""
    number = f"{value:.2f}".replace(".", ",")
    return f"{CURRENCY} {number}"


def _has_text(value) -> bool:
    return bool(value and value.strip())


# ============================================================================
# Completeness Rules
# ============================================================================

def check_invoice_number(invoice: InvoiceRecord) -> RuleOutcome:
    """Every invoice must carry an invoice number."""
    if not _has_text(invoice.invoice_number):
        return RuleOutcome(errors=[MSG_INVOICE_NUMBER_MISSING])
    return RuleOutcome(checks=[ValidationCheck(name="invoice number", value=invoice.invoice_number)])


def check_invoice_date(invoice: InvoiceRecord) -> RuleOutcome:
    """Invoice date must be present."""
    if not _has_text(invoice.date):
        return RuleOutcome(errors=[MSG_INVOICE_DATE_MISSING])
    return RuleOutcome(checks=[ValidationCheck(name="invoice date", value=invoice.date)])


# ============================================================================
# Amount Rules
# ============================================================================

def check_amounts(invoice: InvoiceRecord) -> RuleOutcome:
    """
    net_amount + vat_amount should equal gross_amount within tolerance.

    Runs only when all three amounts are present; otherwise the invoice gets
    a warning and no arithmetic is attempted.
    """
    net, vat, gross = invoice.net_amount, invoice.vat_amount, invoice.gross_amount
    if net is None or vat is None or gross is None:
        return RuleOutcome(warnings=[MSG_AMOUNTS_INCOMPLETE])

    outcome = RuleOutcome(checks=[
        ValidationCheck(name="net amount recognized", value=format_amount(net)),
        ValidationCheck(name="VAT amount recognized", value=format_amount(vat)),
        ValidationCheck(name="gross amount recognized", value=format_amount(gross)),
    ])

    rate = f"{vat / net * 100:.2f}%" if net else "n/a"
    outcome.checks.append(ValidationCheck(name="VAT rate", value=rate))

    calculated_gross = net + vat
    # A difference of exactly one cent is still within tolerance
    difference = round(abs(calculated_gross - gross), 6)
    if difference > AMOUNT_TOLERANCE:
        outcome.errors.append(
            f"{MSG_SUM_MISMATCH}: net ({format_amount(net)}) + VAT ({format_amount(vat)}) "
            f"= {format_amount(calculated_gross)}, but gross = {format_amount(gross)} "
            f"(difference: {format_amount(difference)})"
        )
    else:
        outcome.checks.append(ValidationCheck(name="sum check (net + VAT = gross)", value="correct"))

    return outcome


# ============================================================================
# Format and Business Rules
# ============================================================================

def check_invoice_number_length(invoice: InvoiceRecord) -> RuleOutcome:
    """A present invoice number must have at least two characters."""
    number = invoice.invoice_number
    if _has_text(number) and len(number.strip()) < MIN_INVOICE_NUMBER_LENGTH:
        return RuleOutcome(errors=[MSG_INVOICE_NUMBER_TOO_SHORT])
    return RuleOutcome()


def check_net_not_above_gross(invoice: InvoiceRecord) -> RuleOutcome:
    """The net amount can never be larger than the gross amount."""
    net, gross = invoice.net_amount, invoice.gross_amount
    if net is not None and gross is not None and net > gross:
        return RuleOutcome(errors=[MSG_NET_EXCEEDS_GROSS])
    return RuleOutcome()


# ============================================================================
# Rule Registry
# ============================================================================

# All validation rules in execution order
VALIDATION_RULES: list[ValidationRule] = [
    ValidationRule(
        code="missing_field:invoice_number",
        description="Every invoice must have an invoice number",
        category=ErrorCategory.MISSING_FIELD,
        check=check_invoice_number,
    ),
    ValidationRule(
        code="missing_field:date",
        description="Invoice date must be present",
        category=ErrorCategory.MISSING_FIELD,
        check=check_invoice_date,
    ),
    ValidationRule(
        code="business_rule:totals_mismatch",
        description="net_amount + vat_amount should equal gross_amount",
        category=ErrorCategory.BUSINESS_RULE,
        check=check_amounts,
    ),
    ValidationRule(
        code="format_error:invoice_number",
        description="Invoice number must have at least two characters",
        category=ErrorCategory.FORMAT_ERROR,
        check=check_invoice_number_length,
    ),
    ValidationRule(
        code="business_rule:net_exceeds_gross",
        description="Net amount must not exceed gross amount",
        category=ErrorCategory.BUSINESS_RULE,
        check=check_net_not_above_gross,
    ),
]


def get_rules_by_category(category: ErrorCategory) -> list[ValidationRule]:
    """Get all rules belonging to a specific category."""
    return [rule for rule in VALIDATION_RULES if rule.category == category]
