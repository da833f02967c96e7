"""
Consistency validation for extracted invoices.

validate_invoice() is a pure function: it runs every rule in registry order
and collects errors, warnings and successful checks into one
ValidationResult. Running it twice on the same record gives the same result.
"""

import math
from collections.abc import Mapping
from typing import Optional, Union

from pydantic import ValidationError

from .config import logger
from .errors import InputContractError
from .rules import VALIDATION_RULES, ValidationRule
from .schemas import InvoiceRecord, ValidationResult


AMOUNT_FIELDS = ("net_amount", "vat_amount", "gross_amount")


def _require_finite_amounts(record: InvoiceRecord) -> InvoiceRecord:
    # Attribute assignment on a record bypasses field validation
    for name in AMOUNT_FIELDS:
        value = getattr(record, name)
        if value is not None and not math.isfinite(value):
            raise InputContractError(f"{name} must be a finite number, got {value}")
    return record


def coerce_record(invoice: Union[InvoiceRecord, Mapping]) -> InvoiceRecord:
    """
    Accept an InvoiceRecord or a mapping with the same fields.

    Raises:
        InputContractError: If the input does not have the shape of an invoice record
            or carries a NaN / infinite amount
    """
    if isinstance(invoice, InvoiceRecord):
        return _require_finite_amounts(invoice)
    if isinstance(invoice, Mapping):
        try:
            return InvoiceRecord.model_validate(dict(invoice))
        except ValidationError as e:
            raise InputContractError(f"malformed invoice record: {e.error_count()} field error(s)") from e
    raise InputContractError(f"expected an invoice record, got {type(invoice).__name__}")


def validate_invoice(
    invoice: Union[InvoiceRecord, Mapping],
    rules: Optional[list[ValidationRule]] = None,
) -> ValidationResult:
    """
    Validate a single invoice against all consistency rules.

    Args:
        invoice: The InvoiceRecord (or equivalent mapping) to validate
        rules: Optional list of rules to apply (defaults to VALIDATION_RULES)

    Returns:
        ValidationResult with errors, warnings and checks in rule order
    """
    record = coerce_record(invoice)
    if rules is None:
        rules = VALIDATION_RULES

    errors: list[str] = []
    warnings: list[str] = []
    checks = []

    for rule in rules:
        outcome = rule.check(record)
        errors.extend(outcome.errors)
        warnings.extend(outcome.warnings)
        checks.extend(outcome.checks)

    logger.debug(
        f"Validated invoice {record.invoice_number}: "
        f"{len(errors)} error(s), {len(warnings)} warning(s), {len(checks)} check(s)"
    )

    return ValidationResult(
        errors=errors,
        warnings=warnings,
        checks=checks,
        is_valid=len(errors) == 0,
    )


def format_result_text(invoice: InvoiceRecord, result: ValidationResult) -> str:
    """
    Format a record and its ValidationResult as human-readable text for CLI output.
    """
    lines = [
        "=" * 50,
        "INVOICE CHECK",
        "=" * 50,
        f"Invoice number: {invoice.invoice_number or '-'}",
        f"Date:           {invoice.date or '-'}",
        f"Extracted by:   {invoice.ai_engine or 'pattern matcher'}",
        f"Result:         {'VALID' if result.is_valid else 'INVALID'}",
        "",
    ]

    if result.checks:
        lines.append("Checks:")
        lines.append("-" * 40)
        for check in result.checks:
            lines.append(f"  [{check.status}] {check.name}: {check.value}")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        lines.append("-" * 40)
        for error in result.errors:
            lines.append(f"  - {error}")
        lines.append("")

    if result.warnings:
        lines.append("Warnings:")
        lines.append("-" * 40)
        for warning in result.warnings:
            lines.append(f"  - {warning}")
        lines.append("")

    if invoice.payment_data:
        payment = invoice.payment_data
        lines.append("Payment:")
        lines.append("-" * 40)
        lines.append(f"  IBAN:      {payment.iban or '-'}")
        lines.append(f"  Amount:    {payment.amount if payment.amount is not None else '-'}")
        lines.append(f"  Creditor:  {payment.creditor or '-'}")
        lines.append(f"  Reference: {payment.reference or '-'}")
        lines.append("")

    lines.append("=" * 50)

    return "\n".join(lines)
