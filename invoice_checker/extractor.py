"""
Structured extraction with a tiered fallback.

This module provides functionality to:
- Describe the two target schemas (invoice fields, payment fields)
- Read the first JSON object out of a language-model answer
- Coerce loosely typed model output into InvoiceRecord / PaymentRecord
- Run the ordered tiers (cloud, local, pattern matcher) until one yields a record
"""

import json
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

from pydantic import ValidationError

from .availability import AvailabilitySnapshot
from .backends import Backend, call_with_timeout
from .config import (
    CLOUD_TIMEOUTS_MS,
    DEFAULT_VAT_RATE,
    INVOICE_MAX_TOKENS,
    LOCAL_TIMEOUTS_MS,
    PAYMENT_MAX_TOKENS,
    logger,
)
from .errors import BackendError, InputContractError
from .matcher import normalize_date, normalize_iban, parse_invoice_text, parse_number, parse_payment_text
from .prompts import (
    INVOICE_FIELD_ALIASES,
    PAYMENT_FIELD_ALIASES,
    build_invoice_prompt,
    build_payment_prompt,
    pick_field,
)
from .schemas import InvoiceRecord, PaymentRecord


Record = Union[InvoiceRecord, PaymentRecord]


# ============================================================================
# Response Parsing
# ============================================================================

@dataclass(frozen=True)
class ParsedFields:
    """A JSON object read from a backend answer."""
    fields: dict


@dataclass(frozen=True)
class ParseFailure:
    """The backend answer could not be used; reason is logged."""
    reason: str


ParseOutcome = Union[ParsedFields, ParseFailure]


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} substring of text.

    Braces inside JSON strings are ignored, so wrapper prose before or after
    the object and braces within values are both tolerated.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        char = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:pos + 1]
    return None


def parse_backend_response(text: str, schema: "ExtractionSchema") -> ParseOutcome:
    """Read the first JSON object from a backend answer and check it against the schema's keys."""
    if not isinstance(text, str):
        return ParseFailure(f"answer is {type(text).__name__}, not text")

    candidate = find_json_object(text)
    if candidate is None:
        return ParseFailure("no JSON object in response")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return ParseFailure(f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return ParseFailure("JSON value is not an object")

    known = {alias for aliases in schema.aliases.values() for alias in aliases}
    if not known.intersection(data):
        return ParseFailure(f"object has none of the {schema.name} fields")

    return ParsedFields(data)


# ============================================================================
# Coercion
# ============================================================================

def coerce_text(value) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    value = str(value).strip()
    if not value or value.lower() in ("null", "none", "n/a"):
        return None
    return value


def coerce_vat_rate(value) -> int:
    if isinstance(value, str):
        value = value.replace("%", "")
    rate = parse_number(value)
    if rate is None:
        return DEFAULT_VAT_RATE
    return int(rate)


def build_invoice_record(data: dict, engine: Optional[str]) -> InvoiceRecord:
    """Coerce model output into an InvoiceRecord tagged with its engine."""
    def field(name):
        return pick_field(data, INVOICE_FIELD_ALIASES[name])

    date = coerce_text(field("date"))
    return InvoiceRecord(
        invoice_number=coerce_text(field("invoice_number")),
        date=normalize_date(date) if date else None,
        supplier=coerce_text(field("supplier")),
        recipient=coerce_text(field("recipient")),
        net_amount=parse_number(field("net_amount")),
        vat_amount=parse_number(field("vat_amount")),
        gross_amount=parse_number(field("gross_amount")),
        vat_rate=coerce_vat_rate(field("vat_rate")),
        ai_engine=engine,
    )


def build_payment_record(data: dict, engine: Optional[str]) -> PaymentRecord:
    """Coerce model output into a PaymentRecord tagged with its engine."""
    def field(name):
        return pick_field(data, PAYMENT_FIELD_ALIASES[name])

    iban = coerce_text(field("iban"))
    return PaymentRecord(
        iban=normalize_iban(iban) if iban else None,
        amount=parse_number(field("amount")),
        creditor=coerce_text(field("creditor")),
        reference=coerce_text(field("reference")),
        description=coerce_text(field("description")),
        ai_engine=engine,
    )


# ============================================================================
# Schemas
# ============================================================================

@dataclass(frozen=True)
class ExtractionSchema:
    """
    Target field set of an extraction request.

    Attributes:
        name: Schema key, also used to look up tier timeouts
        aliases: Accepted JSON keys per record field
        build_prompt: Turns raw text into the backend prompt
        build_record: Coerces parsed JSON into a record
        match_text: Pattern-based fallback for the last tier
        max_tokens: Completion budget for backend calls
    """
    name: str
    aliases: Mapping[str, tuple[str, ...]]
    build_prompt: Callable[[str], str]
    build_record: Callable[[dict, Optional[str]], Record]
    match_text: Callable[[str], Optional[Record]]
    max_tokens: int


INVOICE_SCHEMA = ExtractionSchema(
    name="invoice",
    aliases=INVOICE_FIELD_ALIASES,
    build_prompt=build_invoice_prompt,
    build_record=build_invoice_record,
    match_text=parse_invoice_text,
    max_tokens=INVOICE_MAX_TOKENS,
)

PAYMENT_SCHEMA = ExtractionSchema(
    name="payment",
    aliases=PAYMENT_FIELD_ALIASES,
    build_prompt=build_payment_prompt,
    build_record=build_payment_record,
    match_text=parse_payment_text,
    max_tokens=PAYMENT_MAX_TOKENS,
)


# ============================================================================
# Tiers
# ============================================================================

class ExtractionTier:
    """
    One stage of the fallback sequence.

    attempt() returns a record, or None so the extractor moves on to the
    next tier. Tiers must not raise for backend problems.
    """

    name: str = "tier"

    async def attempt(self, text: str, schema: ExtractionSchema) -> Optional[Record]:
        raise NotImplementedError


class BackendTier(ExtractionTier):
    """Prompt a language-model backend and read a JSON object from its answer."""

    def __init__(self, backend: Backend, timeouts_ms: Mapping[str, int]):
        self.backend = backend
        self.timeouts_ms = timeouts_ms
        self.name = backend.name

    async def attempt(self, text: str, schema: ExtractionSchema) -> Optional[Record]:
        timeout_ms = self.timeouts_ms[schema.name]
        prompt = schema.build_prompt(text)

        logger.info(f"Trying {self.backend.engine_name} for {schema.name} extraction")
        try:
            answer = await call_with_timeout(
                self.backend.generate(prompt, timeout_ms, max_tokens=schema.max_tokens),
                timeout_ms,
                backend=self.backend.name,
            )
        except BackendError as e:
            logger.warning(f"{self.name} {schema.name} extraction failed: {e}")
            return None
        except Exception:
            logger.exception(f"{self.name} {schema.name} extraction raised an unexpected error")
            return None

        outcome = parse_backend_response(answer, schema)
        if isinstance(outcome, ParseFailure):
            logger.warning(f"{self.name} {schema.name} answer unusable: {outcome.reason}")
            return None

        try:
            record = schema.build_record(outcome.fields, self.backend.engine_name)
        except ValidationError as e:
            logger.warning(f"{self.name} {schema.name} fields rejected: {e.error_count()} error(s)")
            return None
        except Exception:
            logger.exception(f"{self.name} {schema.name} fields could not be converted")
            return None

        logger.info(f"{self.backend.engine_name} {schema.name} extraction succeeded")
        return record


class DeterministicTier(ExtractionTier):
    """Pattern matcher; always available, never raises for text input."""

    name = "pattern matcher"

    async def attempt(self, text: str, schema: ExtractionSchema) -> Optional[Record]:
        logger.info(f"Using pattern matcher for {schema.name} extraction")
        return schema.match_text(text)


def build_tiers(
    snapshot: AvailabilitySnapshot,
    cloud: Optional[Backend] = None,
    local: Optional[Backend] = None,
) -> list[ExtractionTier]:
    """Ordered tiers for one request: available backends first, pattern matcher last."""
    tiers: list[ExtractionTier] = []
    if snapshot.cloud and cloud is not None:
        tiers.append(BackendTier(cloud, CLOUD_TIMEOUTS_MS))
    if snapshot.local and local is not None:
        tiers.append(BackendTier(local, LOCAL_TIMEOUTS_MS))
    tiers.append(DeterministicTier())
    return tiers


# ============================================================================
# Extractor
# ============================================================================

class StructuredExtractor:
    """
    Runs the tiers in order and returns the first record produced.

    Tiers are awaited one at a time; a later tier never runs once an
    earlier one produced a record, and records are never merged.
    """

    def __init__(self, tiers: list[ExtractionTier]):
        self.tiers = tiers

    @classmethod
    def from_snapshot(
        cls,
        snapshot: AvailabilitySnapshot,
        cloud: Optional[Backend] = None,
        local: Optional[Backend] = None,
    ) -> "StructuredExtractor":
        return cls(build_tiers(snapshot, cloud, local))

    async def extract(self, raw_text: str, schema: ExtractionSchema) -> Optional[Record]:
        """
        Extract one record for the given schema.

        Returns None only when every tier declined, which for the payment
        schema means the text holds no payment data.

        Raises:
            InputContractError: If raw_text is not a string
        """
        if not isinstance(raw_text, str):
            raise InputContractError(f"expected raw text as str, got {type(raw_text).__name__}")

        for tier in self.tiers:
            record = await tier.attempt(raw_text, schema)
            if record is not None:
                return record
            logger.debug(f"Tier {tier.name} yielded no {schema.name} record; continuing")

        logger.info(f"No {schema.name} data found")
        return None
