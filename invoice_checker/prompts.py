"""
Prompts sent to the language-model backends.

Each prompt asks for a single JSON object whose keys are the record's
field names. Models do not always follow the requested keys, so the
accepted aliases per field are listed here as well.
"""

from .config import PAYMENT_PROMPT_CHARS


INVOICE_PROMPT = """You are a precise invoice parser. Extract EXACTLY the following data from this invoice text as JSON.

INVOICE TEXT:
{text}

Answer ONLY with valid JSON (no further explanation):
{{
  "invoice_number": "invoice number or null",
  "date": "date in format dd.mm.yyyy or null",
  "supplier": "name of the supplier or null",
  "recipient": "name of the recipient or null",
  "net_amount": 0.00,
  "vat_amount": 0.00,
  "gross_amount": 0.00,
  "vat_rate": 19
}}"""


PAYMENT_PROMPT = """You are an expert for Swiss QR-bills and IBANs. Parse this QR-code / IBAN text:

TEXT:
{text}

Answer as JSON:
{{
  "iban": "IBAN or null",
  "amount": 0.00,
  "creditor": "name or null",
  "reference": "reference or null",
  "description": "text or null"
}}"""


INVOICE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "invoice_number": ("invoice_number", "invoiceNumber", "rechnungsnummer"),
    "date": ("date", "invoice_date", "datum"),
    "supplier": ("supplier", "seller", "lieferant"),
    "recipient": ("recipient", "buyer", "empfaenger", "empfänger"),
    "net_amount": ("net_amount", "netAmount", "summeNetto"),
    "vat_amount": ("vat_amount", "vatAmount", "summeMwSt"),
    "gross_amount": ("gross_amount", "grossAmount", "summeBrutto"),
    "vat_rate": ("vat_rate", "vatRate", "mwstSatz"),
}

PAYMENT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "iban": ("iban", "IBAN"),
    "amount": ("amount", "betrag"),
    "creditor": ("creditor", "glaeubiger", "gläubiger"),
    "reference": ("reference", "referenz"),
    "description": ("description", "beschreibung"),
}


def build_invoice_prompt(text: str) -> str:
    return INVOICE_PROMPT.format(text=text)


def build_payment_prompt(text: str) -> str:
    return PAYMENT_PROMPT.format(text=text[:PAYMENT_PROMPT_CHARS])


def pick_field(data: dict, aliases: tuple[str, ...]):
    """Return the value of the first alias present in data, else None."""
    for key in aliases:
        if key in data:
            return data[key]
    return None
