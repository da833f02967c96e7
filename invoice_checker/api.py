"""
FastAPI application for the Invoice Checker.

Provides REST API endpoints for:
- Health check and backend status
- Invoice extraction and validation from raw text
- Payment (QR-bill / IBAN) extraction
- Validation of already structured invoice data
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .availability import AvailabilityProbe
from .backends import CloudBackend, LocalBackend
from .config import API_HOST, API_PORT, APP_NAME, logger
from .errors import InputContractError
from .extractor import StructuredExtractor
from .pipeline import check_invoice_text, extract_payment
from .schemas import (
    CheckResult,
    ExtractRequest,
    HealthResponse,
    PaymentRecord,
    StatusResponse,
    ValidateRequest,
    ValidateResponse,
)
from .validator import validate_invoice


# ============================================================================
# FastAPI App Configuration
# ============================================================================

app = FastAPI(
    title="Invoice Checker API",
    description="""
    Invoice extraction and consistency checking.

    Invoice text is read by the first available extraction tier
    (OpenAI, then a local Ollama model, then a pattern matcher) and the
    resulting record is checked for completeness and arithmetic consistency.

    ## Features

    - **Extract**: Submit raw invoice text and get the structured record plus its validation
    - **Payment**: Read IBAN, amount and reference from a QR-bill payload or IBAN
    - **Validate**: Check invoice data you already have
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Backends and Availability
# ============================================================================

cloud_backend = CloudBackend.from_config()
local_backend = LocalBackend.from_config()
availability = AvailabilityProbe(cloud_backend, local_backend)

START_TIME = time.time()
_probe_task: Optional[asyncio.Task] = None


def get_extractor() -> StructuredExtractor:
    """Build the tier list for one request from the current availability snapshot."""
    return StructuredExtractor.from_snapshot(availability.snapshot, cloud_backend, local_backend)


def format_uptime(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns the service status and version information.
    """
    from . import __version__
    return HealthResponse(status="ok", version=__version__)


@app.get("/api/status", response_model=StatusResponse, tags=["System"])
async def service_status() -> StatusResponse:
    """
    Service status with uptime and backend availability.

    Until the startup probe has finished every backend is reported as
    unavailable and the active mode is deterministic.
    """
    from . import __version__
    uptime_seconds = time.time() - START_TIME
    return StatusResponse(
        application=APP_NAME,
        version=__version__,
        status="running" if availability.done else "starting",
        uptime=format_uptime(uptime_seconds),
        uptime_seconds=round(uptime_seconds, 3),
        timestamp=datetime.now(timezone.utc).isoformat(),
        ai=availability.snapshot.status(),
    )


@app.post(
    "/api/extract",
    response_model=CheckResult,
    tags=["Extraction"],
    summary="Extract and validate invoice text",
)
async def extract_invoice(
    request: ExtractRequest,
    extractor: StructuredExtractor = Depends(get_extractor),
) -> CheckResult:
    """
    Extract an invoice record from raw text and validate it.

    **Processing Steps:**
    1. Extract invoice fields with the first tier that yields a record
    2. Look for a QR-bill payload or IBAN and extract its payment fields
    3. Validate the record (completeness, sum check, business rules)
    """
    logger.info(f"Received extraction request ({len(request.raw_text)} chars)")
    return await check_invoice_text(request.raw_text, extractor)


@app.post(
    "/api/extract/payment",
    response_model=Optional[PaymentRecord],
    tags=["Extraction"],
    summary="Extract payment data",
)
async def extract_payment_data(
    request: ExtractRequest,
    extractor: StructuredExtractor = Depends(get_extractor),
) -> Optional[PaymentRecord]:
    """
    Extract IBAN, amount, creditor and reference from QR-bill or IBAN text.

    Returns null when the text holds no payment data.
    """
    return await extract_payment(request.raw_text, extractor)


@app.post(
    "/api/validate",
    response_model=ValidateResponse,
    tags=["Validation"],
    summary="Validate invoice data",
)
async def validate_invoice_data(request: ValidateRequest) -> ValidateResponse:
    """
    Validate invoice data provided as JSON.

    Invoice number, net amount and gross amount are required; a missing
    VAT amount counts as 0.
    """
    invoice = request.to_record()
    logger.info(f"Received validation request for invoice {invoice.invoice_number}")
    return ValidateResponse(invoice=invoice, validation=validate_invoice(invoice))


@app.get("/rules", tags=["System"])
async def list_rules():
    """
    List all validation rules applied by the service.

    Returns the complete list of validation rules with their codes
    and descriptions, organized by category.
    """
    from .rules import VALIDATION_RULES, get_rules_by_category
    from .config import ErrorCategory

    rules_by_category = {}
    for category in ErrorCategory:
        category_rules = get_rules_by_category(category)
        if category_rules:
            rules_by_category[category.value] = [
                {"code": rule.code, "description": rule.description}
                for rule in category_rules
            ]

    return {
        "total_rules": len(VALIDATION_RULES),
        "rules_by_category": rules_by_category,
    }


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(InputContractError)
async def input_contract_exception_handler(request: Request, exc: InputContractError):
    """Reject input of the wrong shape."""
    logger.warning(f"Rejected request to {request.url.path}: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# ============================================================================
# Startup/Shutdown Events
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Start the backend availability probe in the background."""
    global _probe_task
    logger.info(f"{APP_NAME} API starting on {API_HOST}:{API_PORT}")
    _probe_task = asyncio.create_task(availability.run())


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    if _probe_task is not None and not _probe_task.done():
        _probe_task.cancel()
    logger.info(f"{APP_NAME} API shutting down")


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server(host: str = API_HOST, port: int = API_PORT):
    """Run the API server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
