"""
Command-line interface for the Invoice Checker.

Provides the following commands:
- extract: Extract and validate one invoice document (PDF or text)
- validate: Validate invoice JSON and write a report
- status: Probe the language-model backends
- serve: Run the HTTP API
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from .availability import AvailabilityProbe
from .backends import CloudBackend, LocalBackend
from .config import API_HOST, API_PORT, logger
from .errors import InputContractError
from .extractor import DeterministicTier, StructuredExtractor
from .pdf_text import read_source_text
from .pipeline import check_invoice_text
from .schemas import CheckResult, InvoiceRecord
from .validator import coerce_record, format_result_text, validate_invoice


# Create Typer app
app = typer.Typer(
    name="invoice-checker",
    help="Invoice extraction and consistency checking CLI",
    add_completion=False,
)


async def _check_document(raw_text: str, use_ai: bool) -> CheckResult:
    if not use_ai:
        extractor = StructuredExtractor([DeterministicTier()])
    else:
        cloud, local = CloudBackend.from_config(), LocalBackend.from_config()
        snapshot = await AvailabilityProbe(cloud, local).run()
        extractor = StructuredExtractor.from_snapshot(snapshot, cloud, local)
    return await check_invoice_text(raw_text, extractor)


def _load_invoices(input_file: Path) -> list[InvoiceRecord]:
    """Read one invoice, a list of invoices, or the output of `extract`."""
    with open(input_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        data = [data]

    invoices = []
    for item in data:
        if isinstance(item, dict) and isinstance(item.get("invoice"), dict):
            item = item["invoice"]
        invoices.append(coerce_record(item))
    return invoices


@app.command()
def extract(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Invoice document (PDF or plain text)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the result as JSON to this file",
    ),
    no_ai: bool = typer.Option(
        False,
        "--no-ai",
        help="Skip the language-model backends and use the pattern matcher only",
    ),
) -> None:
    """
    Extract an invoice from a document and validate it.

    Tries OpenAI, then a local Ollama model, then the pattern matcher, and
    prints the extracted fields together with the validation result.
    """
    typer.echo(f"Checking invoice: {input_file}")

    try:
        raw_text = read_source_text(input_file)
        result = asyncio.run(_check_document(raw_text, use_ai=not no_ai))
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo("\n" + format_result_text(result.invoice, result.validation))

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
        typer.echo(f"\n[OK] Result saved to: {output}")


@app.command()
def validate(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Input JSON file containing invoice data",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Output validation report JSON file path",
    ),
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if any invoices are invalid",
    ),
) -> None:
    """
    Validate invoice data from a JSON file.

    Accepts a single invoice object, a list of them, or the JSON written by
    the extract command.
    """
    typer.echo(f"Validating invoices from: {input_file}")

    try:
        invoices = _load_invoices(input_file)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in input file: {e}", err=True)
        raise typer.Exit(code=1)
    except InputContractError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not invoices:
        typer.echo("No invoices found in input file.", err=True)
        raise typer.Exit(code=1)

    entries = []
    invalid_count = 0
    for invoice in invoices:
        result = validate_invoice(invoice)
        if not result.is_valid:
            invalid_count += 1
        entries.append({"invoice": invoice.model_dump(mode="json"), "validation": result.model_dump(mode="json")})
        typer.echo("\n" + format_result_text(invoice, result))

    typer.echo(f"\n{len(invoices) - invalid_count} of {len(invoices)} invoice(s) valid")

    if report:
        with open(report, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2, ensure_ascii=False)
        typer.echo(f"[OK] Validation report saved to: {report}")

    if fail_on_invalid and invalid_count > 0:
        raise typer.Exit(code=1)


@app.command()
def status() -> None:
    """Probe the OpenAI and Ollama backends and show which tier is active."""
    probe = AvailabilityProbe(CloudBackend.from_config(), LocalBackend.from_config())
    snapshot = asyncio.run(probe.run())
    availability = snapshot.status()

    typer.echo(f"OpenAI:          {'available' if availability.cloud else 'unavailable'}")
    typer.echo(f"Ollama:          {'available' if availability.local else 'unavailable'}")
    typer.echo("Pattern matcher: available")
    typer.echo(f"Active mode:     {availability.active_mode.value}")


@app.command()
def serve(
    host: str = typer.Option(API_HOST, "--host", help="Bind address"),
    port: int = typer.Option(API_PORT, "--port", help="Port to listen on"),
) -> None:
    """Run the HTTP API."""
    from .api import run_server
    logger.info(f"Starting API server on {host}:{port}")
    run_server(host=host, port=port)


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Invoice Checker v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
