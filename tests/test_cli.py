"""
Tests for the command-line interface.
"""

import json

from typer.testing import CliRunner

from invoice_checker.cli import app


runner = CliRunner()


class TestExtractCommand:
    """Tests for `invoice-checker extract`."""

    def test_extract_text_file(self, tmp_path, sample_text):
        source = tmp_path / "invoice.txt"
        source.write_text(sample_text, encoding="utf-8")
        output = tmp_path / "result.json"

        result = runner.invoke(app, ["extract", "--input", str(source), "--no-ai", "--output", str(output)])

        assert result.exit_code == 0
        assert "VALID" in result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["invoice"]["invoice_number"] == "INV-2024-001"
        assert data["validation"]["is_valid"] is True

    def test_extract_empty_file(self, tmp_path):
        source = tmp_path / "empty.txt"
        source.write_text("  \n", encoding="utf-8")

        result = runner.invoke(app, ["extract", "--input", str(source), "--no-ai"])

        assert result.exit_code == 1

    def test_extract_broken_pdf(self, tmp_path):
        source = tmp_path / "scan.pdf"
        source.write_bytes(b"this is not a PDF document")

        result = runner.invoke(app, ["extract", "--input", str(source), "--no-ai"])

        assert result.exit_code == 1
        assert "Could not read PDF" in result.output


class TestValidateCommand:
    """Tests for `invoice-checker validate`."""

    def test_validate_list_with_report(self, tmp_path):
        source = tmp_path / "invoices.json"
        source.write_text(json.dumps([
            {"invoice_number": "INV-1", "date": "01.01.2024", "net_amount": 100, "vat_amount": 19, "gross_amount": 119},
            {"invoice_number": "INV-2", "date": "01.01.2024", "net_amount": 100, "vat_amount": 19, "gross_amount": 150},
        ]), encoding="utf-8")
        report = tmp_path / "report.json"

        result = runner.invoke(app, ["validate", "--input", str(source), "--report", str(report)])

        assert result.exit_code == 0
        assert "1 of 2 invoice(s) valid" in result.output
        entries = json.loads(report.read_text(encoding="utf-8"))
        assert [entry["validation"]["is_valid"] for entry in entries] == [True, False]

    def test_fail_on_invalid(self, tmp_path):
        source = tmp_path / "invoice.json"
        source.write_text(json.dumps({"invoice_number": "INV-2", "net_amount": 150, "gross_amount": 100}))

        result = runner.invoke(app, ["validate", "--input", str(source), "--fail-on-invalid"])

        assert result.exit_code == 1

    def test_accepts_extract_output(self, tmp_path):
        source = tmp_path / "result.json"
        source.write_text(json.dumps({
            "invoice": {"invoice_number": "INV-1", "date": "01.01.2024",
                        "net_amount": 10, "vat_amount": 1, "gross_amount": 11},
            "validation": {"errors": [], "warnings": [], "checks": [], "is_valid": True},
        }))

        result = runner.invoke(app, ["validate", "--input", str(source), "--fail-on-invalid"])

        assert result.exit_code == 0

    def test_invalid_json(self, tmp_path):
        source = tmp_path / "broken.json"
        source.write_text("{not json")

        result = runner.invoke(app, ["validate", "--input", str(source)])

        assert result.exit_code == 1


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
