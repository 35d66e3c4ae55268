"""
Command-line interface for the Peppol Invoice Service.

Provides the following commands:
- generate: Generate UBL XML from invoice JSON
- validate: Validate one UBL document
- validate-batch: Validate a directory of UBL documents and write a report
- check-dataset: Check an invoice dataset for listing fields
- rules: List the validation rules
"""

import json
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from .config import RuleCategory, logger
from .generator import generate_ubl
from .rules import get_rules_by_category
from .schemas import Invoice, ValidationReport, format_input_errors
from .validator import (
    check_invoice_dataset,
    create_validation_report,
    format_summary_text,
    resolve_rule_sets,
    validate_ubl,
    validate_ubl_with_schemas,
)


# Create Typer app
app = typer.Typer(
    name="peppol-invoice",
    help="Peppol UBL Invoice Generation & Validation CLI",
    add_completion=False,
)


def _echo_findings(errors: list[str], warnings: list[str], indent: str = "  ") -> None:
    for err in errors:
        typer.echo(f"{indent}- {err}")
    for warn in warnings:
        typer.echo(f"{indent}! {warn}")


def _write_report(report_path: Path, validation_report: ValidationReport) -> None:
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(validation_report.model_dump(), f, indent=2)


def _selected_schemas(schema: Optional[List[str]]) -> Optional[list[str]]:
    """Check --schema names up front; None selects the default rules."""
    if not schema:
        return None
    try:
        resolve_rule_sets(schema)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    return list(schema)


def _read_xml(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        typer.echo(f"Error: Could not read {path.name} as UTF-8 text: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def generate(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="Input JSON file containing one invoice",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Path = typer.Option(
        "invoice.xml",
        "--output",
        "-o",
        help="Output UBL XML file path",
    ),
    skip_checks: bool = typer.Option(
        False,
        "--skip-checks",
        help="Render the JSON as-is without input validation",
    ),
) -> None:
    """
    Generate a UBL 2.1 invoice from JSON.

    The JSON is checked against the invoice input model first (required
    fields, dates, positive amounts, matching total) unless --skip-checks
    is given. The generated XML is then validated against the Peppol rules
    and the outcome is printed.
    """
    typer.echo(f"Generating UBL invoice from: {input_file}")

    try:
        with open(input_file, "r", encoding="utf-8") as f:
            invoice_data = json.load(f)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in input file: {e}", err=True)
        raise typer.Exit(code=1)
    except (OSError, UnicodeDecodeError) as e:
        typer.echo(f"Error: Could not read {input_file.name} as UTF-8 text: {e}", err=True)
        raise typer.Exit(code=1)

    if not isinstance(invoice_data, dict):
        typer.echo("Error: Input file must contain a single invoice object.", err=True)
        raise typer.Exit(code=1)

    if skip_checks:
        source = invoice_data
    else:
        try:
            source = Invoice.model_validate(invoice_data)
        except ValidationError as e:
            typer.echo("Invalid invoice input:", err=True)
            for reason in format_input_errors(e):
                typer.echo(f"  - {reason}", err=True)
            raise typer.Exit(code=1)

    xml = generate_ubl(source)
    output.write_text(xml, encoding="utf-8")
    typer.echo(f"\n[OK] UBL invoice written to: {output}")

    result = validate_ubl(xml)
    if result.valid:
        typer.echo("Peppol validation: passed")
    else:
        typer.echo(f"Peppol validation: failed ({len(result.errors)} error(s))")
    _echo_findings(result.errors, result.warnings)


@app.command()
def validate(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="UBL invoice XML file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Also write a JSON validation report to this path",
    ),
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if the invoice is invalid",
    ),
    schema: Optional[List[str]] = typer.Option(
        None,
        "--schema",
        "-s",
        help="Rule set to apply instead of the default rules (peppol, fairwork); repeatable",
    ),
) -> None:
    """Validate a single UBL invoice against the Peppol rules."""
    typer.echo(f"Validating invoice: {input_file}")

    schemas = _selected_schemas(schema)
    xml = _read_xml(input_file)
    if schemas is None:
        result = validate_ubl(xml)
    else:
        result = validate_ubl_with_schemas(xml, schemas)

    if result.valid:
        typer.echo(f"\n[OK] {input_file.name} complies with Peppol standards")
    else:
        typer.echo(f"\n[FAIL] {input_file.name} does not comply with Peppol standards")
    _echo_findings(result.errors, result.warnings)

    if report:
        _write_report(report, create_validation_report([(input_file.name, xml)], schemas=schemas))
        typer.echo(f"\nValidation report saved to: {report}")

    if fail_on_invalid and not result.valid:
        raise typer.Exit(code=1)


@app.command("validate-batch")
def validate_batch_command(
    xml_dir: Path = typer.Option(
        ...,
        "--xml-dir",
        "-d",
        help="Directory containing UBL invoice XML files",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    report: Path = typer.Option(
        "validation_report.json",
        "--report",
        "-r",
        help="Output validation report JSON file path",
    ),
    fail_on_invalid: bool = typer.Option(
        False,
        "--fail-on-invalid",
        help="Exit with non-zero status if any invoices are invalid",
    ),
    schema: Optional[List[str]] = typer.Option(
        None,
        "--schema",
        "-s",
        help="Rule set to apply instead of the default rules (peppol, fairwork); repeatable",
    ),
) -> None:
    """
    Validate every *.xml file in a directory.

    Writes a JSON report with per-document results and summary statistics,
    and prints the summary.
    """
    schemas = _selected_schemas(schema)
    xml_files = sorted(xml_dir.glob("*.xml"))
    if not xml_files:
        typer.echo(f"No XML files found in: {xml_dir}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Validating {len(xml_files)} invoice(s) from: {xml_dir}")

    documents = []
    for path in xml_files:
        try:
            documents.append((path.name, path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {path.name}: {e}")
            documents.append((path.name, ""))

    validation_report = create_validation_report(documents, schemas=schemas)
    _write_report(report, validation_report)

    summary = validation_report.summary
    typer.echo("\n" + format_summary_text(summary))
    typer.echo(f"\n[OK] Validation report saved to: {report}")

    # Show invalid document details
    invalid_results = [r for r in validation_report.per_document_results if not r.result.valid]
    if invalid_results:
        typer.echo("\nInvalid Invoices:")
        for r in invalid_results[:5]:
            typer.echo(f"  {r.source}:")
            _echo_findings(r.result.errors, [], indent="    ")
        if len(invalid_results) > 5:
            typer.echo(f"  ... and {len(invalid_results) - 5} more invalid invoices")

    if fail_on_invalid and summary.invalid_documents > 0:
        raise typer.Exit(code=1)


@app.command("check-dataset")
def check_dataset(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="XML file with an <Invoice> or an <Invoices> wrapper",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Check that every invoice in a dataset has usable dates and a payable amount."""
    problems = check_invoice_dataset(_read_xml(input_file))
    if problems:
        typer.echo(f"Found {len(problems)} problem(s) in {input_file.name}:")
        for problem in problems:
            typer.echo(f"  - {problem}")
        raise typer.Exit(code=1)
    typer.echo(f"[OK] {input_file.name} is a valid invoice dataset")


@app.command()
def rules() -> None:
    """List the Peppol validation rules in evaluation order."""
    for category in RuleCategory:
        category_rules = get_rules_by_category(category)
        if not category_rules:
            continue
        typer.echo(f"{category.value}:")
        for rule in category_rules:
            typer.echo(f"  {rule.code:<30} {rule.description}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Peppol Invoice Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
