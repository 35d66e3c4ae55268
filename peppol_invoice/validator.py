"""
Validation engine for UBL invoice standards compliance.

This module runs the ordered Peppol rule set against a UBL document and
produces a ``ValidationResult``; it also aggregates batch summaries for the
CLI. Bad input never raises: unparseable XML and a missing ``Invoice`` root
each become a single error.
"""

from collections import Counter
from datetime import date
from typing import Optional

from .config import Severity, logger
from .rules import RULE_SETS, VALIDATION_RULES, RuleSet, ValidationRule
from .schemas import DocumentValidation, ValidationReport, ValidationResult, ValidationSummary
from .xml_tree import Element, parse_decimal, parse_xml

UNPARSEABLE_MESSAGE = "Invoice XML could not be parsed"
MISSING_ROOT_MESSAGE = "Missing Invoice root element"
NO_SCHEMAS_MESSAGE = "No schemas provided for validation"
INVALID_SCHEMAS_MESSAGE = "Invalid schema(s) provided"


def validate_tree(
    invoice: Element,
    rules: Optional[list[ValidationRule]] = None
) -> ValidationResult:
    """
    Validate a parsed invoice tree against the rule set.

    Every rule runs, even after earlier rules fail. A rule that crashes is
    logged and reported as an error for that rule only.

    Args:
        invoice: Root element of the parsed document
        rules: Optional list of rules to apply (defaults to all VALIDATION_RULES)

    Returns:
        ValidationResult with errors and warnings in rule order
    """
    if rules is None:
        rules = VALIDATION_RULES

    if invoice.name != "Invoice":
        return ValidationResult(valid=False, errors=[MISSING_ROOT_MESSAGE])

    errors: list[str] = []
    warnings: list[str] = []

    for rule in rules:
        try:
            findings = rule.check(invoice)
        except Exception as e:
            logger.error(f"Error running rule {rule.code}: {e}")
            errors.append(f"Internal error while evaluating rule {rule.code}")
            continue
        for finding in findings:
            if finding.severity == Severity.WARNING:
                warnings.append(finding.message)
            else:
                errors.append(finding.message)

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def validate_ubl(
    xml: str,
    rules: Optional[list[ValidationRule]] = None
) -> ValidationResult:
    """
    Validate a UBL invoice XML string.

    Args:
        xml: The UBL document
        rules: Optional list of rules to apply

    Returns:
        ValidationResult; ``valid`` is True iff there are no errors
    """
    tree = parse_xml(xml)
    if tree is None:
        return ValidationResult(valid=False, errors=[UNPARSEABLE_MESSAGE])
    return validate_tree(tree, rules)


# ============================================================================
# Selectable Rule Sets
# ============================================================================

def resolve_rule_sets(schemas: Optional[list[str]]) -> list[RuleSet]:
    """
    Look up the named rule sets.

    Names are matched case-insensitively. The result follows ``RULE_SETS``
    order, whatever order the names were given in.

    Raises:
        ValueError: If no names are given or any name is unknown
    """
    if not schemas:
        raise ValueError(NO_SCHEMAS_MESSAGE)

    selected = {name.strip().lower() for name in schemas}
    unknown = sorted(selected - RULE_SETS.keys())
    if unknown:
        raise ValueError(f"{INVALID_SCHEMAS_MESSAGE}: {', '.join(unknown)}")
    return [rule_set for name, rule_set in RULE_SETS.items() if name in selected]


def validate_ubl_with_schemas(xml: str, schemas: Optional[list[str]]) -> ValidationResult:
    """
    Validate a UBL invoice against the selected rule sets.

    Each set runs over the same tree and every message it produces is
    suffixed with the set's label, e.g.
    ``Missing supplier name (Peppol rule BR-S-02) (PEPPOL A-NZ)``.
    Unparseable input and a missing root still give one unsuffixed error.

    Raises:
        ValueError: If ``schemas`` is empty or names an unknown set
    """
    rule_sets = resolve_rule_sets(schemas)

    tree = parse_xml(xml)
    if tree is None:
        return ValidationResult(valid=False, errors=[UNPARSEABLE_MESSAGE])
    if tree.name != "Invoice":
        return ValidationResult(valid=False, errors=[MISSING_ROOT_MESSAGE])

    errors: list[str] = []
    warnings: list[str] = []
    for rule_set in rule_sets:
        result = validate_tree(tree, rule_set.rules)
        errors.extend(f"{message} ({rule_set.label})" for message in result.errors)
        warnings.extend(f"{message} ({rule_set.label})" for message in result.warnings)

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def validate_batch(
    documents: list[tuple[str, str]],
    rules: Optional[list[ValidationRule]] = None,
    schemas: Optional[list[str]] = None
) -> tuple[list[DocumentValidation], ValidationSummary]:
    """
    Validate a batch of documents and produce an aggregated summary.

    Args:
        documents: List of (source name, XML string) pairs
        rules: Optional list of rules to apply
        schemas: Optional rule set names; when given, ``rules`` is ignored

    Returns:
        Tuple of (per-document results, batch summary)

    Raises:
        ValueError: If ``schemas`` is given but empty or unknown
    """
    if schemas is not None:
        # Reject bad names before any document is processed
        resolve_rule_sets(schemas)

    logger.info(f"Validating batch of {len(documents)} documents")

    results: list[DocumentValidation] = []
    all_errors: list[str] = []
    all_warnings: list[str] = []

    for source, xml in documents:
        if schemas is not None:
            result = validate_ubl_with_schemas(xml, schemas)
        else:
            result = validate_ubl(xml, rules)
        results.append(DocumentValidation(source=source, result=result))
        all_errors.extend(result.errors)
        all_warnings.extend(result.warnings)

    valid_count = sum(1 for r in results if r.result.valid)
    invalid_count = len(results) - valid_count

    summary = ValidationSummary(
        total_documents=len(documents),
        valid_documents=valid_count,
        invalid_documents=invalid_count,
        error_counts=dict(Counter(all_errors)),
        warning_counts=dict(Counter(all_warnings)),
    )

    logger.info(f"Validation complete: {valid_count} valid, {invalid_count} invalid")

    return results, summary


def create_validation_report(
    documents: list[tuple[str, str]],
    rules: Optional[list[ValidationRule]] = None,
    schemas: Optional[list[str]] = None
) -> ValidationReport:
    """Create a complete validation report for a batch of documents."""
    results, summary = validate_batch(documents, rules, schemas)
    return ValidationReport(summary=summary, per_document_results=results)


def get_top_errors(summary: ValidationSummary, n: int = 5) -> list[tuple[str, int]]:
    """
    Get the top N most frequent errors from a summary.

    Returns:
        List of (error message, count) tuples, sorted by count descending
    """
    sorted_errors = sorted(
        summary.error_counts.items(),
        key=lambda x: x[1],
        reverse=True
    )
    return sorted_errors[:n]


def format_summary_text(summary: ValidationSummary) -> str:
    """Format a ValidationSummary as human-readable text for CLI output."""
    lines = [
        "=" * 50,
        "VALIDATION SUMMARY",
        "=" * 50,
        f"Total documents processed: {summary.total_documents}",
        f"Valid documents:           {summary.valid_documents}",
        f"Invalid documents:         {summary.invalid_documents}",
        "",
    ]

    if summary.error_counts:
        lines.append("Top Errors:")
        lines.append("-" * 40)
        for message, count in get_top_errors(summary):
            lines.append(f"  {message}: {count}")
        lines.append("")

    if summary.warning_counts:
        lines.append("Warnings:")
        lines.append("-" * 40)
        for message, count in sorted(summary.warning_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {message}: {count}")
        lines.append("")

    lines.append("=" * 50)

    return "\n".join(lines)


# ============================================================================
# Dataset Checks
# ============================================================================

def _is_iso_date(text: str) -> bool:
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def check_invoice_dataset(xml: str) -> list[str]:
    """
    Check an uploaded dataset of invoices for the fields listing relies on.

    Accepts a single ``<Invoice>`` or an ``<Invoices>`` wrapper. Each invoice
    needs a valid IssueDate and DueDate and a numeric
    LegalMonetaryTotal/PayableAmount.

    Returns:
        Problems found, in document order; empty if the dataset is usable
    """
    tree = parse_xml(xml)
    if tree is None:
        return ["Failed to parse XML data."]

    if tree.name == "Invoices":
        invoices = tree.children_named("Invoice")
    elif tree.name == "Invoice":
        invoices = [tree]
    else:
        return ["Invalid XML structure. Expected <Invoice> or <Invoices> element."]

    problems: list[str] = []
    for index, invoice in enumerate(invoices):
        for field in ("IssueDate", "DueDate"):
            value = invoice.text_at(field)
            if not value:
                problems.append(f"Invoice at index {index} is missing {field}.")
            elif not _is_iso_date(value):
                problems.append(f"Invoice at index {index} has an invalid {field} format: {value}")

        monetary = invoice.child("LegalMonetaryTotal")
        if monetary is None:
            problems.append(f"Invoice at index {index} is missing LegalMonetaryTotal element.")
            continue
        amount = monetary.text_at("PayableAmount")
        if amount is None:
            problems.append(f"Invoice at index {index} is missing PayableAmount in LegalMonetaryTotal.")
            continue
        if parse_decimal(amount) is None:
            problems.append(f"Invoice at index {index} has an invalid PayableAmount: {amount}")

    return problems
