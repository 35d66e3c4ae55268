"""
Peppol / UBL business rules for invoice standards validation.

This module defines the ordered rule set applied to a parsed UBL invoice:
- Structure rules: namespace, required elements, invoice type code
- Party rules: supplier and customer names and postal addresses
- Code-list rules: currency and country codes resolve in ISO tables
- Invoice line rules: per-line identifiers, names, prices, quantities
- Monetary rules: payable amount present and numeric
- Payment rules: payee financial account details

Each rule is a function that receives the root ``Element`` of the document
and returns a list of findings (empty when the rule passes). Messages carry
their rule code in parentheses and are displayed verbatim to users.

``RULE_SETS`` groups rules into named sets (``peppol``, ``fairwork``) that
callers can select instead of the default list. The contact-details and
document-currency rules only run as part of a selected set.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .code_lists import is_valid_country_code, is_valid_currency_code
from .config import COMMERCIAL_INVOICE_TYPE_CODE, UBL_INVOICE_NS, RuleCategory, Severity
from .xml_tree import Element, parse_decimal


@dataclass(frozen=True)
class Finding:
    """One error or warning produced by a rule."""
    severity: Severity
    message: str


def error(message: str) -> Finding:
    return Finding(Severity.ERROR, message)


def warning(message: str) -> Finding:
    return Finding(Severity.WARNING, message)


# Type alias for rule check functions
RuleCheckFn = Callable[[Element], list[Finding]]


@dataclass
class ValidationRule:
    """
    Represents a single validation rule.

    Attributes:
        code: Machine-readable rule identifier (e.g., "party:names")
        description: Human-readable description of the rule
        category: Category of the rule
        check: Function that performs the validation check
    """
    code: str
    description: str
    category: RuleCategory
    check: RuleCheckFn


# Elements every invoice must carry. The BR number in messages is the
# position in this list plus 10, an internal diagnostic code.
REQUIRED_ELEMENTS: list[tuple[str, str]] = [
    ("cbc", "ID"),
    ("cbc", "IssueDate"),
    ("cbc", "InvoiceTypeCode"),
    ("cac", "AccountingSupplierParty"),
    ("cac", "AccountingCustomerParty"),
    ("cac", "LegalMonetaryTotal"),
    ("cac", "InvoiceLine"),
]

PARTIES: list[tuple[str, str, str]] = [
    # (element, label, rule-code prefix)
    ("AccountingSupplierParty", "supplier", "S"),
    ("AccountingCustomerParty", "customer", "B"),
]


def _party(invoice: Element, element: str) -> Optional[Element]:
    return invoice.find(element, "Party")


def _document_currency(invoice: Element) -> Optional[str]:
    # The payable amount's currency wins; DocumentCurrencyCode covers
    # documents whose PayableAmount carries no currencyID
    payable = invoice.find("LegalMonetaryTotal", "PayableAmount")
    currency = payable.attribute("currencyID") if payable is not None else None
    return currency or invoice.text_at("DocumentCurrencyCode")


# ============================================================================
# Structure Rules
# ============================================================================

def check_namespace(invoice: Element) -> list[Finding]:
    """The root element must be in the UBL Invoice-2 namespace."""
    if invoice.namespace != UBL_INVOICE_NS:
        return [error("Missing or invalid UBL namespace (Peppol rule BR-01)")]
    return []


def check_required_elements(invoice: Element) -> list[Finding]:
    """One error for each mandatory top-level element that is absent."""
    findings = []
    for index, (prefix, name) in enumerate(REQUIRED_ELEMENTS):
        if invoice.child(name) is None:
            findings.append(error(
                f"Missing required element: {prefix}:{name} (Peppol rule BR-{index + 10})"
            ))
    return findings


def check_invoice_type_code(invoice: Element) -> list[Finding]:
    """
    Invoice type code should be 380 (commercial invoice).

    Other codes are legal UBL but unusual for this service, so the rule only
    warns.
    """
    type_code = invoice.child("InvoiceTypeCode")
    if type_code is None:
        return []
    if type_code.text != COMMERCIAL_INVOICE_TYPE_CODE:
        return [warning(
            f"Invoice type code '{type_code.text or ''}' is not the standard commercial "
            f"invoice code '{COMMERCIAL_INVOICE_TYPE_CODE}' (Peppol rule BR-DE-08)"
        )]
    return []


# ============================================================================
# Party Rules
# ============================================================================

def check_party_names(invoice: Element) -> list[Finding]:
    """Supplier and customer must each have a PartyName/Name."""
    findings = []
    for element, label, prefix in PARTIES:
        party = _party(invoice, element)
        if party is None or not party.text_at("PartyName", "Name"):
            findings.append(error(f"Missing {label} name (Peppol rule BR-{prefix}-02)"))
    return findings


def check_postal_addresses(invoice: Element) -> list[Finding]:
    """Supplier and customer must each have a street name and country code."""
    findings = []
    for element, label, prefix in PARTIES:
        party = _party(invoice, element)
        address = party.child("PostalAddress") if party is not None else None
        if address is None or not address.text_at("StreetName"):
            findings.append(error(f"Missing {label} street address (Peppol rule BR-{prefix}-05)"))
        if address is None or not address.text_at("Country", "IdentificationCode"):
            findings.append(error(f"Missing {label} country code (Peppol rule BR-{prefix}-07)"))
    return findings


def check_contact_details(invoice: Element) -> list[Finding]:
    """Supplier and customer each need a Contact telephone or email."""
    findings = []
    for element, label, _ in PARTIES:
        party = _party(invoice, element)
        contact = party.child("Contact") if party is not None else None
        if contact is None or not (contact.text_at("Telephone") or contact.text_at("ElectronicMail")):
            findings.append(error(f"Missing {label} contact details (Peppol rule BR-S-09)"))
    return findings


# ============================================================================
# Code-List Rules
# ============================================================================

def check_currency_code(invoice: Element) -> list[Finding]:
    """PayableAmount's currencyID must be an ISO 4217 code."""
    payable = invoice.find("LegalMonetaryTotal", "PayableAmount")
    code = payable.attribute("currencyID") if payable is not None else None
    if not is_valid_currency_code(code):
        return [error(f"Invalid currency code: {code or 'missing'} (Peppol rule BR-40)")]
    return []


def check_document_currency_code(invoice: Element) -> list[Finding]:
    """DocumentCurrencyCode must be an ISO 4217 code."""
    code = invoice.text_at("DocumentCurrencyCode")
    if not is_valid_currency_code(code):
        return [error(f"Invalid document currency code: {code or 'missing'} (Peppol rule BR-40)")]
    return []


def check_country_codes(invoice: Element) -> list[Finding]:
    """Supplier and customer country codes must be ISO 3166-1 codes."""
    findings = []
    for (element, label, _), rule in zip(PARTIES, ("BR-50", "BR-60")):
        code = invoice.text_at(element, "Party", "PostalAddress", "Country", "IdentificationCode")
        if not is_valid_country_code(code):
            findings.append(error(
                f"Invalid {label} country code: {code or 'missing'} (Peppol rule {rule})"
            ))
    return findings


# ============================================================================
# Invoice Line Rules
# ============================================================================

def check_invoice_lines(invoice: Element) -> list[Finding]:
    """
    At least one InvoiceLine; each needs an ID, Item/Name and Price/PriceAmount.

    Line positions in messages are 1-based.
    """
    lines = invoice.children_named("InvoiceLine")
    if not lines:
        return [error("Missing invoice lines (Peppol rule BR-16)")]

    findings = []
    for position, line in enumerate(lines, start=1):
        if not line.text_at("ID"):
            findings.append(error(f"Line {position}: Missing line ID (Peppol rule BR-21)"))
        if not line.text_at("Item", "Name"):
            findings.append(error(f"Line {position}: Missing item name (Peppol rule BR-25)"))
        price = line.child("Price")
        if price is None:
            findings.append(error(f"Line {position}: Missing price information (Peppol rule BR-26)"))
        elif not price.text_at("PriceAmount"):
            findings.append(error(f"Line {position}: Missing price amount (Peppol rule BR-27)"))
    return findings


def check_line_currencies(invoice: Element) -> list[Finding]:
    """A line's price currency, when given, should match the document currency."""
    document_currency = _document_currency(invoice)
    if not document_currency:
        return []

    findings = []
    for position, line in enumerate(invoice.children_named("InvoiceLine"), start=1):
        amount = line.find("Price", "PriceAmount")
        line_currency = amount.attribute("currencyID") if amount is not None else None
        if line_currency and line_currency != document_currency:
            findings.append(warning(
                f"Line {position}: Currency ({line_currency}) does not match document "
                f"currency ({document_currency}) (Peppol rule BR-30)"
            ))
    return findings


def check_line_quantities(invoice: Element) -> list[Finding]:
    """Every line needs Price/BaseQuantity."""
    findings = []
    for position, line in enumerate(invoice.children_named("InvoiceLine"), start=1):
        if not line.text_at("Price", "BaseQuantity"):
            findings.append(error(f"Line {position}: Missing quantity (Peppol rule BR-31)"))
    return findings


# ============================================================================
# Monetary Rules
# ============================================================================

def check_payable_amount(invoice: Element) -> list[Finding]:
    """LegalMonetaryTotal/PayableAmount must be present and numeric."""
    text = invoice.text_at("LegalMonetaryTotal", "PayableAmount")
    if not text:
        return [error("Missing payable amount (Peppol rule BR-52)")]
    if parse_decimal(text) is None:
        return [error(f"Invalid payable amount: {text} (Peppol rule BR-52)")]
    return []


# ============================================================================
# Payment Rules
# ============================================================================

def check_payee_financial_account(invoice: Element) -> list[Finding]:
    """
    PaymentMeans/PayeeFinancialAccount must carry ID, Name and
    FinancialInstitutionBranch/ID.

    Not a core Peppol rule; the service requires banking details so invoices
    can be paid by transfer.
    """
    account = invoice.find("PaymentMeans", "PayeeFinancialAccount")
    findings = []
    if account is None or not account.text_at("ID"):
        findings.append(error("Missing payment account ID (PayeeFinancialAccount/ID)"))
    if account is None or not account.text_at("Name"):
        findings.append(error("Missing payment account name (PayeeFinancialAccount/Name)"))
    if account is None or not account.text_at("FinancialInstitutionBranch", "ID"):
        findings.append(error(
            "Missing financial institution branch ID (FinancialInstitutionBranch/ID)"
        ))
    return findings


# ============================================================================
# Rule Registry
# ============================================================================

# All validation rules in execution order; findings are reported in this order
VALIDATION_RULES: list[ValidationRule] = [
    ValidationRule(
        code="structure:namespace",
        description="Root element declares the UBL Invoice-2 namespace",
        category=RuleCategory.STRUCTURE,
        check=check_namespace,
    ),
    ValidationRule(
        code="structure:required_elements",
        description="ID, IssueDate, InvoiceTypeCode, both parties, LegalMonetaryTotal and InvoiceLine are present",
        category=RuleCategory.STRUCTURE,
        check=check_required_elements,
    ),
    ValidationRule(
        code="structure:invoice_type_code",
        description="InvoiceTypeCode is 380 (warning only)",
        category=RuleCategory.STRUCTURE,
        check=check_invoice_type_code,
    ),
    ValidationRule(
        code="party:names",
        description="Supplier and customer PartyName present",
        category=RuleCategory.PARTY,
        check=check_party_names,
    ),
    ValidationRule(
        code="party:postal_addresses",
        description="Supplier and customer street and country code present",
        category=RuleCategory.PARTY,
        check=check_postal_addresses,
    ),
    ValidationRule(
        code="code_list:currency",
        description="PayableAmount currency is an ISO 4217 code",
        category=RuleCategory.CODE_LIST,
        check=check_currency_code,
    ),
    ValidationRule(
        code="code_list:country",
        description="Supplier and customer country codes are ISO 3166-1 codes",
        category=RuleCategory.CODE_LIST,
        check=check_country_codes,
    ),
    ValidationRule(
        code="invoice_line:fields",
        description="At least one line; each has ID, Item/Name and Price/PriceAmount",
        category=RuleCategory.INVOICE_LINE,
        check=check_invoice_lines,
    ),
    ValidationRule(
        code="invoice_line:currency",
        description="Line price currency matches the document currency (warning only)",
        category=RuleCategory.INVOICE_LINE,
        check=check_line_currencies,
    ),
    ValidationRule(
        code="invoice_line:quantity",
        description="Each line has a BaseQuantity",
        category=RuleCategory.INVOICE_LINE,
        check=check_line_quantities,
    ),
    ValidationRule(
        code="monetary:payable_amount",
        description="LegalMonetaryTotal/PayableAmount present and numeric",
        category=RuleCategory.MONETARY,
        check=check_payable_amount,
    ),
    ValidationRule(
        code="payment:payee_account",
        description="PayeeFinancialAccount ID, Name and branch ID present",
        category=RuleCategory.PAYMENT,
        check=check_payee_financial_account,
    ),
]


def get_rules_by_category(category: RuleCategory) -> list[ValidationRule]:
    """Get all rules belonging to a specific category."""
    return [rule for rule in VALIDATION_RULES if rule.category == category]


def get_rule_descriptions() -> dict[str, str]:
    """Get a mapping of rule codes to their descriptions."""
    return {rule.code: rule.description for rule in VALIDATION_RULES}


# ============================================================================
# Rule Sets
# ============================================================================

# Rules that only run as part of a selected rule set
SCHEMA_ONLY_RULES: list[ValidationRule] = [
    ValidationRule(
        code="party:contact_details",
        description="Supplier and customer Contact has a telephone or email",
        category=RuleCategory.PARTY,
        check=check_contact_details,
    ),
    ValidationRule(
        code="code_list:document_currency",
        description="DocumentCurrencyCode is an ISO 4217 code",
        category=RuleCategory.CODE_LIST,
        check=check_document_currency_code,
    ),
]

_RULES_BY_CODE = {rule.code: rule for rule in VALIDATION_RULES + SCHEMA_ONLY_RULES}


@dataclass
class RuleSet:
    """
    A named group of rules that callers can select by name.

    Attributes:
        name: Selector used by the API and CLI (e.g., "peppol")
        label: Appended in parentheses to every message the set produces
        rules: Rules in execution order
    """
    name: str
    label: str
    rules: list[ValidationRule]


def _rule_set(name: str, label: str, codes: list[str]) -> RuleSet:
    return RuleSet(name=name, label=label, rules=[_RULES_BY_CODE[code] for code in codes])


# Selectable rule sets; when several are selected they run in this order
RULE_SETS: dict[str, RuleSet] = {
    "peppol": _rule_set("peppol", "PEPPOL A-NZ", [
        "structure:namespace",
        "structure:required_elements",
        "structure:invoice_type_code",
        "party:names",
        "party:postal_addresses",
        "party:contact_details",
        "code_list:currency",
        "code_list:document_currency",
        "code_list:country",
        "invoice_line:fields",
        "invoice_line:currency",
        "invoice_line:quantity",
        "monetary:payable_amount",
    ]),
    "fairwork": _rule_set("fairwork", "Fair Work Commission", [
        "payment:payee_account",
    ]),
}
