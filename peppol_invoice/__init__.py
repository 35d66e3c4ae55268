"""
Peppol Invoice Service

A Python service for generating UBL 2.1 / Peppol BIS Billing 3.0 invoices
from JSON and validating UBL documents against Peppol business rules.
"""

__version__ = "0.1.0"
__author__ = "Peppol Invoice Team"

from .schemas import Invoice, LineItem, Address, ValidationResult, ValidationSummary
from .generator import generate_ubl
from .xml_tree import Element, parse_xml
from .validator import validate_ubl, validate_batch, check_invoice_dataset
from .code_lists import is_valid_currency_code, is_valid_country_code

__all__ = [
    "Invoice",
    "LineItem",
    "Address",
    "ValidationResult",
    "ValidationSummary",
    "generate_ubl",
    "Element",
    "parse_xml",
    "validate_ubl",
    "validate_batch",
    "check_invoice_dataset",
    "is_valid_currency_code",
    "is_valid_country_code",
]
