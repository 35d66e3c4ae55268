"""
Shared fixtures for the Peppol invoice tests.
"""

import copy

import pytest

from peppol_invoice.generator import generate_ubl
from peppol_invoice.schemas import Invoice


BASE_INVOICE = {
    "invoiceId": "INV1",
    "issueDate": "2025-01-01",
    "dueDate": "2025-01-10",
    "currency": "AUD",
    "buyer": "B",
    "supplier": "S",
    "buyerAddress": {"street": "1 Rd", "country": "AUS"},
    "supplierAddress": {"street": "2 Rd", "country": "AUS"},
    "total": 100,
    "items": [{"name": "X", "count": 1, "cost": 100}],
    "paymentAccountId": "1",
    "paymentAccountName": "N",
    "financialInstitutionBranchId": "2",
}


@pytest.fixture
def invoice_payload() -> dict:
    """Complete, Peppol-compliant invoice JSON."""
    return copy.deepcopy(BASE_INVOICE)


@pytest.fixture
def valid_invoice(invoice_payload) -> Invoice:
    return Invoice.model_validate(invoice_payload)


@pytest.fixture
def valid_xml(valid_invoice) -> str:
    """UBL XML generated from the compliant invoice."""
    return generate_ubl(valid_invoice)
