"""
Tests for UBL invoice generation.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from peppol_invoice.config import PEPPOL_CUSTOMIZATION_ID, PEPPOL_PROFILE_ID, UBL_INVOICE_NS
from peppol_invoice.generator import format_number, generate_ubl, to_decimal
from peppol_invoice.listing import extract_summary
from peppol_invoice.schemas import Invoice
from peppol_invoice.xml_tree import parse_xml


# ============================================================================
# Number Formatting
# ============================================================================

class TestNumberFormatting:
    """Tests for amount rendering helpers."""

    @pytest.mark.parametrize("value,expected", [
        (100, "100"),
        (100.0, "100"),
        ("100", "100"),
        (12.5, "12.5"),
        ("12.50", "12.5"),
        (0.1, "0.1"),
        (Decimal("1E+2"), "100"),
        (1e30, "1" + "0" * 30),
        (Decimal("123456789012345678901234567890.5"), "123456789012345678901234567890.5"),
    ])
    def test_format_number(self, value, expected):
        assert format_number(value) == expected

    @pytest.mark.parametrize("value", [None, "abc", True, float("nan"), float("inf"), {}])
    def test_non_numbers_become_zero(self, value):
        assert to_decimal(value) == 0
        assert format_number(value) == "0"


# ============================================================================
# Document Generation
# ============================================================================

class TestGenerateUbl:
    """Tests for generate_ubl."""

    def test_xml_declaration(self, valid_xml):
        assert valid_xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n')

    def test_deterministic(self, valid_invoice):
        assert generate_ubl(valid_invoice) == generate_ubl(valid_invoice)

    def test_model_and_mapping_render_identically(self, valid_invoice):
        assert generate_ubl(valid_invoice) == generate_ubl(valid_invoice.to_payload())

    def test_root_and_metadata(self, valid_xml):
        tree = parse_xml(valid_xml)
        assert tree.name == "Invoice"
        assert tree.namespace == UBL_INVOICE_NS
        assert tree.text_at("CustomizationID") == PEPPOL_CUSTOMIZATION_ID
        assert tree.text_at("ProfileID") == PEPPOL_PROFILE_ID
        assert tree.text_at("ID") == "INV1"
        assert tree.text_at("IssueDate") == "2025-01-01"
        assert tree.text_at("DueDate") == "2025-01-10"
        assert tree.text_at("InvoiceTypeCode") == "380"
        assert tree.text_at("DocumentCurrencyCode") == "AUD"

    def test_payable_amount(self, valid_xml):
        tree = parse_xml(valid_xml)
        payable = tree.find("LegalMonetaryTotal", "PayableAmount")
        assert payable.text == "100"
        assert payable.attribute("currencyID") == "AUD"
        assert "<cbc:PayableAmount currencyID=\"AUD\">100</cbc:PayableAmount>" in valid_xml

    def test_parties(self, valid_xml):
        tree = parse_xml(valid_xml)
        supplier = tree.find("AccountingSupplierParty", "Party")
        customer = tree.find("AccountingCustomerParty", "Party")
        assert supplier.text_at("PartyName", "Name") == "S"
        assert supplier.text_at("PostalAddress", "StreetName") == "2 Rd"
        assert customer.text_at("PartyName", "Name") == "B"
        assert customer.text_at("PostalAddress", "Country", "IdentificationCode") == "AUS"
        # No phone or email given
        assert customer.child("Contact") is None

    def test_contact_details(self, invoice_payload):
        invoice_payload["buyerPhone"] = "+61234567890"
        invoice_payload["buyerEmail"] = "b@example.com"
        tree = parse_xml(generate_ubl(invoice_payload))
        contact = tree.find("AccountingCustomerParty", "Party", "Contact")
        assert contact.text_at("Name") == "B"
        assert contact.text_at("Telephone") == "+61234567890"
        assert contact.text_at("ElectronicMail") == "b@example.com"

    def test_payment_means(self, valid_xml):
        tree = parse_xml(valid_xml)
        means = tree.child("PaymentMeans")
        assert means.text_at("PaymentMeansCode") == "30"
        assert means.text_at("PayeeFinancialAccount", "ID") == "1"
        assert means.text_at("PayeeFinancialAccount", "Name") == "N"
        assert means.text_at("PayeeFinancialAccount", "FinancialInstitutionBranch", "ID") == "2"

    def test_optional_sections_omitted(self, invoice_payload):
        for key in ("dueDate", "paymentAccountId", "paymentAccountName",
                    "financialInstitutionBranchId", "buyerAddress"):
            del invoice_payload[key]
        tree = parse_xml(generate_ubl(invoice_payload))
        assert tree.child("DueDate") is None
        assert tree.child("PaymentMeans") is None
        assert tree.child("TaxTotal") is None
        assert tree.child("OrderReference") is None
        assert tree.find("AccountingCustomerParty", "Party", "PostalAddress") is None

    def test_overrides(self, invoice_payload):
        invoice_payload["invoiceTypeCode"] = "010"
        invoice_payload["orderReferenceId"] = "PO-7"
        tree = parse_xml(generate_ubl(invoice_payload))
        assert tree.text_at("InvoiceTypeCode") == "010"
        assert tree.text_at("OrderReference", "ID") == "PO-7"

    def test_tax_from_rate(self, invoice_payload):
        invoice_payload["taxRate"] = 10
        tree = parse_xml(generate_ubl(invoice_payload))
        assert tree.text_at("TaxTotal", "TaxAmount") == "10"
        assert tree.text_at("LegalMonetaryTotal", "TaxInclusiveAmount") == "110"
        assert tree.text_at("LegalMonetaryTotal", "PayableAmount") == "100"
        assert tree.text_at("InvoiceLine", "Item", "ClassifiedTaxCategory", "Percent") == "10"

    def test_explicit_tax_total(self, invoice_payload):
        invoice_payload["taxRate"] = 10
        invoice_payload["taxTotal"] = 9.5
        tree = parse_xml(generate_ubl(invoice_payload))
        assert tree.text_at("TaxTotal", "TaxAmount") == "9.5"
        assert tree.text_at("LegalMonetaryTotal", "TaxInclusiveAmount") == "109.5"


class TestInvoiceLines:
    """Tests for invoice line rendering."""

    @pytest.fixture
    def two_line_payload(self, invoice_payload) -> dict:
        invoice_payload["items"] = [
            {"name": "Item A", "count": 2, "cost": 100},
            {"name": "Item B", "count": 3, "cost": 50, "unitCode": "HUR", "currency": "EUR"},
        ]
        invoice_payload["total"] = 350
        return invoice_payload

    def test_one_line_per_item(self, two_line_payload):
        tree = parse_xml(generate_ubl(two_line_payload))
        lines = tree.children_named("InvoiceLine")
        assert [line.text_at("ID") for line in lines] == ["1", "2"]
        assert [line.text_at("Item", "Name") for line in lines] == ["Item A", "Item B"]

    def test_line_amounts(self, two_line_payload):
        tree = parse_xml(generate_ubl(two_line_payload))
        first, second = tree.children_named("InvoiceLine")
        assert first.text_at("InvoicedQuantity") == "2"
        assert first.child("InvoicedQuantity").attribute("unitCode") == "EA"
        assert first.text_at("LineExtensionAmount") == "200"
        assert first.find("Price", "PriceAmount").attribute("currencyID") == "AUD"
        assert first.text_at("Price", "BaseQuantity") == "2"
        assert second.text_at("LineExtensionAmount") == "150"
        assert second.find("Price", "BaseQuantity").attribute("unitCode") == "HUR"
        assert second.find("Price", "PriceAmount").attribute("currencyID") == "EUR"

    def test_non_numeric_cost_renders_zero(self, invoice_payload):
        invoice_payload["items"][0]["cost"] = "abc"
        tree = parse_xml(generate_ubl(invoice_payload))
        assert tree.text_at("InvoiceLine", "Price", "PriceAmount") == "0"


class TestTotals:
    """The generator renders totals as given; the input model enforces them."""

    def test_round_trip_total(self, invoice_payload):
        invoice_payload["items"] = [
            {"name": "A", "count": 2, "cost": 100},
            {"name": "B", "count": 3, "cost": 0.1},
        ]
        invoice_payload["total"] = 200.3
        invoice = Invoice.model_validate(invoice_payload)
        summary = extract_summary(parse_xml(generate_ubl(invoice)))
        assert summary.total_payable_amount == Decimal("200.3")

    def test_mismatched_total_still_renders(self, invoice_payload):
        invoice_payload["items"] = [{"name": "X", "count": 2, "cost": 100}]
        invoice_payload["total"] = 150

        with pytest.raises(ValidationError):
            Invoice.model_validate(invoice_payload)

        tree = parse_xml(generate_ubl(invoice_payload))
        assert tree.text_at("LegalMonetaryTotal", "PayableAmount") == "150"
        assert tree.text_at("InvoiceLine", "LineExtensionAmount") == "200"
