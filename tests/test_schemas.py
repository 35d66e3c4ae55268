"""
Tests for the invoice input model.

The Invoice model is the upstream input check: it rejects malformed JSON
before any XML is generated.
"""

import pytest
from pydantic import ValidationError

from peppol_invoice.schemas import ApiResponse, Invoice, ValidationResult, format_input_errors


def reasons_for(payload: dict) -> list[str]:
    with pytest.raises(ValidationError) as exc_info:
        Invoice.model_validate(payload)
    return format_input_errors(exc_info.value)


class TestInvoiceModel:
    """Tests for accepted input."""

    def test_valid_invoice(self, invoice_payload):
        invoice = Invoice.model_validate(invoice_payload)
        assert invoice.invoice_id == "INV1"
        assert invoice.buyer_address.country == "AUS"
        assert invoice.items[0].cost == 100

    def test_currency_is_uppercased(self, invoice_payload):
        invoice_payload["currency"] = "aud"
        assert Invoice.model_validate(invoice_payload).currency == "AUD"

    def test_country_is_uppercased(self, invoice_payload):
        invoice_payload["buyerAddress"]["country"] = "au"
        assert Invoice.model_validate(invoice_payload).buyer_address.country == "AU"

    def test_snake_case_names_accepted(self, invoice_payload):
        invoice_payload["invoice_id"] = invoice_payload.pop("invoiceId")
        assert Invoice.model_validate(invoice_payload).invoice_id == "INV1"

    def test_unknown_keys_ignored(self, invoice_payload):
        invoice_payload["notes"] = "thanks"
        assert Invoice.model_validate(invoice_payload).invoice_id == "INV1"

    def test_due_date_optional(self, invoice_payload):
        del invoice_payload["dueDate"]
        assert Invoice.model_validate(invoice_payload).due_date is None

    def test_decimal_exact_total(self, invoice_payload):
        # 3 x 0.1 is 0.30000000000000004 in binary floating point
        invoice_payload["items"] = [{"name": "X", "count": 3, "cost": 0.1}]
        invoice_payload["total"] = 0.3
        assert Invoice.model_validate(invoice_payload).total == 0.3

    def test_multiple_items_total(self, invoice_payload):
        invoice_payload["items"] = [
            {"name": "A", "count": 2, "cost": 100},
            {"name": "B", "count": 3, "cost": 50},
        ]
        invoice_payload["total"] = 350
        assert len(Invoice.model_validate(invoice_payload).items) == 2

    def test_to_payload_uses_camel_case(self, valid_invoice):
        payload = valid_invoice.to_payload()
        assert payload["invoiceId"] == "INV1"
        assert payload["financialInstitutionBranchId"] == "2"
        assert "invoiceTypeCode" not in payload


class TestInvoiceRejections:
    """Tests for rejected input."""

    def test_total_mismatch(self, invoice_payload):
        invoice_payload["items"] = [{"name": "X", "count": 2, "cost": 100}]
        invoice_payload["total"] = 150
        assert reasons_for(invoice_payload) == ["Invoice total does not match item costs"]

    def test_due_date_before_issue_date(self, invoice_payload):
        invoice_payload["dueDate"] = "2024-12-31"
        assert reasons_for(invoice_payload) == ["Due date must be after issue date"]

    def test_due_date_equal_to_issue_date(self, invoice_payload):
        invoice_payload["dueDate"] = invoice_payload["issueDate"]
        assert reasons_for(invoice_payload) == ["Due date must be after issue date"]

    def test_bad_date_format(self, invoice_payload):
        invoice_payload["issueDate"] = "01/01/2025"
        reasons = reasons_for(invoice_payload)
        assert len(reasons) == 1
        assert "Issue date must be in YYYY-MM-DD format" in reasons[0]

    def test_impossible_date(self, invoice_payload):
        invoice_payload["dueDate"] = "2025-02-30"
        reasons = reasons_for(invoice_payload)
        assert "Due date is not a valid date" in reasons[0]

    def test_missing_required_field(self, invoice_payload):
        del invoice_payload["buyer"]
        reasons = reasons_for(invoice_payload)
        assert reasons[0].startswith("buyer")

    def test_missing_currency(self, invoice_payload):
        del invoice_payload["currency"]
        assert reasons_for(invoice_payload)[0].startswith("currency")

    def test_empty_items(self, invoice_payload):
        invoice_payload["items"] = []
        assert reasons_for(invoice_payload)[0].startswith("items")

    @pytest.mark.parametrize("field,value", [("count", 0), ("count", -1), ("cost", 0)])
    def test_non_positive_line_values(self, invoice_payload, field, value):
        invoice_payload["items"][0][field] = value
        reasons = reasons_for(invoice_payload)
        assert reasons[0].startswith(f"items.0.{field}")

    @pytest.mark.parametrize("path,value", [
        (("total",), "100"),
        (("total",), True),
        (("taxRate",), "10"),
        (("taxTotal",), "5"),
        (("items", 0, "count"), True),
        (("items", 0, "count"), "1"),
        (("items", 0, "cost"), "100"),
    ])
    def test_amounts_must_be_numbers(self, invoice_payload, path, value):
        target = invoice_payload
        for key in path[:-1]:
            target = target[key]
        target[path[-1]] = value
        reasons = reasons_for(invoice_payload)
        assert len(reasons) == 1
        assert reasons[0].startswith(".".join(str(part) for part in path))
        assert "valid number" in reasons[0]

    def test_integer_amounts_are_numbers(self, invoice_payload):
        invoice_payload["taxRate"] = 10
        invoice = Invoice.model_validate(invoice_payload)
        assert invoice.total == 100
        assert invoice.tax_rate == 10

    def test_empty_item_name(self, invoice_payload):
        invoice_payload["items"][0]["name"] = ""
        assert reasons_for(invoice_payload)[0].startswith("items.0.name")

    @pytest.mark.parametrize("currency", ["AU", "AUDD", "A1D"])
    def test_bad_currency_shape(self, invoice_payload, currency):
        invoice_payload["currency"] = currency
        assert "Invalid currency code" in reasons_for(invoice_payload)[0]

    def test_bad_country_shape(self, invoice_payload):
        invoice_payload["supplierAddress"]["country"] = "A1"
        assert "Invalid country code" in reasons_for(invoice_payload)[0]

    def test_unassigned_country_passes_shape_check(self, invoice_payload):
        # Code-list membership is a standards rule, not an input check
        invoice_payload["buyerAddress"]["country"] = "ZZZ"
        assert Invoice.model_validate(invoice_payload).buyer_address.country == "ZZZ"


class TestResultModels:
    """Tests for result and envelope models."""

    def test_validation_result_is_frozen(self):
        result = ValidationResult(valid=True)
        with pytest.raises(ValidationError):
            result.valid = False

    def test_envelope_uses_camel_case(self):
        body = ApiResponse(
            status="error",
            message="Invoice does not comply with Peppol standards",
            validation_errors=["x"],
            validation_warnings=[],
        ).model_dump(by_alias=True, exclude_none=True)
        assert body == {
            "status": "error",
            "message": "Invoice does not comply with Peppol standards",
            "validationErrors": ["x"],
            "validationWarnings": [],
        }
