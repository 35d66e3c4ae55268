"""
Pydantic models for invoice data, validation results and API envelopes.

This module defines the core data structures used throughout the service:
- Invoice, LineItem and Address models for incoming invoice JSON
- ValidationResult for the outcome of one standards validation
- ValidationSummary for batch-level statistics
- API request/response envelope models

The Invoice model doubles as the upstream input check: constructing it
enforces required fields, date formats, positive quantities and prices, the
currency shape and the exact line-total invariant. Amounts must be JSON
numbers; strings and booleans are rejected rather than coerced.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .code_lists import is_country_code_shape, is_currency_code_shape

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CAMEL_CASE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


def _check_iso_date(value: str, label: str) -> str:
    if not _ISO_DATE.match(value):
        raise ValueError(f"{label} must be in YYYY-MM-DD format")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"{label} is not a valid date") from None
    return value


class Address(BaseModel):
    """Postal address of a party. ``country`` is an ISO 3166-1 code."""
    street: Optional[str] = Field(None, description="Street name and number")
    country: Optional[str] = Field(None, description="Country code (e.g., AUS or AU)")

    @field_validator("country")
    @classmethod
    def normalize_country(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not is_country_code_shape(v):
            raise ValueError("Invalid country code")
        return v.strip().upper()

    model_config = CAMEL_CASE_CONFIG


class LineItem(BaseModel):
    """
    Represents a single line item in an invoice.

    Attributes:
        name: Item name shown on the invoice line
        count: Number of units (must be > 0)
        cost: Price per unit (must be > 0)
        currency: Optional line currency, defaults to the invoice currency
        unit_code: UN/ECE Rec 20 unit code for the quantity
        tax_category: UNCL5305 tax category code
        tax_rate: Optional tax rate percentage, defaults to the invoice tax rate
    """
    name: str = Field(..., min_length=1, description="Item name")
    count: float = Field(..., gt=0, strict=True, description="Number of units")
    cost: float = Field(..., gt=0, strict=True, description="Price per unit")
    currency: Optional[str] = Field(None, description="Line currency code")
    unit_code: Optional[str] = Field(None, description="Unit code (e.g., EA, HUR)")
    tax_category: Optional[str] = Field(None, description="Tax category code (e.g., S)")
    tax_rate: Optional[float] = Field(None, ge=0, le=100, strict=True, description="Tax rate percentage")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not is_currency_code_shape(v):
            raise ValueError("Invalid currency code")
        return v.strip().upper()

    model_config = CAMEL_CASE_CONFIG


class Invoice(BaseModel):
    """
    Represents an invoice as submitted by a client.

    JSON uses camelCase keys (``invoiceId``, ``issueDate``...); Python code
    uses the snake_case attribute names. Both are accepted on input.
    """

    # ========================================================================
    # Core Identifiers
    # ========================================================================
    invoice_id: str = Field(
        ...,
        min_length=1,
        description="Invoice identifier, unique within a user's invoices"
    )
    invoice_type_code: Optional[str] = Field(
        None,
        description="UNCL1001 invoice type code, defaults to 380 (commercial invoice)"
    )
    customization_id: Optional[str] = Field(
        None,
        description="Override for the Peppol BIS Billing 3.0 CustomizationID"
    )
    profile_id: Optional[str] = Field(
        None,
        description="Override for the Peppol BIS Billing 3.0 ProfileID"
    )
    order_reference_id: Optional[str] = Field(
        None,
        description="Purchase order reference"
    )

    # ========================================================================
    # Dates
    # ========================================================================
    issue_date: str = Field(..., description="Issue date (YYYY-MM-DD)")
    due_date: Optional[str] = Field(None, description="Payment due date (YYYY-MM-DD)")

    # ========================================================================
    # Parties
    # ========================================================================
    buyer: str = Field(..., min_length=1, description="Buyer display name")
    supplier: str = Field(..., min_length=1, description="Supplier display name")
    buyer_address: Optional[Address] = None
    supplier_address: Optional[Address] = None
    buyer_phone: Optional[str] = None
    supplier_phone: Optional[str] = None
    buyer_email: Optional[str] = None
    supplier_email: Optional[str] = None

    # ========================================================================
    # Payment Information
    # ========================================================================
    payment_account_id: Optional[str] = Field(None, description="Payee account (e.g., IBAN)")
    payment_account_name: Optional[str] = Field(None, description="Payee account name")
    financial_institution_branch_id: Optional[str] = Field(
        None,
        description="Financial institution branch identifier (e.g., BIC or BSB)"
    )

    # ========================================================================
    # Financial Information
    # ========================================================================
    currency: str = Field(..., description="Three-letter ISO 4217 currency code")
    total: float = Field(..., strict=True, description="Sum of count x cost over all items")
    tax_rate: Optional[float] = Field(None, ge=0, le=100, strict=True, description="Tax rate percentage")
    tax_total: Optional[float] = Field(None, ge=0, strict=True, description="Total tax amount")

    # ========================================================================
    # Line Items
    # ========================================================================
    items: list[LineItem] = Field(
        ...,
        min_length=1,
        description="Ordered, non-empty list of invoice lines"
    )

    @field_validator("issue_date")
    @classmethod
    def check_issue_date(cls, v: str) -> str:
        return _check_iso_date(v, "Issue date")

    @field_validator("due_date")
    @classmethod
    def check_due_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_iso_date(v, "Due date")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Normalize currency code to uppercase after the shape check."""
        if not is_currency_code_shape(v):
            raise ValueError("Invalid currency code")
        return v.strip().upper()

    @model_validator(mode="after")
    def check_dates_and_total(self) -> "Invoice":
        if self.due_date is not None and self.due_date <= self.issue_date:
            raise ValueError("Due date must be after issue date")

        # Exact comparison; Decimal avoids binary float noise such as 0.1 * 3
        line_sum = sum(
            (Decimal(str(item.count)) * Decimal(str(item.cost)) for item in self.items),
            Decimal(0),
        )
        if line_sum != Decimal(str(self.total)):
            raise ValueError("Invoice total does not match item costs")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase JSON form consumed by the UBL generator."""
        return self.model_dump(by_alias=True, exclude_none=True)

    model_config = {
        **CAMEL_CASE_CONFIG,
        "json_schema_extra": {
            "examples": [
                {
                    "invoiceId": "INV001",
                    "issueDate": "2025-03-05",
                    "dueDate": "2025-03-10",
                    "currency": "AUD",
                    "buyer": "John Doe",
                    "supplier": "XYZ Corp",
                    "buyerAddress": {"street": "123 Main St", "country": "AUS"},
                    "supplierAddress": {"street": "1 Supplier Rd", "country": "AUS"},
                    "buyerPhone": "+61234567890",
                    "paymentAccountId": "DK1212341234123412",
                    "paymentAccountName": "XYZ Corp Operating",
                    "financialInstitutionBranchId": "DKDKABCD",
                    "total": 350,
                    "items": [
                        {"name": "Item A", "count": 2, "cost": 100},
                        {"name": "Item B", "count": 3, "cost": 50},
                    ],
                }
            ]
        },
    }


class ValidationResult(BaseModel):
    """
    Outcome of validating one UBL document against the Peppol rule set.

    ``valid`` is true iff ``errors`` is empty; warnings never affect it.
    Instances are frozen once returned.
    """
    valid: bool = Field(..., description="True if no rule produced an error")
    errors: list[str] = Field(
        default_factory=list,
        description="Blocking findings in rule order, tagged with their rule code"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking findings in rule order"
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "valid": False,
                    "errors": ["Invalid customer country code: ZZZ (Peppol rule BR-60)"],
                    "warnings": [],
                }
            ]
        },
    }


class DocumentValidation(BaseModel):
    """Validation result for one document of a batch."""
    source: str = Field(..., description="File name or identifier of the document")
    result: ValidationResult


class ValidationSummary(BaseModel):
    """
    Aggregated validation summary for a batch of UBL documents.
    """
    total_documents: int = Field(..., ge=0)
    valid_documents: int = Field(..., ge=0)
    invalid_documents: int = Field(..., ge=0)
    error_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Count of each error message across all documents"
    )
    warning_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Count of each warning message across all documents"
    )


class ValidationReport(BaseModel):
    """Complete validation report containing per-document results and summary."""
    summary: ValidationSummary
    per_document_results: list[DocumentValidation] = Field(default_factory=list)


def format_input_errors(exc: ValidationError) -> list[str]:
    """
    Flatten a pydantic ValidationError into readable reasons.

    Field errors are prefixed with their camelCase location, e.g.
    ``items.0.count: Input should be greater than 0``; model-level checks
    such as the line-total invariant carry no prefix.
    """
    reasons = []
    for error in exc.errors():
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        location = ".".join(str(part) for part in error.get("loc", ()))
        reasons.append(f"{location}: {message}" if location else message)
    return reasons


# ============================================================================
# API Request/Response Models
# ============================================================================

class RuleSetSelection(BaseModel):
    """Optional request body selecting named rule sets for validation."""
    schemas: Optional[list[str]] = Field(
        None,
        description="Rule sets to apply (peppol, fairwork); the default rules when omitted"
    )


class ValidateXmlRequest(RuleSetSelection):
    """
    Request body for validating a raw UBL document.

    The document may be sent as ``xml`` or as ``invoice``; ``xml`` wins when
    both are present.
    """
    xml: Optional[str] = Field(None, description="UBL 2.1 invoice XML")
    invoice: Optional[str] = Field(None, description="UBL 2.1 invoice XML (alternative key)")

    @property
    def document(self) -> Optional[str]:
        return self.xml or self.invoice


class InvoiceRecordOut(BaseModel):
    """Stored invoice as returned by the API."""
    invoice_id: str
    invoice: str = Field(..., description="UBL XML")
    valid: bool
    created_at: str
    updated_at: str

    model_config = CAMEL_CASE_CONFIG


class ApiResponse(BaseModel):
    """Response envelope shared by all invoice endpoints."""
    status: Literal["success", "error"]
    message: str
    data: Optional[Any] = None
    validation_errors: Optional[list[str]] = None
    validation_warnings: Optional[list[str]] = None

    model_config = CAMEL_CASE_CONFIG
