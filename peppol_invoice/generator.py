"""
UBL 2.1 / Peppol BIS Billing 3.0 invoice generation.

Turns an invoice (a ``schemas.Invoice`` or a plain JSON mapping with the same
camelCase keys) into a UBL XML string. The transform is pure and
deterministic: the same input always yields byte-identical output.

The generator does not enforce business invariants such as the line total
matching ``total``; that is the job of the input model. Missing optional
fields are omitted, and non-numeric amounts are rendered as ``0``.
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from lxml import etree

from .config import (
    COMMERCIAL_INVOICE_TYPE_CODE,
    CREDIT_TRANSFER_PAYMENT_MEANS,
    DEFAULT_TAX_CATEGORY,
    DEFAULT_UNIT_CODE,
    NAMESPACES,
    PEPPOL_CUSTOMIZATION_ID,
    PEPPOL_PROFILE_ID,
)
from .schemas import Invoice

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


def to_decimal(value: Any) -> Decimal:
    """Convert ``value`` to Decimal, falling back to zero for non-numbers."""
    if isinstance(value, bool) or value is None:
        return Decimal(0)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not number.is_finite():
        return Decimal(0)
    return number


def format_number(value: Any) -> str:
    """
    Render a number the way it was written: ``100`` not ``100.0``, ``12.5``
    not ``12.50``.

    Formatting is exact for any magnitude, so ``1e30`` renders as all of its
    digits.
    """
    text = format(to_decimal(value), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class UBLGenerator:
    """
    Builds one UBL Invoice document.

    Elements follow the UBL 2.1 Invoice sequence so that the output is
    schema-ordered as well as well-formed.
    """

    def __init__(self, invoice: Mapping[str, Any]):
        self.data = invoice
        self.currency = _text(invoice.get("currency"))
        self.root: Optional[etree._Element] = None

    # ========================================================================
    # Element helpers
    # ========================================================================

    def _cbc(self, tag: str) -> str:
        return f"{{{NAMESPACES['cbc']}}}{tag}"

    def _cac(self, tag: str) -> str:
        return f"{{{NAMESPACES['cac']}}}{tag}"

    def _add_cbc(self, parent: etree._Element, tag: str, text: Any, **attribs: str) -> etree._Element:
        elem = etree.SubElement(parent, self._cbc(tag))
        elem.text = _text(text)
        for key, value in attribs.items():
            elem.set(key, value)
        return elem

    def _add_cac(self, parent: etree._Element, tag: str) -> etree._Element:
        return etree.SubElement(parent, self._cac(tag))

    def _add_amount(self, parent: etree._Element, tag: str, amount: Any, currency: Optional[str] = None) -> etree._Element:
        return self._add_cbc(parent, tag, format_number(amount), currencyID=currency or self.currency)

    # ========================================================================
    # Document sections
    # ========================================================================

    def build(self) -> str:
        """Generate the complete UBL Invoice XML."""
        self._create_root()
        self._add_document_metadata()
        self._add_party("AccountingSupplierParty", "supplier")
        self._add_party("AccountingCustomerParty", "buyer")
        self._add_payment_means()
        self._add_tax_total()
        self._add_legal_monetary_total()
        self._add_invoice_lines()

        xml_body = etree.tostring(
            self.root,
            pretty_print=True,
            xml_declaration=False,
            encoding="UTF-8",
        ).decode("utf-8")
        return f"{XML_DECLARATION}\n{xml_body}"

    def _create_root(self) -> None:
        nsmap = {
            None: NAMESPACES["ubl"],
            "cac": NAMESPACES["cac"],
            "cbc": NAMESPACES["cbc"],
        }
        self.root = etree.Element(f"{{{NAMESPACES['ubl']}}}Invoice", nsmap=nsmap)

    def _add_document_metadata(self) -> None:
        data = self.data
        self._add_cbc(self.root, "CustomizationID", data.get("customizationId") or PEPPOL_CUSTOMIZATION_ID)
        self._add_cbc(self.root, "ProfileID", data.get("profileId") or PEPPOL_PROFILE_ID)
        self._add_cbc(self.root, "ID", data.get("invoiceId"))
        self._add_cbc(self.root, "IssueDate", data.get("issueDate"))
        if data.get("dueDate"):
            self._add_cbc(self.root, "DueDate", data["dueDate"])
        self._add_cbc(
            self.root,
            "InvoiceTypeCode",
            data.get("invoiceTypeCode") or COMMERCIAL_INVOICE_TYPE_CODE,
        )
        self._add_cbc(self.root, "DocumentCurrencyCode", self.currency)

        if data.get("orderReferenceId"):
            order_ref = self._add_cac(self.root, "OrderReference")
            self._add_cbc(order_ref, "ID", data["orderReferenceId"])

    def _add_party(self, tag: str, role: str) -> None:
        """Add AccountingSupplierParty or AccountingCustomerParty."""
        data = self.data
        name = data.get(role)
        address = data.get(f"{role}Address") or {}
        phone = data.get(f"{role}Phone")
        email = data.get(f"{role}Email")

        wrapper = self._add_cac(self.root, tag)
        party = self._add_cac(wrapper, "Party")

        party_name = self._add_cac(party, "PartyName")
        self._add_cbc(party_name, "Name", name)

        if address.get("street") or address.get("country"):
            postal = self._add_cac(party, "PostalAddress")
            if address.get("street"):
                self._add_cbc(postal, "StreetName", address["street"])
            if address.get("country"):
                country = self._add_cac(postal, "Country")
                self._add_cbc(country, "IdentificationCode", address["country"])

        if phone or email:
            contact = self._add_cac(party, "Contact")
            if name:
                self._add_cbc(contact, "Name", name)
            if phone:
                self._add_cbc(contact, "Telephone", phone)
            if email:
                self._add_cbc(contact, "ElectronicMail", email)

    def _add_payment_means(self) -> None:
        data = self.data
        account_id = data.get("paymentAccountId")
        account_name = data.get("paymentAccountName")
        branch_id = data.get("financialInstitutionBranchId")
        if not (account_id or account_name or branch_id):
            return

        means = self._add_cac(self.root, "PaymentMeans")
        self._add_cbc(means, "PaymentMeansCode", CREDIT_TRANSFER_PAYMENT_MEANS)
        account = self._add_cac(means, "PayeeFinancialAccount")
        if account_id:
            self._add_cbc(account, "ID", account_id)
        if account_name:
            self._add_cbc(account, "Name", account_name)
        if branch_id:
            branch = self._add_cac(account, "FinancialInstitutionBranch")
            self._add_cbc(branch, "ID", branch_id)

    def _has_tax(self) -> bool:
        return self.data.get("taxTotal") is not None or self.data.get("taxRate") is not None

    def _tax_amount(self) -> Decimal:
        if self.data.get("taxTotal") is not None:
            return to_decimal(self.data["taxTotal"])
        return to_decimal(self.data.get("total")) * to_decimal(self.data.get("taxRate")) / 100

    def _add_tax_total(self) -> None:
        if not self._has_tax():
            return
        tax_total = self._add_cac(self.root, "TaxTotal")
        self._add_amount(tax_total, "TaxAmount", self._tax_amount())

    def _add_legal_monetary_total(self) -> None:
        total = to_decimal(self.data.get("total"))
        monetary = self._add_cac(self.root, "LegalMonetaryTotal")
        if self._has_tax():
            self._add_amount(monetary, "TaxInclusiveAmount", total + self._tax_amount())
        self._add_amount(monetary, "PayableAmount", total)

    def _add_invoice_lines(self) -> None:
        items = self.data.get("items") or []
        default_rate = self.data.get("taxRate")
        for position, item in enumerate(items, start=1):
            count = to_decimal(item.get("count"))
            cost = to_decimal(item.get("cost"))
            currency = item.get("currency") or self.currency
            unit_code = item.get("unitCode") or DEFAULT_UNIT_CODE
            tax_rate = item.get("taxRate")
            if tax_rate is None:
                tax_rate = default_rate

            line = self._add_cac(self.root, "InvoiceLine")
            self._add_cbc(line, "ID", str(position))
            self._add_cbc(line, "InvoicedQuantity", format_number(count), unitCode=unit_code)
            self._add_amount(line, "LineExtensionAmount", count * cost, currency)

            line_item = self._add_cac(line, "Item")
            self._add_cbc(line_item, "Name", item.get("name"))
            tax_category = self._add_cac(line_item, "ClassifiedTaxCategory")
            self._add_cbc(tax_category, "ID", item.get("taxCategory") or DEFAULT_TAX_CATEGORY)
            self._add_cbc(tax_category, "Percent", format_number(tax_rate))
            tax_scheme = self._add_cac(tax_category, "TaxScheme")
            self._add_cbc(tax_scheme, "ID", "VAT")

            price = self._add_cac(line, "Price")
            self._add_amount(price, "PriceAmount", cost, currency)
            self._add_cbc(price, "BaseQuantity", format_number(count), unitCode=unit_code)


def generate_ubl(invoice: Union[Invoice, Mapping[str, Any]]) -> str:
    """
    Generate UBL XML from an invoice.

    Args:
        invoice: A validated ``Invoice`` or a raw camelCase JSON mapping

    Returns:
        UTF-8 UBL 2.1 Invoice XML string
    """
    payload = invoice.to_payload() if isinstance(invoice, Invoice) else invoice
    return UBLGenerator(payload).build()
