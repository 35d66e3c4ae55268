"""
Tests for the namespace-stripped XML tree.
"""

from decimal import Decimal

import pytest

from peppol_invoice.config import UBL_INVOICE_NS
from peppol_invoice.xml_tree import Element, parse_decimal, parse_xml


class TestParseXml:
    """Tests for parse_xml."""

    @pytest.mark.parametrize("bad_input", ["<Invoice>", "not xml", "", "   ", None, 42, b"<a/>"])
    def test_bad_input_returns_none(self, bad_input):
        assert parse_xml(bad_input) is None

    def test_strips_namespaces(self):
        tree = parse_xml(
            '<x:Root xmlns:x="urn:x" xmlns:y="urn:y">'
            '<y:Child y:code="v" plain="p">text</y:Child>'
            "</x:Root>"
        )
        assert tree.name == "Root"
        assert tree.namespace == "urn:x"
        child = tree.child("Child")
        assert child.namespace == "urn:y"
        assert child.text == "text"
        assert child.attribute("code") == "v"
        assert child.attribute("plain") == "p"

    def test_default_namespace(self):
        tree = parse_xml(f'<Invoice xmlns="{UBL_INVOICE_NS}"/>')
        assert tree.name == "Invoice"
        assert tree.namespace == UBL_INVOICE_NS

    def test_no_namespace(self):
        assert parse_xml("<NotInvoice/>").namespace is None

    def test_declaration_with_encoding(self):
        tree = parse_xml('<?xml version="1.0" encoding="UTF-8"?>\n<a><b>1</b></a>')
        assert tree.text_at("b") == "1"

    def test_repeated_siblings_keep_order(self):
        tree = parse_xml("<a><b>1</b><c/><b>2</b><b>3</b></a>")
        assert [b.text for b in tree.children_named("b")] == ["1", "2", "3"]
        assert tree.child("b").text == "1"

    def test_whitespace_text_is_none(self):
        tree = parse_xml("<a>\n   <b>  padded  </b>\n</a>")
        assert tree.text is None
        assert tree.text_at("b") == "padded"

    def test_comments_are_dropped(self):
        tree = parse_xml("<a><!-- note --><b/></a>")
        assert [child.name for child in tree.children] == ["b"]

    def test_generated_invoice(self, valid_xml):
        tree = parse_xml(valid_xml)
        assert tree.name == "Invoice"
        assert tree.text_at("ID") == "INV1"


class TestElement:
    """Tests for Element navigation helpers."""

    @pytest.fixture
    def tree(self) -> Element:
        return parse_xml(
            "<Invoice><LegalMonetaryTotal>"
            '<PayableAmount currencyID="AUD">100</PayableAmount>'
            "</LegalMonetaryTotal></Invoice>"
        )

    def test_find_path(self, tree):
        amount = tree.find("LegalMonetaryTotal", "PayableAmount")
        assert amount.text == "100"
        assert amount.attribute("currencyID") == "AUD"

    def test_find_missing_step(self, tree):
        assert tree.find("TaxTotal", "TaxAmount") is None
        assert tree.text_at("LegalMonetaryTotal", "Missing") is None

    def test_find_empty_path_returns_self(self, tree):
        assert tree.find() is tree

    def test_missing_attribute(self, tree):
        assert tree.attribute("currencyID") is None

    def test_iter_is_depth_first(self, tree):
        assert [node.name for node in tree.iter()] == [
            "Invoice", "LegalMonetaryTotal", "PayableAmount",
        ]


class TestParseDecimal:
    """Tests for parse_decimal."""

    @pytest.mark.parametrize("text,expected", [
        ("100", Decimal("100")),
        ("12.50", Decimal("12.5")),
        ("-3", Decimal("-3")),
        ("+0.5", Decimal("0.5")),
        (".5", Decimal("0.5")),
        ("5.", Decimal("5")),
    ])
    def test_plain_decimals(self, text, expected):
        assert parse_decimal(text) == expected

    @pytest.mark.parametrize("text", [None, "", "abc", "1_00", "1,000", "1e5", "NaN", "Infinity", "."])
    def test_rejected(self, text):
        assert parse_decimal(text) is None
