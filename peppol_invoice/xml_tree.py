"""
Namespace-stripped XML tree used by the validator and the listing helpers.

``parse_xml`` turns an XML string into a tree of ``Element`` nodes whose tag
and attribute names have their namespace removed, so callers can address
``IssueDate`` rather than ``cbc:IssueDate``. Repeated siblings such as
``InvoiceLine`` are kept in document order.

Malformed or non-string input returns ``None``; this module never raises for
bad input.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Optional

from lxml import etree

from .config import logger

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")
_XSD_DECIMAL = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)")


@dataclass
class Element:
    """
    A single XML element.

    Attributes:
        name: Local tag name (no prefix, no namespace)
        namespace: Namespace URI of the tag, or None
        attributes: Attribute values keyed by local attribute name
        children: Child elements in document order
        text: Stripped text content, or None when empty
    """
    name: str
    namespace: Optional[str] = None
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["Element"] = field(default_factory=list)
    text: Optional[str] = None

    def child(self, name: str) -> Optional["Element"]:
        """First child called ``name``."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def children_named(self, name: str) -> list["Element"]:
        """All children called ``name``, in document order."""
        return [child for child in self.children if child.name == name]

    def find(self, *path: str) -> Optional["Element"]:
        """
        Follow ``path`` through first-matching children.

        ``tree.find("LegalMonetaryTotal", "PayableAmount")`` returns the
        PayableAmount element or None if any step is missing.
        """
        node: Optional[Element] = self
        for name in path:
            if node is None:
                return None
            node = node.child(name)
        return node

    def text_at(self, *path: str) -> Optional[str]:
        """Text of the element at ``path``, or None if missing or empty."""
        node = self.find(*path)
        return node.text if node is not None else None

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def iter(self) -> Iterator["Element"]:
        """Depth-first iteration over this element and its descendants."""
        yield self
        for child in self.children:
            yield from child.iter()


def _local_name(qualified: str) -> str:
    # "{uri}Name" -> "Name"; "prefix:Name" -> "Name"
    if qualified.startswith("{"):
        qualified = qualified.split("}", 1)[1]
    return qualified.rsplit(":", 1)[-1]


def _convert(node: etree._Element) -> Element:
    qname = etree.QName(node)
    text = node.text.strip() if node.text else ""
    element = Element(
        name=qname.localname,
        namespace=qname.namespace,
        attributes={_local_name(key): value for key, value in node.attrib.items()},
        text=text or None,
    )
    for child in node:
        # Comments and processing instructions have a non-string tag
        if not isinstance(child.tag, str):
            continue
        element.children.append(_convert(child))
    return element


def parse_xml(xml: Any) -> Optional[Element]:
    """
    Parse an XML string into a namespace-stripped ``Element`` tree.

    Args:
        xml: XML document as a string

    Returns:
        Root Element, or None if the input is not a string or not well-formed
    """
    if not isinstance(xml, str) or not xml.strip():
        return None

    # lxml rejects str input that carries an encoding declaration
    source = _XML_DECLARATION.sub("", xml, count=1)

    # A fresh parser per call; parsers keep state between documents
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )
    try:
        root = etree.fromstring(source, parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        logger.debug(f"Unparseable XML: {e}")
        return None

    return _convert(root)


def parse_decimal(text: Optional[str]) -> Optional[Decimal]:
    """
    Parse element text as an xsd:decimal amount.

    Only plain decimal notation is accepted: an optional sign, digits and an
    optional fraction. Exponents, digit separators, NaN and Infinity return
    None.
    """
    if text is None or not _XSD_DECIMAL.fullmatch(text):
        return None
    return Decimal(text)
