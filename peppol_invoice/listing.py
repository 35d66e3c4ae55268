"""
Summary extraction and list handling for stored invoices.

Listing and export only need a few fields from each stored document; they
reparse the XML and pull those out with ``extract_summary`` rather than
running the validator. ``filter_sort_paginate`` is the one helper behind
every invoice list (own invoices, shared invoices, filtered views).
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Generic, Optional, TypeVar

from .xml_tree import Element, parse_decimal

T = TypeVar("T")


@dataclass(frozen=True)
class InvoiceSummary:
    """Fields used to sort and display invoice lists."""
    invoice_id: Optional[str]
    issue_date: Optional[str]
    due_date: Optional[str]
    total_payable_amount: Optional[Decimal]
    currency: Optional[str]


def extract_summary(tree: Element) -> InvoiceSummary:
    """Pull the listing fields out of a parsed invoice."""
    payable = tree.find("LegalMonetaryTotal", "PayableAmount")
    amount = parse_decimal(payable.text) if payable is not None else None

    return InvoiceSummary(
        invoice_id=tree.text_at("ID"),
        issue_date=tree.text_at("IssueDate"),
        due_date=tree.text_at("DueDate"),
        total_payable_amount=amount,
        currency=tree.text_at("DocumentCurrencyCode")
        or (payable.attribute("currencyID") if payable is not None else None),
    )


@dataclass
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.limit) if self.limit else 0


def filter_sort_paginate(
    items: list[T],
    *,
    predicate: Optional[Callable[[T], bool]] = None,
    key: Optional[Callable[[T], Any]] = None,
    descending: bool = False,
    page: int = 1,
    limit: int = 10,
) -> Page[T]:
    """
    Filter, sort and slice a collection.

    Items whose sort key is None always go last, whatever the direction.
    Sorting is stable, so ties keep their input order.

    Args:
        items: The full collection
        predicate: Keep only items for which this returns True
        key: Sort key; no sorting when None
        descending: Sort direction
        page: 1-based page number
        limit: Page size (must be positive)
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if limit < 1:
        raise ValueError("limit must be >= 1")

    selected = [item for item in items if predicate is None or predicate(item)]

    if key is not None:
        present = [item for item in selected if key(item) is not None]
        missing = [item for item in selected if key(item) is None]
        present.sort(key=key, reverse=descending)
        selected = present + missing

    start = (page - 1) * limit
    return Page(
        items=selected[start:start + limit],
        page=page,
        limit=limit,
        total_items=len(selected),
    )
