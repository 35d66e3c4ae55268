"""
Storage collaborator for generated invoices.

The service persists the UBL XML and a single ``valid`` flag per invoice;
validation errors and warnings are never stored. ``InvoiceStore`` is the
interface the API depends on, and ``InMemoryInvoiceStore`` is the process-local
implementation used by default and in tests.
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Protocol


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class InvoiceRecord:
    invoice_id: str
    xml: str
    valid: bool
    created_at: str
    updated_at: str


class InvoiceStore(Protocol):
    def save(self, invoice_id: str, xml: str, valid: bool) -> InvoiceRecord: ...

    def get(self, invoice_id: str) -> Optional[InvoiceRecord]: ...

    def set_valid(self, invoice_id: str, valid: bool) -> Optional[InvoiceRecord]: ...

    def delete(self, invoice_id: str) -> bool: ...

    def list_all(self) -> list[InvoiceRecord]: ...


class InMemoryInvoiceStore:
    """Thread-safe dict-backed store. Records are immutable; updates replace them."""

    def __init__(self) -> None:
        self._records: dict[str, InvoiceRecord] = {}
        self._lock = threading.Lock()

    def save(self, invoice_id: str, xml: str, valid: bool) -> InvoiceRecord:
        """Insert or replace the record, keeping the original creation time."""
        with self._lock:
            now = _now()
            existing = self._records.get(invoice_id)
            record = InvoiceRecord(
                invoice_id=invoice_id,
                xml=xml,
                valid=valid,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._records[invoice_id] = record
            return record

    def get(self, invoice_id: str) -> Optional[InvoiceRecord]:
        with self._lock:
            return self._records.get(invoice_id)

    def set_valid(self, invoice_id: str, valid: bool) -> Optional[InvoiceRecord]:
        with self._lock:
            existing = self._records.get(invoice_id)
            if existing is None:
                return None
            record = replace(existing, valid=valid, updated_at=_now())
            self._records[invoice_id] = record
            return record

    def delete(self, invoice_id: str) -> bool:
        with self._lock:
            return self._records.pop(invoice_id, None) is not None

    def list_all(self) -> list[InvoiceRecord]:
        with self._lock:
            return list(self._records.values())
