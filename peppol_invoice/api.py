"""
FastAPI application for the Peppol Invoice Service.

Provides REST API endpoints for:
- Health check and rule listing
- Creating invoices from JSON (UBL generation + standards validation)
- Validating raw or stored UBL documents
- Reading, updating, deleting and listing stored invoices

Every invoice endpoint answers with the same envelope:
``{status, message, data | validationErrors, validationWarnings}``.
"""

from contextlib import asynccontextmanager
from typing import Any, Literal, Optional

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from . import __version__
from .config import API_HOST, API_PORT, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, RuleCategory, logger
from .generator import generate_ubl
from .listing import InvoiceSummary, extract_summary, filter_sort_paginate
from .rules import VALIDATION_RULES, get_rules_by_category
from .schemas import (
    ApiResponse,
    Invoice,
    InvoiceRecordOut,
    RuleSetSelection,
    ValidateXmlRequest,
    ValidationResult,
    format_input_errors,
)
from .store import InMemoryInvoiceStore, InvoiceRecord, InvoiceStore
from .validator import check_invoice_dataset, validate_ubl, validate_ubl_with_schemas
from .xml_tree import parse_xml

COMPLIANT_MESSAGE = "Invoice successfully validated against Peppol standards"
NON_COMPLIANT_MESSAGE = "Invoice does not comply with Peppol standards"
NO_XML_MESSAGE = "No UBL XML provided for validation"

SORT_FIELDS = {
    "issueDate": lambda entry: entry[1].issue_date,
    "dueDate": lambda entry: entry[1].due_date,
    "total": lambda entry: entry[1].total_payable_amount,
}


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


# ============================================================================
# Helpers
# ============================================================================

def envelope(status_code: int, **fields: Any) -> JSONResponse:
    """Wrap ``fields`` in the standard response envelope."""
    body = ApiResponse(**fields).model_dump(by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def validation_response(result: ValidationResult, data: Optional[dict] = None) -> JSONResponse:
    """200 with warnings when valid, 400 with errors and warnings otherwise."""
    if result.valid:
        return envelope(
            200,
            status="success",
            message=COMPLIANT_MESSAGE,
            data=data,
            validation_warnings=result.warnings,
        )
    return envelope(
        400,
        status="error",
        message=NON_COMPLIANT_MESSAGE,
        validation_errors=result.errors,
        validation_warnings=result.warnings,
    )


def not_found(invoice_id: str) -> JSONResponse:
    return envelope(404, status="error", message=f"Invoice {invoice_id} not found")


def parse_invoice_input(payload: dict[str, Any]) -> tuple[Optional[Invoice], Optional[JSONResponse]]:
    """Run input validation; return the model or a ready 400 response."""
    try:
        return Invoice.model_validate(payload), None
    except ValidationError as e:
        reasons = format_input_errors(e)
        logger.info(f"Rejected invoice input: {reasons}")
        return None, envelope(
            400,
            status="error",
            message=f"Invalid invoice input: {'; '.join(reasons)}",
        )


def parse_validate_request(
    payload: Any,
    model: type[RuleSetSelection] = ValidateXmlRequest,
) -> tuple[Optional[RuleSetSelection], Optional[JSONResponse]]:
    """Read a validation request body; return the model or a ready 400 response."""
    try:
        return model.model_validate(payload if payload is not None else {}), None
    except ValidationError as e:
        reasons = format_input_errors(e)
        return None, envelope(400, status="error", message=f"Invalid request: {'; '.join(reasons)}")


def run_validation(
    xml: str,
    schemas: Optional[list[str]],
) -> tuple[Optional[ValidationResult], Optional[JSONResponse]]:
    """Validate with the selected rule sets, or the default rules when none are named."""
    if schemas is None:
        return validate_ubl(xml), None
    try:
        return validate_ubl_with_schemas(xml, schemas), None
    except ValueError as e:
        return None, envelope(400, status="error", message=str(e))


def record_data(record: InvoiceRecord) -> dict[str, Any]:
    return InvoiceRecordOut(
        invoice_id=record.invoice_id,
        invoice=record.xml,
        valid=record.valid,
        created_at=record.created_at,
        updated_at=record.updated_at,
    ).model_dump(by_alias=True)


def summarize(record: InvoiceRecord) -> InvoiceSummary:
    tree = parse_xml(record.xml)
    if tree is None:
        return InvoiceSummary(record.invoice_id, None, None, None, None)
    return extract_summary(tree)


def get_store(request: Request) -> InvoiceStore:
    return request.app.state.store


# ============================================================================
# FastAPI App Configuration
# ============================================================================

def create_app(store: Optional[InvoiceStore] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Storage collaborator; a fresh in-memory store when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Peppol Invoice Service API starting on {API_HOST}:{API_PORT}")
        yield
        logger.info("Peppol Invoice Service API shutting down")

    app = FastAPI(
        title="Peppol Invoice Service API",
        description="""
        Create, store and validate UBL 2.1 / Peppol BIS Billing 3.0 invoices.

        ## Features

        - **Create**: Submit invoice JSON, get back UBL XML and its compliance status
        - **Validate**: Check any UBL invoice against the Peppol rule set
        - **List**: Sort and page stored invoices by date or total
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else InMemoryInvoiceStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # System Endpoints
    # ========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check() -> HealthResponse:
        """Service status and version, for load balancer health checks."""
        return HealthResponse(status="ok", version=__version__)

    @app.get("/rules", tags=["System"])
    async def list_rules():
        """List the standards validation rules in evaluation order, by category."""
        rules_by_category = {}
        for category in RuleCategory:
            category_rules = get_rules_by_category(category)
            if category_rules:
                rules_by_category[category.value] = [
                    {"code": rule.code, "description": rule.description}
                    for rule in category_rules
                ]

        return {
            "total_rules": len(VALIDATION_RULES),
            "rules_by_category": rules_by_category,
        }

    # ========================================================================
    # Invoice Endpoints
    # ========================================================================

    @app.post("/v1/invoices/create", tags=["Invoices"], summary="Create invoice from JSON")
    async def create_invoice(
        payload: dict[str, Any] = Body(...),
        store: InvoiceStore = Depends(get_store),
    ) -> JSONResponse:
        """
        Validate invoice JSON, generate its UBL XML, run the Peppol rules and
        store the XML with its ``valid`` flag.

        The invoice is stored even when it is not compliant; use
        ``/v1/invoices/create-and-validate`` to get a 400 in that case.
        """
        invoice, rejection = parse_invoice_input(payload)
        if rejection is not None:
            return rejection
        if store.get(invoice.invoice_id) is not None:
            return envelope(409, status="error", message=f"Invoice {invoice.invoice_id} already exists")

        xml = generate_ubl(invoice)
        result = validate_ubl(xml)
        record = store.save(invoice.invoice_id, xml, result.valid)
        logger.info(f"Created invoice {record.invoice_id} (valid={record.valid})")

        return envelope(
            200,
            status="success",
            message="Invoice created successfully",
            data={"invoiceId": record.invoice_id, "invoice": record.xml, "valid": record.valid},
            validation_warnings=result.warnings,
        )

    @app.post("/v1/invoices/create-and-validate", tags=["Invoices"], summary="Create and validate invoice")
    async def create_and_validate_invoice(
        payload: dict[str, Any] = Body(...),
        store: InvoiceStore = Depends(get_store),
    ) -> JSONResponse:
        """Like create, but answers 400 with the rule errors when the invoice is not compliant."""
        invoice, rejection = parse_invoice_input(payload)
        if rejection is not None:
            return rejection
        if store.get(invoice.invoice_id) is not None:
            return envelope(409, status="error", message=f"Invoice {invoice.invoice_id} already exists")

        xml = generate_ubl(invoice)
        result = validate_ubl(xml)
        record = store.save(invoice.invoice_id, xml, result.valid)
        logger.info(f"Created invoice {record.invoice_id} (valid={record.valid})")

        return validation_response(
            result,
            data={"invoiceId": record.invoice_id, "invoice": record.xml, "valid": record.valid},
        )

    @app.post("/v1/invoices/validate", tags=["Validation"], summary="Validate UBL XML")
    async def validate_xml(payload: Any = Body(None)) -> JSONResponse:
        """
        Validate a UBL invoice document supplied in the request body.

        The XML may be sent as ``xml`` or ``invoice``. ``schemas`` selects
        named rule sets (``peppol``, ``fairwork``) instead of the default rules.
        """
        request, rejection = parse_validate_request(payload)
        if rejection is not None:
            return rejection
        if not request.document:
            return envelope(400, status="error", message=NO_XML_MESSAGE)

        result, rejection = run_validation(request.document, request.schemas)
        if rejection is not None:
            return rejection
        return validation_response(result)

    @app.post("/v1/invoices/check-dataset", tags=["Validation"], summary="Check invoice dataset")
    async def check_dataset(payload: Any = Body(None)) -> JSONResponse:
        """
        Check an ``<Invoice>`` or ``<Invoices>`` dataset for the dates and
        payable amounts that listing and export rely on.
        """
        request, rejection = parse_validate_request(payload)
        if rejection is not None:
            return rejection
        if not request.document:
            return envelope(400, status="error", message=NO_XML_MESSAGE)

        problems = check_invoice_dataset(request.document)
        if problems:
            return envelope(
                400,
                status="error",
                message="Invoice dataset has problems",
                validation_errors=problems,
            )
        return envelope(200, status="success", message="Invoice dataset is valid")

    @app.post("/v1/invoices/{invoice_id}/validate", tags=["Validation"], summary="Validate stored invoice")
    async def validate_stored_invoice(
        invoice_id: str,
        payload: Any = Body(None),
        store: InvoiceStore = Depends(get_store),
    ) -> JSONResponse:
        """
        Re-validate a stored invoice and persist its ``valid`` flag.

        An optional body ``{"schemas": [...]}`` selects named rule sets.
        """
        record = store.get(invoice_id)
        if record is None:
            return not_found(invoice_id)

        selection, rejection = parse_validate_request(payload, RuleSetSelection)
        if rejection is not None:
            return rejection
        result, rejection = run_validation(record.xml, selection.schemas)
        if rejection is not None:
            return rejection

        store.set_valid(invoice_id, result.valid)
        return validation_response(result)

    @app.get("/v1/invoices", tags=["Invoices"], summary="List invoices")
    async def list_invoices(
        sort: Literal["issueDate", "dueDate", "total"] = "issueDate",
        order: Literal["asc", "desc"] = "asc",
        page: int = Query(1, ge=1),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        valid: Optional[bool] = None,
        store: InvoiceStore = Depends(get_store),
    ) -> JSONResponse:
        """List stored invoices, optionally filtered by ``valid``, sorted and paged."""
        entries = [(record, summarize(record)) for record in store.list_all()]
        result_page = filter_sort_paginate(
            entries,
            predicate=None if valid is None else (lambda entry: entry[0].valid == valid),
            key=SORT_FIELDS[sort],
            descending=order == "desc",
            page=page,
            limit=limit,
        )

        invoices = [
            {
                "invoiceId": record.invoice_id,
                "issueDate": summary.issue_date,
                "dueDate": summary.due_date,
                "total": float(summary.total_payable_amount) if summary.total_payable_amount is not None else None,
                "currency": summary.currency,
                "valid": record.valid,
            }
            for record, summary in result_page.items
        ]
        return envelope(
            200,
            status="success",
            message="Invoices retrieved successfully",
            data={
                "count": result_page.total_items,
                "page": result_page.page,
                "limit": result_page.limit,
                "totalPages": result_page.total_pages,
                "invoices": invoices,
            },
        )

    @app.get("/v1/invoices/{invoice_id}", tags=["Invoices"], summary="Get invoice")
    async def get_invoice(invoice_id: str, store: InvoiceStore = Depends(get_store)) -> JSONResponse:
        record = store.get(invoice_id)
        if record is None:
            return not_found(invoice_id)
        return envelope(200, status="success", message="Invoice retrieved successfully", data=record_data(record))

    @app.put("/v1/invoices/{invoice_id}", tags=["Invoices"], summary="Update invoice")
    async def update_invoice(
        invoice_id: str,
        payload: dict[str, Any] = Body(...),
        store: InvoiceStore = Depends(get_store),
    ) -> JSONResponse:
        """Replace a stored invoice: regenerate its XML and re-validate it."""
        if store.get(invoice_id) is None:
            return not_found(invoice_id)

        invoice, rejection = parse_invoice_input({"invoiceId": invoice_id, **payload})
        if rejection is not None:
            return rejection
        if invoice.invoice_id != invoice_id:
            return envelope(400, status="error", message="invoiceId in body does not match the URL")

        xml = generate_ubl(invoice)
        result = validate_ubl(xml)
        record = store.save(invoice_id, xml, result.valid)
        logger.info(f"Updated invoice {invoice_id} (valid={record.valid})")

        return envelope(
            200,
            status="success",
            message="Invoice updated successfully",
            data=record_data(record),
            validation_warnings=result.warnings,
        )

    @app.delete("/v1/invoices/{invoice_id}", tags=["Invoices"], summary="Delete invoice")
    async def delete_invoice(invoice_id: str, store: InvoiceStore = Depends(get_store)) -> JSONResponse:
        if not store.delete(invoice_id):
            return not_found(invoice_id)
        logger.info(f"Deleted invoice {invoice_id}")
        return envelope(200, status="success", message="Invoice deleted successfully")

    # ========================================================================
    # Error Handlers
    # ========================================================================

    @app.exception_handler(Exception)
    async def generic_exception_handler(request, exc):
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")
        return envelope(500, status="error", message="Internal server error")

    return app


app = create_app()


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server():
    """Run the API server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run_server()
