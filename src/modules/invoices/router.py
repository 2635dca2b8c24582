"""API endpoints for Invoices module."""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import guard
from src.core.auth.models import Caller
from src.core.database.session import get_db
from src.modules.invoices.schemas import (
    DefaulterResponse,
    FeeAdjustmentCreate,
    FeeAdjustmentResponse,
    FeeAdjustmentResult,
    GenerateClassInvoices,
    GenerationResult,
    InstallmentResponse,
    InvoiceCreate,
    InvoiceDetail,
    InvoiceResponse,
    InvoiceSelectionUpdate,
)
from src.modules.invoices.service import InvoiceService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/schools/{school_id}", tags=["Invoices"])


@router.post(
    "/invoices",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    school_id: int,
    data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("createInvoice")),
):
    """Create one invoice for a student and term (money is filled in by the invoicing worker)."""
    invoice = await InvoiceService(db, school_id).create_invoice(data, caller.user_id)
    return ApiResponse(message="Invoice created", data=InvoiceResponse.model_validate(invoice))


@router.post("/invoices/generate", response_model=ApiResponse[GenerationResult])
async def generate_class_invoices(
    school_id: int,
    data: GenerateClassInvoices,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("generateClassInvoices")),
):
    """
    Generate invoices for all enrollments of a class group in a term.

    Safe to rerun: with skip_duplicates existing invoices are counted as skipped.
    """
    result = await InvoiceService(db, school_id).generate_class_invoices(data, caller.user_id)
    return ApiResponse(
        message=f"Generated {result.created_count} invoices, skipped {result.skipped_count}",
        data=result,
    )


@router.get("/invoices/by-number/{invoice_no}", response_model=ApiResponse[InvoiceDetail])
async def get_invoice_by_number(
    school_id: int,
    invoice_no: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("invoiceByNumber")),
):
    invoice = await InvoiceService(db, school_id).invoice_by_number(invoice_no)
    return ApiResponse(data=InvoiceDetail.model_validate(invoice))


@router.get("/invoices/{invoice_id}", response_model=ApiResponse[InvoiceDetail])
async def get_invoice(
    school_id: int,
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("getInvoice")),
):
    invoice = await InvoiceService(db, school_id).get_invoice(invoice_id)
    return ApiResponse(data=InvoiceDetail.model_validate(invoice))


@router.put("/invoices/{invoice_id}/selection", response_model=ApiResponse[InvoiceDetail])
async def select_optional_items(
    school_id: int,
    invoice_id: int,
    data: InvoiceSelectionUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("selectInvoiceOptionalItems")),
):
    invoice = await InvoiceService(db, school_id).select_optional_items(
        invoice_id, data.selected_line_ids, caller.user_id
    )
    return ApiResponse(data=InvoiceDetail.model_validate(invoice))


@router.post(
    "/invoices/{invoice_id}/adjustments",
    response_model=ApiResponse[FeeAdjustmentResult],
    status_code=status.HTTP_201_CREATED,
)
async def create_fee_adjustment(
    school_id: int,
    invoice_id: int,
    data: FeeAdjustmentCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("createFeeAdjustment")),
):
    adjustment, invoice = await InvoiceService(db, school_id).create_fee_adjustment(
        invoice_id, data, caller.user_id
    )
    return ApiResponse(
        message="Fee adjustment recorded",
        data=FeeAdjustmentResult(
            adjustment=FeeAdjustmentResponse.model_validate(adjustment),
            invoice=InvoiceResponse.model_validate(invoice),
        ),
    )


@router.get(
    "/invoices/{invoice_id}/installments",
    response_model=ApiResponse[list[InstallmentResponse]],
)
async def list_installments(
    school_id: int,
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("listInstallments")),
):
    installments = await InvoiceService(db, school_id).list_installments(invoice_id)
    return ApiResponse(data=[InstallmentResponse.model_validate(i) for i in installments])


@router.get(
    "/students/{student_id}/invoices",
    response_model=ApiResponse[list[InvoiceResponse]],
)
async def invoices_by_student(
    school_id: int,
    student_id: int,
    term_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("invoicesByStudent")),
):
    invoices = await InvoiceService(db, school_id).invoices_by_student(student_id, term_id)
    return ApiResponse(data=[InvoiceResponse.model_validate(i) for i in invoices])


@router.get("/defaulters", response_model=ApiResponse[list[DefaulterResponse]])
async def defaulters_by_class(
    school_id: int,
    term_id: int = Query(...),
    class_group_id: int = Query(...),
    min_days_overdue: int = Query(0, ge=0),
    min_amount_due: Decimal = Query(Decimal("0"), ge=0),
    limit: int | None = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(guard("defaultersByClass")),
):
    defaulters = await InvoiceService(db, school_id).defaulters_by_class(
        term_id,
        class_group_id,
        min_days_overdue=min_days_overdue,
        min_amount_due=min_amount_due,
        limit=limit,
    )
    return ApiResponse(data=defaulters)
