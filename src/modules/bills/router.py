"""API endpoints for Bills module."""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.database.session import get_db, get_session_factory
from src.modules.bills.schemas import (
    BatchSaveResponse,
    BillPaymentResponse,
    BillResponse,
    BillRowSubmit,
    BillSummary,
    BillUpdate,
)
from src.modules.bills.service import BillService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/bills", tags=["Bills"])


@router.get(
    "",
    response_model=ApiResponse[list[BillResponse]],
)
async def list_bills(
    academic_year: str | None = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """List bills, optionally for one academic year. Legacy bills are normalized."""
    service = BillService(db, session_factory)
    bills = await service.list_bills(academic_year)
    return ApiResponse(data=bills)


@router.post(
    "",
    response_model=BatchSaveResponse,
    responses={
        200: {"description": "Some rows saved; see errors"},
        500: {"description": "No row could be saved"},
    },
    status_code=201,
)
async def save_bills(
    rows: list[BillRowSubmit],
    response: Response,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Save a batch of bill rows: update the ones that match a stored bill,
    create the rest. Returns the refreshed bills of the batch's academic year.
    """
    service = BillService(db, session_factory)
    result = await service.save_batch(rows)

    response.status_code = result.status_code
    return BatchSaveResponse(
        success=result.success,
        message=result.message,
        data=[BillResponse.model_validate(b) for b in result.bills],
        errors=result.failed or None,
        warnings=result.warnings or None,
    )


@router.get(
    "/summary",
    response_model=ApiResponse[BillSummary],
)
async def get_bills_summary(
    academic_year: str | None = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
):
    """Billed, paid and outstanding totals with collection rate."""
    service = BillService(db)
    summary = await service.get_summary(academic_year)
    return ApiResponse(data=summary)


@router.get(
    "/{bill_id}",
    response_model=ApiResponse[BillResponse],
)
async def get_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get bill by ID."""
    service = BillService(db)
    bill = await service.get_bill(bill_id)
    return ApiResponse(data=BillResponse.model_validate(bill))


@router.patch(
    "/{bill_id}",
    response_model=ApiResponse[BillResponse],
)
async def update_bill(
    bill_id: str,
    data: BillUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update bill fields. Serial and payment history cannot be changed here."""
    service = BillService(db)
    bill = await service.update_bill(bill_id, data)
    return ApiResponse(
        data=BillResponse.model_validate(bill),
        message="Bill updated successfully",
    )


@router.delete(
    "/{bill_id}",
    response_model=ApiResponse[None],
)
async def delete_bill(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Delete a bill and its payment history."""
    service = BillService(db)
    await service.delete_bill(bill_id)
    return ApiResponse(data=None, message="Bill deleted")


@router.get(
    "/{bill_id}/payments",
    response_model=ApiResponse[list[BillPaymentResponse]],
)
async def list_bill_payments(
    bill_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Payment history of a bill, oldest first."""
    service = BillService(db)
    payments = await service.list_payments(bill_id)
    return ApiResponse(data=[BillPaymentResponse.model_validate(p) for p in payments])
