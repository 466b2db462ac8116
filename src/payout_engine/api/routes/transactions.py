"""Payroll transaction API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payout_engine.api.dependencies import DbSession, TransactionServiceDep
from payout_engine.api.schemas import (
    ApprovalRequest,
    AutoPayoutRequest,
    BulkApprovalItemResponse,
    BulkApprovalRequest,
    BulkApprovalResponse,
    ErrorResponse,
    PaymentRequest,
    PayrollTransactionCreate,
    PayrollTransactionListResponse,
    PayrollTransactionResponse,
    PayrollTransactionUpdate,
    SummaryResponse,
)
from payout_engine.services import TransactionFilter

router = APIRouter(prefix="/payroll-transactions", tags=["payroll-transactions"])


def _build_filter(
    status_filter: str | None,
    employee_id: UUID | None,
    agent_id: UUID | None,
    service_id: UUID | None,
    date_filter: str,
    created_from: date | None,
    created_to: date | None,
    search: str | None,
) -> TransactionFilter:
    return TransactionFilter(
        status=status_filter,
        employee_id=employee_id,
        agent_id=agent_id,
        service_id=service_id,
        date_filter=date_filter,
        created_from=created_from,
        created_to=created_to,
        search=search,
    )


# ============================================================================
# Listing and summary
# ============================================================================


@router.get(
    "",
    response_model=PayrollTransactionListResponse,
    responses={422: {"model": ErrorResponse}},
)
async def list_transactions(
    transactions: TransactionServiceDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    employee_id: UUID | None = None,
    agent_id: UUID | None = None,
    service_id: UUID | None = None,
    date_filter: str = "all",
    created_from: date | None = None,
    created_to: date | None = None,
    search: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> PayrollTransactionListResponse:
    """List payroll transactions, newest first."""
    filters = _build_filter(
        status_filter, employee_id, agent_id, service_id,
        date_filter, created_from, created_to, search,
    )
    items = await transactions.list_transactions(filters)
    return PayrollTransactionListResponse(
        items=[
            PayrollTransactionResponse.model_validate(t)
            for t in items[offset : offset + limit]
        ],
        total=len(items),
    )


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    transactions: TransactionServiceDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    employee_id: UUID | None = None,
    agent_id: UUID | None = None,
    service_id: UUID | None = None,
    date_filter: str = "all",
    created_from: date | None = None,
    created_to: date | None = None,
    search: str | None = None,
) -> SummaryResponse:
    """Totals by status for the filtered transactions."""
    filters = _build_filter(
        status_filter, employee_id, agent_id, service_id,
        date_filter, created_from, created_to, search,
    )
    summary = await transactions.get_summary(filters)
    return SummaryResponse(
        pending_count=summary.pending_count,
        processed_count=summary.processed_count,
        paid_count=summary.paid_count,
        failed_count=summary.failed_count,
        pending_total=summary.pending_total,
        processed_total=summary.processed_total,
        paid_total=summary.paid_total,
        grand_total=summary.grand_total,
    )


# ============================================================================
# Creation
# ============================================================================


@router.post(
    "",
    response_model=PayrollTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_transaction(
    db: DbSession,
    transactions: TransactionServiceDep,
    payload: PayrollTransactionCreate,
) -> PayrollTransactionResponse:
    """Create a pending payroll transaction."""
    fields = payload.model_dump()
    transaction = await transactions.create_from_refs(
        fields.pop("employee_id"),
        fields.pop("agent_id"),
        **fields,
    )
    await db.commit()
    return PayrollTransactionResponse.model_validate(transaction)


@router.post(
    "/auto-payout",
    response_model=PayrollTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def auto_payout(
    db: DbSession,
    transactions: TransactionServiceDep,
    payload: AutoPayoutRequest,
) -> PayrollTransactionResponse:
    """Create a payout for a paid invoice or completed job."""
    transaction = await transactions.auto_generate_payout(**payload.model_dump())
    await db.commit()
    return PayrollTransactionResponse.model_validate(transaction)


# ============================================================================
# Approval
# ============================================================================


@router.post(
    "/bulk-approve",
    response_model=BulkApprovalResponse,
)
async def bulk_approve(
    db: DbSession,
    transactions: TransactionServiceDep,
    payload: BulkApprovalRequest,
) -> BulkApprovalResponse:
    """Approve several pending transactions; each id succeeds or fails on its own."""
    result = await transactions.bulk_approve(payload.transaction_ids, payload.approver_id)
    await db.commit()
    return BulkApprovalResponse(
        approved_count=len(result.approved),
        failed_count=len(result.failed),
        items=[
            BulkApprovalItemResponse(
                transaction_id=item.transaction_id,
                succeeded=item.succeeded,
                error=item.error,
            )
            for item in result.items
        ],
    )


@router.post(
    "/{transaction_id}/approve",
    response_model=PayrollTransactionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_transaction(
    db: DbSession,
    transactions: TransactionServiceDep,
    transaction_id: Annotated[UUID, Path()],
    payload: ApprovalRequest,
) -> PayrollTransactionResponse:
    """Approve a pending transaction."""
    transaction = await transactions.approve(transaction_id, payload.approver_id)
    await db.commit()
    return PayrollTransactionResponse.model_validate(transaction)


# ============================================================================
# Payment
# ============================================================================


@router.post(
    "/{transaction_id}/pay",
    response_model=PayrollTransactionResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def pay_transaction(
    db: DbSession,
    transactions: TransactionServiceDep,
    transaction_id: Annotated[UUID, Path()],
    payload: PaymentRequest,
) -> PayrollTransactionResponse:
    """Dispatch payment. A failed dispatch returns the transaction as failed."""
    transaction = await transactions.mark_paid(
        transaction_id,
        payload.payment_method,
        reference=payload.payment_reference,
    )
    await db.commit()
    return PayrollTransactionResponse.model_validate(transaction)


@router.post(
    "/{transaction_id}/confirm-settlement",
    response_model=PayrollTransactionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def confirm_settlement(
    db: DbSession,
    transactions: TransactionServiceDep,
    transaction_id: Annotated[UUID, Path()],
) -> PayrollTransactionResponse:
    """Record that a paid transaction's funds have settled."""
    transaction = await transactions.confirm_settlement(transaction_id)
    await db.commit()
    return PayrollTransactionResponse.model_validate(transaction)


# ============================================================================
# Single transaction
# ============================================================================


@router.get(
    "/{transaction_id}",
    response_model=PayrollTransactionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_transaction(
    transactions: TransactionServiceDep,
    transaction_id: Annotated[UUID, Path()],
) -> PayrollTransactionResponse:
    """Get a payroll transaction by ID."""
    return PayrollTransactionResponse.model_validate(await transactions.get(transaction_id))


@router.patch(
    "/{transaction_id}",
    response_model=PayrollTransactionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_transaction(
    db: DbSession,
    transactions: TransactionServiceDep,
    transaction_id: Annotated[UUID, Path()],
    payload: PayrollTransactionUpdate,
) -> PayrollTransactionResponse:
    """Edit a transaction. Amounts are frozen once it is paid."""
    transaction = await transactions.update(
        transaction_id, **payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return PayrollTransactionResponse.model_validate(transaction)
