"""Controller for the review queue and transaction disposition endpoints."""

from fastapi import APIRouter, Query

from financeflow.core.dependencies import (
    DatabaseDep,
    TransactionServiceDep,
    UserServiceDep,
)
from financeflow.modules.transactions.dto import DispositionResponse, ReviewQueueResponse

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("/review-queue", response_model=ReviewQueueResponse)
async def get_review_queue(
    db: DatabaseDep,
    service: TransactionServiceDep,
    users: UserServiceDep,
    owner_id: int = Query(..., description="Owner whose pending transactions to list"),
    limit: int = Query(50, ge=1, le=200),
) -> ReviewQueueResponse:
    await users.require_user(db, owner_id)
    return await service.review_queue(db, owner_id, limit=limit)


@router.post("/{transaction_id}/approve", response_model=DispositionResponse)
async def approve_transaction(
    transaction_id: int, db: DatabaseDep, service: TransactionServiceDep
) -> DispositionResponse:
    """Post a reviewed transaction to the ledger. Succeeds at most once."""
    return await service.approve(db, transaction_id)


@router.post("/{transaction_id}/reject", response_model=DispositionResponse)
async def reject_transaction(
    transaction_id: int, db: DatabaseDep, service: TransactionServiceDep
) -> DispositionResponse:
    """Discard a transaction as a duplicate or false positive."""
    return await service.reject(db, transaction_id)
