"""Controller for expenses entered by hand."""

from fastapi import APIRouter, status

from financeflow.core.dependencies import DatabaseDep, LedgerServiceDep, UserServiceDep
from financeflow.modules.ledger.dto import ExpenseResponse, ManualExpenseCreate

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.post(
    "/{owner_id}/expenses",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_expense(
    owner_id: int,
    body: ManualExpenseCreate,
    db: DatabaseDep,
    users: UserServiceDep,
    ledger: LedgerServiceDep,
) -> ExpenseResponse:
    """
    Record an expense by hand.
    Later imports of the same payment are stored as duplicates of it.
    """
    await users.require_user(db, owner_id)
    expense = await ledger.add_manual_expense(
        db,
        owner_id,
        amount_minor=body.amount_minor,
        entry_date=body.entry_date,
        vendor=body.vendor,
        category=body.category,
        payment_mode=body.payment_mode.value,
        note=body.note,
    )
    return ExpenseResponse.model_validate(expense)
