"""
Transaction API endpoints
"""
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flowmoney.api.deps import get_db, get_current_user, get_broadcaster
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.application.transactions import (
    CreateTransactionUseCase, UpdateTransactionUseCase, DeleteTransactionUseCase,
    BulkDeleteTransactionsUseCase, list_transactions, get_transaction, MAX_PAGE_SIZE,
)
from flowmoney.application.views import transaction_view
from flowmoney.domain.transaction import DEFAULT_CATEGORIES
from flowmoney.infrastructure.db.models import User


router = APIRouter(prefix="/api/v1", tags=["transactions"])


# === Request models ===

class CreateTransactionRequest(BaseModel):
    amount: str  # Decimal as string
    type: str
    category: str
    currency: str | None = None
    date: str | None = None
    note: str | None = None


class UpdateTransactionRequest(BaseModel):
    amount: str | None = None
    type: str | None = None
    category: str | None = None
    currency: str | None = None
    date: str | None = None
    note: str | None = None


class BulkDeleteRequest(BaseModel):
    transaction_ids: list[str]


# === Endpoints ===

@router.get("/transactions/categories")
def categories():
    return DEFAULT_CATEGORIES


@router.get("/joint-accounts/{joint_account_id}/transactions")
def get_transactions(
    joint_account_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    type: str | None = None,
    category: str | None = None,
    limit: int = Query(100, ge=1, le=MAX_PAGE_SIZE),
    skip: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = list_transactions(
        db, joint_account_id, user.id,
        start_date=start_date, end_date=end_date, tx_type=type, category=category,
        limit=limit, skip=skip,
    )
    return {
        "transactions": [transaction_view(tx) for tx in items],
        "total": total,
        "limit": limit,
        "skip": skip,
    }


@router.post("/joint-accounts/{joint_account_id}/transactions", status_code=201)
def create_transaction(
    joint_account_id: str,
    req: CreateTransactionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    tx = CreateTransactionUseCase(db, broadcaster).execute(
        joint_account_id, user,
        amount=req.amount,
        tx_type=req.type,
        category=req.category,
        currency=req.currency,
        tx_date=req.date,
        note=req.note,
    )
    return transaction_view(tx)


@router.post("/joint-accounts/{joint_account_id}/transactions/bulk-delete")
def bulk_delete(
    joint_account_id: str,
    req: BulkDeleteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    deleted = BulkDeleteTransactionsUseCase(db, broadcaster).execute(
        joint_account_id, user.id, req.transaction_ids
    )
    return {"success": True, "deleted": deleted}


@router.get("/transactions/{transaction_id}")
def get_one(transaction_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return transaction_view(get_transaction(db, transaction_id, user.id))


@router.put("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    req: UpdateTransactionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    tx = UpdateTransactionUseCase(db, broadcaster).execute(
        transaction_id, user.id, **req.model_dump(exclude_unset=True)
    )
    return transaction_view(tx)


@router.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcaster: FanoutBroadcaster = Depends(get_broadcaster),
):
    DeleteTransactionUseCase(db, broadcaster).execute(transaction_id, user.id)
    return {"success": True, "message": "Transaction deleted successfully"}
