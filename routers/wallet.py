from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database.connection import get_db
from routers.auth import get_current_user
from models.user import User
from models.wallet import TransactionType
from schemas.wallet import WalletResponse, TransactionResponse, WithdrawalRequest
from services.wallet import WalletService, format_rupiah
from core.response import success_response

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/balance")
def get_wallet_balance(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    wallet = WalletService(db).get_balance(current_user.id)
    return success_response(data=WalletResponse(
        balance=wallet.balance,
        currency=wallet.currency,
        formatted=format_rupiah(wallet.balance)
    ))

@router.get("/transactions")
def get_wallet_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type_filter: Optional[TransactionType] = Query(None, alias="type"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Wallet ledger, newest first."""
    transactions, total = WalletService(db).get_transactions(
        current_user.id, limit=limit, offset=offset, transaction_type=type_filter
    )
    return success_response(
        data=[TransactionResponse.from_orm(t) for t in transactions],
        meta={"total": total, "limit": limit, "offset": offset}
    )

@router.post("/withdraw", status_code=status.HTTP_201_CREATED)
def request_withdrawal(
    withdrawal: WithdrawalRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    transaction = WalletService(db).request_withdrawal(
        current_user,
        amount=withdrawal.amount,
        bank_name=withdrawal.bank_name,
        account_number=withdrawal.account_number,
        account_name=withdrawal.account_name
    )
    return success_response(data=TransactionResponse.from_orm(transaction), message="Withdrawal requested")
