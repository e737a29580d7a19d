from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from models.wallet import TransactionType


class WalletResponse(BaseModel):
    balance: int
    currency: str
    formatted: str


class TransactionResponse(BaseModel):
    id: int
    type: TransactionType
    amount: int
    balance_before: int
    balance_after: int
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WithdrawalRequest(BaseModel):
    amount: int
    bank_name: str = Field(..., min_length=2, max_length=100)
    account_number: str = Field(..., min_length=4, max_length=34)
    account_name: str = Field(..., min_length=2, max_length=100)
