from typing import List, Optional, Tuple
from datetime import datetime
import logging

from sqlalchemy import update, desc
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.exceptions import ValidationError, InvalidStateError
from core.permissions import Action, authorize
from models.order import Order, OrderStatus
from models.user import User
from models.wallet import Wallet, WalletTransaction, TransactionType

logger = logging.getLogger(__name__)

ORDER_REFERENCE = "ORDER"
PAYOUT_REFERENCE = "PAYOUT"


def format_rupiah(amount: int) -> str:
    return "Rp " + f"{amount:,}".replace(",", ".")


def split_fee(fee: int) -> Tuple[int, int]:
    """Split a delivery fee into (deliverer earning, platform commission)."""
    commission = fee * settings.PLATFORM_COMMISSION_PERCENT // 100
    return fee - commission, commission


class WalletService:
    """Wallet balances and the transaction ledger behind them."""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_wallet(self, user_id: int) -> Wallet:
        wallet = self.db.query(Wallet).filter(Wallet.user_id == user_id).first()
        if not wallet:
            wallet = Wallet(user_id=user_id, balance=0)
            self.db.add(wallet)
            self.db.flush()
        return wallet

    def get_balance(self, user_id: int) -> Wallet:
        wallet = self.get_or_create_wallet(user_id)
        self.db.commit()
        return wallet

    def get_transactions(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        transaction_type: Optional[TransactionType] = None
    ) -> Tuple[List[WalletTransaction], int]:
        wallet = self.db.query(Wallet).filter(Wallet.user_id == user_id).first()
        if not wallet:
            return [], 0

        query = self.db.query(WalletTransaction).filter(WalletTransaction.wallet_id == wallet.id)
        if transaction_type:
            query = query.filter(WalletTransaction.type == transaction_type)

        total = query.count()
        transactions = query.order_by(desc(WalletTransaction.id)).offset(offset).limit(limit).all()
        return transactions, total

    def _apply(
        self,
        wallet: Wallet,
        amount: int,
        transaction_type: TransactionType,
        reference_type: str,
        reference_id: str,
        description: str
    ) -> Optional[WalletTransaction]:
        """Move the balance by amount with a single guarded UPDATE and record it.

        Debits only apply while the balance covers them; returns None otherwise.
        """
        stmt = update(Wallet).where(Wallet.id == wallet.id)
        if amount < 0:
            stmt = stmt.where(Wallet.balance >= -amount)
        result = self.db.execute(
            stmt.values(balance=Wallet.balance + amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        self.db.refresh(wallet)
        transaction = WalletTransaction(
            wallet_id=wallet.id,
            type=transaction_type,
            amount=amount,
            balance_before=wallet.balance - amount,
            balance_after=wallet.balance,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def settle_order_earnings(self, order: Order, commit: bool = True) -> Optional[WalletTransaction]:
        """Credit the deliverer of a completed order. Settles each order at most once."""
        if order.status != OrderStatus.COMPLETED or order.deliverer_id is None or not order.final_fee:
            raise InvalidStateError(
                "Only completed orders with an agreed fee can be settled",
                details={"order_id": order.id, "status": order.status.value}
            )

        wallet = self.get_or_create_wallet(order.deliverer_id)
        already_settled = self.db.query(WalletTransaction).filter(
            WalletTransaction.wallet_id == wallet.id,
            WalletTransaction.type == TransactionType.EARNING,
            WalletTransaction.reference_type == ORDER_REFERENCE,
            WalletTransaction.reference_id == str(order.id)
        ).first()
        if already_settled:
            logger.info(f"Order {order.id} already settled in transaction {already_settled.id}")
            return already_settled

        earning, commission = split_fee(order.final_fee)
        transaction = self._apply(
            wallet,
            earning,
            TransactionType.EARNING,
            ORDER_REFERENCE,
            str(order.id),
            f"Earnings from order #{order.id}"
            + (f" (commission {format_rupiah(commission)})" if commission else "")
        )

        if commit:
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        logger.info(f"Settled order {order.id}: {earning} credited to deliverer {order.deliverer_id}")
        return transaction

    def request_withdrawal(
        self,
        user: User,
        amount: int,
        bank_name: str,
        account_number: str,
        account_name: str
    ) -> WalletTransaction:
        authorize(user, Action.WITHDRAW_FUNDS)

        if amount < settings.MIN_WITHDRAWAL_AMOUNT:
            raise ValidationError(
                f"Minimum withdrawal amount is {format_rupiah(settings.MIN_WITHDRAWAL_AMOUNT)}",
                field="amount"
            )

        wallet = self.get_or_create_wallet(user.id)
        transaction = self._apply(
            wallet,
            -amount,
            TransactionType.WITHDRAWAL,
            PAYOUT_REFERENCE,
            f"{bank_name}:{account_number[-4:]}",
            f"Withdrawal to {bank_name} a/n {account_name}"
        )
        if transaction is None:
            self.db.rollback()
            raise ValidationError(
                "Insufficient wallet balance",
                field="amount",
                details={"balance": wallet.balance}
            )

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Withdrawal of {amount} requested by user {user.id}")
        return transaction
