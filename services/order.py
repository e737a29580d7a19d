from typing import Dict, List, Optional
from datetime import datetime
import logging

from sqlalchemy import update, desc
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import (
    ValidationError, AuthorizationError, ResourceNotFoundError, InvalidTransitionError
)
from core.permissions import Action, authorize
from models.notification import NotificationType
from models.order import Order, OrderStatus
from models.user import User, UserRole
from services.notification import NotificationService
from services.wallet import WalletService

logger = logging.getLogger(__name__)

# Lifecycle edges and the capability needed to walk each of them
ORDER_TRANSITIONS: Dict[OrderStatus, Dict[OrderStatus, Action]] = {
    OrderStatus.WAITING_FOR_OFFERS: {
        OrderStatus.OFFER_ACCEPTED: Action.ACCEPT_OFFER,
        OrderStatus.CANCELLED: Action.CANCEL_ORDER,
    },
    OrderStatus.OFFER_ACCEPTED: {
        OrderStatus.ON_DELIVERY: Action.START_DELIVERY,
        OrderStatus.CANCELLED: Action.CANCEL_ORDER,
    },
    OrderStatus.ON_DELIVERY: {
        OrderStatus.COMPLETED: Action.COMPLETE_DELIVERY,
    },
    OrderStatus.COMPLETED: {},
    OrderStatus.CANCELLED: {},
}

# Acceptance needs an offer, so only the offer engine walks that edge
OFFER_ONLY_TRANSITIONS = frozenset({
    (OrderStatus.WAITING_FOR_OFFERS, OrderStatus.OFFER_ACCEPTED),
})

CANCELLABLE_STATUSES = frozenset({
    OrderStatus.WAITING_FOR_OFFERS,
    OrderStatus.OFFER_ACCEPTED,
})

STATUS_TIMESTAMPS = {
    OrderStatus.OFFER_ACCEPTED: "accepted_at",
    OrderStatus.ON_DELIVERY: "picked_up_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

STATUS_MESSAGES = {
    OrderStatus.ON_DELIVERY: "Your deliverer is on the way with order #{order_id}",
    OrderStatus.COMPLETED: "Order #{order_id} has been delivered",
    OrderStatus.CANCELLED: "Order #{order_id} was cancelled by the customer",
}


def allowed_transitions(status: OrderStatus) -> List[OrderStatus]:
    """Targets reachable through update_status from the given status."""
    return [
        target for target in ORDER_TRANSITIONS.get(status, {})
        if (status, target) not in OFFER_ONLY_TRANSITIONS
    ]


class OrderService:
    """Order lifecycle: creation, status advancement and cancellation."""

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def _get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    def _conditional_update(self, order: Order, expected_status: OrderStatus, **values) -> bool:
        """Write values only if the order is still in expected_status.

        Returns False, with the session rolled back, when another writer moved
        the order first.
        """
        values.setdefault("updated_at", datetime.utcnow())
        result = self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            logger.warning(
                f"Lost race on order {order.id}: expected {expected_status.value}, "
                f"wanted {values.get('status')}"
            )
            return False
        return True

    def _commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def create_order(self, requester: User, item_description: str, quantity: int, destination: str) -> Order:
        authorize(requester, Action.CREATE_ORDER)

        item_description = (item_description or "").strip()
        destination = (destination or "").strip()
        if not item_description:
            raise ValidationError("Item description is required", field="item_description")
        if not destination:
            raise ValidationError("Destination is required", field="destination")
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than zero", field="quantity")

        order = Order(
            customer_id=requester.id,
            item_description=item_description,
            quantity=quantity,
            destination=destination,
            status=OrderStatus.WAITING_FOR_OFFERS
        )

        try:
            self.db.add(order)
            self.db.commit()
            self.db.refresh(order)
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Order {order.id} created by customer {requester.id}")
        return order

    def list_available(self, deliverer: User, limit: int = 50, offset: int = 0) -> List[Order]:
        """Orders still open for bids, newest first, without the deliverer's own requests."""
        authorize(deliverer, Action.LIST_AVAILABLE)

        return self.db.query(Order).options(joinedload(Order.customer)).filter(
            Order.status == OrderStatus.WAITING_FOR_OFFERS,
            Order.customer_id != deliverer.id
        ).order_by(desc(Order.created_at), desc(Order.id)).offset(offset).limit(limit).all()

    def get_order(self, order_id: int, user: User) -> Order:
        order = self._get_order(order_id)
        authorize(user, Action.VIEW_ORDER, order)
        return order

    def get_my_orders(self, user: User, status: Optional[OrderStatus] = None) -> List[Order]:
        if user.role == UserRole.CUSTOMER:
            query = self.db.query(Order).filter(Order.customer_id == user.id)
        elif user.role == UserRole.DELIVERER:
            query = self.db.query(Order).filter(Order.deliverer_id == user.id)
        else:
            raise AuthorizationError("Order history is only available to customers and deliverers")

        if status:
            query = query.filter(Order.status == status)

        return query.order_by(desc(Order.created_at), desc(Order.id)).all()

    def get_active_jobs(self, deliverer: User) -> List[Order]:
        authorize(deliverer, Action.LIST_AVAILABLE, message="Only deliverers have delivery jobs")

        return self.db.query(Order).filter(
            Order.deliverer_id == deliverer.id,
            Order.status.in_([OrderStatus.OFFER_ACCEPTED, OrderStatus.ON_DELIVERY])
        ).order_by(desc(Order.accepted_at), desc(Order.id)).all()

    def update_status(self, order_id: int, actor: User, target_status: OrderStatus) -> Order:
        """
        Move an order along its lifecycle.

        Checks run in a fixed order: the order must exist, the edge from the
        current status to the target must be in ORDER_TRANSITIONS, and only then
        is the actor's capability for that edge checked. Re-sending a transition
        that was already applied therefore fails as an invalid transition.
        """
        order = self._get_order(order_id)
        current_status = order.status

        action = ORDER_TRANSITIONS[current_status].get(target_status)
        if action is None or (current_status, target_status) in OFFER_ONLY_TRANSITIONS:
            raise InvalidTransitionError(
                current_status.value,
                target_status.value,
                details={"allowed": [s.value for s in allowed_transitions(current_status)]}
            )

        authorize(actor, action, order)

        if target_status == OrderStatus.CANCELLED:
            if not self._cancel(order, current_status):
                raise InvalidTransitionError(current_status.value, target_status.value)
            return order

        now = datetime.utcnow()
        values = {"status": target_status, "updated_at": now, STATUS_TIMESTAMPS[target_status]: now}
        if not self._conditional_update(order, current_status, **values):
            raise InvalidTransitionError(current_status.value, target_status.value)

        self.db.refresh(order)
        if target_status == OrderStatus.COMPLETED:
            WalletService(self.db).settle_order_earnings(order, commit=False)
        self._commit()

        logger.info(
            f"Order {order.id} moved from {current_status.value} to {target_status.value} by user {actor.id}"
        )

        self.notifications.notify(
            user_id=order.customer_id,
            title="Order status updated",
            message=STATUS_MESSAGES[target_status].format(order_id=order.id),
            notification_type=NotificationType.ORDER,
            related_id=order.id
        )
        return order

    def cancel_order(self, order_id: int, requester: User, reason: Optional[str] = None) -> Order:
        """Cancel an order before pickup. Every refusal is an authorization failure."""
        order = self._get_order(order_id)

        authorize(requester, Action.CANCEL_ORDER, order)
        if order.status not in CANCELLABLE_STATUSES:
            raise AuthorizationError(
                f"Order in status {order.status.value} can no longer be cancelled",
                details={"action": Action.CANCEL_ORDER.value, "order_id": order.id,
                         "current_status": order.status.value}
            )

        if not self._cancel(order, order.status, reason):
            raise AuthorizationError(
                "Order can no longer be cancelled",
                details={"action": Action.CANCEL_ORDER.value, "order_id": order.id}
            )
        return order

    def _cancel(self, order: Order, expected_status: OrderStatus, reason: Optional[str] = None) -> bool:
        previous_deliverer_id = order.deliverer_id
        now = datetime.utcnow()

        # An assignment does not survive cancellation; final_fee stays as history
        if not self._conditional_update(
            order,
            expected_status,
            status=OrderStatus.CANCELLED,
            deliverer_id=None,
            cancel_reason=reason,
            cancelled_at=now,
            updated_at=now
        ):
            return False

        self._commit()
        self.db.refresh(order)

        logger.info(f"Order {order.id} cancelled from {expected_status.value}")

        if previous_deliverer_id is not None:
            self.notifications.notify(
                user_id=previous_deliverer_id,
                title="Job cancelled",
                message=STATUS_MESSAGES[OrderStatus.CANCELLED].format(order_id=order.id)
                + (f": {reason}" if reason else ""),
                notification_type=NotificationType.ORDER,
                related_id=order.id
            )
        return True

