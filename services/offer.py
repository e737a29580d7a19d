from typing import List, Optional, Tuple
from datetime import datetime
import logging

from sqlalchemy import update, select, asc
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.exceptions import (
    ValidationError, AuthorizationError, ResourceNotFoundError, InvalidStateError, ConflictError
)
from core.permissions import Action, authorize
from models.notification import NotificationType
from models.offer import Offer, OfferStatus
from models.order import Order, OrderStatus
from models.rating import Rating
from models.user import User
from services.notification import NotificationService
from services.wallet import format_rupiah

logger = logging.getLogger(__name__)


def _validate_fee(fee) -> None:
    if fee is None or fee <= 0:
        raise ValidationError("Offer fee must be a positive amount", field="fee")


class OfferService:
    """
    Bidding on open orders.

    Many deliverers may bid on one order but at most one offer per order is ever
    accepted. Acceptance relies on a conditional write on the order row
    (status must still be WAITING_FOR_OFFERS) so two customers' sessions, or two
    requests from the same customer, cannot both assign the order.
    """

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def _get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise ResourceNotFoundError("Order", order_id)
        return order

    def _load_offer_and_order(self, offer_id: int) -> Tuple[Offer, Order]:
        offer = self.db.query(Offer).filter(Offer.id == offer_id).first()
        if not offer:
            raise ResourceNotFoundError("Offer", offer_id)
        return offer, self._get_order(offer.order_id)

    def _find_existing_offer(self, order_id: int, deliverer_id: int) -> Optional[Offer]:
        return self.db.query(Offer).filter(
            Offer.order_id == order_id,
            Offer.deliverer_id == deliverer_id
        ).first()

    def _duplicate_offer_error(self, offer: Offer) -> ConflictError:
        return ConflictError(
            "You already have an offer on this order; revise it instead",
            details={"existing_offer_id": offer.id, "order_id": offer.order_id}
        )

    def create_offer(self, order_id: int, deliverer: User, fee: int) -> Offer:
        authorize(deliverer, Action.SUBMIT_OFFER)
        _validate_fee(fee)

        order = self._get_order(order_id)
        if order.customer_id == deliverer.id:
            raise ValidationError("You cannot bid on your own order", field="order_id")

        if order.status != OrderStatus.WAITING_FOR_OFFERS:
            raise InvalidStateError(
                "Order is no longer accepting offers",
                details={"order_id": order.id, "current_status": order.status.value}
            )

        existing = self._find_existing_offer(order.id, deliverer.id)
        if existing:
            raise self._duplicate_offer_error(existing)

        offer = Offer(
            order_id=order.id,
            deliverer_id=deliverer.id,
            fee=fee,
            status=OfferStatus.PENDING
        )

        try:
            self.db.add(offer)
            self.db.commit()
            self.db.refresh(offer)
        except IntegrityError:
            # A concurrent submission from the same deliverer got in first
            self.db.rollback()
            existing = self._find_existing_offer(order.id, deliverer.id)
            if existing:
                raise self._duplicate_offer_error(existing)
            raise

        logger.info(f"Offer {offer.id} of {fee} submitted on order {order.id} by deliverer {deliverer.id}")

        self.notifications.notify(
            user_id=order.customer_id,
            title="New offer",
            message=f"{deliverer.full_name} offered {format_rupiah(fee)} for order #{order.id}",
            notification_type=NotificationType.OFFER,
            related_id=order.id
        )
        return offer

    def update_offer(self, offer_id: int, deliverer: User, fee: int) -> Offer:
        """Revise the fee of a pending offer while its order is still open."""
        _validate_fee(fee)

        offer, order = self._load_offer_and_order(offer_id)
        if offer.deliverer_id != deliverer.id:
            raise AuthorizationError(
                "You can only revise your own offers",
                details={"action": Action.SUBMIT_OFFER.value, "order_id": order.id}
            )

        if offer.status != OfferStatus.PENDING or order.status != OrderStatus.WAITING_FOR_OFFERS:
            raise InvalidStateError(
                "Offer can no longer be revised",
                details={"order_id": order.id, "current_status": order.status.value}
            )

        order_still_open = select(Order.id).where(
            Order.id == Offer.order_id,
            Order.status == OrderStatus.WAITING_FOR_OFFERS
        ).exists()

        try:
            result = self.db.execute(
                update(Offer)
                .where(Offer.id == offer.id, Offer.status == OfferStatus.PENDING, order_still_open)
                .values(fee=fee, updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(f"Offer {offer.id} revision lost to a concurrent acceptance or cancellation")
                raise InvalidStateError("Offer can no longer be revised", details={"order_id": order.id})
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(offer)
        logger.info(f"Offer {offer.id} revised to {fee} by deliverer {deliverer.id}")
        return offer

    def list_offers(self, order_id: int, requester: User) -> List[Tuple[Offer, Optional[float]]]:
        """
        Offers on an order, cheapest first.

        Equal fees are ordered by submission time and then by id. Each offer
        comes with the deliverer's average rating, or None if they have no
        ratings yet.
        """
        order = self._get_order(order_id)
        authorize(requester, Action.VIEW_OFFERS, order)

        offers = self.db.query(Offer).options(joinedload(Offer.deliverer)).filter(
            Offer.order_id == order.id
        ).order_by(asc(Offer.fee), asc(Offer.created_at), asc(Offer.id)).all()

        results = []
        ratings = {}
        for offer in offers:
            if offer.deliverer_id not in ratings:
                summary = Rating.get_deliverer_average_rating(self.db, offer.deliverer_id)
                ratings[offer.deliverer_id] = summary['average_rating'] if summary['total_ratings'] else None
            results.append((offer, ratings[offer.deliverer_id]))
        return results

    def accept_offer(self, offer_id: int, requester: User) -> Tuple[Order, Offer]:
        offer, order = self._load_offer_and_order(offer_id)

        # Ownership is checked before any state so non-owners always get 403
        authorize(requester, Action.ACCEPT_OFFER, order)

        if order.status != OrderStatus.WAITING_FOR_OFFERS:
            raise InvalidStateError(
                "Order is no longer waiting for offers",
                details={"order_id": order.id, "current_status": order.status.value}
            )

        now = datetime.utcnow()
        try:
            result = self.db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == OrderStatus.WAITING_FOR_OFFERS)
                .values(
                    status=OrderStatus.OFFER_ACCEPTED,
                    deliverer_id=offer.deliverer_id,
                    final_fee=offer.fee,
                    accepted_at=now,
                    updated_at=now
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(f"Acceptance of offer {offer_id} lost the race for order {order.id}")
                raise InvalidStateError(
                    "Order was assigned or cancelled by another request",
                    details={"order_id": order.id}
                )

            result = self.db.execute(
                update(Offer)
                .where(Offer.id == offer.id, Offer.status == OfferStatus.PENDING)
                .values(status=OfferStatus.ACCEPTED, accepted_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise InvalidStateError("Offer is no longer pending", details={"offer_id": offer.id})

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(order)
        self.db.refresh(offer)
        logger.info(
            f"Offer {offer.id} accepted: order {order.id} assigned to deliverer "
            f"{order.deliverer_id} for {order.final_fee}"
        )

        self.notifications.notify(
            user_id=offer.deliverer_id,
            title="Offer accepted",
            message=f"Your offer of {format_rupiah(offer.fee)} for order #{order.id} was accepted",
            notification_type=NotificationType.OFFER,
            related_id=order.id
        )
        return order, offer
