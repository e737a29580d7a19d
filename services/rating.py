from typing import List, Tuple
import logging

from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc

from core.exceptions import ResourceNotFoundError, InvalidStateError, ConflictError
from core.permissions import Action, authorize
from models.notification import NotificationType
from models.order import Order, OrderStatus
from models.rating import Rating
from models.user import User, UserRole
from schemas.rating import RatingCreate, RatingWithCustomer, DelivererRatingSummary, OrderRatingCheck, RatingResponse
from services.notification import NotificationService

logger = logging.getLogger(__name__)

class RatingService:

    @staticmethod
    def create_rating(
        db: Session,
        order_id: int,
        customer: User,
        rating_data: RatingCreate
    ) -> Rating:
        """Rate the deliverer of a completed order, once per order"""

        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise ResourceNotFoundError("Order", order_id)

        authorize(customer, Action.RATE_ORDER, order)

        if order.status != OrderStatus.COMPLETED:
            raise InvalidStateError(
                "Only completed orders can be rated",
                details={"order_id": order.id, "current_status": order.status.value}
            )

        existing_rating = db.query(Rating).filter(Rating.order_id == order_id).first()
        if existing_rating:
            raise ConflictError(
                "This order has already been rated",
                details={"rating_id": existing_rating.id}
            )

        rating = Rating(
            order_id=order.id,
            customer_id=customer.id,
            deliverer_id=order.deliverer_id,
            score=rating_data.score,
            comment=rating_data.comment
        )

        try:
            db.add(rating)
            db.commit()
            db.refresh(rating)
        except IntegrityError:
            db.rollback()
            raise ConflictError("This order has already been rated")

        logger.info(f"Order {order.id} rated {rating.score} by customer {customer.id}")

        NotificationService(db).notify(
            user_id=order.deliverer_id,
            title="New rating",
            message=f"You received {rating.score} stars for order #{order.id}",
            notification_type=NotificationType.ORDER,
            related_id=order.id
        )
        return rating

    @staticmethod
    def check_order_rating(db: Session, order_id: int, user: User) -> OrderRatingCheck:
        """Whether an order has been rated, visible to its participants"""

        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise ResourceNotFoundError("Order", order_id)

        authorize(user, Action.VIEW_ORDER, order)

        rating = db.query(Rating).filter(Rating.order_id == order_id).first()
        return OrderRatingCheck(
            is_rated=rating is not None,
            rating=RatingResponse.from_orm(rating) if rating else None
        )

    @staticmethod
    def get_deliverer_ratings(
        db: Session,
        deliverer_id: int,
        page: int = 1,
        page_size: int = 10
    ) -> Tuple[List[RatingWithCustomer], int]:
        """Get paginated ratings received by a deliverer, newest first"""

        deliverer = db.query(User).filter(
            User.id == deliverer_id,
            User.role == UserRole.DELIVERER
        ).first()
        if not deliverer:
            raise ResourceNotFoundError("Deliverer", deliverer_id)

        query = db.query(Rating).options(
            joinedload(Rating.customer)
        ).filter(Rating.deliverer_id == deliverer_id)

        total = query.count()
        offset = (page - 1) * page_size
        ratings = query.order_by(desc(Rating.created_at), desc(Rating.id)).offset(offset).limit(page_size).all()

        return [RatingService._with_customer(rating) for rating in ratings], total

    @staticmethod
    def get_deliverer_summary(db: Session, deliverer_id: int) -> DelivererRatingSummary:
        rating_data = Rating.get_deliverer_average_rating(db, deliverer_id)
        distribution = Rating.get_score_distribution(db, deliverer_id)

        return DelivererRatingSummary(
            average_rating=rating_data['average_rating'],
            total_ratings=rating_data['total_ratings'],
            distribution=distribution
        )

    @staticmethod
    def get_my_ratings(db: Session, user: User) -> List[RatingWithCustomer]:
        """Ratings a customer has given, or a deliverer has received"""

        query = db.query(Rating).options(joinedload(Rating.customer))
        if user.role == UserRole.DELIVERER:
            query = query.filter(Rating.deliverer_id == user.id)
        else:
            query = query.filter(Rating.customer_id == user.id)

        ratings = query.order_by(desc(Rating.created_at), desc(Rating.id)).all()
        return [RatingService._with_customer(rating) for rating in ratings]

    @staticmethod
    def _with_customer(rating: Rating) -> RatingWithCustomer:
        return RatingWithCustomer(
            id=rating.id,
            order_id=rating.order_id,
            customer_id=rating.customer_id,
            deliverer_id=rating.deliverer_id,
            score=rating.score,
            comment=rating.comment,
            created_at=rating.created_at,
            customer_name=rating.customer.full_name if rating.customer else None
        )
