from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from routers.auth import get_current_user
from models.user import User
from services.rating import RatingService
from schemas.rating import RatingCreate, RatingResponse
from core.response import success_response, paginated_meta

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ratings", tags=["Ratings"])

# Public endpoints
@router.get("/deliverer/{deliverer_id}")
def get_deliverer_ratings(
    deliverer_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    """Get paginated ratings for a deliverer along with their summary"""
    ratings, total = RatingService.get_deliverer_ratings(db, deliverer_id, page=page, page_size=page_size)
    summary = RatingService.get_deliverer_summary(db, deliverer_id)

    meta = paginated_meta(page, page_size, total)
    meta["summary"] = summary.dict()
    return success_response(data=ratings, meta=meta)

# Authenticated endpoints
@router.get("/my")
def get_my_ratings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ratings = RatingService.get_my_ratings(db, current_user)
    return success_response(data=ratings, message=f"Found {len(ratings)} ratings")

@router.post("/order/{order_id}", status_code=status.HTTP_201_CREATED)
def rate_order(
    order_id: int,
    rating_data: RatingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Rate the deliverer of one of your completed orders"""
    rating = RatingService.create_rating(db, order_id, current_user, rating_data)
    return success_response(data=RatingResponse.from_orm(rating), message="Thank you for your rating")

@router.get("/order/{order_id}/check")
def check_order_rating(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return success_response(data=RatingService.check_order_rating(db, order_id, current_user))
