from datetime import datetime
from typing import Optional, Dict
from pydantic import BaseModel, Field

# Rating Schemas
class RatingCreate(BaseModel):
    score: int = Field(..., ge=1, le=5, description="Rating from 1 to 5 stars")
    comment: Optional[str] = Field(None, max_length=1000, description="Optional comment")

class RatingResponse(BaseModel):
    id: int
    order_id: int
    customer_id: int
    deliverer_id: int
    score: int
    comment: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class RatingWithCustomer(RatingResponse):
    customer_name: Optional[str] = None

# Deliverer rating statistics
class DelivererRatingSummary(BaseModel):
    average_rating: float
    total_ratings: int
    distribution: Optional[Dict[int, int]] = None

class OrderRatingCheck(BaseModel):
    is_rated: bool
    rating: Optional[RatingResponse] = None
