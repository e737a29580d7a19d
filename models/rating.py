from datetime import datetime
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship, Session
from database.base import Base

class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        CheckConstraint("score >= 1 AND score <= 5", name="ck_rating_score_range"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    deliverer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    score = Column(Integer, nullable=False)  # 1-5 stars
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    order = relationship("Order", back_populates="rating")
    customer = relationship("User", foreign_keys=[customer_id])
    deliverer = relationship("User", foreign_keys=[deliverer_id])

    def __repr__(self):
        return f"<Rating(id={self.id}, order_id={self.order_id}, deliverer_id={self.deliverer_id}, score={self.score})>"

    @classmethod
    def get_deliverer_average_rating(cls, db: Session, deliverer_id: int):
        """Calculate average rating for a deliverer"""
        result = db.query(
            func.avg(cls.score).label('average'),
            func.count(cls.id).label('total_ratings')
        ).filter(
            cls.deliverer_id == deliverer_id
        ).first()

        return {
            'average_rating': round(float(result.average), 1) if result.average else 0.0,
            'total_ratings': result.total_ratings or 0
        }

    @classmethod
    def get_score_distribution(cls, db: Session, deliverer_id: int):
        """Get score distribution (how many 1-star, 2-star, etc.)"""
        result = db.query(
            cls.score,
            func.count(cls.id).label('count')
        ).filter(
            cls.deliverer_id == deliverer_id
        ).group_by(cls.score).all()

        distribution = {i: 0 for i in range(1, 6)}
        for score, count in result:
            distribution[score] = count

        return distribution
