from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.orm import relationship
from database.base import Base
import enum

class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    DELIVERER = "DELIVERER"
    MERCHANT = "MERCHANT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    OPERATIONS_STAFF = "OPERATIONS_STAFF"
    FINANCE_STAFF = "FINANCE_STAFF"
    CUSTOMER_SERVICE = "CUSTOMER_SERVICE"

ADMIN_ROLES = frozenset({
    UserRole.ADMIN,
    UserRole.SUPER_ADMIN,
    UserRole.OPERATIONS_STAFF,
    UserRole.FINANCE_STAFF,
    UserRole.CUSTOMER_SERVICE,
})

PUBLIC_REGISTRATION_ROLES = frozenset({
    UserRole.CUSTOMER,
    UserRole.DELIVERER,
    UserRole.MERCHANT,
})

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(Enum(UserRole), nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    orders_as_customer = relationship("Order", back_populates="customer", foreign_keys="Order.customer_id")
    orders_as_deliverer = relationship("Order", back_populates="deliverer", foreign_keys="Order.deliverer_id")
    offers = relationship("Offer", back_populates="deliverer")
    wallet = relationship("Wallet", uselist=False, back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
