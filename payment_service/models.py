from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, Enum, ForeignKey, CheckConstraint
from datetime import datetime
import enum

from payment_service.database import Base

class PaymentStatus(enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"

ADMIN_ROLE = "ADMIN"

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(100), unique=True, nullable=False)
    full_name = Column(String(100))
    role = Column(String(20), default="USER", nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    user_email = Column(String(100), nullable=False)
    user_name = Column(String(100))

    items = Column(Text, nullable=False) # JSON line-item snapshot, written once at initiation

    total_amount = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)

    payment_method = Column(String(50), nullable=False)
    card_last_four = Column(String(4))
    card_type = Column(String(50))
    transaction_id = Column(String(100), unique=True)
    payment_token = Column(String(1000), unique=True)

    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    status_message = Column(String(500))

    shipping_address = Column(String(200))
    shipping_city = Column(String(100))
    shipping_country = Column(String(100))
    shipping_postal_code = Column(String(20))
    shipping_phone = Column(String(20))
    notes = Column(String(1000))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime)
    refunded_at = Column(DateTime)
