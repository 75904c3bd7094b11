import os

# Must be set before payment_service.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-long-enough-for-hs256-signatures"

import pytest
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payment_service.database import Base
from payment_service.models import User, Product, Payment, ADMIN_ROLE
from payment_service.schemas import PaymentInitiate, LineItem
from payment_service.security import Principal
from payment_service import service

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session

@pytest.fixture
async def customer(db_session):
    user = User(email="customer@example.com", full_name="Jane Customer")
    db_session.add(user)
    await db_session.commit()
    return user

@pytest.fixture
async def other_customer(db_session):
    user = User(email="other@example.com", full_name="Other Customer")
    db_session.add(user)
    await db_session.commit()
    return user

@pytest.fixture
async def admin(db_session):
    user = User(email="admin@example.com", full_name="Shop Admin", role=ADMIN_ROLE)
    db_session.add(user)
    await db_session.commit()
    return user

@pytest.fixture
def customer_principal(customer):
    return Principal(user_id=customer.id)

@pytest.fixture
def admin_principal(admin):
    return Principal(user_id=admin.id, is_admin=True)

@pytest.fixture
def add_product(db_session):
    async def _add_product(product_id: int, stock: int, price: str = "50.00"):
        product = Product(id=product_id, name=f"Product {product_id}", price=Decimal(price), stock=stock)
        db_session.add(product)
        await db_session.commit()
        return product
    return _add_product

@pytest.fixture
def initiate(db_session, customer_principal):
    """Initiate a payment; defaults to 100.00 for two units of product 7."""
    async def _initiate(items=None, total_amount="100.00", principal=None):
        if items is None:
            items = [LineItem(product_id=7, quantity=2, unit_price=Decimal("50.00"))]
        request = PaymentInitiate(
            total_amount=Decimal(total_amount),
            payment_method="CREDIT_CARD",
            items=items,
        )
        return await service.initiate_payment(db_session, principal or customer_principal, request)
    return _initiate

@pytest.fixture
def stock_of(db_session):
    async def _stock_of(product_id):
        return await db_session.scalar(select(Product.stock).where(Product.id == product_id))
    return _stock_of

@pytest.fixture
def status_of(db_session):
    async def _status_of(payment_id):
        return await db_session.scalar(select(Payment.status).where(Payment.id == payment_id))
    return _status_of
