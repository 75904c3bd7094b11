import asyncio
from decimal import Decimal
from sqlalchemy import select
from payment_service.database import get_session, init_db
from payment_service.models import User, Product, ADMIN_ROLE
from payment_service.security import issue_user_token

async def seed():
    await init_db()
    async for session in get_session():
        # Check if data is already seeded
        existing = await session.execute(select(User).where(User.email == "admin@example.com"))
        if existing.scalar_one_or_none():
            print("Database already seeded.")
            return

        admin = User(email="admin@example.com", full_name="Shop Admin", role=ADMIN_ROLE)
        customer = User(email="customer@example.com", full_name="Demo Customer")
        products = [
            Product(name="Mechanical Keyboard", price=Decimal("50.00"), stock=10),
            Product(name="Gaming Mouse", price=Decimal("25.00"), stock=5),
            Product(name="Headset", price=Decimal("80.00"), stock=0), # For testing insufficient stock
        ]
        session.add_all([admin, customer, *products])
        await session.commit()

        print("Database seeded successfully.")
        print(f"Admin token:    {issue_user_token(admin.id)}")
        print(f"Customer token: {issue_user_token(customer.id)}")

if __name__ == "__main__":
    asyncio.run(seed())
