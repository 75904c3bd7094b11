from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from payment_service.models import Product

async def decrement_stock_if_available(db: AsyncSession, product_id: int, quantity: int) -> int:
    """
    Atomically take ``quantity`` units of a product.

    Compare and decrement happen in a single UPDATE, so concurrent buyers
    can never drive the counter below zero. Returns the number of rows
    affected: 1 on success, 0 if the product is missing or short on stock.
    Runs inside the caller's transaction; nothing is committed here.
    """
    result = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
