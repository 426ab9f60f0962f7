from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update
from sqlalchemy.orm import selectinload
from deliverydesk.models.order import Order
from deliverydesk.models.delivery import OrderUpdate
from typing import Optional


async def get_order(db: AsyncSession, order_id: str, driver_id: Optional[str] = None):
    query = select(Order).where(Order.id == order_id)
    if driver_id is not None:
        query = query.where(Order.driver_id == driver_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_order_for_driver(db: AsyncSession, order_id: str, driver_id: str):
    """Order with its store connection, scoped to the assigned driver"""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id, Order.driver_id == driver_id)
        .options(selectinload(Order.shopify_connection))
    )
    return result.scalar_one_or_none()


async def update_order(db: AsyncSession, order_id: str, updates: dict):
    stmt = (
        update(Order)
        .where(Order.id == order_id)
        .values(**updates)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(stmt)
    await db.commit()


async def add_order_update(db: AsyncSession, **fields):
    entry = OrderUpdate(**fields)
    db.add(entry)
    await db.commit()
    return entry


async def get_recent_order_updates(db: AsyncSession, order_id: str, limit: int = 5):
    result = await db.execute(
        select(OrderUpdate)
        .where(OrderUpdate.order_id == order_id)
        .order_by(OrderUpdate.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()
