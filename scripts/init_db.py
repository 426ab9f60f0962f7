# scripts/init_db.py
import asyncio
from deliverydesk.db import engine
# This line will now import all models and make them visible to Base
from deliverydesk.models.base import Base  # Triggers model discovery via __init__.py
# ⬇️ Force import of all models here
from deliverydesk.models import user, order, notification, shopify_connection, delivery  # noqa: F401


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✅ All missing tables created.")

if __name__ == "__main__":
    asyncio.run(create_tables())
