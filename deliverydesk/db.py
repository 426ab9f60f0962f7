from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
import logging

from deliverydesk.core.config import settings
from deliverydesk.models.base import Base

log = logging.getLogger(__name__)

if not settings.database_url:
    raise ValueError("❌ DATABASE_URL is not set!")

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_pre_ping=True,
)

# One factory for request sessions and for the side-effect sessions the
# reconciler opens per notification
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session() as session:
        yield session


def get_session_factory():
    return async_session


async def create_db_and_tables():
    import deliverydesk.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("tables ensured on %s", engine.url.render_as_string(hide_password=True))
