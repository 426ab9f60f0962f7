from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from deliverydesk.models.notification import Notification
from deliverydesk.models.user import User


async def create_notification(db: AsyncSession, user_id: str, title: str, message: str, type: str = "info"):
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        read=False,
    )
    db.add(notification)
    await db.commit()
    return notification


async def get_notifications(db: AsyncSession, user_id: str):
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
    )
    return result.scalars().all()


async def get_user_name(db: AsyncSession, user_id: str) -> str:
    user = await db.get(User, user_id)
    if not user or not (user.name or "").strip():
        return "Driver"
    return user.name.strip()
