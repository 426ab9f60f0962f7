from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from deliverydesk.models.delivery import ProofOfDelivery, PodPhoto, DeliveryFailure


async def create_pod(db: AsyncSession, **fields):
    pod = ProofOfDelivery(**fields)
    db.add(pod)
    await db.commit()
    return pod


async def create_pod_photo(db: AsyncSession, **fields):
    photo = PodPhoto(**fields)
    db.add(photo)
    await db.commit()
    return photo


async def get_pod_by_order(db: AsyncSession, order_id: str):
    # order_id is unique, older data may still hold duplicates: take the first
    result = await db.execute(
        select(ProofOfDelivery)
        .where(ProofOfDelivery.order_id == order_id)
        .order_by(ProofOfDelivery.created_at)
    )
    return result.scalars().first()


async def get_pod_photos(db: AsyncSession, pod_id: str):
    result = await db.execute(
        select(PodPhoto)
        .where(PodPhoto.pod_id == pod_id)
        .order_by(PodPhoto.created_at.asc(), PodPhoto.position.asc())
    )
    return result.scalars().all()


async def create_failure(db: AsyncSession, **fields):
    failure = DeliveryFailure(**fields)
    db.add(failure)
    await db.commit()
    return failure


async def get_failure_by_order(db: AsyncSession, order_id: str):
    result = await db.execute(
        select(DeliveryFailure)
        .where(DeliveryFailure.order_id == order_id)
        .order_by(DeliveryFailure.created_at)
    )
    return result.scalars().first()
