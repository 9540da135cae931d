import logging

from sqlalchemy.ext.asyncio import AsyncSession

from order_api.models.profile import CustomerProfile
from shared import schemas

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, principal: str) -> schemas.CustomerProfile | None:
    profile = await db.get(CustomerProfile, principal)
    if profile is None:
        return None
    return schemas.CustomerProfile(name=profile.name, phone=profile.phone)


async def save_profile(db: AsyncSession, principal: str, data: schemas.CustomerProfile) -> None:
    profile = await db.get(CustomerProfile, principal)
    if profile is None:
        db.add(CustomerProfile(principal=principal, name=data.name, phone=data.phone))
    else:
        profile.name = data.name
        profile.phone = data.phone
    await db.commit()
    logger.info("Profile saved", extra={"principal": principal, "is_new": profile is None})
