from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from leadcrm.core.config import settings
from leadcrm.core.security import hash_pin, is_valid_phone
from leadcrm.models.user import User, UserRole, StaffType

logger = logging.getLogger(__name__)


async def create_superuser(db: AsyncSession):
    """Bootstrap super admin from SUPERUSER_* settings; no-op when one exists."""
    result = await db.execute(select(User).where(User.role == UserRole.SUPER_ADMIN.value).limit(1))
    existing = result.scalar_one_or_none()
    if existing:
        logger.info("Super admin already exists")
        return existing

    phone = settings.SUPERUSER_PHONE
    if not phone:
        logger.warning("SUPERUSER_PHONE not set, skipping super admin bootstrap")
        return None
    if not is_valid_phone(phone):
        logger.error("SUPERUSER_PHONE is not a 10-digit phone number, skipping super admin bootstrap")
        return None

    superuser = User(
        organization_id=None,
        phone=phone,
        name=settings.SUPERUSER_NAME,
        role=UserRole.SUPER_ADMIN.value,
        staff_type=StaffType.MANAGER.value,
        pin_hash=hash_pin(settings.SUPERUSER_PIN) if settings.SUPERUSER_PIN else None,
        is_active=True,
    )
    db.add(superuser)
    await db.flush()
    await db.refresh(superuser)

    logger.info(f"Super admin created (id={superuser.id})")
    return superuser


async def init_database_data(db: AsyncSession):
    try:
        await create_superuser(db)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Initial data setup failed: {e}")
        raise
