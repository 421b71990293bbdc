from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.models.appointment import Appointment, AppointmentCategory

TELEHEALTH_CATEGORY_CONSTANT_IDS = (
    "telehealth_new_patient",
    "telehealth_established_patient",
)


async def get_telehealth_categories(db: AsyncSession) -> dict:
    """Telehealth appointment categories keyed by category id."""
    result = await db.execute(
        select(AppointmentCategory).where(
            AppointmentCategory.constant_id.in_(TELEHEALTH_CATEGORY_CONSTANT_IDS)
        )
    )
    return {c.id: c for c in result.scalars().all()}


async def is_telehealth_appointment(db: AsyncSession, appointment: Optional[Appointment]) -> bool:
    if appointment is None or appointment.category_id is None:
        return False
    categories = await get_telehealth_categories(db)
    return appointment.category_id in categories
