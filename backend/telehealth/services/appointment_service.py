from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.models.appointment import Appointment, APPOINTMENT_STATUSES
from telehealth.exceptions import InvalidRequest


async def get_appointment(db: AsyncSession, appointment_id: str) -> Optional[Appointment]:
    result = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
    return result.scalar_one_or_none()


async def update_appointment_status(db: AsyncSession, appointment_id: str, status: str) -> bool:
    if status not in APPOINTMENT_STATUSES:
        raise InvalidRequest(f"Unknown appointment status: {status}")
    result = await db.execute(
        update(Appointment).where(Appointment.id == appointment_id).values(status=status)
    )
    return result.rowcount > 0
