"""Staff and patient lookups used to build participant identities."""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.models.patient import Patient
from telehealth.models.user import User


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    if not username:
        return None
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_patient(db: AsyncSession, patient_id: int) -> Optional[Patient]:
    if patient_id is None:
        return None
    return await db.get(Patient, patient_id)
