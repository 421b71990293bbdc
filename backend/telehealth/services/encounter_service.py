import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.models.appointment import Appointment
from telehealth.models.encounter import Encounter
from telehealth.services.time_window import to_utc

logger = logging.getLogger(__name__)

TELEHEALTH_ENCOUNTER_REASON = "Telehealth Visit - Jitsi"


async def get_or_create_encounter(db: AsyncSession, appointment: Appointment) -> Optional[int]:
    """Reuse the patient's encounter on the appointment date, or open a telehealth encounter."""
    starts_at = to_utc(appointment.starts_at)
    if starts_at is None or not appointment.patient_id:
        return None
    visit_date = starts_at.date()

    result = await db.execute(
        select(Encounter.id)
        .where(Encounter.patient_id == appointment.patient_id, Encounter.encounter_date == visit_date)
        .order_by(Encounter.id)
        .limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    encounter = Encounter(
        patient_id=appointment.patient_id,
        provider_id=appointment.provider_id,
        encounter_date=visit_date,
        reason=TELEHEALTH_ENCOUNTER_REASON,
        facility_id=appointment.facility_id,
        billing_facility_id=appointment.billing_facility_id,
        category_id=appointment.category_id,
        sensitivity="normal",
    )
    db.add(encounter)
    await db.flush()
    logger.info("Created encounter %s for appointment %s", encounter.id, appointment.id)
    return encounter.id
