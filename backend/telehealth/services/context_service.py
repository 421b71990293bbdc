"""The provider's active patient and encounter, shared with the rest of the clinical UI."""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.models.clinical_context import ClinicalContext


async def set_clinical_context(
    db: AsyncSession,
    username: str,
    patient_id: Optional[int] = None,
    encounter_id: Optional[int] = None,
) -> ClinicalContext:
    context = await db.get(ClinicalContext, username)
    if context is None:
        context = ClinicalContext(username=username)
        db.add(context)
    if patient_id:
        context.patient_id = patient_id
    if encounter_id:
        context.encounter_id = encounter_id
    await db.flush()
    return context
