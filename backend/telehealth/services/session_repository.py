import logging
from datetime import datetime
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.exceptions import InvalidRole
from telehealth.models.telehealth_session import TelehealthSession
from telehealth.services.time_window import utc_now

logger = logging.getLogger(__name__)

ROLE_PROVIDER = "provider"
ROLE_PATIENT = "patient"

_START_COLUMNS = {
    ROLE_PROVIDER: TelehealthSession.provider_start_time,
    ROLE_PATIENT: TelehealthSession.patient_start_time,
}
_LAST_UPDATE_COLUMNS = {
    ROLE_PROVIDER: TelehealthSession.provider_last_update,
    ROLE_PATIENT: TelehealthSession.patient_last_update,
}
_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SessionRepository:
    """Telehealth session records, one per appointment."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_appointment(self, appointment_id: str, user_id: Optional[int] = None) -> Optional[TelehealthSession]:
        query = select(TelehealthSession).where(TelehealthSession.appointment_id == appointment_id)
        if user_id:
            query = query.where(TelehealthSession.user_id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        appointment_id: str,
        provider_id: Optional[int] = None,
        encounter_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ) -> Optional[TelehealthSession]:
        """
        Return the appointment's session, creating it only when both the provider
        and the patient are known. A bare lookup never creates a row.
        """
        session = await self.get_by_appointment(appointment_id)
        if session is not None:
            return session

        if not provider_id or not patient_id:
            return None

        logger.debug(
            "Creating telehealth session appointment=%s user=%s encounter=%s patient=%s",
            appointment_id, provider_id, encounter_id, patient_id,
        )
        await self._insert_if_absent(
            {
                "appointment_id": appointment_id,
                "user_id": provider_id,
                "patient_id": patient_id,
                "encounter_id": encounter_id,
                "created_at": utc_now(),
            }
        )
        return await self.get_by_appointment(appointment_id)

    async def _insert_if_absent(self, values: dict) -> None:
        # Both roles may race to create the same session; the unique key decides.
        connection = await self.db.connection()
        insert = _UPSERT_DIALECTS.get(connection.dialect.name)
        if insert is not None:
            stmt = insert(TelehealthSession).values(**values).on_conflict_do_nothing(
                index_elements=["appointment_id"]
            )
            await self.db.execute(stmt)
            return

        try:
            async with self.db.begin_nested():
                self.db.add(TelehealthSession(**values))
        except IntegrityError:
            logger.debug("Telehealth session for appointment %s already exists", values["appointment_id"])

    async def mark_started(self, appointment_id: str, role: str, at: Optional[datetime] = None) -> bool:
        return await self._stamp(_START_COLUMNS, appointment_id, role, at)

    async def mark_heartbeat(self, appointment_id: str, role: str, at: Optional[datetime] = None) -> bool:
        return await self._stamp(_LAST_UPDATE_COLUMNS, appointment_id, role, at)

    async def set_encounter(self, appointment_id: str, encounter_id: int) -> bool:
        result = await self.db.execute(
            update(TelehealthSession)
            .where(TelehealthSession.appointment_id == appointment_id)
            .values(encounter_id=encounter_id)
        )
        return result.rowcount > 0

    async def _stamp(self, columns: dict, appointment_id: str, role: str, at: Optional[datetime]) -> bool:
        column = columns.get(role)
        if column is None:
            raise InvalidRole(role)
        result = await self.db.execute(
            update(TelehealthSession)
            .where(TelehealthSession.appointment_id == appointment_id)
            .values({column: at or utc_now()})
        )
        if result.rowcount == 0:
            logger.debug("No telehealth session to stamp for appointment %s (%s)", appointment_id, role)
        return result.rowcount > 0
