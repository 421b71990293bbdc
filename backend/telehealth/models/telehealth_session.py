from sqlalchemy import Column, Integer, String, DateTime
from telehealth.database import Base
from telehealth.services.time_window import utc_now


class TelehealthSession(Base):
    __tablename__ = "telehealth_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    patient_id = Column(Integer, nullable=False)
    encounter_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    provider_start_time = Column(DateTime(timezone=True))
    patient_start_time = Column(DateTime(timezone=True))
    provider_last_update = Column(DateTime(timezone=True))
    patient_last_update = Column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<TelehealthSession appointment={self.appointment_id} user={self.user_id} patient={self.patient_id}>"
