from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from telehealth.database import Base


class Encounter(Base):
    __tablename__ = "encounters"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"))
    encounter_date = Column(Date, nullable=False)
    reason = Column(String(500))
    facility_id = Column(Integer)
    billing_facility_id = Column(Integer)
    category_id = Column(Integer)
    sensitivity = Column(String(30), default="normal")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
