from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from telehealth.database import Base


class ClinicalContext(Base):
    """The patient and encounter a staff member currently has open."""
    __tablename__ = "clinical_contexts"

    username = Column(String(100), primary_key=True)
    patient_id = Column(Integer)
    encounter_id = Column(Integer)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
