from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from telehealth.database import Base


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    email = Column(String(200))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
