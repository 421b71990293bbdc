from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from telehealth.database import Base

# Appointment status codes used by the scheduling calendar.
STATUS_NONE = "-"
STATUS_ARRIVED = "@"
STATUS_IN_EXAM_ROOM = "<"
STATUS_CHECKED_OUT = ">"
STATUS_PENDING = "^"

APPOINTMENT_STATUSES = {
    "-": "None",
    "*": "Reminder done",
    "+": "Chart pulled",
    "x": "Canceled",
    "?": "No show",
    "@": "Arrived",
    "~": "Arrived late",
    "!": "Left w/o visit",
    "#": "Ins/fin issue",
    "<": "In exam room",
    ">": "Checked out",
    "$": "Coding done",
    "%": "Canceled < 24h",
    "^": "Pending",
}


class AppointmentCategory(Base):
    __tablename__ = "appointment_categories"

    id = Column(Integer, primary_key=True, index=True)
    constant_id = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(64), primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    category_id = Column(Integer, ForeignKey("appointment_categories.id"), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(4), nullable=False, default=STATUS_NONE)
    facility_id = Column(Integer)
    billing_facility_id = Column(Integer)
    title = Column(String(200))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def is_checked_out(self) -> bool:
        return self.status == STATUS_CHECKED_OUT

    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING
