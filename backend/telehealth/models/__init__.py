from telehealth.models.patient import Patient
from telehealth.models.user import User
from telehealth.models.appointment import Appointment, AppointmentCategory
from telehealth.models.encounter import Encounter
from telehealth.models.clinical_context import ClinicalContext
from telehealth.models.telehealth_session import TelehealthSession

__all__ = ["Patient", "User", "Appointment", "AppointmentCategory", "Encounter",
           "ClinicalContext", "TelehealthSession"]
