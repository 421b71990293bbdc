from pydantic import BaseModel, Field, field_validator
from typing import Optional


class ActionRequest(BaseModel):
    appointment_id: str = Field(..., min_length=1)

    model_config = {"extra": "ignore"}

    @field_validator("appointment_id", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class LaunchDataRequest(ActionRequest):
    pass


class SetStatusRequest(ActionRequest):
    status: str = Field(..., min_length=1)
    csrf_token: Optional[str] = None


class SetEncounterRequest(ActionRequest):
    pass


class HeartbeatRequest(ActionRequest):
    pass


class ReadyCheckRequest(ActionRequest):
    pass


class SettingsRequest(BaseModel):
    model_config = {"extra": "ignore"}


class LaunchConfig(BaseModel):
    """Room configuration handed to the conferencing widget."""
    jitsiDomain: str
    roomName: str
    jwt: Optional[str] = None
    displayName: str
    email: str = ""
    role: str
    isModerator: bool
    appointmentId: str
    patientId: int
    enableLobby: bool
    enableChat: bool
    enableScreenSharing: bool
    enableRecording: bool
    defaultLanguage: str
    requireDisplayName: bool


class FrontendSettings(BaseModel):
    jitsiDomain: str
    enableLobby: bool
    enableChat: bool
    enableScreenSharing: bool
    enableRecording: bool
    defaultLanguage: str
    requireDisplayName: bool
    isPatientPortalEnabled: bool


class AppointmentTelehealthStatus(BaseModel):
    appointmentId: str
    telehealth: bool
    launchState: str
    showTelehealth: bool
