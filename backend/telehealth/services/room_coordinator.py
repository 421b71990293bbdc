"""
Room access coordinator: the single entry point for telehealth room actions.

A request names an action and carries an untrusted flat parameter map. The
action name is converted to an ``Action``; the registry maps each action to a
handler that parses its own typed request, applies the authorization rules for
the caller, and returns an ``ActionResult``. Each handler converts its own
failures to a status class so one misbehaving action never changes the
response shape of another.
"""

import functools
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.auth import CallerIdentity, PatientCaller, ProviderCaller, verify_csrf_token
from telehealth.config import Settings
from telehealth.exceptions import AccessDenied, InvalidRequest, NotFound, TelehealthError
from telehealth.models.appointment import Appointment
from telehealth.models.telehealth_session import TelehealthSession
from telehealth.schemas.telehealth import (
    FrontendSettings,
    HeartbeatRequest,
    LaunchConfig,
    LaunchDataRequest,
    ReadyCheckRequest,
    SetEncounterRequest,
    SetStatusRequest,
    SettingsRequest,
)
from telehealth.services import jitsi_token
from telehealth.services.appointment_service import get_appointment, update_appointment_status
from telehealth.services.context_service import set_clinical_context
from telehealth.services.directory_service import get_patient, get_user_by_username
from telehealth.services.encounter_service import get_or_create_encounter
from telehealth.services.session_repository import SessionRepository
from telehealth.services.time_window import (
    is_provider_present,
    is_within_join_window,
    to_utc,
    utc_now,
)

logger = logging.getLogger(__name__)

ROOM_NAME_SALT = "jitsi-telehealth"


class Action(str, Enum):
    LAUNCH_DATA = "launch_data"
    SET_STATUS = "set_status"
    SET_ENCOUNTER = "set_encounter"
    HEARTBEAT = "heartbeat"
    PATIENT_READY_CHECK = "patient_ready_check"
    SETTINGS = "settings"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, name) -> "Action":
        if not isinstance(name, str):
            return cls.UNRECOGNIZED
        key = name.strip()
        key = ACTION_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.UNRECOGNIZED


# Action names used by the existing browser client.
ACTION_ALIASES = {
    "get_telehealth_launch_data": Action.LAUNCH_DATA.value,
    "set_appointment_status": Action.SET_STATUS.value,
    "set_current_appt_encounter": Action.SET_ENCOUNTER.value,
    "conference_session_update": Action.HEARTBEAT.value,
    "patient_appointment_ready": Action.PATIENT_READY_CHECK.value,
    "get_telehealth_settings": Action.SETTINGS.value,
}


@dataclass
class ActionResult:
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


HANDLER_REGISTRY: dict = {}


def room_name_for(prefix: str, appointment_id: str, created_at) -> str:
    """Stable per session record; the creation time keeps it unguessable from the appointment id."""
    created = to_utc(created_at)
    created_text = created.strftime("%Y-%m-%d %H:%M:%S.%f") if created else ""
    digest = hashlib.sha256(f"{appointment_id}{created_text}{ROOM_NAME_SALT}".encode()).hexdigest()[:12]
    return f"{prefix}-appt-{appointment_id}-{digest}"


def _parse_request(model: type, params: dict) -> BaseModel:
    cleaned = {}
    for key, value in params.items():
        if key == "pc_eid":
            key = "appointment_id"
        if value is None or isinstance(value, (dict, list)):
            continue
        cleaned.setdefault(key, value if isinstance(value, str) else str(value))
    try:
        return model.model_validate(cleaned)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InvalidRequest(f"{' and '.join(fields) or 'request'} {'are' if len(fields) > 1 else 'is'} required")


def action_handler(
    action: Action,
    request: type,
    requires_identity: bool = True,
    providers_only: bool = False,
    csrf_required: bool = False,
):
    """Register a coordinator method as the handler for an action."""
    def decorator(fn):
        @functools.wraps(fn)
        async def guarded(self, caller: Optional[CallerIdentity], params: dict) -> ActionResult:
            try:
                self._authorize(action, caller, params, requires_identity, providers_only, csrf_required)
                parsed = _parse_request(request, params)
                body = await fn(self, caller, parsed)
                return ActionResult(200, body)
            except AccessDenied as e:
                logger.warning("%s denied for %s: %s", action.value, getattr(caller, "subject", "anonymous"), e.reason)
                return ActionResult(AccessDenied.status_code, {"error": AccessDenied.public_message})
            except TelehealthError as e:
                logger.error("%s failed: %s", action.value, e.reason)
                return ActionResult(e.status_code, {"error": e.public_message})
            except Exception:
                logger.exception("%s failed unexpectedly", action.value)
                return ActionResult(500, {"error": "Internal server error"})

        HANDLER_REGISTRY[action] = guarded
        return guarded

    return decorator


class RoomCoordinator:
    def __init__(self, settings: Settings, db: AsyncSession, clock: Callable = utc_now):
        self.settings = settings
        self.db = db
        self.clock = clock
        self.sessions = SessionRepository(db)

    async def dispatch(self, action_name, params: dict, caller: Optional[CallerIdentity]) -> ActionResult:
        action = Action.parse(action_name)
        logger.debug(
            "dispatch action=%s caller=%s params=%s",
            action.value, getattr(caller, "subject", "anonymous"), sorted(params),
        )
        handler = HANDLER_REGISTRY.get(action)
        if handler is None:
            logger.error("Invalid action received: %s", action_name)
            error = NotFound(f"Unknown action: {action_name}")
            return ActionResult(error.status_code, {"error": error.public_message})
        return await handler(self, caller, params)

    def _authorize(self, action, caller, params, requires_identity, providers_only, csrf_required):
        if not requires_identity:
            return
        if caller is None:
            raise AccessDenied("no authenticated caller")
        if isinstance(caller, PatientCaller):
            if not self.settings.jitsi_enable_patient_portal:
                raise AccessDenied("patient portal telehealth is disabled")
            if providers_only:
                raise AccessDenied(f"{action.value} is not available to patients")
        if csrf_required and not verify_csrf_token(caller, params.get("csrf_token")):
            raise AccessDenied("CSRF validation failed")

    async def _require_appointment(self, appointment_id: str) -> Appointment:
        appointment = await get_appointment(self.db, appointment_id)
        if appointment is None:
            raise InvalidRequest(f"Appointment not found for appointment_id: {appointment_id}")
        return appointment

    @action_handler(Action.LAUNCH_DATA, LaunchDataRequest)
    async def launch_data(self, caller: CallerIdentity, request: LaunchDataRequest) -> dict:
        now = self.clock()
        appointment = await self._require_appointment(request.appointment_id)

        # Moderator comes from the caller's variant only, never from request parameters.
        if isinstance(caller, PatientCaller):
            if appointment.patient_id != caller.patient_id:
                raise AccessDenied(f"patient {caller.patient_id} cannot access appointment {appointment.id}")
            patient = await get_patient(self.db, caller.patient_id)
            display_name = (patient.display_name if patient else "") or "Patient"
            email = (patient.email if patient else "") or ""
            is_moderator = False
        else:
            user = await get_user_by_username(self.db, caller.username)
            if user is None:
                raise AccessDenied(f"user {caller.username} not found")
            display_name = user.display_name or caller.username
            email = user.email or ""
            is_moderator = True

        if not is_within_join_window(appointment.starts_at, now):
            raise InvalidRequest("Telehealth sessions can only be launched two hours before or after the appointment")

        session = await self.sessions.get_or_create(
            appointment.id, appointment.provider_id, None, appointment.patient_id
        )
        if session is None:
            raise InvalidRequest(f"Appointment {appointment.id} has no assigned provider")

        room_name = room_name_for(self.settings.jitsi_room_prefix, appointment.id, session.created_at)

        token = None
        if self.settings.jitsi_enable_jwt:
            token = jitsi_token.issue(
                self.settings.jitsi_jwt_app_id,
                self.settings.jitsi_jwt_app_secret,
                room_name,
                display_name,
                email,
                is_moderator,
                now=int(now.timestamp()),
            )

        await self.sessions.mark_started(appointment.id, caller.role, at=now)

        config = LaunchConfig(
            jitsiDomain=self.settings.jitsi_server_domain,
            roomName=room_name,
            jwt=token,
            displayName=display_name,
            email=email,
            role=caller.role,
            isModerator=is_moderator,
            appointmentId=appointment.id,
            patientId=appointment.patient_id,
            enableLobby=self.settings.jitsi_enable_lobby,
            enableChat=self.settings.jitsi_enable_chat,
            enableScreenSharing=self.settings.jitsi_enable_screen_sharing,
            enableRecording=self.settings.jitsi_enable_recording,
            defaultLanguage=self.settings.jitsi_default_language,
            requireDisplayName=self.settings.jitsi_require_display_name,
        ).model_dump()

        if isinstance(caller, ProviderCaller):
            await self._propagate_context(caller, appointment, session)
        return config

    async def _propagate_context(
        self, caller: ProviderCaller, appointment: Appointment, session: Optional[TelehealthSession]
    ) -> Optional[int]:
        # Best effort in a savepoint; a failure rolls back only this step.
        appointment_id = appointment.id
        try:
            async with self.db.begin_nested():
                await set_clinical_context(self.db, caller.username, patient_id=appointment.patient_id)
                encounter_id = await get_or_create_encounter(self.db, appointment)
                if encounter_id:
                    await set_clinical_context(self.db, caller.username, encounter_id=encounter_id)
                    if session is not None:
                        await self.sessions.set_encounter(appointment_id, encounter_id)
            return encounter_id
        except Exception:
            logger.exception("Could not set clinical context for appointment %s", appointment_id)
            return None

    @action_handler(Action.SET_STATUS, SetStatusRequest, providers_only=True, csrf_required=True)
    async def set_status(self, caller: ProviderCaller, request: SetStatusRequest) -> dict:
        await self._require_appointment(request.appointment_id)
        await update_appointment_status(self.db, request.appointment_id, request.status)
        logger.info("Appointment %s status set to %s by %s", request.appointment_id, request.status, caller.username)
        return {"success": True, "status": request.status}

    @action_handler(Action.SET_ENCOUNTER, SetEncounterRequest, providers_only=True)
    async def set_encounter(self, caller: ProviderCaller, request: SetEncounterRequest) -> dict:
        appointment = await self._require_appointment(request.appointment_id)
        if appointment.patient_id:
            await set_clinical_context(self.db, caller.username, patient_id=appointment.patient_id)
        encounter_id = await get_or_create_encounter(self.db, appointment)
        if encounter_id:
            await set_clinical_context(self.db, caller.username, encounter_id=encounter_id)
            await self.sessions.set_encounter(appointment.id, encounter_id)
        return {"success": True, "encounter": encounter_id}

    @action_handler(Action.HEARTBEAT, HeartbeatRequest)
    async def heartbeat(self, caller: CallerIdentity, request: HeartbeatRequest) -> dict:
        if isinstance(caller, PatientCaller):
            session = await self.sessions.get_by_appointment(request.appointment_id)
            if session is not None and session.patient_id != caller.patient_id:
                raise AccessDenied(f"patient {caller.patient_id} cannot update appointment {request.appointment_id}")
        await self.sessions.mark_heartbeat(request.appointment_id, caller.role, at=self.clock())
        return {"success": True}

    @action_handler(Action.PATIENT_READY_CHECK, ReadyCheckRequest)
    async def patient_ready_check(self, caller: CallerIdentity, request: ReadyCheckRequest) -> dict:
        session = await self.sessions.get_by_appointment(request.appointment_id)
        if session is None:
            return {"providerReady": False}
        if isinstance(caller, PatientCaller) and session.patient_id != caller.patient_id:
            raise AccessDenied(f"patient {caller.patient_id} cannot access appointment {request.appointment_id}")
        return {"providerReady": is_provider_present(session, self.clock())}

    @action_handler(Action.SETTINGS, SettingsRequest, requires_identity=False)
    async def frontend_settings(self, caller: Optional[CallerIdentity], request: SettingsRequest) -> dict:
        return FrontendSettings(
            **self.settings.public_flags(),
            isPatientPortalEnabled=self.settings.jitsi_enable_patient_portal,
        ).model_dump()
