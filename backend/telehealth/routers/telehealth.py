import json
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.auth import CSRF_HEADER, PatientCaller, ProviderCaller, get_portal_caller, get_staff_caller
from telehealth.database import get_db
from telehealth.schemas.telehealth import AppointmentTelehealthStatus
from telehealth.services.appointment_service import get_appointment
from telehealth.services.category_service import is_telehealth_appointment
from telehealth.services.room_coordinator import RoomCoordinator
from telehealth.services.time_window import can_show_telehealth, launch_button_state

logger = logging.getLogger(__name__)
router = APIRouter()


def require_configured(request: Request) -> None:
    """Refuse every telehealth request while the Jitsi configuration is incomplete."""
    if not request.app.state.settings.is_telehealth_configured():
        raise HTTPException(status_code=503, detail="Telehealth not configured")


def get_coordinator(request: Request, db: AsyncSession = Depends(get_db)) -> RoomCoordinator:
    return RoomCoordinator(request.app.state.settings, db, clock=request.app.state.clock)


async def _request_params(request: Request) -> dict:
    """Flatten query string and JSON body into one parameter map."""
    params = dict(request.query_params)
    if request.method == "POST" and request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Malformed JSON body")
        if isinstance(body, dict):
            params.update(body)
    csrf_token = request.headers.get(CSRF_HEADER)
    if csrf_token:
        params["csrf_token"] = csrf_token
    return params


async def _dispatch(request: Request, coordinator: RoomCoordinator, caller) -> JSONResponse:
    params = await _request_params(request)
    action = params.pop("action", None)
    result = await coordinator.dispatch(action, params, caller)
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.api_route("/telehealth", methods=["GET", "POST"], dependencies=[Depends(require_configured)])
async def provider_action(
    request: Request,
    coordinator: RoomCoordinator = Depends(get_coordinator),
    caller: Optional[ProviderCaller] = Depends(get_staff_caller),
):
    """Clinician-side telehealth actions, selected by the `action` parameter."""
    return await _dispatch(request, coordinator, caller)


@router.api_route("/portal/telehealth", methods=["GET", "POST"], dependencies=[Depends(require_configured)])
async def patient_action(
    request: Request,
    coordinator: RoomCoordinator = Depends(get_coordinator),
    caller: Optional[PatientCaller] = Depends(get_portal_caller),
):
    """Patient portal telehealth actions, selected by the `action` parameter."""
    return await _dispatch(request, coordinator, caller)


async def _appointment_status(request: Request, db: AsyncSession, appointment_id: str, patient_id: Optional[int] = None):
    appointment = await get_appointment(db, appointment_id)
    if appointment is None or (patient_id is not None and appointment.patient_id != patient_id):
        raise HTTPException(status_code=404, detail="Appointment not found")
    now = request.app.state.clock()
    return AppointmentTelehealthStatus(
        appointmentId=appointment.id,
        telehealth=await is_telehealth_appointment(db, appointment),
        launchState=launch_button_state(appointment, now),
        showTelehealth=can_show_telehealth(appointment, now),
    )


@router.get(
    "/telehealth/appointments/{appointment_id}",
    response_model=AppointmentTelehealthStatus,
    dependencies=[Depends(require_configured)],
)
async def provider_appointment_status(
    appointment_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    caller: Optional[ProviderCaller] = Depends(get_staff_caller),
):
    """Whether the calendar should offer, expire or close the launch button for an appointment."""
    if caller is None:
        raise HTTPException(status_code=403, detail="Access denied")
    return await _appointment_status(request, db, appointment_id)


@router.get(
    "/portal/telehealth/appointments/{appointment_id}",
    response_model=AppointmentTelehealthStatus,
    dependencies=[Depends(require_configured)],
)
async def patient_appointment_status(
    appointment_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    caller: Optional[PatientCaller] = Depends(get_portal_caller),
):
    settings = request.app.state.settings
    if caller is None or not settings.jitsi_enable_patient_portal:
        raise HTTPException(status_code=403, detail="Access denied")
    return await _appointment_status(request, db, appointment_id, patient_id=caller.patient_id)
