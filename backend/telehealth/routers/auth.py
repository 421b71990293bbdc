from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from telehealth.database import get_db
from telehealth.auth import (
    PatientCaller,
    ProviderCaller,
    create_portal_token,
    create_staff_token,
    csrf_token_for,
)
from telehealth.services.directory_service import get_patient, get_user_by_username

router = APIRouter()


def _require_exchange_enabled(request: Request) -> None:
    if not request.app.state.settings.auth_token_exchange_enabled:
        raise HTTPException(status_code=404, detail="Not found")


@router.post("/token", dependencies=[Depends(_require_exchange_enabled)])
async def get_token(body: dict, db: AsyncSession = Depends(get_db)):
    """
    Exchange a staff username for a JWT and CSRF token. No password, development only.
    Body: {"username": "dr.smith"}
    """
    username = str(body.get("username") or "").strip()
    if not username:
        raise HTTPException(status_code=400, detail="username required")

    user = await get_user_by_username(db, username)
    if not user:
        raise HTTPException(status_code=404, detail=f"User '{username}' not found")

    return {
        "access_token": create_staff_token(user),
        "token_type": "bearer",
        "csrf_token": csrf_token_for(ProviderCaller(username=user.username)),
        "username": user.username,
        "display_name": user.display_name or user.username,
    }


@router.post("/portal-token", dependencies=[Depends(_require_exchange_enabled)])
async def get_portal_token(body: dict, db: AsyncSession = Depends(get_db)):
    """
    Exchange a patient id for a portal JWT and CSRF token. Development only.
    Body: {"patient_id": 5}
    """
    try:
        patient_id = int(body.get("patient_id"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="patient_id required")

    patient = await get_patient(db, patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail=f"Patient {patient_id} not found")

    return {
        "access_token": create_portal_token(patient),
        "token_type": "bearer",
        "csrf_token": csrf_token_for(PatientCaller(patient_id=patient.id)),
        "patient_id": patient.id,
        "display_name": patient.display_name or "Patient",
    }
