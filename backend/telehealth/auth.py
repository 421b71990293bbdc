"""
Auth module: staff and patient-portal bearer tokens, the caller identities they
resolve to, and CSRF tokens for mutating telehealth actions.

Business logic never reads the request; routers resolve a CallerIdentity here
and pass it into the coordinator explicitly. A missing or invalid token
resolves to None and the coordinator decides what that caller may do.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional, Union
from jose import jwt, JWTError
from fastapi import Request
from telehealth.config import get_settings

ALGORITHM = "HS256"
SCOPE_STAFF = "staff"
SCOPE_PORTAL = "portal"
CSRF_HEADER = "apicsrftoken"


@dataclass(frozen=True)
class ProviderCaller:
    """A clinician signed in to the staff application."""
    username: str

    role = "provider"
    is_patient = False

    @property
    def subject(self) -> str:
        return f"{SCOPE_STAFF}:{self.username}"


@dataclass(frozen=True)
class PatientCaller:
    """A patient signed in to the patient portal."""
    patient_id: int

    role = "patient"
    is_patient = True

    @property
    def subject(self) -> str:
        return f"{SCOPE_PORTAL}:{self.patient_id}"


CallerIdentity = Union[ProviderCaller, PatientCaller]


def create_staff_token(user) -> str:
    """Create a signed JWT for the given User model instance."""
    settings = get_settings()
    payload = {
        "sub": user.username,
        "scope": SCOPE_STAFF,
        "display_name": user.display_name or user.username,
        "exp": int(time.time()) + settings.access_token_expire_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def create_portal_token(patient) -> str:
    """Create a signed JWT for a patient portal session."""
    settings = get_settings()
    payload = {
        "sub": str(patient.id),
        "scope": SCOPE_PORTAL,
        "pid": patient.id,
        "exp": int(time.time()) + settings.access_token_expire_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[CallerIdentity]:
    """Decode and validate a JWT. Returns None if invalid/expired."""
    try:
        settings = get_settings()
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    scope = payload.get("scope")
    if scope == SCOPE_STAFF and payload.get("sub"):
        return ProviderCaller(username=payload["sub"])
    if scope == SCOPE_PORTAL:
        try:
            return PatientCaller(patient_id=int(payload["pid"]))
        except (KeyError, TypeError, ValueError):
            return None
    return None


def _bearer_identity(request: Request) -> Optional[CallerIdentity]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return decode_token(auth_header[7:])


async def get_staff_caller(request: Request) -> Optional[ProviderCaller]:
    """FastAPI dependency for the clinician endpoint. Portal tokens are not accepted here."""
    identity = _bearer_identity(request)
    return identity if isinstance(identity, ProviderCaller) else None


async def get_portal_caller(request: Request) -> Optional[PatientCaller]:
    """FastAPI dependency for the patient portal endpoint. Staff tokens are not accepted here."""
    identity = _bearer_identity(request)
    return identity if isinstance(identity, PatientCaller) else None


def csrf_token_for(identity: CallerIdentity) -> str:
    settings = get_settings()
    return hmac.new(
        settings.csrf_secret_key.encode(), identity.subject.encode(), hashlib.sha256
    ).hexdigest()


def verify_csrf_token(identity: Optional[CallerIdentity], token: Optional[str]) -> bool:
    if identity is None or not token:
        return False
    return hmac.compare_digest(csrf_token_for(identity), token)
