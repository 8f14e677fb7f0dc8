from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from clinic_scheduler.api.client import ClinicApiClient
from clinic_scheduler.auth import jwt_handler
from clinic_scheduler.core.context import AppContext

security = HTTPBearer()

ADMIN_ROLE = "admin"
DOCTOR_ROLE = "doctor"


class SessionContext(BaseModel):
    """Typed view of the dashboard user's bearer token."""

    token: str
    subject: str
    user_id: int | None = None
    clinic_id: int | None = None
    role: str = DOCTOR_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def _optional_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_session_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> SessionContext:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    role = str(payload.get("user_type") or payload.get("role") or DOCTOR_ROLE).lower()
    if role not in (ADMIN_ROLE, DOCTOR_ROLE):
        raise HTTPException(status_code=403, detail="Unsupported user role")

    return SessionContext(
        token=token,
        subject=str(subject),
        user_id=_optional_int(payload.get("user_id") or payload.get("id")),
        clinic_id=_optional_int(payload.get("clinic_id")),
        role=role,
    )


async def get_app_context(
    session: SessionContext = Depends(get_session_context),
) -> AsyncIterator[AppContext]:
    """Per-request context; the acting doctor is the token's user unless an admin overrides it."""
    client = ClinicApiClient(token=session.token)
    try:
        doctor_id = None if session.is_admin else session.user_id
        yield AppContext(api=client, clinic_id=session.clinic_id, doctor_id=doctor_id)
    finally:
        await client.aclose()


def resolve_doctor(context: AppContext, session: SessionContext, doctor_id: int | None) -> AppContext:
    if doctor_id is None:
        return context
    if not session.is_admin and doctor_id != session.user_id:
        raise HTTPException(status_code=403, detail="Doctors can only manage their own schedule.")
    return context.for_doctor(doctor_id)
