from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller
from ehr.models.session import IdentityCreate, IdentityRecord, SessionResponse
from ehr.services import data_access
from ehr.services.identity import Caller, register_identity, views_for

router = APIRouter(prefix="/api", tags=["session"])


@router.get("/session", response_model=SessionResponse)
async def get_session(caller: Caller = Depends(get_caller)):
    """Return the caller's staff profile and the dashboard views their role opens."""
    db = await get_db()
    staff = None
    if caller.staff_id:
        staff = await data_access.get(db, caller, "staff", caller.staff_id)
    return SessionResponse(user_id=caller.user_id, staff=staff, views=views_for(caller.role))


@router.post("/auth/users", response_model=IdentityRecord)
async def create_identity(body: IdentityCreate):
    """Register an identity. It carries no privileges until an admin binds a staff profile."""
    db = await get_db()
    return await register_identity(db, body.email)
