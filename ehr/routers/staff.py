from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.staff import StaffCreate, StaffRecord, StaffRole, StaffUpdate
from ehr.services import data_access
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/staff", tags=["staff"])


@router.get("", response_model=list[StaffRecord])
async def list_staff(role: StaffRole | None = None, caller: Caller = Depends(get_caller)):
    """List staff by first name, optionally only one role (e.g. doctors for scheduling)."""
    db = await get_db()
    filters = {"role": role} if role else {}
    return await data_access.select(db, caller, "staff", filters)


@router.get("/{staff_id}", response_model=StaffRecord)
async def get_staff(staff_id: str, caller: Caller = Depends(get_caller)):
    db = await get_db()
    return await data_access.get(db, caller, "staff", staff_id)


@router.post("", response_model=StaffRecord)
async def create_staff(
    body: StaffCreate,
    caller: Caller = Depends(require_role("staff", "insert")),
):
    """Bind a staff profile to an existing identity."""
    db = await get_db()
    return await data_access.insert(db, caller, "staff", body.model_dump(exclude_none=True))


@router.patch("/{staff_id}", response_model=StaffRecord)
async def update_staff(
    staff_id: str,
    body: StaffUpdate,
    caller: Caller = Depends(require_role("staff", "update")),
):
    db = await get_db()
    return await data_access.update(db, caller, "staff", staff_id, body.model_dump(exclude_unset=True))
