from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.vital import VitalRecord, VitalRequest, VitalUpdate
from ehr.services import data_access
from ehr.services.clinical import with_caller_default
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/vitals", tags=["vitals"])


@router.get("", response_model=list[VitalRecord])
async def list_vitals(medical_record_id: str | None = None, caller: Caller = Depends(get_caller)):
    db = await get_db()
    filters = {"medical_record_id": medical_record_id} if medical_record_id else {}
    return await data_access.select(db, caller, "vitals", filters)


@router.post("", response_model=VitalRecord)
async def record_vitals(
    body: VitalRequest,
    caller: Caller = Depends(require_role("vitals", "insert")),
):
    """Record a set of vitals against a medical record; the recorder defaults to the caller."""
    db = await get_db()
    payload = with_caller_default(body.model_dump(exclude_none=True), "recorded_by", caller)
    return await data_access.insert(db, caller, "vitals", payload)


@router.patch("/{vital_id}", response_model=VitalRecord)
async def update_vitals(
    vital_id: str,
    body: VitalUpdate,
    caller: Caller = Depends(require_role("vitals", "update")),
):
    db = await get_db()
    return await data_access.update(db, caller, "vitals", vital_id, body.model_dump(exclude_unset=True))
