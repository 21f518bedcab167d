from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.patient import PatientCreate, PatientRecord, PatientUpdate
from ehr.services import data_access
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/patients", tags=["patients"])


@router.get("", response_model=list[PatientRecord])
async def list_patients(national_id: str | None = None, caller: Caller = Depends(get_caller)):
    db = await get_db()
    filters = {"national_id": national_id} if national_id else {}
    return await data_access.select(db, caller, "patients", filters)


@router.get("/{patient_id}", response_model=PatientRecord)
async def get_patient(patient_id: str, caller: Caller = Depends(get_caller)):
    db = await get_db()
    return await data_access.get(db, caller, "patients", patient_id)


@router.post("", response_model=PatientRecord)
async def register_patient(
    body: PatientCreate,
    caller: Caller = Depends(require_role("patients", "insert")),
):
    """Register a patient. The national id must not already be on file."""
    db = await get_db()
    return await data_access.insert(db, caller, "patients", body.model_dump(exclude_none=True))


@router.patch("/{patient_id}", response_model=PatientRecord)
async def update_patient(
    patient_id: str,
    body: PatientUpdate,
    caller: Caller = Depends(require_role("patients", "update")),
):
    db = await get_db()
    return await data_access.update(db, caller, "patients", patient_id, body.model_dump(exclude_unset=True))
