from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.prescription import PrescriptionRecord, PrescriptionRequest
from ehr.services import data_access
from ehr.services.clinical import create_prescription
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/prescriptions", tags=["prescriptions"])


@router.get("", response_model=list[PrescriptionRecord])
async def list_prescriptions(
    patient_id: str | None = None,
    medical_record_id: str | None = None,
    caller: Caller = Depends(get_caller),
):
    """List prescriptions, newest first, with the patient attached."""
    db = await get_db()
    filters = {
        key: value
        for key, value in (("patient_id", patient_id), ("medical_record_id", medical_record_id))
        if value is not None
    }
    rows = await data_access.select(db, caller, "prescriptions", filters)
    return await data_access.embed(db, caller, rows, "patient_id", "patients", "patient")


@router.get("/{prescription_id}", response_model=PrescriptionRecord)
async def get_prescription(prescription_id: str, caller: Caller = Depends(get_caller)):
    db = await get_db()
    row = await data_access.get(db, caller, "prescriptions", prescription_id)
    return (await data_access.embed(db, caller, [row], "patient_id", "patients", "patient"))[0]


@router.post("", response_model=PrescriptionRecord)
async def add_prescription(
    body: PrescriptionRequest,
    caller: Caller = Depends(require_role("prescriptions", "insert")),
):
    """Prescribe against a medical record; the patient is taken from the record when omitted."""
    db = await get_db()
    return await create_prescription(db, caller, body.model_dump(exclude_none=True))
