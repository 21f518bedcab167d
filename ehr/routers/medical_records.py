from fastapi import APIRouter, Depends, Query

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.medical_record import MedicalRecordRecord, MedicalRecordRequest, MedicalRecordUpdate
from ehr.services import data_access
from ehr.services.clinical import create_medical_record
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/medical-records", tags=["medical-records"])


async def _attach_details(db, caller: Caller, rows: list[dict]) -> list[dict]:
    await data_access.embed(db, caller, rows, "patient_id", "patients", "patient")
    await data_access.embed(db, caller, rows, "doctor_id", "staff", "doctor")
    await data_access.embed_children(db, caller, rows, "vitals", "medical_record_id", "vitals")
    return rows


@router.get("", response_model=list[MedicalRecordRecord])
async def list_medical_records(
    patient_id: str | None = None,
    limit: int | None = Query(None, ge=1, le=500),
    caller: Caller = Depends(get_caller),
):
    """List visit records, most recent first, with patient, doctor and vitals."""
    db = await get_db()
    filters = {"patient_id": patient_id} if patient_id else {}
    rows = await data_access.select(db, caller, "medical_records", filters, limit=limit)
    return await _attach_details(db, caller, rows)


@router.get("/{record_id}", response_model=MedicalRecordRecord)
async def get_medical_record(record_id: str, caller: Caller = Depends(get_caller)):
    db = await get_db()
    row = await data_access.get(db, caller, "medical_records", record_id)
    return (await _attach_details(db, caller, [row]))[0]


@router.post("", response_model=MedicalRecordRecord)
async def add_medical_record(
    body: MedicalRecordRequest,
    caller: Caller = Depends(require_role("medical_records", "insert")),
):
    db = await get_db()
    payload = body.model_dump(exclude_none=True, exclude={"vitals"})
    return await create_medical_record(db, caller, payload, body.vitals)


@router.patch("/{record_id}", response_model=MedicalRecordRecord)
async def update_medical_record(
    record_id: str,
    body: MedicalRecordUpdate,
    caller: Caller = Depends(require_role("medical_records", "update")),
):
    db = await get_db()
    row = await data_access.update(db, caller, "medical_records", record_id, body.model_dump(exclude_unset=True))
    return (await _attach_details(db, caller, [row]))[0]
