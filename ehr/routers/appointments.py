from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.appointment import (
    AppointmentRecord,
    AppointmentRequest,
    AppointmentStatus,
    AppointmentUpdate,
)
from ehr.services import data_access
from ehr.services.clinical import with_caller_default
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/appointments", tags=["appointments"])

# Only a doctor booking without naming one is assumed to be booking themselves
DOCTORS = frozenset({"doctor"})


async def _attach_people(db, caller: Caller, rows: list[dict]) -> list[dict]:
    await data_access.embed(db, caller, rows, "patient_id", "patients", "patient")
    await data_access.embed(db, caller, rows, "doctor_id", "staff", "doctor")
    return rows


@router.get("", response_model=list[AppointmentRecord])
async def list_appointments(
    patient_id: str | None = None,
    doctor_id: str | None = None,
    status: AppointmentStatus | None = None,
    caller: Caller = Depends(get_caller),
):
    """List appointments, soonest first, with patient and doctor attached."""
    db = await get_db()
    filters = {
        key: value
        for key, value in (("patient_id", patient_id), ("doctor_id", doctor_id), ("status", status))
        if value is not None
    }
    rows = await data_access.select(db, caller, "appointments", filters)
    return await _attach_people(db, caller, rows)


@router.get("/{appointment_id}", response_model=AppointmentRecord)
async def get_appointment(appointment_id: str, caller: Caller = Depends(get_caller)):
    db = await get_db()
    row = await data_access.get(db, caller, "appointments", appointment_id)
    return (await _attach_people(db, caller, [row]))[0]


@router.post("", response_model=AppointmentRecord)
async def create_appointment(
    body: AppointmentRequest,
    caller: Caller = Depends(require_role("appointments", "insert")),
):
    """Book an appointment. Status starts as scheduled unless given."""
    db = await get_db()
    payload = with_caller_default(body.model_dump(exclude_none=True), "doctor_id", caller, DOCTORS)
    return await data_access.insert(db, caller, "appointments", payload)


@router.patch("/{appointment_id}", response_model=AppointmentRecord)
async def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    caller: Caller = Depends(require_role("appointments", "update")),
):
    """Reschedule an appointment or move it to completed / cancelled / no_show."""
    db = await get_db()
    return await data_access.update(
        db, caller, "appointments", appointment_id, body.model_dump(exclude_unset=True)
    )
