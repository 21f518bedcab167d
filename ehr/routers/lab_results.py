from fastapi import APIRouter, Depends

from ehr.database import get_db
from ehr.dependencies import get_caller, require_role
from ehr.models.lab_result import LabResultRecord, LabResultRequest, LabResultUpdate, LabStatus
from ehr.services import data_access
from ehr.services.clinical import order_lab_test
from ehr.services.identity import Caller

router = APIRouter(prefix="/api/lab-results", tags=["lab-results"])


@router.get("", response_model=list[LabResultRecord])
async def list_lab_results(
    patient_id: str | None = None,
    status: LabStatus | None = None,
    caller: Caller = Depends(get_caller),
):
    """List lab orders, most recent first, with the patient attached."""
    db = await get_db()
    filters = {
        key: value
        for key, value in (("patient_id", patient_id), ("status", status))
        if value is not None
    }
    rows = await data_access.select(db, caller, "lab_results", filters)
    return await data_access.embed(db, caller, rows, "patient_id", "patients", "patient")


@router.get("/{lab_result_id}", response_model=LabResultRecord)
async def get_lab_result(lab_result_id: str, caller: Caller = Depends(get_caller)):
    db = await get_db()
    row = await data_access.get(db, caller, "lab_results", lab_result_id)
    return (await data_access.embed(db, caller, [row], "patient_id", "patients", "patient"))[0]


@router.post("", response_model=LabResultRecord)
async def order_lab_result(
    body: LabResultRequest,
    caller: Caller = Depends(require_role("lab_results", "insert")),
):
    """Order a lab test. It starts as pending."""
    db = await get_db()
    return await order_lab_test(db, caller, body.model_dump(exclude_none=True))


@router.patch("/{lab_result_id}", response_model=LabResultRecord)
async def update_lab_result(
    lab_result_id: str,
    body: LabResultUpdate,
    caller: Caller = Depends(require_role("lab_results", "update")),
):
    """Submit results or change status. Completing stamps ``completed_at``."""
    db = await get_db()
    return await data_access.update(
        db, caller, "lab_results", lab_result_id, body.model_dump(exclude_unset=True)
    )
