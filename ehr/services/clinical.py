"""Composite clinical operations built on the data-access layer."""

import logging

from ehr.database import DatabaseAdapter
from ehr.errors import NotFoundError, ReferentialIntegrityError
from ehr.models.vital import VitalMeasurements
from ehr.services import data_access
from ehr.services.identity import Caller
from ehr.services.policy import role_allows

logger = logging.getLogger(__name__)


def with_caller_default(payload: dict, field: str, caller: Caller, roles: frozenset[str] | None = None) -> dict:
    """Fill a staff reference with the caller's own profile when it was left out.

    With ``roles`` given, only callers holding one of them are used as the default.
    """
    if roles is not None and caller.role not in roles:
        return payload
    if payload.get(field) is None and caller.staff_id is not None:
        payload[field] = caller.staff_id
    return payload


async def create_medical_record(
    db: DatabaseAdapter,
    caller: Caller,
    payload: dict,
    vitals: VitalMeasurements | None = None,
) -> dict:
    """Create a visit record, then the vitals taken during it, if any."""
    payload = with_caller_default(payload, "doctor_id", caller)
    record = await data_access.insert(db, caller, "medical_records", payload)

    record["vitals"] = []
    if vitals is not None and not vitals.is_empty():
        vital = await data_access.insert(db, caller, "vitals", {
            **vitals.model_dump(exclude_none=True),
            "medical_record_id": record["id"],
            "recorded_by": caller.staff_id,
        })
        record["vitals"].append(vital)
        logger.info("Recorded vitals %s with medical record %s", vital["id"], record["id"])
    return record


async def create_prescription(db: DatabaseAdapter, caller: Caller, payload: dict) -> dict:
    payload = with_caller_default(payload, "doctor_id", caller)
    record_id = payload.get("medical_record_id")
    if payload.get("patient_id") is None and record_id is not None and role_allows(caller, "prescriptions", "insert"):
        try:
            record = await data_access.get(db, caller, "medical_records", str(record_id))
        except NotFoundError:
            raise ReferentialIntegrityError(
                "Referenced medical record does not exist", field="medical_record_id"
            ) from None
        payload["patient_id"] = record["patient_id"]
    return await data_access.insert(db, caller, "prescriptions", payload)


async def order_lab_test(db: DatabaseAdapter, caller: Caller, payload: dict) -> dict:
    payload = with_caller_default(payload, "ordered_by", caller)
    return await data_access.insert(db, caller, "lab_results", payload)
