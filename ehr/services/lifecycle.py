"""Status transition rules applied to writes before they reach storage."""

import logging
from datetime import datetime

from ehr.services.identity import Caller

logger = logging.getLogger(__name__)

LAB_COMPLETED = "completed"


def prepare_insert(table: str, values: dict, caller: Caller, now: datetime) -> dict:
    if table == "lab_results":
        values.pop("completed_at", None)
        if values.get("status") == LAB_COMPLETED:
            values["completed_at"] = now
            values.setdefault("performed_by", caller.staff_id)
    return values


def prepare_update(table: str, existing: dict, changes: dict, caller: Caller, now: datetime) -> dict:
    if table != "lab_results" or "status" not in changes:
        return changes

    previous = existing.get("status")
    status = changes["status"]
    if status == LAB_COMPLETED and previous != LAB_COMPLETED:
        changes["completed_at"] = now
        if changes.get("performed_by") is None:
            changes["performed_by"] = caller.staff_id
        logger.info("Lab result %s completed by staff %s", existing.get("id"), changes["performed_by"])
    elif status != LAB_COMPLETED and previous == LAB_COMPLETED:
        # Reopened or cancelled: the completion stamp no longer holds
        changes["completed_at"] = None
    return changes
