"""Tests for lab result status transitions and the completion stamp."""

from datetime import UTC, datetime

import pytest

from ehr.errors import AuthorizationError
from ehr.services import data_access
from ehr.services.identity import Caller
from ehr.services.lifecycle import prepare_insert, prepare_update

from helpers import lab_result_payload

NOW = datetime(2026, 10, 19, 14, 0, tzinfo=UTC)
TECH = Caller(user_id="u-tech", staff_id="s-tech", role="lab_technician")


class TestPrepareUpdate:
    def test_completion_stamps_time_and_performer(self):
        changes = prepare_update("lab_results", {"id": "lab-1", "status": "pending"}, {"status": "completed"}, TECH, NOW)
        assert changes["completed_at"] == NOW
        assert changes["performed_by"] == "s-tech"

    def test_explicit_performer_kept(self):
        changes = prepare_update(
            "lab_results", {"status": "pending"}, {"status": "completed", "performed_by": "s-other"}, TECH, NOW
        )
        assert changes["performed_by"] == "s-other"

    def test_results_only_does_not_stamp(self):
        changes = prepare_update("lab_results", {"status": "pending"}, {"results": "Hb 13.2"}, TECH, NOW)
        assert "completed_at" not in changes

    def test_already_completed_keeps_original_stamp(self):
        changes = prepare_update("lab_results", {"status": "completed"}, {"status": "completed"}, TECH, NOW)
        assert "completed_at" not in changes

    def test_leaving_completed_clears_stamp(self):
        changes = prepare_update("lab_results", {"status": "completed"}, {"status": "cancelled"}, TECH, NOW)
        assert changes["completed_at"] is None

    def test_cancel_pending_does_not_stamp(self):
        changes = prepare_update("lab_results", {"status": "pending"}, {"status": "cancelled"}, TECH, NOW)
        assert "completed_at" not in changes

    def test_other_tables_untouched(self):
        changes = prepare_update("appointments", {"status": "scheduled"}, {"status": "completed"}, TECH, NOW)
        assert changes == {"status": "completed"}


class TestPrepareInsert:
    def test_pending_has_no_stamp(self):
        values = prepare_insert("lab_results", {"status": "pending", "completed_at": NOW}, TECH, NOW)
        assert "completed_at" not in values

    def test_inserted_completed_is_stamped(self):
        values = prepare_insert("lab_results", {"status": "completed"}, TECH, NOW)
        assert values["completed_at"] == NOW
        assert values["performed_by"] == "s-tech"


@pytest.mark.parametrize("role", ["lab_technician", "doctor", "admin"])
async def test_completion_allowed_and_stamped(db, callers, clinic, role):
    before = await data_access.get(db, callers[role], "lab_results", clinic["lab_results"])
    assert before["completed_at"] is None

    lab = await data_access.update(
        db, callers[role], "lab_results", clinic["lab_results"],
        {"results": "WBC 6.1, Hb 13.4, Plt 250", "status": "completed"},
    )
    assert lab["status"] == "completed"
    assert lab["completed_at"] is not None
    assert lab["performed_by"] == callers[role].staff_id


@pytest.mark.parametrize("role", ["nurse", "receptionist"])
async def test_completion_denied(db, callers, clinic, role):
    with pytest.raises(AuthorizationError):
        await data_access.update(db, callers[role], "lab_results", clinic["lab_results"], {"status": "completed"})
    lab = await data_access.get(db, callers["doctor"], "lab_results", clinic["lab_results"])
    assert lab["status"] == "pending"
    assert lab["completed_at"] is None


async def test_results_without_completion_leave_stamp_empty(db, callers, clinic):
    lab = await data_access.update(
        db, callers["lab_technician"], "lab_results", clinic["lab_results"], {"results": "Sample haemolysed"}
    )
    assert lab["status"] == "pending"
    assert lab["completed_at"] is None


async def test_order_placed_as_completed_is_stamped(db, callers, clinic):
    doctor = callers["doctor"]
    lab = await data_access.insert(
        db, doctor, "lab_results",
        lab_result_payload(clinic["patients"], doctor.staff_id, status="completed", results="Negative"),
    )
    assert lab["completed_at"] is not None
    assert lab["performed_by"] == doctor.staff_id
