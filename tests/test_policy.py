"""Tests for the access policy - the pure rule table and its enforcement in the data layer."""

import pytest

from ehr.errors import AuthorizationError, IdentityResolutionError
from ehr.services import data_access
from ehr.services.identity import Caller, register_identity
from ehr.services.policy import OPERATIONS, TABLES, allowed_roles, is_allowed

from helpers import (
    ALL_ROLES,
    appointment_payload,
    lab_result_payload,
    medical_record_payload,
    patient_payload,
    prescription_payload,
    staff_payload,
    vital_payload,
)

EVERYONE = set(ALL_ROLES)

# Written out independently of ehr.services.policy
EXPECTED: dict[tuple[str, str], set[str]] = {
    ("staff", "select"): EVERYONE,
    ("staff", "insert"): {"admin"},
    ("staff", "update"): {"admin"},
    ("patients", "select"): EVERYONE,
    ("patients", "insert"): {"receptionist", "admin"},
    ("patients", "update"): {"receptionist", "admin"},
    ("appointments", "select"): EVERYONE,
    ("appointments", "insert"): {"receptionist", "doctor", "admin"},
    ("appointments", "update"): {"receptionist", "doctor", "admin"},
    ("medical_records", "select"): {"doctor", "nurse", "admin"},
    ("medical_records", "insert"): {"doctor", "admin"},
    ("medical_records", "update"): {"doctor", "admin"},
    ("vitals", "select"): EVERYONE,
    ("vitals", "insert"): {"nurse", "doctor", "admin"},
    ("vitals", "update"): {"nurse", "doctor", "admin"},
    ("prescriptions", "select"): EVERYONE,
    ("prescriptions", "insert"): {"doctor", "admin"},
    ("prescriptions", "update"): set(),
    ("lab_results", "select"): EVERYONE,
    ("lab_results", "insert"): {"doctor", "admin"},
    ("lab_results", "update"): {"lab_technician", "doctor", "admin"},
}

MATRIX = [
    (role, table, operation)
    for table in TABLES
    for operation in OPERATIONS
    for role in ALL_ROLES
]


def _caller(role: str | None) -> Caller:
    return Caller(user_id="user-1", staff_id="staff-1" if role else None, role=role)


# --- Pure rule table ---


class TestIsAllowed:
    @pytest.mark.parametrize("role,table,operation", MATRIX)
    def test_matches_rule_table(self, role, table, operation):
        expected = role in EXPECTED[(table, operation)]
        assert is_allowed(_caller(role), table, operation) is expected

    def test_every_pair_is_covered(self):
        assert {(t, o) for t in TABLES for o in OPERATIONS} == set(EXPECTED)

    @pytest.mark.parametrize("table,operation", sorted(EXPECTED))
    def test_roleless_denied_everything(self, table, operation):
        assert is_allowed(_caller(None), table, operation) is False

    def test_roleless_sees_own_staff_row(self):
        caller = _caller(None)
        assert is_allowed(caller, "staff", "select", {"user_id": "user-1"}) is True

    def test_roleless_does_not_see_other_staff_row(self):
        caller = _caller(None)
        assert is_allowed(caller, "staff", "select", {"user_id": "user-2"}) is False

    def test_own_row_rule_only_applies_to_staff_select(self):
        caller = _caller(None)
        assert is_allowed(caller, "staff", "update", {"user_id": "user-1"}) is False
        assert is_allowed(caller, "patients", "select", {"user_id": "user-1"}) is False

    def test_admin_listed_explicitly_not_inherited(self):
        for (table, operation), roles in EXPECTED.items():
            if roles:
                assert "admin" in allowed_roles(table, operation)

    def test_unknown_table_rejected(self):
        with pytest.raises(ValueError):
            is_allowed(_caller("admin"), "billing", "select")

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValueError):
            is_allowed(_caller("admin"), "patients", "delete")


# --- Enforcement through the data layer ---


async def _insert_payload(db, table: str, clinic: dict) -> dict:
    doctor_id = clinic["staff"]
    if table == "staff":
        identity = await register_identity(db, "new.hire@test.hospital")
        return staff_payload(identity["id"], "nurse")
    if table == "patients":
        return patient_payload()
    if table == "appointments":
        return appointment_payload(clinic["patients"], doctor_id)
    if table == "medical_records":
        return medical_record_payload(clinic["patients"], doctor_id)
    if table == "vitals":
        return vital_payload(clinic["medical_records"], doctor_id)
    if table == "prescriptions":
        return prescription_payload(clinic["medical_records"], clinic["patients"], doctor_id)
    return lab_result_payload(clinic["patients"], doctor_id)


UPDATE_PATCHES = {
    "staff": {"phone": "+263 77 999 9999"},
    "patients": {"allergies": "Penicillin"},
    "appointments": {"notes": "Bring previous results"},
    "medical_records": {"notes": "Review in two weeks"},
    "vitals": {"heart_rate": 80},
    "prescriptions": {"dosage": "500 mg"},
    "lab_results": {"results": "Within normal limits"},
}


@pytest.mark.parametrize("role,table,operation", MATRIX)
async def test_data_layer_enforces_rule_table(db, callers, clinic, role, table, operation):
    """Attempting each operation as each role succeeds exactly when the rule table allows it."""
    caller = callers[role]
    allowed = role in EXPECTED[(table, operation)]

    async def attempt():
        if operation == "select":
            return await data_access.select(db, caller, table)
        if operation == "insert":
            return await data_access.insert(db, caller, table, await _insert_payload(db, table, clinic))
        return await data_access.update(db, caller, table, clinic[table], UPDATE_PATCHES[table])

    if allowed:
        result = await attempt()
        if operation == "select":
            assert clinic[table] in {row["id"] for row in result}
        else:
            assert result["id"]
    else:
        with pytest.raises(AuthorizationError) as exc_info:
            await attempt()
        assert not isinstance(exc_info.value, IdentityResolutionError)
