"""Row-level access policy.

``is_allowed`` is a pure function of the caller, the table, the operation and
(optionally) the row. Every role a rule admits is listed explicitly; there is
no role hierarchy, so admin appears in every write rule by name.
"""

from ehr.services.identity import Caller

OPERATIONS = ("select", "insert", "update")

TABLES = (
    "staff",
    "patients",
    "appointments",
    "medical_records",
    "vitals",
    "prescriptions",
    "lab_results",
)

ANY_STAFF = frozenset({"admin", "doctor", "nurse", "receptionist", "lab_technician"})

_ADMIN = frozenset({"admin"})
_FRONT_DESK = frozenset({"receptionist", "admin"})
_SCHEDULERS = frozenset({"receptionist", "doctor", "admin"})
_PRESCRIBERS = frozenset({"doctor", "admin"})
_CHART_READERS = frozenset({"doctor", "nurse", "admin"})
_VITALS_TAKERS = frozenset({"nurse", "doctor", "admin"})
_LAB_WORKERS = frozenset({"lab_technician", "doctor", "admin"})

POLICIES: dict[tuple[str, str], frozenset[str]] = {
    ("staff", "select"): ANY_STAFF,
    ("staff", "insert"): _ADMIN,
    ("staff", "update"): _ADMIN,
    ("patients", "select"): ANY_STAFF,
    ("patients", "insert"): _FRONT_DESK,
    ("patients", "update"): _FRONT_DESK,
    ("appointments", "select"): ANY_STAFF,
    ("appointments", "insert"): _SCHEDULERS,
    ("appointments", "update"): _SCHEDULERS,
    ("medical_records", "select"): _CHART_READERS,
    ("medical_records", "insert"): _PRESCRIBERS,
    ("medical_records", "update"): _PRESCRIBERS,
    ("vitals", "select"): ANY_STAFF,
    ("vitals", "insert"): _VITALS_TAKERS,
    ("vitals", "update"): _VITALS_TAKERS,
    ("prescriptions", "select"): ANY_STAFF,
    ("prescriptions", "insert"): _PRESCRIBERS,
    ("lab_results", "select"): ANY_STAFF,
    ("lab_results", "insert"): _PRESCRIBERS,
    ("lab_results", "update"): _LAB_WORKERS,
}

# (table, operation) -> column that admits a row owned by the caller's identity
OWNER_COLUMNS: dict[tuple[str, str], str] = {
    ("staff", "select"): "user_id",
}


def allowed_roles(table: str, operation: str) -> frozenset[str]:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    if operation not in OPERATIONS:
        raise ValueError(f"Unknown operation: {operation}")
    return POLICIES.get((table, operation), frozenset())


def role_allows(caller: Caller, table: str, operation: str) -> bool:
    """True when the caller's role alone satisfies the rule, whatever the row."""
    return caller.role is not None and caller.role in allowed_roles(table, operation)


def is_allowed(caller: Caller, table: str, operation: str, row: dict | None = None) -> bool:
    if role_allows(caller, table, operation):
        return True
    owner_column = OWNER_COLUMNS.get((table, operation))
    if owner_column is None or row is None:
        return False
    return row.get(owner_column) == caller.user_id
