"""Policy-enforcing access to the hospital tables.

Every function takes the caller explicitly and checks ``policy.is_allowed``
before touching storage. Structural and referential integrity are left to the
storage engine; its failures arrive here already translated into
``ehr.errors``.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ehr.database import DatabaseAdapter
from ehr.errors import AuthorizationError, IdentityResolutionError, NotFoundError, ValidationError
from ehr.models.appointment import AppointmentCreate, AppointmentRecord, AppointmentUpdate
from ehr.models.lab_result import LabResultCreate, LabResultRecord, LabResultUpdate
from ehr.models.medical_record import MedicalRecordCreate, MedicalRecordRecord, MedicalRecordUpdate
from ehr.models.patient import PatientCreate, PatientRecord, PatientUpdate
from ehr.models.prescription import PrescriptionCreate, PrescriptionRecord
from ehr.models.staff import StaffCreate, StaffRecord, StaffUpdate
from ehr.models.vital import VitalCreate, VitalRecord, VitalUpdate
from ehr.services.identity import Caller
from ehr.services.lifecycle import prepare_insert, prepare_update
from ehr.services.policy import OWNER_COLUMNS, is_allowed, role_allows

logger = logging.getLogger(__name__)

# Fields on record models that are filled by embedding, not stored
_EMBEDDED_FIELDS = {"patient", "doctor", "vitals"}


@dataclass(frozen=True)
class TableSpec:
    label: str
    record: type[BaseModel]
    create: type[BaseModel]
    update: type[BaseModel] | None
    order_by: str
    descending: bool = False

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(name for name in self.record.model_fields if name not in _EMBEDDED_FIELDS)


TABLE_SPECS: dict[str, TableSpec] = {
    "staff": TableSpec("Staff member", StaffRecord, StaffCreate, StaffUpdate, "first_name"),
    "patients": TableSpec("Patient", PatientRecord, PatientCreate, PatientUpdate, "first_name"),
    "appointments": TableSpec(
        "Appointment", AppointmentRecord, AppointmentCreate, AppointmentUpdate, "appointment_date"
    ),
    "medical_records": TableSpec(
        "Medical record", MedicalRecordRecord, MedicalRecordCreate, MedicalRecordUpdate, "visit_date", True
    ),
    "vitals": TableSpec("Vitals entry", VitalRecord, VitalCreate, VitalUpdate, "recorded_at"),
    "prescriptions": TableSpec("Prescription", PrescriptionRecord, PrescriptionCreate, None, "created_at", True),
    "lab_results": TableSpec("Lab result", LabResultRecord, LabResultCreate, LabResultUpdate, "ordered_at", True),
}


def _spec(table: str) -> TableSpec:
    try:
        return TABLE_SPECS[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def deny(caller: Caller, table: str, operation: str) -> AuthorizationError:
    logger.warning(
        "Denied %s on %s for user %s (role=%s)", operation, table, caller.user_id, caller.role
    )
    if not caller.is_staff:
        return IdentityResolutionError(AuthorizationError.public_message)
    return AuthorizationError(AuthorizationError.public_message)


def _validate(model: type[BaseModel], data: dict) -> BaseModel:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        message = f"{field}: {error['msg']}" if field else error["msg"]
        raise ValidationError(message, field=field) from None


def _to_db(value):
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _check_column(spec: TableSpec, column: str) -> None:
    if column not in spec.columns:
        raise ValidationError(f"Unknown column: {column}", field=column)


def _where(spec: TableSpec, filters: dict) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    for column, value in filters.items():
        _check_column(spec, column)
        if isinstance(value, (list, tuple, set, frozenset)):
            values = list(value)
            if not values:
                clauses.append("1 = 0")
                continue
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(_to_db(v) for v in values)
        elif value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(_to_db(value))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


async def _fetch(db: DatabaseAdapter, table: str, row_id: str) -> dict | None:
    spec = _spec(table)
    row = await db.fetch_one(
        f"SELECT {', '.join(spec.columns)} FROM {table} WHERE id = ?",
        (row_id,),
    )
    return dict(row) if row else None


async def select(
    db: DatabaseAdapter,
    caller: Caller,
    table: str,
    filters: dict | None = None,
    order_by: str | None = None,
    descending: bool | None = None,
    limit: int | None = None,
) -> list[dict]:
    """Return the rows of ``table`` matching ``filters`` that the caller may see.

    Filter values may be scalars (equality), ``None`` (IS NULL) or
    collections (IN). Ordering defaults to the table's natural order.
    """
    spec = _spec(table)
    filters = dict(filters or {})

    if not role_allows(caller, table, "select"):
        owner_column = OWNER_COLUMNS.get((table, "select"))
        if owner_column is None:
            raise deny(caller, table, "select")
        # Only rows owned by the caller's identity can pass the rule
        if owner_column in filters and filters[owner_column] != caller.user_id:
            return []
        filters[owner_column] = caller.user_id

    where, params = _where(spec, filters)

    order_by = order_by or spec.order_by
    _check_column(spec, order_by)
    if descending is None:
        descending = spec.descending if order_by == spec.order_by else False
    query = (
        f"SELECT {', '.join(spec.columns)} FROM {table}{where} "
        f"ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
    )
    if limit is not None:
        if limit < 1:
            raise ValidationError("limit must be positive", field="limit")
        query += " LIMIT ?"
        params.append(limit)

    rows = [dict(row) for row in await db.fetch_all(query, params)]
    return [row for row in rows if is_allowed(caller, table, "select", row)]


async def get(db: DatabaseAdapter, caller: Caller, table: str, row_id: str) -> dict:
    spec = _spec(table)
    rows = await select(db, caller, table, {"id": row_id})
    if not rows:
        raise NotFoundError(f"{spec.label} not found")
    return rows[0]


async def insert(db: DatabaseAdapter, caller: Caller, table: str, row: dict) -> dict:
    spec = _spec(table)
    if not is_allowed(caller, table, "insert", row):
        raise deny(caller, table, "insert")

    model = _validate(spec.create, row)
    values = {key: _to_db(value) for key, value in model.model_dump(exclude_none=True).items()}
    values = prepare_insert(table, values, caller, datetime.now(UTC))

    row_id = str(uuid.uuid4())
    values = {"id": row_id, **values}
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    await db.execute(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
        list(values.values()),
    )
    await db.commit()
    logger.info("Inserted %s %s (staff=%s)", table, row_id, caller.staff_id)
    return await _fetch(db, table, row_id)


async def update(db: DatabaseAdapter, caller: Caller, table: str, row_id: str, patch: dict) -> dict:
    spec = _spec(table)
    # Role is checked before the row is looked up, so a denial says nothing about existence
    if not role_allows(caller, table, "update") or spec.update is None:
        raise deny(caller, table, "update")

    model = _validate(spec.update, patch)
    changes = {key: _to_db(value) for key, value in model.model_dump(exclude_unset=True).items()}
    if not changes:
        raise ValidationError("No fields to update")

    existing = await _fetch(db, table, row_id)
    if existing is None or not is_allowed(caller, table, "select", existing):
        raise NotFoundError(f"{spec.label} not found")

    changes = prepare_update(table, existing, changes, caller, datetime.now(UTC))
    assignments = ", ".join(f"{column} = ?" for column in changes)
    await db.execute(
        f"UPDATE {table} SET {assignments} WHERE id = ?",
        [*changes.values(), row_id],
    )
    await db.commit()
    logger.info("Updated %s %s fields=%s (staff=%s)", table, row_id, sorted(changes), caller.staff_id)
    return await _fetch(db, table, row_id)


async def embed(
    db: DatabaseAdapter,
    caller: Caller,
    rows: list[dict],
    foreign_key: str,
    table: str,
    as_field: str,
) -> list[dict]:
    """Attach the parent row referenced by ``foreign_key`` under ``as_field``.

    Parents are read through ``select``, so a parent the caller may not see is
    attached as None.
    """
    ids = {row[foreign_key] for row in rows if row.get(foreign_key)}
    parents: dict[str, dict] = {}
    if ids:
        try:
            parents = {p["id"]: p for p in await select(db, caller, table, {"id": sorted(ids)})}
        except AuthorizationError:
            parents = {}
    for row in rows:
        row[as_field] = parents.get(row.get(foreign_key))
    return rows


async def embed_children(
    db: DatabaseAdapter,
    caller: Caller,
    rows: list[dict],
    table: str,
    foreign_key: str,
    as_field: str,
) -> list[dict]:
    """Attach the rows of ``table`` that reference each row, as a list under ``as_field``."""
    grouped: dict[str, list[dict]] = {row["id"]: [] for row in rows}
    if grouped:
        try:
            children = await select(db, caller, table, {foreign_key: sorted(grouped)})
        except AuthorizationError:
            children = []
        for child in children:
            grouped[child[foreign_key]].append(child)
    for row in rows:
        row[as_field] = grouped[row["id"]]
    return rows
