from __future__ import annotations

import logging
import re
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Iterable, Sequence
from urllib.parse import urlparse

import aiosqlite

from ehr.config import (
    BOOTSTRAP_ADMIN_EMAIL,
    BOOTSTRAP_ADMIN_FIRST_NAME,
    BOOTSTRAP_ADMIN_LAST_NAME,
    DATABASE_MAX_CONNECTIONS,
    DATABASE_PATH,
    DATABASE_URL,
    DEMO_ACCOUNT_EMAIL,
    SEED_DEMO_ACCOUNT,
)
from ehr.errors import EHRError, ReferentialIntegrityError, UniquenessError, ValidationError

try:  # Optional: only required when DATABASE_URL is set (Postgres)
    import asyncpg  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    asyncpg = None

logger = logging.getLogger(__name__)


class DatabaseAdapter:
    engine: str

    async def execute(self, query: str, params: Sequence | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_one(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_all(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def commit(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executescript(self, script: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


def format_sqlite_timestamp(value: datetime) -> str:
    """Render a datetime in UTC with millisecond precision, the form of ``_SQLITE_NOW``.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _sqlite_param(value):
    # Timestamps share one UTC text form so that ORDER BY follows the instant
    if isinstance(value, datetime):
        return format_sqlite_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _sqlite_params(params: Sequence | None) -> tuple:
    return tuple(_sqlite_param(v) for v in (params or ()))


def _sqlite_column(message: str) -> str | None:
    # "UNIQUE constraint failed: patients.national_id"
    _, _, detail = message.partition(": ")
    if not detail:
        return None
    return detail.split(",")[0].strip().split(".")[-1]


def translate_sqlite_error(exc: sqlite3.IntegrityError) -> EHRError:
    """Map a SQLite integrity failure onto the error taxonomy."""
    message = str(exc)
    if message.startswith("UNIQUE constraint failed"):
        column = _sqlite_column(message)
        return UniquenessError(f"A row with this {column} already exists", field=column)
    if message.startswith("FOREIGN KEY constraint failed"):
        return ReferentialIntegrityError("Referenced row does not exist")
    if message.startswith("NOT NULL constraint failed"):
        column = _sqlite_column(message)
        return ValidationError(f"{column} is required", field=column)
    if message.startswith("CHECK constraint failed"):
        _, _, detail = message.partition(": ")
        field = detail.split(" ")[0] if detail else None
        return ValidationError(f"Value not allowed for {field}", field=field)
    return ValidationError(message)


_PG_KEY_RE = re.compile(r"Key \((\w+)\)")


def translate_postgres_error(exc: Exception) -> EHRError:
    """Map an asyncpg integrity failure onto the error taxonomy."""
    detail = getattr(exc, "detail", None) or ""
    match = _PG_KEY_RE.search(detail)
    column = getattr(exc, "column_name", None) or (match.group(1) if match else None)
    if isinstance(exc, asyncpg.exceptions.UniqueViolationError):
        return UniquenessError(f"A row with this {column} already exists", field=column)
    if isinstance(exc, asyncpg.exceptions.ForeignKeyViolationError):
        return ReferentialIntegrityError("Referenced row does not exist", field=column)
    if isinstance(exc, asyncpg.exceptions.NotNullViolationError):
        return ValidationError(f"{column} is required", field=column)
    if isinstance(exc, asyncpg.exceptions.CheckViolationError):
        return ValidationError(f"Value not allowed by {exc.constraint_name}", field=column)
    return ValidationError(str(exc), field=column)


@dataclass
class SQLiteAdapter(DatabaseAdapter):
    conn: aiosqlite.Connection
    engine: str = "sqlite"

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        try:
            await self.conn.execute(query, _sqlite_params(params))
        except sqlite3.IntegrityError as exc:
            raise translate_sqlite_error(exc) from exc

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        try:
            await self.conn.executemany(query, [_sqlite_params(p) for p in seq_params])
        except sqlite3.IntegrityError as exc:
            raise translate_sqlite_error(exc) from exc

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, _sqlite_params(params))
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, _sqlite_params(params))
        return await cursor.fetchall()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()

    async def executescript(self, script: str) -> None:
        await self.conn.executescript(script)


@dataclass
class PostgresAdapter(DatabaseAdapter):
    pool: "asyncpg.Pool"  # type: ignore[name-defined]
    engine: str = "postgres"

    @staticmethod
    def _translate_query(query: str) -> str:
        # Convert SQLite-style ? placeholders to asyncpg-style $1, $2, ...
        if "$1" in query:
            return query
        idx = 1
        out = []
        for ch in query:
            if ch == "?":
                out.append(f"${idx}")
                idx += 1
            else:
                out.append(ch)
        return "".join(out)

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            try:
                await conn.execute(q, *(params or ()))
            except asyncpg.exceptions.IntegrityConstraintViolationError as exc:
                raise translate_postgres_error(exc) from exc

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            try:
                await conn.executemany(q, seq_params)
            except asyncpg.exceptions.IntegrityConstraintViolationError as exc:
                raise translate_postgres_error(exc) from exc

    async def fetch_one(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(q, *(params or ()))

    async def fetch_all(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetch(q, *(params or ()))

    async def commit(self) -> None:
        # asyncpg autocommits per statement unless an explicit transaction is used.
        return

    async def close(self) -> None:
        await self.pool.close()

    async def executescript(self, script: str) -> None:
        # Not supported for Postgres; callers should split statements.
        raise NotImplementedError


_db: DatabaseAdapter | None = None


async def _connect_sqlite(path: str) -> SQLiteAdapter:
    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    # SQLite leaves foreign keys unenforced unless asked, per connection
    await conn.execute("PRAGMA foreign_keys = ON")
    logger.info("Connected to SQLite database at %s", path)
    return SQLiteAdapter(conn)


async def get_db() -> DatabaseAdapter:
    global _db
    if _db is None:
        if DATABASE_URL:
            if DATABASE_URL.startswith("sqlite"):
                _db = await _connect_sqlite(_sqlite_path_from_url(DATABASE_URL) or DATABASE_PATH)
            else:
                if asyncpg is None:
                    raise RuntimeError(
                        "DATABASE_URL is set but asyncpg is not installed. "
                        "Install asyncpg or unset DATABASE_URL."
                    )
                pool = await asyncpg.create_pool(
                    dsn=DATABASE_URL,
                    min_size=1,
                    max_size=DATABASE_MAX_CONNECTIONS,
                )
                _db = PostgresAdapter(pool)
                logger.info("Connected to Postgres database")
        else:
            _db = await _connect_sqlite(DATABASE_PATH)
    return _db


def _sqlite_path_from_url(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or ""
    if not path or path == "/":
        return ""
    # sqlite:////absolute/path.db -> keep absolute path
    if url.startswith("sqlite:////"):
        return path
    # sqlite:///relative.db -> strip leading slash
    if path.startswith("/"):
        return path[1:]
    return path


_SQLITE_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

SQLITE_SCHEMA = f"""
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS staff (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id),
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('admin', 'doctor', 'nurse', 'receptionist', 'lab_technician')),
        specialization TEXT,
        phone TEXT NOT NULL,
        email TEXT NOT NULL,
        license_number TEXT,
        created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        date_of_birth TEXT NOT NULL,
        gender TEXT NOT NULL CHECK (gender IN ('male', 'female', 'other')),
        phone TEXT NOT NULL,
        email TEXT,
        address TEXT NOT NULL,
        national_id TEXT NOT NULL UNIQUE,
        blood_type TEXT,
        allergies TEXT,
        emergency_contact_name TEXT NOT NULL,
        emergency_contact_phone TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        doctor_id TEXT NOT NULL REFERENCES staff(id),
        appointment_date TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'scheduled'
            CHECK (status IN ('scheduled', 'completed', 'cancelled', 'no_show')),
        reason TEXT NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS medical_records (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        doctor_id TEXT NOT NULL REFERENCES staff(id),
        appointment_id TEXT REFERENCES appointments(id),
        visit_date TEXT NOT NULL DEFAULT {_SQLITE_NOW},
        chief_complaint TEXT NOT NULL,
        diagnosis TEXT NOT NULL,
        treatment_plan TEXT NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS vitals (
        id TEXT PRIMARY KEY,
        medical_record_id TEXT NOT NULL REFERENCES medical_records(id),
        blood_pressure_systolic INTEGER,
        blood_pressure_diastolic INTEGER,
        heart_rate INTEGER,
        temperature REAL,
        weight REAL,
        height REAL,
        recorded_by TEXT NOT NULL REFERENCES staff(id),
        recorded_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS prescriptions (
        id TEXT PRIMARY KEY,
        medical_record_id TEXT NOT NULL REFERENCES medical_records(id),
        patient_id TEXT NOT NULL REFERENCES patients(id),
        doctor_id TEXT NOT NULL REFERENCES staff(id),
        medication_name TEXT NOT NULL,
        dosage TEXT NOT NULL,
        frequency TEXT NOT NULL,
        duration TEXT NOT NULL,
        instructions TEXT,
        created_at TEXT NOT NULL DEFAULT {_SQLITE_NOW}
    );

    CREATE TABLE IF NOT EXISTS lab_results (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        medical_record_id TEXT REFERENCES medical_records(id),
        test_name TEXT NOT NULL,
        test_type TEXT NOT NULL,
        results TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'completed', 'cancelled')),
        ordered_by TEXT NOT NULL REFERENCES staff(id),
        performed_by TEXT REFERENCES staff(id),
        ordered_at TEXT NOT NULL DEFAULT {_SQLITE_NOW},
        completed_at TEXT
    );
"""

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS staff (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id),
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('admin', 'doctor', 'nurse', 'receptionist', 'lab_technician')),
        specialization TEXT,
        phone TEXT NOT NULL,
        email TEXT NOT NULL,
        license_number TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        date_of_birth DATE NOT NULL,
        gender TEXT NOT NULL CHECK (gender IN ('male', 'female', 'other')),
        phone TEXT NOT NULL,
        email TEXT,
        address TEXT NOT NULL,
        national_id TEXT NOT NULL UNIQUE,
        blood_type TEXT,
        allergies TEXT,
        emergency_contact_name TEXT NOT NULL,
        emergency_contact_phone TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        doctor_id TEXT NOT NULL REFERENCES staff(id),
        appointment_date TIMESTAMPTZ NOT NULL,
        status TEXT NOT NULL DEFAULT 'scheduled'
            CHECK (status IN ('scheduled', 'completed', 'cancelled', 'no_show')),
        reason TEXT NOT NULL,
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS medical_records (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        doctor_id TEXT NOT NULL REFERENCES staff(id),
        appointment_id TEXT REFERENCES appointments(id),
        visit_date TIMESTAMPTZ NOT NULL DEFAULT now(),
        chief_complaint TEXT NOT NULL,
        diagnosis TEXT NOT NULL,
        treatment_plan TEXT NOT NULL,
        notes TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS vitals (
        id TEXT PRIMARY KEY,
        medical_record_id TEXT NOT NULL REFERENCES medical_records(id),
        blood_pressure_systolic INTEGER,
        blood_pressure_diastolic INTEGER,
        heart_rate INTEGER,
        temperature NUMERIC,
        weight NUMERIC,
        height NUMERIC,
        recorded_by TEXT NOT NULL REFERENCES staff(id),
        recorded_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS prescriptions (
        id TEXT PRIMARY KEY,
        medical_record_id TEXT NOT NULL REFERENCES medical_records(id),
        patient_id TEXT NOT NULL REFERENCES patients(id),
        doctor_id TEXT NOT NULL REFERENCES staff(id),
        medication_name TEXT NOT NULL,
        dosage TEXT NOT NULL,
        frequency TEXT NOT NULL,
        duration TEXT NOT NULL,
        instructions TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS lab_results (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        medical_record_id TEXT REFERENCES medical_records(id),
        test_name TEXT NOT NULL,
        test_type TEXT NOT NULL,
        results TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'completed', 'cancelled')),
        ordered_by TEXT NOT NULL REFERENCES staff(id),
        performed_by TEXT REFERENCES staff(id),
        ordered_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        completed_at TIMESTAMPTZ
    );
    """,
]


async def init_db() -> None:
    db = await get_db()

    if db.engine == "sqlite":
        await db.executescript(SQLITE_SCHEMA)
    else:
        for stmt in POSTGRES_SCHEMA:
            await db.execute(stmt)

    await db.commit()

    if BOOTSTRAP_ADMIN_EMAIL:
        await ensure_admin_account(
            db,
            email=BOOTSTRAP_ADMIN_EMAIL,
            first_name=BOOTSTRAP_ADMIN_FIRST_NAME,
            last_name=BOOTSTRAP_ADMIN_LAST_NAME,
        )

    if SEED_DEMO_ACCOUNT:
        await _seed_demo_account(db)


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def _ensure_identity(db: DatabaseAdapter, email: str) -> str:
    email = normalize_email(email)
    row = await db.fetch_one("SELECT id FROM users WHERE email = ?", (email,))
    if row:
        return row["id"]
    user_id = str(uuid.uuid4())
    await db.execute("INSERT INTO users (id, email) VALUES (?, ?)", (user_id, email))
    return user_id


async def ensure_admin_account(
    db: DatabaseAdapter,
    email: str,
    first_name: str = "System",
    last_name: str = "Administrator",
    phone: str = "",
) -> str:
    """Create the first admin so the rest of the staff can be created through the API.

    Runs beneath the access-control layer. Does nothing when an admin profile
    already exists; returns the identity id of the admin bound to ``email``
    (or of the existing admin).
    """
    email = normalize_email(email)
    existing = await db.fetch_one(
        "SELECT user_id FROM staff WHERE role = 'admin' ORDER BY created_at ASC LIMIT 1"
    )
    if existing:
        return existing["user_id"]

    user_id = await _ensure_identity(db, email)
    await db.execute(
        """INSERT INTO staff (id, user_id, first_name, last_name, role, phone, email)
        VALUES (?, ?, ?, ?, 'admin', ?, ?)""",
        (str(uuid.uuid4()), user_id, first_name, last_name, phone, email),
    )
    await db.commit()
    logger.info("Bootstrapped admin account %s (user_id=%s)", email, user_id)
    return user_id


async def _seed_demo_account(db: DatabaseAdapter) -> None:
    """Seed the demo doctor account for walkthroughs."""
    user_id = await _ensure_identity(db, DEMO_ACCOUNT_EMAIL)
    existing = await db.fetch_one("SELECT id FROM staff WHERE user_id = ?", (user_id,))
    if existing:
        await db.commit()
        return

    await db.execute(
        """INSERT INTO staff (
            id, user_id, first_name, last_name, role, specialization,
            phone, email, license_number
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            str(uuid.uuid4()),
            user_id,
            "John",
            "Musara",
            "doctor",
            "General Medicine",
            "+263 77 123 4567",
            DEMO_ACCOUNT_EMAIL,
            "MD-ZW-12345",
        ),
    )
    await db.commit()
    logger.info("Seeded demo account %s", DEMO_ACCOUNT_EMAIL)
