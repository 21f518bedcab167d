"""Binding between an authenticated identity and a staff profile.

Authentication happens upstream; this module only answers "who is this
identity inside the hospital?". Exactly one staff row may reference an
identity. An identity with no staff row is a valid, roleless caller.
"""

import logging
import uuid
from dataclasses import dataclass

from ehr.database import DatabaseAdapter, normalize_email
from ehr.errors import ValidationError

logger = logging.getLogger(__name__)

# Dashboard sections and the roles that may open them
DASHBOARD_VIEWS: list[tuple[str, frozenset[str]]] = [
    ("patients", frozenset({"admin", "doctor", "nurse", "receptionist"})),
    ("appointments", frozenset({"admin", "doctor", "nurse", "receptionist"})),
    ("records", frozenset({"admin", "doctor", "nurse"})),
    ("prescriptions", frozenset({"admin", "doctor", "nurse"})),
    ("lab", frozenset({"admin", "doctor", "nurse", "lab_technician"})),
]


@dataclass(frozen=True)
class Caller:
    """Explicit request context handed to every data-access call."""

    user_id: str
    staff_id: str | None = None
    role: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role is not None


async def resolve_caller(db: DatabaseAdapter, user_id: str) -> Caller:
    row = await db.fetch_one(
        "SELECT id, role FROM staff WHERE user_id = ?",
        (user_id,),
    )
    if not row:
        logger.debug("Identity %s has no staff profile", user_id)
        return Caller(user_id=user_id)
    logger.debug("Identity %s resolved to staff %s (%s)", user_id, row["id"], row["role"])
    return Caller(user_id=user_id, staff_id=row["id"], role=row["role"])


async def register_identity(db: DatabaseAdapter, email: str) -> dict:
    """Register an identity with no privileges. Duplicate emails raise UniquenessError."""
    email = normalize_email(email)
    if not email:
        raise ValidationError("email must not be empty", field="email")
    user_id = str(uuid.uuid4())
    await db.execute("INSERT INTO users (id, email) VALUES (?, ?)", (user_id, email))
    await db.commit()
    logger.info("Registered identity %s", user_id)
    row = await db.fetch_one("SELECT id, email, created_at FROM users WHERE id = ?", (user_id,))
    return dict(row)


def views_for(role: str | None) -> list[str]:
    if role is None:
        return []
    return [view for view, roles in DASHBOARD_VIEWS if role in roles]
