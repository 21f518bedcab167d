from datetime import datetime
from typing import Literal, get_args
from uuid import UUID

from pydantic import BaseModel, ConfigDict

StaffRole = Literal["admin", "doctor", "nurse", "receptionist", "lab_technician"]
STAFF_ROLES: tuple[str, ...] = get_args(StaffRole)


class StaffCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: UUID
    first_name: str
    last_name: str
    role: StaffRole
    specialization: str | None = None
    phone: str
    email: str
    license_number: str | None = None


class StaffUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str | None = None
    last_name: str | None = None
    role: StaffRole | None = None
    specialization: str | None = None
    phone: str | None = None
    email: str | None = None
    license_number: str | None = None


class StaffRecord(BaseModel):
    id: str
    user_id: str
    first_name: str
    last_name: str
    role: StaffRole
    specialization: str | None = None
    phone: str
    email: str
    license_number: str | None = None
    created_at: datetime | None = None
