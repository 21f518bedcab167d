from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr

from ehr.models.staff import StaffRecord


class IdentityCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class IdentityRecord(BaseModel):
    id: str
    email: str
    created_at: datetime | None = None


class SessionResponse(BaseModel):
    """The caller as the rest of the API sees them.

    ``staff`` is null for an identity with no bound profile; such a caller
    has no privileges and ``views`` is empty.
    """

    user_id: str
    staff: StaffRecord | None = None
    views: list[str] = []
