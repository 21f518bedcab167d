from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

Gender = Literal["male", "female", "other"]


class PatientCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: str
    email: str | None = None
    address: str
    national_id: str
    blood_type: str | None = None
    allergies: str | None = None
    emergency_contact_name: str
    emergency_contact_phone: str


class PatientUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    national_id: str | None = None
    blood_type: str | None = None
    allergies: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None


class PatientRecord(BaseModel):
    id: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    phone: str
    email: str | None = None
    address: str
    national_id: str
    blood_type: str | None = None
    allergies: str | None = None
    emergency_contact_name: str
    emergency_contact_phone: str
    created_at: datetime | None = None
