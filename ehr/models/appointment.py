from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ehr.models.patient import PatientRecord
from ehr.models.staff import StaffRecord

AppointmentStatus = Literal["scheduled", "completed", "cancelled", "no_show"]


class AppointmentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    patient_id: UUID
    doctor_id: UUID
    appointment_date: datetime
    status: AppointmentStatus = "scheduled"
    reason: str
    notes: str | None = None


class AppointmentRequest(AppointmentCreate):
    """Request body; the doctor defaults to the calling staff member."""

    doctor_id: UUID | None = None


class AppointmentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    doctor_id: UUID | None = None
    appointment_date: datetime | None = None
    status: AppointmentStatus | None = None
    reason: str | None = None
    notes: str | None = None


class AppointmentRecord(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    appointment_date: datetime
    status: AppointmentStatus
    reason: str
    notes: str | None = None
    created_at: datetime | None = None
    patient: PatientRecord | None = None
    doctor: StaffRecord | None = None
