from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ehr.models.patient import PatientRecord

LabStatus = Literal["pending", "completed", "cancelled"]


class LabResultCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    patient_id: UUID
    medical_record_id: UUID | None = None
    test_name: str
    test_type: str
    results: str | None = None
    status: LabStatus = "pending"
    ordered_by: UUID


class LabResultRequest(LabResultCreate):
    ordered_by: UUID | None = None


class LabResultUpdate(BaseModel):
    """Fields a lab technician (or ordering clinician) may change.

    ``completed_at`` is stamped by the server when the status moves to
    ``completed``.
    """

    model_config = ConfigDict(extra="forbid")

    results: str | None = None
    status: LabStatus | None = None
    performed_by: UUID | None = None


class LabResultRecord(BaseModel):
    id: str
    patient_id: str
    medical_record_id: str | None = None
    test_name: str
    test_type: str
    results: str | None = None
    status: LabStatus
    ordered_by: str
    performed_by: str | None = None
    ordered_at: datetime | None = None
    completed_at: datetime | None = None
    patient: PatientRecord | None = None
