from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ehr.models.patient import PatientRecord


class PrescriptionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    medical_record_id: UUID
    patient_id: UUID
    doctor_id: UUID
    medication_name: str
    dosage: str
    frequency: str
    duration: str
    instructions: str | None = None


class PrescriptionRequest(PrescriptionCreate):
    """Request body; patient and doctor are filled in from the record and the caller."""

    patient_id: UUID | None = None
    doctor_id: UUID | None = None


class PrescriptionRecord(BaseModel):
    id: str
    medical_record_id: str
    patient_id: str
    doctor_id: str
    medication_name: str
    dosage: str
    frequency: str
    duration: str
    instructions: str | None = None
    created_at: datetime | None = None
    patient: PatientRecord | None = None
