from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ehr.models.patient import PatientRecord
from ehr.models.staff import StaffRecord
from ehr.models.vital import VitalMeasurements, VitalRecord


class MedicalRecordCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    patient_id: UUID
    doctor_id: UUID
    # Walk-in encounters have no appointment
    appointment_id: UUID | None = None
    visit_date: datetime | None = None
    chief_complaint: str
    diagnosis: str
    treatment_plan: str
    notes: str | None = None


class MedicalRecordRequest(MedicalRecordCreate):
    """Request body; vitals taken at the visit may be submitted with the record."""

    doctor_id: UUID | None = None
    vitals: VitalMeasurements | None = None


class MedicalRecordUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    chief_complaint: str | None = None
    diagnosis: str | None = None
    treatment_plan: str | None = None
    notes: str | None = None


class MedicalRecordRecord(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    appointment_id: str | None = None
    visit_date: datetime | None = None
    chief_complaint: str
    diagnosis: str
    treatment_plan: str
    notes: str | None = None
    created_at: datetime | None = None
    patient: PatientRecord | None = None
    doctor: StaffRecord | None = None
    vitals: list[VitalRecord] = []
