from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class VitalMeasurements(BaseModel):
    model_config = ConfigDict(extra="forbid")

    blood_pressure_systolic: int | None = Field(None, ge=0)
    blood_pressure_diastolic: int | None = Field(None, ge=0)
    heart_rate: int | None = Field(None, ge=0)
    temperature: float | None = None
    weight: float | None = Field(None, ge=0)
    height: float | None = Field(None, ge=0)

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class VitalCreate(VitalMeasurements):
    medical_record_id: UUID
    recorded_by: UUID


class VitalRequest(VitalCreate):
    recorded_by: UUID | None = None


class VitalUpdate(VitalMeasurements):
    pass


class VitalRecord(BaseModel):
    id: str
    medical_record_id: str
    blood_pressure_systolic: int | None = None
    blood_pressure_diastolic: int | None = None
    heart_rate: int | None = None
    temperature: float | None = None
    weight: float | None = None
    height: float | None = None
    recorded_by: str
    recorded_at: datetime | None = None
