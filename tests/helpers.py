"""Payload builders shared by the test modules."""

import itertools

from ehr.services import data_access

STAFF_ROLES_BELOW_ADMIN = ("doctor", "nurse", "receptionist", "lab_technician")
ALL_ROLES = ("admin", *STAFF_ROLES_BELOW_ADMIN)

_national_ids = itertools.count(1)


def staff_payload(user_id: str, role: str, **overrides) -> dict:
    payload = {
        "user_id": user_id,
        "first_name": role.replace("_", " ").title(),
        "last_name": "Chikwanha",
        "role": role,
        "phone": "+263 77 000 0000",
        "email": f"{role}@test.hospital",
    }
    if role == "doctor":
        payload["specialization"] = "General Medicine"
        payload["license_number"] = "MD-ZW-00001"
    payload.update(overrides)
    return payload


def patient_payload(**overrides) -> dict:
    payload = {
        "first_name": "Rudo",
        "last_name": "Mutasa",
        "date_of_birth": "1988-04-12",
        "gender": "female",
        "phone": "+263 71 555 0101",
        "address": "14 Seke Road, Chitungwiza",
        "national_id": f"63-{next(_national_ids):06d}-X-42",
        "emergency_contact_name": "Tatenda Mutasa",
        "emergency_contact_phone": "+263 71 555 0102",
    }
    payload.update(overrides)
    return payload


def appointment_payload(patient_id: str, doctor_id: str, **overrides) -> dict:
    payload = {
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "appointment_date": "2026-11-02T09:30:00+00:00",
        "reason": "Follow-up on blood pressure",
    }
    payload.update(overrides)
    return payload


def medical_record_payload(patient_id: str, doctor_id: str, **overrides) -> dict:
    payload = {
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "chief_complaint": "Headache for three days",
        "diagnosis": "Tension headache",
        "treatment_plan": "Analgesia and rest",
    }
    payload.update(overrides)
    return payload


def vital_payload(medical_record_id: str, recorded_by: str, **overrides) -> dict:
    payload = {
        "medical_record_id": medical_record_id,
        "blood_pressure_systolic": 128,
        "blood_pressure_diastolic": 84,
        "heart_rate": 76,
        "temperature": 36.8,
        "recorded_by": recorded_by,
    }
    payload.update(overrides)
    return payload


def prescription_payload(medical_record_id: str, patient_id: str, doctor_id: str, **overrides) -> dict:
    payload = {
        "medical_record_id": medical_record_id,
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "medication_name": "Paracetamol",
        "dosage": "1 g",
        "frequency": "Every 8 hours",
        "duration": "5 days",
    }
    payload.update(overrides)
    return payload


def lab_result_payload(patient_id: str, ordered_by: str, **overrides) -> dict:
    payload = {
        "patient_id": patient_id,
        "test_name": "Full blood count",
        "test_type": "Haematology",
        "ordered_by": ordered_by,
    }
    payload.update(overrides)
    return payload


async def seed_clinic(db, callers) -> dict:
    """Create one row per clinical table and return their ids (plus the doctor's staff id)."""
    doctor = callers["doctor"]
    patient = await data_access.insert(db, callers["receptionist"], "patients", patient_payload())
    appointment = await data_access.insert(
        db, doctor, "appointments", appointment_payload(patient["id"], doctor.staff_id)
    )
    record = await data_access.insert(
        db,
        doctor,
        "medical_records",
        medical_record_payload(patient["id"], doctor.staff_id, appointment_id=appointment["id"]),
    )
    vital = await data_access.insert(
        db, callers["nurse"], "vitals", vital_payload(record["id"], callers["nurse"].staff_id)
    )
    prescription = await data_access.insert(
        db, doctor, "prescriptions", prescription_payload(record["id"], patient["id"], doctor.staff_id)
    )
    lab_result = await data_access.insert(
        db, doctor, "lab_results", lab_result_payload(patient["id"], doctor.staff_id, medical_record_id=record["id"])
    )
    return {
        "staff": doctor.staff_id,
        "patients": patient["id"],
        "appointments": appointment["id"],
        "medical_records": record["id"],
        "vitals": vital["id"],
        "prescriptions": prescription["id"],
        "lab_results": lab_result["id"],
    }
