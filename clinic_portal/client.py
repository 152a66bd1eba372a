"""Async client for the clinic scheduling REST API.
The backend authenticates by an opaque token carried as a path segment.
"""
from __future__ import annotations
import logging
import os
from datetime import date
from urllib.parse import quote
import httpx
from dotenv import load_dotenv
from pydantic import ValidationError
from .models import AppointmentEntry, DeleteResult, Doctor, DoctorDraft, PatientRecord, SaveResult

load_dotenv()

_BASE_URL = os.getenv("CLINIC_API_BASE_URL", "http://localhost:8080").rstrip("/")
_TIMEOUT = float(os.getenv("CLINIC_API_TIMEOUT", "15"))
_HTTP2 = os.getenv("CLINIC_API_HTTP2", "1") == "1"

# backend placeholder for an absent path filter
_NULL_SEGMENT = "null"

logger = logging.getLogger(__name__)


class PortalAPIError(RuntimeError):
    def __init__(self, status: int, detail: str):
        super().__init__(f"Scheduling API error {status}: {detail}")
        self.status = status
        self.detail = detail


class AuthorizationRequired(PortalAPIError):
    def __init__(self, detail: str = "authentication token required"):
        super().__init__(401, detail)


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(http2=_HTTP2, timeout=_TIMEOUT, headers={"Accept": "application/json"})


def _segment(value: object) -> str:
    return quote(str(value), safe="")


def _require_token(token: str | None) -> str:
    if not token:
        raise AuthorizationRequired()
    return token


def _field(payload: object, key: str) -> object:
    if not isinstance(payload, dict) or key not in payload:
        raise PortalAPIError(200, f"response is missing '{key}'")
    return payload[key]


async def get_doctors() -> list[Doctor]:
    """Return every doctor in the directory."""
    async with _client() as client:
        resp = await client.get(f"{_BASE_URL}/doctor")
        resp.raise_for_status()
        payload = resp.json()

    try:
        return [Doctor.model_validate(d) for d in _field(payload, "doctors")]
    except (ValidationError, TypeError) as e:
        raise PortalAPIError(resp.status_code, f"malformed doctor record: {e}") from e


async def delete_doctor(doctor_id: int, token: str | None) -> DeleteResult:
    """Remove a doctor. Transport and HTTP failures come back as success=False."""
    token = _require_token(token)
    url = f"{_BASE_URL}/doctor/{_segment(doctor_id)}/{_segment(token)}"
    try:
        async with _client() as client:
            resp = await client.delete(url)
            resp.raise_for_status()
            payload = resp.json() if resp.content else {}
    except (httpx.HTTPError, ValueError) as e:
        logger.error("delete_doctor %s failed: %s", doctor_id, e)
        return DeleteResult(success=False, message="Doctor deletion failed!")

    message = payload.get("message") if isinstance(payload, dict) else None
    return DeleteResult(success=True, message=message or "Doctor successfully deleted!")


async def save_doctor(draft: DoctorDraft, token: str | None) -> SaveResult:
    """Register a new doctor (admin token)."""
    token = _require_token(token)
    body = draft.model_dump(by_alias=True)
    try:
        async with _client() as client:
            resp = await client.post(f"{_BASE_URL}/doctor/{_segment(token)}", json=body)
            resp.raise_for_status()
            payload = resp.json() if resp.content else {}
    except (httpx.HTTPError, ValueError) as e:
        logger.error("save_doctor %s failed: %s", draft.email, e)
        return SaveResult(success=False, message="Doctor creation failed!")

    doctor = None
    if isinstance(payload, dict) and isinstance(payload.get("doctor"), dict):
        try:
            doctor = Doctor.model_validate(payload["doctor"])
        except ValidationError as e:
            raise PortalAPIError(resp.status_code, f"malformed doctor record: {e}") from e
    return SaveResult(success=True, message="Doctor successfully created!", doctor=doctor)


async def filter_doctors(name: str | None, time: str | None, specialty: str | None) -> list[Doctor]:
    """Filter the directory by name, time-of-day and specialty; blank criteria are ignored.
    Failures are logged and yield an empty list."""
    parts = [
        _segment(v.strip()) if v and v.strip() else _NULL_SEGMENT
        for v in (name, time, specialty)
    ]
    url = f"{_BASE_URL}/doctor/filter/{'/'.join(parts)}"
    try:
        async with _client() as client:
            resp = await client.get(url)
            resp.raise_for_status()
            payload = resp.json()
        return [Doctor.model_validate(d) for d in _field(payload, "doctors")]
    except (httpx.HTTPError, ValueError, TypeError, PortalAPIError) as e:
        logger.error("filter_doctors failed: %s", e)
        return []


async def fetch_patient_record(token: str | None) -> PatientRecord:
    """Return the patient owning the token."""
    token = _require_token(token)
    async with _client() as client:
        resp = await client.get(f"{_BASE_URL}/patient/{_segment(token)}")
        resp.raise_for_status()
        payload = resp.json()

    try:
        return PatientRecord.model_validate(_field(payload, "patient"))
    except ValidationError as e:
        raise PortalAPIError(resp.status_code, f"malformed patient record: {e}") from e


async def fetch_appointments(day: date, patient_name: str | None, token: str | None) -> list[AppointmentEntry]:
    """Return appointments on a day (YYYY-MM-DD), optionally narrowed by patient name."""
    token = _require_token(token)
    name = _segment(patient_name) if patient_name else _NULL_SEGMENT
    url = f"{_BASE_URL}/appointments/{day.isoformat()}/{name}/{_segment(token)}"
    async with _client() as client:
        resp = await client.get(url)
        resp.raise_for_status()
        payload = resp.json()

    try:
        return [AppointmentEntry.model_validate(a) for a in _field(payload, "appointments")]
    except (ValidationError, TypeError) as e:
        raise PortalAPIError(resp.status_code, f"malformed appointment list: {e}") from e
