from datetime import date
from enum import Enum
from typing import Annotated, Literal, Union
from pydantic import AliasChoices, BaseModel, Field, field_validator


class Role(str, Enum):
    UNAUTHENTICATED = ""
    PATIENT = "patient"
    LOGGED_IN_PATIENT = "loggedPatient"
    ADMIN = "admin"
    DOCTOR = "doctor"

    @classmethod
    def parse(cls, raw: str | None) -> "Role":
        """Map a stored role string onto a Role; unknown values are unauthenticated."""
        try:
            return cls((raw or "").strip())
        except ValueError:
            return cls.UNAUTHENTICATED


class Session(BaseModel):
    role: Role = Role.UNAUTHENTICATED
    token: str | None = None

    model_config = {"frozen": True}


class Doctor(BaseModel):
    id: int
    name: str
    specialization: str = ""
    email: str = ""
    # time slots, e.g. "09:00-10:00"; the backend sends availableTimes
    availability: tuple[str, ...] = Field(default=(), validation_alias=AliasChoices("availability", "availableTimes"))

    model_config = {"frozen": True, "populate_by_name": True}


class DoctorDraft(BaseModel):
    """Payload for registering a new doctor."""
    name: str
    specialization: str
    email: str
    password: str
    phone: str = ""
    availability: list[str] = Field(default_factory=list, alias="availableTimes")

    model_config = {"populate_by_name": True}


class PatientRecord(BaseModel):
    id: int
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class DeleteResult(BaseModel):
    success: bool
    message: str


class SaveResult(BaseModel):
    success: bool
    message: str
    doctor: Doctor | None = None


# Card actions -------------------------------------------------------------

class NoAction(BaseModel):
    kind: Literal["none"] = "none"

    model_config = {"frozen": True}


class DeleteAction(BaseModel):
    kind: Literal["delete"] = "delete"
    doctor_id: int
    token: str | None = None

    model_config = {"frozen": True}


class PromptLoginAction(BaseModel):
    kind: Literal["prompt_login"] = "prompt_login"

    model_config = {"frozen": True}


class BookAction(BaseModel):
    kind: Literal["book"] = "book"
    doctor: Doctor
    token: str | None = None

    model_config = {"frozen": True}


CardAction = Annotated[
    Union[NoAction, DeleteAction, PromptLoginAction, BookAction],
    Field(discriminator="kind"),
]


class CardDescription(BaseModel):
    doctor_id: int
    name: str
    specialization: str
    email: str
    availability_line: str
    action_label: str | None = None
    action: CardAction


# Appointments -------------------------------------------------------------

class AppointmentFilter(BaseModel):
    selected_date: date
    patient_name: str | None = None  # trimmed, never empty

    @field_validator("patient_name")
    @classmethod
    def _blank_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class AppointmentEntry(BaseModel):
    """Appointment record as returned by the scheduling backend."""
    id: int | str
    patient_id: int | str = Field(alias="patientId")
    patient_name: str = Field(alias="patientName")
    patient_phone: str | None = Field(None, alias="patientPhone")
    patient_email: str | None = Field(None, alias="patientEmail")
    appointment_time: str | None = Field(None, alias="appointmentTime")  # ISO-8601 dateTime
    status: int | str | None = None

    model_config = {"populate_by_name": True}


class AppointmentMeta(BaseModel):
    appointment_id: int | str
    appointment_time: str | None = None
    status: int | str | None = None


class AppointmentRow(BaseModel):
    kind: Literal["appointment"] = "appointment"
    patient_id: int | str
    patient_name: str
    patient_phone: str | None = None
    patient_email: str | None = None
    appointment_meta: AppointmentMeta

    @classmethod
    def from_entry(cls, entry: AppointmentEntry) -> "AppointmentRow":
        return cls(
            patient_id=entry.patient_id,
            patient_name=entry.patient_name,
            patient_phone=entry.patient_phone,
            patient_email=entry.patient_email,
            appointment_meta=AppointmentMeta(
                appointment_id=entry.id,
                appointment_time=entry.appointment_time,
                status=entry.status,
            ),
        )


class InfoRow(BaseModel):
    """Single-cell row carrying an informational message."""
    kind: Literal["info"] = "info"
    message: str


TableRow = Annotated[Union[AppointmentRow, InfoRow], Field(discriminator="kind")]


class Loading(BaseModel):
    state: Literal["loading"] = "loading"


class Success(BaseModel):
    state: Literal["success"] = "success"
    rows: list[AppointmentRow]


class Empty(BaseModel):
    state: Literal["empty"] = "empty"


class Failure(BaseModel):
    state: Literal["failure"] = "failure"
    reason: str


FetchOutcome = Annotated[Union[Loading, Success, Empty, Failure], Field(discriminator="state")]
