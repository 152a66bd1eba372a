import logging
from datetime import date
from typing import Optional
from fastapi import FastAPI, HTTPException, Depends, Query, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from . import client
from .booking import BookingOrchestrator, HandoffOutcome
from .cards import Directory, filter_directory, load_directory
from .dashboard import AppointmentTableController
from .models import CardDescription, DeleteResult, Doctor, FetchOutcome, PatientRecord, Role, TableRow
from .session import SessionContext, SessionStore

logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# HTTPBearer scheme so Swagger-UI can attach the session token globally
auth_scheme = HTTPBearer(auto_error=False)

app = FastAPI(title="Clinic Portal")


class Overlay(BaseModel):
    doctor: Doctor
    patient: PatientRecord


class BookingResp(BaseModel):
    outcome: HandoffOutcome
    overlay: Optional[Overlay] = None


class DashboardResp(BaseModel):
    selected_date: date
    patient_name: Optional[str] = None
    outcome: FetchOutcome
    rows: list[TableRow]


def current_session(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    x_user_role: Optional[str] = Header(None),
) -> SessionContext:
    """Build the caller's session from the bearer token and X-User-Role header."""
    token = None
    if credentials is not None and credentials.scheme.lower() == "bearer":
        token = credentials.credentials
    return SessionContext(SessionStore(Role.parse(x_user_role), token))


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/directory", response_model=list[CardDescription])
async def directory(session: SessionContext = Depends(current_session)):
    """Doctor cards with the actions the caller's role allows."""
    cards = await load_directory(Directory(), session, fetch=client.get_doctors)
    return cards.cards


@app.get("/directory/filter", response_model=list[CardDescription])
async def directory_filter(
    name: Optional[str] = Query(None),
    time: Optional[str] = Query(None, description="AM or PM"),
    specialty: Optional[str] = Query(None),
    session: SessionContext = Depends(current_session),
):
    cards = await filter_directory(Directory(), session, name, time, specialty, fetch=client.filter_doctors)
    return cards.cards


@app.delete("/directory/{doctor_id}", response_model=DeleteResult)
async def remove_doctor(doctor_id: int, session: SessionContext = Depends(current_session)):
    if session.current_role() is not Role.ADMIN:
        raise HTTPException(status_code=403, detail="Admin role required")
    token = session.current_token()
    if token is None:
        raise HTTPException(status_code=401, detail="Missing token")

    result = await client.delete_doctor(doctor_id, token)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.message)
    return result


@app.post("/directory/{doctor_id}/book", response_model=BookingResp)
async def book(doctor_id: int, session: SessionContext = Depends(current_session)):
    """Run the booking handoff and return what the overlay would be opened with."""
    cards = await load_directory(Directory(), session, fetch=client.get_doctors)
    card = cards.get(doctor_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    if card.action.kind == "prompt_login":
        raise HTTPException(status_code=401, detail="Patient needs to login first.")
    if card.action.kind != "book":
        raise HTTPException(status_code=403, detail="Booking not available for this role")

    opened: list[Overlay] = []
    orchestrator = _orchestrator(session, lambda _event, doctor, patient: opened.append(Overlay(doctor=doctor, patient=patient)))
    outcome = await orchestrator.initiate_booking(card.action.doctor, None)
    if outcome is HandoffOutcome.LOGIN_REQUIRED:
        raise HTTPException(status_code=401, detail="Login required")
    if outcome is HandoffOutcome.PATIENT_FETCH_FAILED:
        raise HTTPException(status_code=502, detail="Patient record unavailable")
    return BookingResp(outcome=outcome, overlay=opened[0])


@app.get("/dashboard/appointments", response_model=DashboardResp)
async def dashboard(
    day: Optional[date] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    patient_name: Optional[str] = Query(None),
    session: SessionContext = Depends(current_session),
):
    if session.current_token() is None:
        raise HTTPException(status_code=401, detail="Missing token")

    controller = AppointmentTableController(session, fetch_appointments=client.fetch_appointments)
    if day is not None:
        controller.filter = controller.filter.model_copy(update={"selected_date": day})
    outcome = await controller.set_patient_name_filter(patient_name)
    return DashboardResp(
        selected_date=controller.filter.selected_date,
        patient_name=controller.filter.patient_name,
        outcome=outcome,
        rows=controller.table.rows,
    )


def _orchestrator(session: SessionContext, overlay) -> BookingOrchestrator:
    return BookingOrchestrator(
        session,
        fetch_patient_record=client.fetch_patient_record,
        show_booking_overlay=overlay,
        redirect_to_login=lambda: logger.info("redirecting caller to login"),
    )
