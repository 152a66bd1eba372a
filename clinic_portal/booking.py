from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Awaitable, Callable
import httpx
from .client import AuthorizationRequired, PortalAPIError
from .models import Doctor, PatientRecord
from .session import SessionContext

logger = logging.getLogger(__name__)

PatientFetcher = Callable[[str], Awaitable[PatientRecord]]
OverlayOpener = Callable[[Any, Doctor, PatientRecord], None]


class HandoffOutcome(str, Enum):
    OVERLAY_SHOWN = "overlay_shown"
    LOGIN_REQUIRED = "login_required"
    PATIENT_FETCH_FAILED = "patient_fetch_failed"


class BookingOrchestrator:
    """Turns a "Book Now" click into an open booking overlay.

    Each step gates the next: token present, patient record fetched, overlay
    opened. Nothing is retried; the user re-triggers booking after a failure.
    """

    def __init__(
        self,
        session: SessionContext,
        fetch_patient_record: PatientFetcher,
        show_booking_overlay: OverlayOpener,
        redirect_to_login: Callable[[], None],
    ):
        self._session = session
        self._fetch_patient_record = fetch_patient_record
        self._show_booking_overlay = show_booking_overlay
        self._redirect_to_login = redirect_to_login

    def _login_required(self, doctor: Doctor) -> HandoffOutcome:
        logger.info("booking with doctor %s needs login", doctor.id)
        self._redirect_to_login()
        return HandoffOutcome.LOGIN_REQUIRED

    async def initiate_booking(self, doctor: Doctor, ui_event: Any = None) -> HandoffOutcome:
        token = self._session.current_token()
        if token is None:
            return self._login_required(doctor)

        try:
            patient = await self._fetch_patient_record(token)
        except AuthorizationRequired:
            return self._login_required(doctor)
        except (httpx.HTTPError, PortalAPIError, ValueError) as e:
            logger.error("patient record fetch failed, booking with doctor %s aborted: %s", doctor.id, e)
            return HandoffOutcome.PATIENT_FETCH_FAILED

        # logged out while the fetch was in flight
        if self._session.current_token() is None:
            return self._login_required(doctor)

        self._show_booking_overlay(ui_event, doctor, patient)
        return HandoffOutcome.OVERLAY_SHOWN
