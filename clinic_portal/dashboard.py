"""
Appointment dashboard.

Keeps the appointment table in step with the selected date and patient-name
filter. Every filter change re-fetches; only the most recently started
fetch may render.
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Awaitable, Callable
import httpx
from . import client
from .client import AuthorizationRequired, PortalAPIError
from .models import (
    AppointmentEntry,
    AppointmentFilter,
    AppointmentRow,
    Empty,
    Failure,
    FetchOutcome,
    InfoRow,
    Loading,
    Success,
    TableRow,
)
from .session import SessionContext

logger = logging.getLogger(__name__)

NO_APPOINTMENTS_MESSAGE = "No appointments found for the selected date"
LOAD_ERROR_MESSAGE = "Error loading appointments. Try again later."
LOGIN_REQUIRED_MESSAGE = "Please log in to view appointments."

AppointmentFetcher = Callable[[date, str | None, str | None], Awaitable[list[AppointmentEntry]]]


def normalize_patient_name(raw: str | None) -> str | None:
    """Trimmed name, or None when nothing but whitespace was typed."""
    trimmed = (raw or "").strip()
    return trimmed or None


class AppointmentTable:
    """In-memory table body; the default render target."""

    def __init__(self):
        self._rows: list[TableRow] = []

    def clear(self):
        self._rows.clear()

    def append(self, row: TableRow):
        self._rows.append(row)

    @property
    def rows(self) -> list[TableRow]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)


class AppointmentTableController:
    def __init__(
        self,
        session: SessionContext,
        table: AppointmentTable | None = None,
        fetch_appointments: AppointmentFetcher = client.fetch_appointments,
        today: Callable[[], date] = date.today,
        date_display: Callable[[date], None] | None = None,
    ):
        self._session = session
        self.table = table if table is not None else AppointmentTable()
        self._fetch = fetch_appointments
        self._today = today
        self._date_display = date_display
        self.filter = AppointmentFilter(selected_date=today(), patient_name=None)
        self.last_outcome: FetchOutcome = Loading()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def activate(self) -> FetchOutcome:
        """Initial load: today, no name filter."""
        self.filter = AppointmentFilter(selected_date=self._today(), patient_name=None)
        self._show_date(self.filter.selected_date)
        return await self.refresh()

    async def set_patient_name_filter(self, raw: str | None) -> FetchOutcome:
        self.filter = self.filter.model_copy(update={"patient_name": normalize_patient_name(raw)})
        return await self.refresh()

    async def set_selected_date(self, day: date) -> FetchOutcome:
        self.filter = self.filter.model_copy(update={"selected_date": day})
        return await self.refresh()

    async def reset_to_today(self) -> FetchOutcome:
        today = self._today()
        self.filter = self.filter.model_copy(update={"selected_date": today})
        self._show_date(today)
        return await self.refresh()

    async def refresh(self) -> FetchOutcome:
        """Fetch for the current filter and replace the table contents.

        Returns the outcome this call produced. When a newer refresh was
        started while this one was waiting, the response is dropped and the
        table is left to the newer call.
        """
        self._generation += 1
        generation = self._generation
        # the previous rows belong to the old filter from here on
        self.last_outcome = Loading()
        selected = self.filter
        token = self._session.current_token()

        try:
            entries = await self._fetch(selected.selected_date, selected.patient_name, token)
        except AuthorizationRequired as e:
            logger.info("appointments for %s need login", selected.selected_date)
            outcome, rows = Failure(reason=e.detail), [InfoRow(message=LOGIN_REQUIRED_MESSAGE)]
        except (httpx.HTTPError, PortalAPIError, ValueError) as e:
            logger.error("loading appointments for %s failed: %s", selected.selected_date, e)
            outcome, rows = Failure(reason=str(e)), [InfoRow(message=LOAD_ERROR_MESSAGE)]
        else:
            outcome, rows = self._project(entries)

        if generation != self._generation:
            logger.debug("discarding stale appointment response (generation %s < %s)", generation, self._generation)
            return outcome

        self.table.clear()
        for row in rows:
            self.table.append(row)
        self.last_outcome = outcome
        return outcome

    @staticmethod
    def _project(entries: list[AppointmentEntry]) -> tuple[FetchOutcome, list[TableRow]]:
        if not entries:
            return Empty(), [InfoRow(message=NO_APPOINTMENTS_MESSAGE)]
        appointment_rows = [AppointmentRow.from_entry(e) for e in entries]
        return Success(rows=appointment_rows), list(appointment_rows)

    def _show_date(self, day: date):
        if self._date_display is not None:
            self._date_display(day)
