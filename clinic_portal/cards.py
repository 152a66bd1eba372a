"""Doctor directory cards.

``build_card`` is pure: it decides which action a card offers from the
session role alone. ``CardActionExecutor`` carries those actions out against
the scheduling API, the directory container and the booking orchestrator.
"""
from __future__ import annotations
import logging
from typing import Any, Awaitable, Callable, Iterable
import httpx
from . import client
from .booking import BookingOrchestrator
from .client import PortalAPIError
from .models import (
    BookAction,
    CardDescription,
    DeleteAction,
    DeleteResult,
    Doctor,
    NoAction,
    PromptLoginAction,
    Role,
    Session,
)
from .session import SessionContext

logger = logging.getLogger(__name__)

DELETE_LABEL = "Delete"
BOOK_LABEL = "Book Now"
LOGIN_FIRST_NOTICE = "Patient needs to login first."
ADMIN_LOGIN_NOTICE = "Admin session expired, please log in again."

DoctorDeleter = Callable[[int, str], Awaitable[DeleteResult]]


def build_card(doctor: Doctor, session: Session) -> CardDescription:
    match session.role:
        case Role.ADMIN:
            action, label = DeleteAction(doctor_id=doctor.id, token=session.token), DELETE_LABEL
        case Role.PATIENT:
            action, label = PromptLoginAction(), BOOK_LABEL
        case Role.LOGGED_IN_PATIENT:
            action, label = BookAction(doctor=doctor, token=session.token), BOOK_LABEL
        case _:
            action, label = NoAction(), None

    return CardDescription(
        doctor_id=doctor.id,
        name=doctor.name,
        specialization=doctor.specialization,
        email=doctor.email,
        availability_line=", ".join(doctor.availability),
        action_label=label,
        action=action,
    )


class Directory:
    """Ordered container of rendered doctor cards."""

    def __init__(self):
        self._cards: list[CardDescription] = []

    def render(self, doctors: Iterable[Doctor], session: Session):
        self._cards = [build_card(d, session) for d in doctors]

    def remove(self, doctor_id: int) -> bool:
        before = len(self._cards)
        self._cards = [c for c in self._cards if c.doctor_id != doctor_id]
        return len(self._cards) != before

    def get(self, doctor_id: int) -> CardDescription | None:
        return next((c for c in self._cards if c.doctor_id == doctor_id), None)

    @property
    def cards(self) -> list[CardDescription]:
        return list(self._cards)

    def __len__(self) -> int:
        return len(self._cards)


async def load_directory(directory: Directory, session: SessionContext, fetch=client.get_doctors) -> Directory:
    """Fetch all doctors and render them; a failed fetch renders an empty directory."""
    try:
        doctors = await fetch()
    except (httpx.HTTPError, PortalAPIError, ValueError) as e:
        logger.error("loading doctors failed: %s", e)
        doctors = []
    directory.render(doctors, session.snapshot())
    return directory


async def filter_directory(
    directory: Directory,
    session: SessionContext,
    name: str | None = None,
    time: str | None = None,
    specialty: str | None = None,
    fetch=client.filter_doctors,
) -> Directory:
    doctors = await fetch(name, time, specialty)
    directory.render(doctors, session.snapshot())
    return directory


class CardActionExecutor:
    """Performs the side effects behind card actions."""

    def __init__(
        self,
        session: SessionContext,
        directory: Directory,
        booking: BookingOrchestrator,
        confirm: Callable[[str], bool],
        notify: Callable[[str], None],
        delete_doctor: DoctorDeleter = client.delete_doctor,
    ):
        self._session = session
        self._directory = directory
        self._booking = booking
        self._confirm = confirm
        self._notify = notify
        self._delete_doctor = delete_doctor

    async def activate(self, card: CardDescription, ui_event: Any = None):
        match card.action:
            case DeleteAction(doctor_id=doctor_id):
                return await self._delete(doctor_id, card.name)
            case PromptLoginAction():
                self._notify(LOGIN_FIRST_NOTICE)
                return None
            case BookAction(doctor=doctor):
                return await self._booking.initiate_booking(doctor, ui_event)
            case _:
                return None

    async def _delete(self, doctor_id: int, name: str) -> DeleteResult | None:
        if not self._confirm(f"Are you sure you want to delete {name}?"):
            return None

        token = self._session.current_token()
        if token is None:
            logger.info("delete of doctor %s skipped, no token", doctor_id)
            self._notify(ADMIN_LOGIN_NOTICE)
            return None

        result = await self._delete_doctor(doctor_id, token)
        if result.success:
            self._directory.remove(doctor_id)
        else:
            logger.warning("delete of doctor %s failed: %s", doctor_id, result.message)
        self._notify(result.message)
        return result
