import asyncio
import logging
from datetime import date
import pytest
import httpx
from clinic_portal.dashboard import (
    LOAD_ERROR_MESSAGE,
    LOGIN_REQUIRED_MESSAGE,
    NO_APPOINTMENTS_MESSAGE,
    AppointmentTableController,
    normalize_patient_name,
)
from clinic_portal.client import AuthorizationRequired
from clinic_portal.models import AppointmentEntry, AppointmentRow, Empty, Failure, InfoRow, Loading, Role, Success
from clinic_portal.session import SessionContext, SessionStore

TODAY = date(2025, 8, 15)


def entry(i, name):
    return AppointmentEntry(id=i, patient_id=100 + i, patient_name=name, patient_phone="555-01%02d" % i,
                            patient_email=f"{name.lower()}@example.com", appointment_time=f"2025-08-15T0{i}:00:00")


class FakeFetch:
    def __init__(self, result=None):
        self.calls = []
        self.result = result if result is not None else []

    async def __call__(self, day, name, token):
        self.calls.append((day, name, token))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def make_controller(fetch, token="doctok", today=TODAY, **kw):
    session = SessionContext(SessionStore(Role.DOCTOR, token))
    return AppointmentTableController(session, fetch_appointments=fetch, today=lambda: today, **kw)


@pytest.mark.parametrize("raw,expected", [
    ("", None),
    ("   ", None),
    ("\t\n", None),
    (None, None),
    ("Jane", "Jane"),
    ("  Jane Roe ", "Jane Roe"),
])
def test_normalize_patient_name(raw, expected):
    assert normalize_patient_name(raw) == expected


def test_starts_in_loading_state():
    ctrl = make_controller(FakeFetch())
    assert isinstance(ctrl.last_outcome, Loading)
    assert len(ctrl.table) == 0


@pytest.mark.asyncio
async def test_activate_loads_today_without_name():
    fetch = FakeFetch()
    ctrl = make_controller(fetch)

    await ctrl.activate()
    assert fetch.calls == [(TODAY, None, "doctok")]


@pytest.mark.asyncio
async def test_rows_follow_response_order():
    fetch = FakeFetch([entry(2, "Omar"), entry(1, "Jane"), entry(3, "Li")])
    ctrl = make_controller(fetch)

    outcome = await ctrl.refresh()

    assert isinstance(outcome, Success)
    assert [r.patient_name for r in ctrl.table.rows] == ["Omar", "Jane", "Li"]
    first = ctrl.table.rows[0]
    assert isinstance(first, AppointmentRow)
    assert first.patient_id == 102
    assert first.appointment_meta.appointment_id == 2


@pytest.mark.asyncio
async def test_empty_result_shows_single_info_row():
    ctrl = make_controller(FakeFetch([]))

    assert isinstance(await ctrl.refresh(), Empty)
    assert ctrl.table.rows == [InfoRow(message=NO_APPOINTMENTS_MESSAGE)]


@pytest.mark.asyncio
async def test_failure_shows_single_info_row_and_logs(caplog):
    ctrl = make_controller(FakeFetch([entry(1, "Jane")]))
    await ctrl.refresh()
    ctrl._fetch = FakeFetch(httpx.ConnectError("refused"))

    with caplog.at_level(logging.ERROR, logger="clinic_portal.dashboard"):
        outcome = await ctrl.refresh()

    assert isinstance(outcome, Failure)
    assert ctrl.table.rows == [InfoRow(message=LOAD_ERROR_MESSAGE)]
    assert "loading appointments" in caplog.text


@pytest.mark.asyncio
async def test_missing_token_is_a_login_prompt_not_an_error(caplog):
    ctrl = make_controller(FakeFetch(AuthorizationRequired()), token=None)

    with caplog.at_level(logging.INFO, logger="clinic_portal.dashboard"):
        outcome = await ctrl.refresh()

    assert isinstance(outcome, Failure)
    assert ctrl.table.rows == [InfoRow(message=LOGIN_REQUIRED_MESSAGE)]
    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


@pytest.mark.asyncio
async def test_name_filter_is_trimmed_before_fetch():
    fetch = FakeFetch()
    ctrl = make_controller(fetch)

    await ctrl.set_patient_name_filter("  Jane ")
    await ctrl.set_patient_name_filter("   ")

    assert [c[1] for c in fetch.calls] == ["Jane", None]
    assert ctrl.filter.patient_name is None


@pytest.mark.asyncio
async def test_set_selected_date_keeps_name():
    fetch = FakeFetch()
    ctrl = make_controller(fetch)
    await ctrl.set_patient_name_filter("Jane")

    await ctrl.set_selected_date(date(2025, 9, 1))
    assert fetch.calls[-1] == (date(2025, 9, 1), "Jane", "doctok")


@pytest.mark.asyncio
async def test_reset_to_today_refreshes_once_and_updates_display():
    fetch = FakeFetch()
    shown = []
    ctrl = make_controller(fetch, date_display=shown.append)
    ctrl.filter = ctrl.filter.model_copy(update={"selected_date": date(2024, 1, 1)})

    await ctrl.reset_to_today()

    assert fetch.calls == [(TODAY, None, "doctok")]
    assert ctrl.filter.selected_date == TODAY
    assert shown == [TODAY]


@pytest.mark.asyncio
async def test_token_read_per_refresh():
    store = SessionStore(Role.DOCTOR, "first")
    fetch = FakeFetch()
    ctrl = AppointmentTableController(SessionContext(store), fetch_appointments=fetch, today=lambda: TODAY)

    await ctrl.refresh()
    store.set_token("second")
    await ctrl.refresh()

    assert [c[2] for c in fetch.calls] == ["first", "second"]


@pytest.mark.asyncio
async def test_each_refresh_replaces_rows():
    ctrl = make_controller(FakeFetch([entry(1, "Jane"), entry(2, "Omar")]))
    await ctrl.refresh()
    ctrl._fetch = FakeFetch([entry(3, "Li")])

    await ctrl.refresh()
    assert [r.patient_name for r in ctrl.table.rows] == ["Li"]


class GatedFetch:
    """Holds each response until the test releases it, keyed by name filter."""

    def __init__(self, responses):
        self.responses = responses
        self.gates = {}

    async def __call__(self, day, name, token):
        gate = self.gates[name] = asyncio.Event()
        await gate.wait()
        result = self.responses[name]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.mark.asyncio
async def test_slow_earlier_response_is_discarded():
    fetch = GatedFetch({"Jane": [entry(1, "Jane")], "Omar": [entry(2, "Omar")]})
    ctrl = make_controller(fetch)

    first = asyncio.create_task(ctrl.set_patient_name_filter("Jane"))
    await asyncio.sleep(0)
    second = asyncio.create_task(ctrl.set_patient_name_filter("Omar"))
    await asyncio.sleep(0)

    fetch.gates["Omar"].set()
    await second
    fetch.gates["Jane"].set()
    await first

    assert [r.patient_name for r in ctrl.table.rows] == ["Omar"]
    assert ctrl.last_outcome.rows[0].patient_name == "Omar"


@pytest.mark.asyncio
async def test_only_latest_renders_when_responses_arrive_in_order():
    fetch = GatedFetch({"Jane": [entry(1, "Jane")], "Omar": []})
    ctrl = make_controller(fetch)

    first = asyncio.create_task(ctrl.set_patient_name_filter("Jane"))
    await asyncio.sleep(0)
    second = asyncio.create_task(ctrl.set_patient_name_filter("Omar"))
    await asyncio.sleep(0)

    fetch.gates["Jane"].set()
    await first
    assert len(ctrl.table) == 0

    fetch.gates["Omar"].set()
    await second
    assert ctrl.table.rows == [InfoRow(message=NO_APPOINTMENTS_MESSAGE)]


@pytest.mark.asyncio
async def test_stale_failure_does_not_overwrite_newer_rows():
    fetch = GatedFetch({"Jane": httpx.ReadTimeout("slow"), "Omar": [entry(2, "Omar")]})
    ctrl = make_controller(fetch)

    first = asyncio.create_task(ctrl.set_patient_name_filter("Jane"))
    await asyncio.sleep(0)
    second = asyncio.create_task(ctrl.set_patient_name_filter("Omar"))
    await asyncio.sleep(0)

    fetch.gates["Omar"].set()
    await second
    fetch.gates["Jane"].set()
    await first

    assert isinstance(ctrl.last_outcome, Success)
    assert [r.patient_name for r in ctrl.table.rows] == ["Omar"]


@pytest.mark.asyncio
async def test_outcome_is_loading_while_new_filter_is_in_flight():
    fetch = GatedFetch({"Jane": [entry(1, "Jane")], "Omar": [entry(2, "Omar")]})
    ctrl = make_controller(fetch)

    first = asyncio.create_task(ctrl.set_patient_name_filter("Jane"))
    await asyncio.sleep(0)
    fetch.gates["Jane"].set()
    await first
    assert isinstance(ctrl.last_outcome, Success)

    second = asyncio.create_task(ctrl.set_patient_name_filter("Omar"))
    await asyncio.sleep(0)
    assert ctrl.filter.patient_name == "Omar"
    assert isinstance(ctrl.last_outcome, Loading)

    fetch.gates["Omar"].set()
    await second
    assert ctrl.last_outcome.rows[0].patient_name == "Omar"
