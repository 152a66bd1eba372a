from clinic_portal.models import Role, Session
from clinic_portal.session import SessionContext, SessionStore


def test_defaults_to_unauthenticated_without_token():
    ctx = SessionContext(SessionStore())
    assert ctx.current_role() is Role.UNAUTHENTICATED
    assert ctx.current_token() is None


def test_reads_follow_store_changes():
    store = SessionStore()
    ctx = SessionContext(store)

    store.login(Role.ADMIN, "admintok")
    assert ctx.snapshot() == Session(role=Role.ADMIN, token="admintok")

    store.logout()
    assert ctx.snapshot() == Session()


def test_blank_token_reads_as_missing():
    ctx = SessionContext(SessionStore(Role.LOGGED_IN_PATIENT, "   "))
    assert ctx.current_token() is None


def test_from_mapping_parses_stored_role():
    store = SessionStore.from_mapping({"userRole": "loggedPatient", "token": "tok123"})
    assert store.role is Role.LOGGED_IN_PATIENT
    assert store.token == "tok123"


def test_unknown_stored_role_is_unauthenticated():
    store = SessionStore.from_mapping({"userRole": "superuser"})
    assert SessionContext(store).current_role() is Role.UNAUTHENTICATED


def test_to_mapping_drops_cleared_keys():
    storage = {"userRole": "admin", "token": "admintok", "other": "kept"}
    store = SessionStore.from_mapping(storage)
    store.logout()
    store.to_mapping(storage)
    assert storage == {"other": "kept"}
