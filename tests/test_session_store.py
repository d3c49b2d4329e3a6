import threading

import pytest

from census_intake.conversation.service import ConversationService
from census_intake.conversation.session import ConversationSession
from census_intake.conversation.store import SessionStore
from census_intake.exceptions import SessionNotFoundError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def processed(pipeline, census_grid):
    return pipeline.process_grid(census_grid, file_name="plantilla.xlsx")


def _session(processed, session_id):
    return ConversationSession(session_id, "acme", "plantilla.xlsx", processed)


def test_get_unknown_session_raises():
    store = SessionStore()
    with pytest.raises(SessionNotFoundError):
        store.get("val_missing")


def test_idle_sessions_expire(processed):
    clock = FakeClock()
    store = SessionStore(idle_timeout_seconds=60, clock=clock)
    store.add(_session(processed, "val_a"))
    store.add(_session(processed, "val_b"))

    clock.now += 30
    store.get("val_a")
    clock.now += 45

    assert store.expire_idle() == ["val_b"]
    assert "val_a" in store
    assert len(store) == 1


def test_expired_session_is_not_found_on_access(processed):
    clock = FakeClock()
    store = SessionStore(idle_timeout_seconds=60, clock=clock)
    store.add(_session(processed, "val_a"))
    clock.now += 61
    with pytest.raises(SessionNotFoundError):
        store.get("val_a")
    assert len(store) == 0


def test_lock_yields_session_and_refreshes_access(processed):
    clock = FakeClock()
    store = SessionStore(idle_timeout_seconds=60, clock=clock)
    session = _session(processed, "val_a")
    store.add(session)

    clock.now += 50
    with store.lock("val_a") as locked:
        assert locked is session
    clock.now += 50

    assert store.get("val_a") is session


def test_lock_on_removed_session_raises(processed):
    store = SessionStore()
    store.add(_session(processed, "val_a"))
    store.remove("val_a")
    with pytest.raises(SessionNotFoundError):
        with store.lock("val_a"):
            pass


def test_service_expires_idle_sessions(processed):
    clock = FakeClock()
    service = ConversationService(store=SessionStore(idle_timeout_seconds=10, clock=clock))
    session = service.start_session("acme", "plantilla.xlsx", processed)
    assert session.session_id in service.store

    clock.now += 11

    assert service.expire_idle_sessions() == 1
    with pytest.raises(SessionNotFoundError):
        service.get_session(session.session_id)


def test_starting_a_session_evicts_idle_ones(processed):
    clock = FakeClock()
    service = ConversationService(store=SessionStore(idle_timeout_seconds=10, clock=clock))
    abandoned = service.start_session("acme", "plantilla.xlsx", processed)

    clock.now += 11
    fresh = service.start_session("acme", "plantilla.xlsx", processed)

    assert abandoned.session_id not in service.store
    assert fresh.session_id in service.store
    assert len(service.store) == 1


def test_snapshot_serializes_session_state(processed):
    service = ConversationService()
    session = service.start_session("acme", "plantilla.xlsx", processed)

    state = service.snapshot(session.session_id)

    assert state["session_id"] == session.session_id
    assert state["step"] == "column_mapping"
    assert state["is_complete"] is False
    assert state["dataset"] is None
    assert [q["id"] for q in state["pending_questions"]][0] == "missing_active_personnel_hire_date"
    with pytest.raises(SessionNotFoundError):
        service.snapshot("val_missing")


def test_snapshot_waits_for_answer_in_progress(processed):
    service = ConversationService()
    session = service.start_session("acme", "plantilla.xlsx", processed)
    results = []

    with service.store.lock(session.session_id):
        reader = threading.Thread(target=lambda: results.append(service.snapshot(session.session_id)))
        reader.start()
        reader.join(timeout=0.2)
        assert results == []

    reader.join()
    assert len(results) == 1
