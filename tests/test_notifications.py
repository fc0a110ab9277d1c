import logging
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.application import WorkflowChangeBus, get_change_bus, get_workflow_service, reset_workflow_state
from backend.application.workflow import WorkflowStateService
from backend.core.schema import ProjectPositionMarker
from backend.infrastructure import InMemoryWorkflowStateCache


@pytest.fixture(autouse=True)
def reset_state():
    reset_workflow_state()
    yield
    reset_workflow_state()


@pytest.fixture()
def service():
    return WorkflowStateService(InMemoryWorkflowStateCache())


@pytest.fixture()
def bus(service):
    return WorkflowChangeBus(service)


def _marker(phase: str, version: object, *, project_id: str = "p-1", complete: bool = False) -> ProjectPositionMarker:
    return ProjectPositionMarker(
        project_id=project_id,
        current_phase_raw=phase,
        version_token=version,
        is_workflow_complete=complete,
    )


def test_subscriber_receives_new_state(bus):
    received = []
    unsubscribe = bus.subscribe(lambda pid, state: received.append((pid, state)))

    state = bus.announce_change("p-1", _marker("Execution", 2))

    assert received == [("p-1", state)]
    assert state.current_phase == "EXECUTION"

    unsubscribe()
    bus.announce_change("p-1", _marker("Completion", 3))
    assert len(received) == 1


def test_fan_out_in_order_despite_failing_subscriber(bus, caplog):
    calls = []

    def first(pid, state):
        calls.append("first")

    def broken(pid, state):
        calls.append("broken")
        raise RuntimeError("listener exploded")

    def last(pid, state):
        calls.append("last")

    bus.subscribe(first)
    bus.subscribe(broken)
    bus.subscribe(last)

    with caplog.at_level(logging.ERROR, logger="backend.application.notifications"):
        state = bus.announce_change("p-1", _marker("Prospect", 1))

    assert calls == ["first", "broken", "last"]
    assert state.current_phase == "PROSPECT"
    assert any("listener" in record.getMessage() and record.exc_info for record in caplog.records)


def test_double_unsubscribe_is_noop(bus):
    handle = bus.subscribe(lambda pid, state: None)
    assert handle.active
    handle.unsubscribe()
    handle.unsubscribe()
    assert not handle.active
    assert bus.subscriber_count == 0


def test_unsubscribe_removes_only_that_registration(bus):
    received = []

    def listener(pid, state):
        received.append(pid)

    first = bus.subscribe(listener)
    bus.subscribe(listener)
    first()

    bus.announce_change("p-1", _marker("Lead", 1))
    assert received == ["p-1"]

    bus.unsubscribe(listener)
    bus.unsubscribe(listener)
    bus.announce_change("p-1", _marker("Lead", 2))
    assert received == ["p-1"]


def test_project_filter(bus):
    received = []
    bus.subscribe(lambda pid, state: received.append(pid), project_id="p-2")

    bus.announce_change("p-1", _marker("Lead", 1))
    bus.announce_change("p-2", _marker("Lead", 1, project_id="p-2"))

    assert received == ["p-2"]


def test_read_your_writes_after_announce(bus, service):
    marker = _marker("Approved", 7)
    stale = service.get_state(marker)

    updated = _marker("Execution", 7)
    announced = bus.announce_change("p-1", updated)

    assert service.get_state(updated) is announced
    assert announced.current_phase == "EXECUTION"
    assert announced is not stale


def test_listener_may_unsubscribe_during_delivery(bus):
    calls = []
    handle = None

    def once(pid, state):
        calls.append("once")
        handle.unsubscribe()

    handle = bus.subscribe(once)
    bus.subscribe(lambda pid, state: calls.append("other"))

    bus.announce_change("p-1", _marker("Lead", 1))
    bus.announce_change("p-1", _marker("Lead", 2))

    assert calls == ["once", "other", "other"]


def test_phase_regression_is_accepted_and_logged(bus, caplog):
    bus.announce_change("p-1", _marker("Completion", 1, complete=True))

    with caplog.at_level(logging.WARNING, logger="backend.application.notifications"):
        state = bus.announce_change("p-1", _marker("Execution", 2))

    assert state.current_phase == "EXECUTION"
    assert state.overall_progress == 60
    assert any("moved backwards" in record.getMessage() for record in caplog.records)


def test_forward_progress_is_not_flagged(bus, caplog):
    with caplog.at_level(logging.WARNING, logger="backend.application.notifications"):
        bus.announce_change("p-1", _marker("Lead", 1))
        bus.announce_change("p-1", _marker("Prospect", 2))
    assert not [record for record in caplog.records if record.levelno >= logging.WARNING]


def test_shared_bus_uses_shared_service():
    received = []
    get_change_bus().subscribe(lambda pid, state: received.append(state))
    state = get_change_bus().announce_change("p-9", _marker("Execution", 1, project_id="p-9"))
    assert received == [state]
    assert get_workflow_service().get_state(_marker("Execution", 1, project_id="p-9")) is state


def test_subscriber_cannot_corrupt_shared_snapshot(bus, service):
    marker = ProjectPositionMarker(
        project_id="p-1",
        current_phase_raw="Approved",
        current_line_item_raw={"name": "Sign contract"},
        version_token=4,
    )
    errors = []

    def meddler(pid, state):
        try:
            state.phase_breakdown.pop("LEAD")
        except AttributeError as exc:
            errors.append(exc)
        try:
            state.current_line_item["name"] = "HACKED"
        except TypeError as exc:
            errors.append(exc)

    seen = []
    bus.subscribe(meddler)
    bus.subscribe(lambda pid, state: seen.append(dict(state.current_line_item)))

    announced = bus.announce_change("p-1", marker)

    assert len(errors) == 2
    assert seen == [{"name": "Sign contract"}]
    again = service.get_state(marker)
    assert again is announced
    assert list(again.phase_breakdown)[0] == "LEAD"
    assert again.current_line_item["name"] == "Sign contract"
