"""Synchronous change notifications for recomputed workflow states."""
from __future__ import annotations

import logging
from typing import Callable

from backend.application.workflow import WorkflowStateService, get_workflow_service
from backend.core.schema import ProjectPositionMarker, WorkflowState

logger = logging.getLogger(__name__)

WorkflowListener = Callable[[object, WorkflowState], None]


class Subscription:
    """Handle returned by :meth:`WorkflowChangeBus.subscribe`.

    Calling the handle (or :meth:`unsubscribe`) removes the registration;
    repeated calls do nothing.
    """

    def __init__(self, bus: "WorkflowChangeBus", callback: WorkflowListener, project_id: object = None) -> None:
        self._bus = bus
        self.callback = callback
        self.project_id = project_id

    @property
    def active(self) -> bool:
        return self._bus.is_subscribed(self)

    def matches(self, project_id: object) -> bool:
        return self.project_id is None or str(self.project_id) == str(project_id)

    def unsubscribe(self) -> None:
        self._bus.unsubscribe(self)

    def __call__(self) -> None:
        self.unsubscribe()


class WorkflowChangeBus:
    """Recomputes a project's state after a change and fans it out to listeners.

    Delivery is synchronous and follows subscription order. A failing listener
    is logged and skipped; it never reaches the announcer or other listeners.
    """

    def __init__(self, service: WorkflowStateService) -> None:
        self._service = service
        self._subscriptions: list[Subscription] = []
        self._last_positions: dict[str, tuple[int, bool]] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: WorkflowListener, *, project_id: object = None) -> Subscription:
        """Register ``callback(project_id, state)``; pass ``project_id`` to filter."""

        subscription = Subscription(self, callback, project_id)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, target: Subscription | WorkflowListener) -> None:
        for index, subscription in enumerate(self._subscriptions):
            if subscription is target or (not isinstance(target, Subscription) and subscription.callback == target):
                del self._subscriptions[index]
                return

    def is_subscribed(self, subscription: Subscription) -> bool:
        return any(item is subscription for item in self._subscriptions)

    def announce_change(self, project_id: object, marker: ProjectPositionMarker | None) -> WorkflowState:
        """Invalidate, recompute and deliver the new state for ``project_id``."""

        self._service.invalidate(project_id)
        state = self._service.get_state(marker)
        self._check_regression(project_id, state)

        for subscription in list(self._subscriptions):
            if not subscription.matches(project_id):
                continue
            try:
                subscription.callback(project_id, state)
            except Exception:
                logger.exception("workflow listener %r failed for project %s", subscription.callback, project_id)
        return state

    def reset(self) -> None:
        self._subscriptions.clear()
        self._last_positions.clear()

    def _check_regression(self, project_id: object, state: WorkflowState) -> None:
        registry = self._service.registry
        position = (registry.index_of(state.current_phase), state.is_workflow_complete)
        previous = self._last_positions.get(str(project_id))
        self._last_positions[str(project_id)] = position
        if previous is None:
            return
        moved_back = position[0] < previous[0]
        reopened = previous[1] and not position[1]
        if moved_back or reopened:
            logger.warning(
                "project %s workflow moved backwards: %s%s -> %s%s",
                project_id,
                registry.list_phases()[previous[0]].key,
                " (complete)" if previous[1] else "",
                state.current_phase,
                " (complete)" if position[1] else "",
            )


_bus = WorkflowChangeBus(get_workflow_service())


def get_change_bus() -> WorkflowChangeBus:
    """Return the change bus bound to the shared workflow service."""

    return _bus


def reset_workflow_state() -> None:
    """Drop cached states and listeners (used in tests and on tenant switches)."""

    get_workflow_service().clear_all()
    _bus.reset()
