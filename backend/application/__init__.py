"""Application services."""

from .notifications import (
    Subscription,
    WorkflowChangeBus,
    get_change_bus,
    reset_workflow_state,
)
from .workflow import WorkflowStateService, get_workflow_service

__all__ = [
    "Subscription",
    "WorkflowChangeBus",
    "WorkflowStateService",
    "get_change_bus",
    "get_workflow_service",
    "reset_workflow_state",
]
