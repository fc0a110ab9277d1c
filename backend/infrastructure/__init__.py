"""Infrastructure layer exports."""

from .state_cache import InMemoryWorkflowStateCache, WorkflowStateCache, make_cache_key

__all__ = [
    "InMemoryWorkflowStateCache",
    "WorkflowStateCache",
    "make_cache_key",
]
