"""Storage for memoized workflow state snapshots."""
from __future__ import annotations

from typing import Protocol

from backend.core.schema import WorkflowState


def make_cache_key(project_id: object, version_token: object) -> str:
    return f"{project_id}_{version_token}"


class WorkflowStateCache(Protocol):
    """Cache contract for workflow state snapshots keyed by project version."""

    def get(self, key: str) -> WorkflowState | None: ...

    def put(self, key: str, state: WorkflowState) -> None: ...

    def invalidate_project(self, project_id: object) -> int: ...

    def clear(self) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryWorkflowStateCache:
    """Process-local cache. Entries live until invalidated or cleared."""

    def __init__(self) -> None:
        self._entries: dict[str, WorkflowState] = {}

    def get(self, key: str) -> WorkflowState | None:
        return self._entries.get(key)

    def put(self, key: str, state: WorkflowState) -> None:
        self._entries[key] = state

    def invalidate_project(self, project_id: object) -> int:
        # Match on the snapshot's own id so "1" does not evict "1_2"'s entries.
        prefix = f"{project_id}_"
        stale = [
            key
            for key, state in self._entries.items()
            if key.startswith(prefix) and str(state.project_id) == str(project_id)
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
