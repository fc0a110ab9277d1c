"""Application service composing a project's derived workflow state."""
from __future__ import annotations

import logging

from backend.core.display import (
    LINE_ITEM_PLACEHOLDER,
    SECTION_PLACEHOLDER,
    format_line_item_display,
    format_section_display,
)
from backend.core.phase_normalize import normalize_phase
from backend.core.phases import PhaseRegistry, get_phase_registry
from backend.core.progress import compute_breakdown, compute_next_steps, compute_overall, summarize_steps
from backend.core.schema import PhaseProgress, ProjectPositionMarker, WorkflowState, WorkflowStep
from backend.core.validation import check_marker
from backend.infrastructure import InMemoryWorkflowStateCache, WorkflowStateCache, make_cache_key

logger = logging.getLogger(__name__)

DEFAULT_CACHE_KEY = "default"


def _has_phase(marker: ProjectPositionMarker) -> bool:
    return marker.current_phase_raw is not None and bool(marker.current_phase_raw.strip())


def _first_incomplete(steps: tuple[WorkflowStep, ...]) -> WorkflowStep | None:
    return next((step for step in steps if not step.is_completed), None)


class WorkflowStateService:
    """Single source of truth for a project's derived workflow position.

    Snapshots are memoized per ``(project_id, version_token)``. The cache is
    supplied by the caller so one instance can be shared by every consumer.
    """

    def __init__(self, cache: WorkflowStateCache, registry: PhaseRegistry | None = None) -> None:
        self._cache = cache
        self._registry = registry or get_phase_registry()

    @property
    def registry(self) -> PhaseRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # state lookup
    # ------------------------------------------------------------------
    def get_state(self, marker: ProjectPositionMarker | None) -> WorkflowState:
        if marker is None:
            return self.default_state()

        problem = check_marker(marker)
        cache_key = make_cache_key(marker.project_id, marker.version_token)
        cacheable = problem is None

        if cacheable:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug("workflow state cache hit for %s", cache_key)
                return cached

        state = self._compute_state(marker, cache_key)
        if cacheable:
            logger.debug("workflow state cached for %s", cache_key)
            self._cache.put(cache_key, state)
        return state

    def default_state(self) -> WorkflowState:
        """State shown for projects without any workflow data."""

        start = self._registry.first_phase()
        return WorkflowState(
            project_id=None,
            current_phase=start.key,
            current_phase_display=start.name,
            current_section=None,
            current_section_display=SECTION_PLACEHOLDER,
            current_line_item=None,
            current_line_item_display=LINE_ITEM_PLACEHOLDER,
            overall_progress=0,
            phase_breakdown=self._start_breakdown(),
            phase_name=start.name,
            phase_color=self._registry.get_phase_color(start.key).hex,
            phase_initial=self._registry.get_phase_initial(start.key),
            cache_key=DEFAULT_CACHE_KEY,
        )

    # ------------------------------------------------------------------
    # cache management
    # ------------------------------------------------------------------
    def invalidate(self, project_id: object) -> int:
        removed = self._cache.invalidate_project(project_id)
        logger.debug("invalidated %d workflow state entries for project %s", removed, project_id)
        return removed

    def clear_all(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # composition
    # ------------------------------------------------------------------
    def _start_breakdown(self) -> dict[str, PhaseProgress]:
        start = self._registry.first_phase()
        return {
            phase.key: PhaseProgress(progress=0, is_current=phase.key == start.key, is_pending=phase.key != start.key)
            for phase in self._registry.list_phases()
        }

    def _resolve_phase(self, marker: ProjectPositionMarker) -> str:
        if not _has_phase(marker) and marker.is_workflow_complete:
            return self._registry.list_phases()[-1].key
        return normalize_phase(marker.current_phase_raw, self._registry)

    def _compute_state(self, marker: ProjectPositionMarker, cache_key: str) -> WorkflowState:
        registry = self._registry
        phase_key = self._resolve_phase(marker)
        complete = marker.is_workflow_complete
        if complete or _has_phase(marker):
            overall = compute_overall(phase_key, is_workflow_complete=complete, registry=registry)
            breakdown = compute_breakdown(phase_key, is_workflow_complete=complete, registry=registry)
        else:
            # no workflow data yet: start phase, nothing done
            overall = 0
            breakdown = self._start_breakdown()

        pending_step = _first_incomplete(marker.steps)
        section = marker.current_section_raw
        if section is None and pending_step is not None:
            section = pending_step.section
        line_item = marker.current_line_item_raw
        if line_item is None and pending_step is not None:
            line_item = pending_step.model_dump()

        phase = registry.get_phase(phase_key)
        return WorkflowState(
            project_id=marker.project_id,
            current_phase=phase_key,
            current_phase_display=phase.name,
            current_section=section,
            current_section_display=format_section_display(section),
            current_line_item=line_item,
            current_line_item_display=format_line_item_display(line_item),
            overall_progress=overall,
            phase_breakdown=breakdown,
            is_workflow_complete=complete,
            phase_name=phase.name,
            phase_color=registry.get_phase_color(phase_key).hex,
            phase_initial=registry.get_phase_initial(phase_key),
            next_steps=()
            if complete
            else compute_next_steps(phase_key, marker.steps, project_type=marker.project_type, registry=registry),
            step_summary=summarize_steps(marker.steps),
            cache_key=cache_key,
        )


_cache = InMemoryWorkflowStateCache()
_service = WorkflowStateService(_cache)


def get_workflow_service() -> WorkflowStateService:
    """Return the workflow state service shared by the process."""

    return _service
