"""Phase-weighted progress calculation."""
from __future__ import annotations

from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from backend.core.phases import PhaseRegistry, get_phase_registry
from backend.core.schema import NextStep, PhaseProgress, StepSummary, WorkflowStep
from backend.domain import StepDefinition

# Share of the current phase's weight credited while it is active. There is no
# sub-phase completion signal yet, so an active phase counts as half done.
CURRENT_PHASE_PARTIAL_CREDIT = 0.5

# Upper bound for the overall percentage until the workflow is flagged complete.
OVERALL_PROGRESS_CAP = 95


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _current_index(current_key: str, registry: PhaseRegistry) -> int:
    if registry.contains(current_key):
        return registry.index_of(current_key)
    return 0


def compute_breakdown(
    current_key: str,
    *,
    is_workflow_complete: bool = False,
    registry: PhaseRegistry | None = None,
) -> dict[str, PhaseProgress]:
    """Return per-phase progress relative to the current phase.

    Phases before the current one are complete, the current one receives
    partial credit and later phases are pending. A complete workflow marks
    every phase complete and none current.
    """

    registry = registry or get_phase_registry()
    if is_workflow_complete:
        return {
            phase.key: PhaseProgress(progress=100, is_completed=True)
            for phase in registry.list_phases()
        }

    current = _current_index(current_key, registry)
    partial = _round_half_up(Decimal(str(CURRENT_PHASE_PARTIAL_CREDIT)) * 100)
    breakdown: dict[str, PhaseProgress] = {}
    for index, phase in enumerate(registry.list_phases()):
        if index < current:
            breakdown[phase.key] = PhaseProgress(progress=100, is_completed=True)
        elif index == current:
            breakdown[phase.key] = PhaseProgress(progress=partial, is_current=True)
        else:
            breakdown[phase.key] = PhaseProgress(progress=0, is_pending=True)
    return breakdown


def compute_overall(
    current_key: str,
    *,
    is_workflow_complete: bool = False,
    registry: PhaseRegistry | None = None,
) -> int:
    """Return the weighted overall completion percentage (0..100)."""

    if is_workflow_complete:
        return 100

    registry = registry or get_phase_registry()
    phases = registry.list_phases()
    current = _current_index(current_key, registry)

    completed = Decimal(sum(phase.weight for phase in phases[:current]))
    credit = Decimal(str(CURRENT_PHASE_PARTIAL_CREDIT)) * phases[current].weight
    overall = _round_half_up((completed + credit) / Decimal(registry.total_weight) * 100)
    return max(0, min(overall, OVERALL_PROGRESS_CAP))


def is_step_included(step: StepDefinition, project_type: str | None) -> bool:
    """Conditional steps only count for the project types they list."""

    if not step.conditional:
        return True
    return bool(project_type) and project_type in step.project_types


def compute_next_steps(
    current_key: str,
    steps: Iterable[WorkflowStep],
    *,
    project_type: str | None = None,
    registry: PhaseRegistry | None = None,
) -> list[NextStep]:
    """List the current phase's catalog steps that are not completed yet."""

    registry = registry or get_phase_registry()
    if not registry.contains(current_key):
        return []
    completed = {step.step_id for step in steps if step.is_completed}
    return [
        NextStep(
            step_id=definition.id,
            name=definition.name,
            phase=current_key,
            weight=definition.weight,
            is_conditional=definition.conditional,
        )
        for definition in registry.steps_for(current_key)
        if is_step_included(definition, project_type) and definition.id not in completed
    ]


def summarize_steps(steps: Iterable[WorkflowStep]) -> StepSummary:
    by_phase: dict[str, Counter] = {}
    by_status: Counter = Counter({"completed": 0, "in_progress": 0, "not_started": 0})
    total = 0
    for step in steps:
        total += 1
        bucket = by_phase.setdefault(step.phase or "Unknown", Counter(total=0, completed=0))
        bucket["total"] += 1
        if step.is_completed:
            bucket["completed"] += 1
            by_status["completed"] += 1
        elif step.actual_start_date:
            by_status["in_progress"] += 1
        else:
            by_status["not_started"] += 1
    return StepSummary(
        total=total,
        completed=by_status["completed"],
        by_phase={phase: dict(counts) for phase, counts in by_phase.items()},
        by_status=dict(by_status),
    )
