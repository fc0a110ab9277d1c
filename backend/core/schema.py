from __future__ import annotations

from types import MappingProxyType
from typing import Annotated, Any, Mapping, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, WrapSerializer

from backend.core.phase_normalize import phase_from_status


def _token(value: Any) -> str | int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (str, int)):
        return value
    return str(value)


def _first_present(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


def _serialize_thawed(value: Any, handler: Any) -> Any:
    return handler(_thaw(value))


K = TypeVar("K")
V = TypeVar("V")

# Read-only mapping for snapshots that are cached and shared between callers.
FrozenDict = Annotated[dict[K, V], AfterValidator(_freeze), WrapSerializer(_serialize_thawed)]


class WorkflowStep(BaseModel):
    """A checklist entry of a project's workflow as reported by the API."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    name: str | None = None
    phase: str | None = None
    section: str | None = None
    is_completed: bool = False
    actual_start_date: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "WorkflowStep":
        started = record.get("actualStartDate")
        return cls(
            step_id=str(record.get("stepId") or record.get("id") or ""),
            name=record.get("stepName") or record.get("name"),
            phase=record.get("phase"),
            section=record.get("section"),
            is_completed=bool(record.get("isCompleted") or record.get("completed")),
            actual_start_date=str(started) if started else None,
        )


class ProjectPositionMarker(BaseModel):
    """Read-only view of the project fields the workflow engine depends on."""

    model_config = ConfigDict(frozen=True)

    project_id: str | int | None = None
    current_phase_raw: str | None = None
    current_section_raw: str | None = None
    current_line_item_raw: dict[str, Any] | str | None = None
    is_workflow_complete: bool = False
    version_token: str | int | None = None
    project_type: str | None = None
    steps: tuple[WorkflowStep, ...] = ()

    @classmethod
    def from_project(cls, record: Mapping[str, Any] | None) -> "ProjectPositionMarker | None":
        """Build a marker from a project record in the dashboard API's shape."""

        if record is None:
            return None

        tracker = record.get("workflowTracker") or {}
        line_item = record.get("currentLineItem") or tracker.get("currentLineItem")

        nested_section = line_item.get("section") if isinstance(line_item, Mapping) else None
        section = record.get("currentSection")
        if isinstance(section, Mapping):
            section = section.get("sectionName") or section.get("displayName")
        if section is None and isinstance(nested_section, Mapping):
            section = nested_section.get("sectionName") or nested_section.get("displayName")
        elif section is None and isinstance(nested_section, str):
            section = nested_section

        phase = record.get("phase") or record.get("currentPhase")
        if phase is None and isinstance(nested_section, Mapping):
            nested_phase = nested_section.get("phase")
            if isinstance(nested_phase, Mapping):
                phase = nested_phase.get("phaseType") or nested_phase.get("phaseName")
        if phase is None:
            phase = phase_from_status(record.get("status"))

        workflow = record.get("workflow") or {}
        steps = [WorkflowStep.from_record(item) for item in workflow.get("steps") or [] if isinstance(item, Mapping)]

        if isinstance(line_item, Mapping):
            line_item = dict(line_item)
        elif line_item is not None:
            line_item = str(line_item)

        return cls(
            project_id=_token(_first_present(record, "id", "projectId")),
            current_phase_raw=str(phase) if phase is not None else None,
            current_section_raw=str(section) if section is not None else None,
            current_line_item_raw=line_item,
            is_workflow_complete=bool(record.get("isWorkflowComplete") or workflow.get("isCompleted")),
            version_token=_token(_first_present(record, "updatedAt", "version")),
            project_type=record.get("projectType"),
            steps=steps,
        )


class PhaseProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    progress: int = Field(ge=0, le=100)
    is_completed: bool = False
    is_current: bool = False
    is_pending: bool = False


class NextStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_id: str
    name: str
    phase: str
    weight: int
    is_conditional: bool = False


class StepSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    completed: int = 0
    by_phase: FrozenDict[str, dict[str, int]] = Field(default_factory=dict, validate_default=True)
    by_status: FrozenDict[str, int] = Field(
        default_factory=lambda: {"completed": 0, "in_progress": 0, "not_started": 0},
        validate_default=True,
    )


class WorkflowState(BaseModel):
    """Derived workflow position of one project version."""

    model_config = ConfigDict(frozen=True)

    project_id: str | int | None = None
    current_phase: str
    current_phase_display: str
    current_section: str | None = None
    current_section_display: str
    current_line_item: FrozenDict[str, Any] | str | None = None
    current_line_item_display: str
    overall_progress: int = Field(ge=0, le=100)
    phase_breakdown: FrozenDict[str, PhaseProgress] = Field(default_factory=dict, validate_default=True)
    is_workflow_complete: bool = False
    phase_name: str
    phase_color: str
    phase_initial: str
    next_steps: tuple[NextStep, ...] = ()
    step_summary: StepSummary = Field(default_factory=StepSummary)
    cache_key: str
