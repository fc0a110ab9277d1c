"""Domain entities for project lifecycle phases."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class PhaseColor:
    """Badge colors used by the dashboard for a phase."""

    hex: str
    bg: str
    text: str


@dataclass(slots=True, frozen=True)
class Phase:
    """A named stage in a project's lifecycle with its share of overall progress."""

    key: str
    name: str
    weight: int
    initial: str = ""
    color: PhaseColor | None = None


@dataclass(slots=True, frozen=True)
class StepDefinition:
    """Checklist step expected within a phase.

    Steps listing ``project_types`` are conditional and only apply to those
    project types.
    """

    id: str
    name: str
    phase: str
    weight: int = 1
    project_types: tuple[str, ...] = field(default_factory=tuple)

    @property
    def conditional(self) -> bool:
        return bool(self.project_types)
