"""Ordered registry of project lifecycle phases."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping

import yaml

from backend.domain import Phase, PhaseColor, StepDefinition

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

TOTAL_WEIGHT = 100

_DEFAULT_COLOR = PhaseColor(hex="#E0E7FF", bg="bg-[#E0E7FF]", text="text-gray-800")

DEFAULT_PHASES: tuple[Phase, ...] = (
    Phase("LEAD", "Lead", 10, "L", _DEFAULT_COLOR),
    Phase("PROSPECT", "Prospect", 15, "P", PhaseColor("#0066CC", "bg-[#0066CC]", "text-white")),
    Phase("APPROVED", "Approved", 15, "A", PhaseColor("#10B981", "bg-[#10B981]", "text-white")),
    Phase("EXECUTION", "Execution", 40, "E", PhaseColor("#F59E0B", "bg-[#F59E0B]", "text-white")),
    Phase("SECOND_SUPPLEMENT", "2nd Supplement", 10, "S", PhaseColor("#8B5CF6", "bg-[#8B5CF6]", "text-white")),
    Phase("COMPLETION", "Completion", 10, "C", PhaseColor("#14532D", "bg-[#14532D]", "text-white")),
)


class UnknownPhaseError(KeyError):
    """Raised when a phase key is not present in the registry."""

    def __init__(self, key: object) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"unknown phase key: {self.key!r}"


class PhaseTableError(ValueError):
    """Raised when a phase table violates the ordering or weight invariants."""


class PhaseRegistry:
    """Immutable lookup table over the lifecycle phases.

    The order of ``phases`` is the lifecycle order. Weights must be positive
    and add up to :data:`TOTAL_WEIGHT`.
    """

    def __init__(self, phases: Iterable[Phase], steps: Iterable[StepDefinition] = ()) -> None:
        self._phases = tuple(phases)
        if not self._phases:
            raise PhaseTableError("phase table must not be empty")

        self._index: dict[str, int] = {}
        for position, phase in enumerate(self._phases):
            if phase.key in self._index:
                raise PhaseTableError(f"duplicate phase key: {phase.key}")
            if not 1 <= phase.weight <= TOTAL_WEIGHT:
                raise PhaseTableError(f"phase {phase.key} weight must be within 1..{TOTAL_WEIGHT}")
            self._index[phase.key] = position

        total = sum(phase.weight for phase in self._phases)
        if total != TOTAL_WEIGHT:
            raise PhaseTableError(f"phase weights must sum to {TOTAL_WEIGHT}, got {total}")

        grouped: dict[str, list[StepDefinition]] = {phase.key: [] for phase in self._phases}
        for step in steps:
            if step.phase not in grouped:
                raise PhaseTableError(f"step {step.id} refers to unknown phase {step.phase}")
            grouped[step.phase].append(step)
        self._steps = {key: tuple(items) for key, items in grouped.items()}

    # ------------------------------------------------------------------
    # ordering & weights
    # ------------------------------------------------------------------
    def list_phases(self) -> tuple[Phase, ...]:
        return self._phases

    def keys(self) -> tuple[str, ...]:
        return tuple(phase.key for phase in self._phases)

    def first_phase(self) -> Phase:
        return self._phases[0]

    def contains(self, key: object) -> bool:
        return isinstance(key, str) and key in self._index

    def get_phase(self, key: str) -> Phase:
        return self._phases[self.index_of(key)]

    def index_of(self, key: str) -> int:
        try:
            return self._index[key]
        except (KeyError, TypeError):
            raise UnknownPhaseError(key) from None

    def weight_of(self, key: str) -> int:
        return self.get_phase(key).weight

    @property
    def total_weight(self) -> int:
        return sum(phase.weight for phase in self._phases)

    def steps_for(self, key: str) -> tuple[StepDefinition, ...]:
        self.index_of(key)
        return self._steps[key]

    # ------------------------------------------------------------------
    # presentation lookups
    # ------------------------------------------------------------------
    def get_phase_name(self, key: str) -> str:
        if not self.contains(key):
            return str(key)
        return self.get_phase(key).name

    def get_phase_color(self, key: str) -> PhaseColor:
        fallback = self.first_phase().color or _DEFAULT_COLOR
        if not self.contains(key):
            return fallback
        return self.get_phase(key).color or fallback

    def get_phase_initial(self, key: str) -> str:
        if not self.contains(key):
            return self.first_phase().initial or self.first_phase().key[:1]
        phase = self.get_phase(key)
        return phase.initial or phase.key[:1]


def _phase_from_mapping(item: Mapping) -> Phase:
    color = item.get("color")
    return Phase(
        key=str(item["key"]).strip().upper(),
        name=str(item.get("name") or item["key"]),
        weight=int(item["weight"]),
        initial=str(item.get("initial") or ""),
        color=PhaseColor(hex=color["hex"], bg=color["bg"], text=color["text"]) if color else None,
    )


def _steps_from_mapping(raw_steps: Mapping | None) -> list[StepDefinition]:
    steps: list[StepDefinition] = []
    for phase_key, items in (raw_steps or {}).items():
        for item in items or []:
            steps.append(
                StepDefinition(
                    id=str(item["id"]),
                    name=str(item.get("name") or item["id"]),
                    phase=str(phase_key).strip().upper(),
                    weight=int(item.get("weight", 1)),
                    project_types=tuple(str(value) for value in item.get("project_types") or ()),
                )
            )
    return steps


def load_phase_registry(path: Path | None = None) -> PhaseRegistry:
    """Build a registry from a YAML phase table, falling back to the built-in table."""

    path = path or CONFIG_DIR / "phases.yaml"
    if not path.exists():
        return PhaseRegistry(DEFAULT_PHASES)
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    phases = [_phase_from_mapping(item) for item in data.get("phases") or []]
    return PhaseRegistry(phases or DEFAULT_PHASES, _steps_from_mapping(data.get("steps")))


_registry = load_phase_registry()


def get_phase_registry() -> PhaseRegistry:
    """Return the process-wide phase registry."""

    return _registry


def list_phases() -> tuple[Phase, ...]:
    return _registry.list_phases()


def weight_of(key: str) -> int:
    return _registry.weight_of(key)


def index_of(key: str) -> int:
    return _registry.index_of(key)


def get_phase_name(key: str) -> str:
    return _registry.get_phase_name(key)


def get_phase_color(key: str) -> PhaseColor:
    return _registry.get_phase_color(key)
