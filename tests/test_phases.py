from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.core import phases
from backend.core.phases import (
    DEFAULT_PHASES,
    PhaseRegistry,
    PhaseTableError,
    UnknownPhaseError,
    load_phase_registry,
)
from backend.domain import Phase, StepDefinition


def test_weights_sum_to_one_hundred():
    assert sum(phase.weight for phase in phases.list_phases()) == 100
    assert sum(phases.weight_of(phase.key) for phase in phases.list_phases()) == 100


def test_lifecycle_order_and_weights():
    keys = [phase.key for phase in phases.list_phases()]
    assert keys == ["LEAD", "PROSPECT", "APPROVED", "EXECUTION", "SECOND_SUPPLEMENT", "COMPLETION"]
    assert [phases.weight_of(key) for key in keys] == [10, 15, 15, 40, 10, 10]
    assert [phases.index_of(key) for key in keys] == list(range(6))


def test_list_phases_is_stable():
    assert phases.list_phases() == phases.list_phases()
    assert list(phases.list_phases()) == list(phases.list_phases())


def test_unknown_key_raises():
    with pytest.raises(UnknownPhaseError):
        phases.weight_of("DEMOLITION")
    with pytest.raises(UnknownPhaseError):
        phases.index_of("lead")
    with pytest.raises(KeyError):
        phases.index_of(None)  # type: ignore[arg-type]


def test_presentation_lookups():
    assert phases.get_phase_name("SECOND_SUPPLEMENT") == "2nd Supplement"
    assert phases.get_phase_name("UNKNOWN") == "UNKNOWN"
    assert phases.get_phase_color("EXECUTION").hex == "#F59E0B"
    assert phases.get_phase_color("UNKNOWN").hex == "#E0E7FF"
    registry = phases.get_phase_registry()
    assert registry.get_phase_initial("APPROVED") == "A"
    assert registry.get_phase_initial("UNKNOWN") == "L"


def test_yaml_table_matches_builtin_defaults():
    registry = phases.get_phase_registry()
    assert [(p.key, p.name, p.weight) for p in registry.list_phases()] == [
        (p.key, p.name, p.weight) for p in DEFAULT_PHASES
    ]
    assert [step.id for step in registry.steps_for("PROSPECT")] == ["site_inspection", "write_estimate"]
    assert registry.steps_for("SECOND_SUPPLEMENT")[0].conditional is True


def test_missing_yaml_falls_back_to_defaults(tmp_path):
    registry = load_phase_registry(tmp_path / "missing.yaml")
    assert registry.list_phases() == DEFAULT_PHASES


def test_custom_yaml_table(tmp_path):
    path = tmp_path / "phases.yaml"
    path.write_text(
        "phases:\n"
        "  - {key: start, name: Start, weight: 30}\n"
        "  - {key: finish, name: Finish, weight: 70}\n"
        "steps:\n"
        "  finish:\n"
        "    - {id: wrap_up, name: Wrap Up}\n",
        encoding="utf-8",
    )
    registry = load_phase_registry(path)
    assert registry.keys() == ("START", "FINISH")
    assert registry.steps_for("FINISH")[0].weight == 1


@pytest.mark.parametrize(
    "table",
    [
        [],
        [Phase("A", "A", 50), Phase("B", "B", 40)],
        [Phase("A", "A", 50), Phase("A", "A", 50)],
        [Phase("A", "A", 0), Phase("B", "B", 100)],
    ],
)
def test_invalid_tables_are_rejected(table):
    with pytest.raises(PhaseTableError):
        PhaseRegistry(table)


def test_step_for_unknown_phase_is_rejected():
    with pytest.raises(PhaseTableError):
        PhaseRegistry(DEFAULT_PHASES, [StepDefinition("x", "X", phase="NOWHERE")])
