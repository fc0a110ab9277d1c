"""Domain layer definitions."""

from .workflow import Phase, PhaseColor, StepDefinition

__all__ = [
    "Phase",
    "PhaseColor",
    "StepDefinition",
]
