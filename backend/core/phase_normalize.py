"""Map raw and legacy phase spellings onto registered phase keys."""
from __future__ import annotations

import logging
import re
import unicodedata

from backend.core.phases import PhaseRegistry, get_phase_registry

logger = logging.getLogger(__name__)

_PHASE_SUFFIX = re.compile(r"[\s_-]*PHASE$")
_PHASE_PREFIX = re.compile(r"^PHASE[\s_-]+")
_INSURANCE_SUFFIX = re.compile(r"[\s_-]*INSURANCE[\s_-]*1ST[\s_-]*SUPP(?:LEMENT)?$")
_SEPARATORS = re.compile(r"[\s-]+")

PHASE_SYNONYMS: dict[str, str] = {
    "LEADS": "LEAD",
    "PROSPECTS": "PROSPECT",
    "APPROVE": "APPROVED",
    "EXECUTE": "EXECUTION",
    "EXECUTING": "EXECUTION",
    "IN_PROGRESS": "EXECUTION",
    "INPROGRESS": "EXECUTION",
    "ACTIVE": "EXECUTION",
    "SUPPLEMENT": "SECOND_SUPPLEMENT",
    "SUPP": "SECOND_SUPPLEMENT",
    "2ND_SUPP": "SECOND_SUPPLEMENT",
    "2ND_SUPPLEMENT": "SECOND_SUPPLEMENT",
    "SECOND_SUPP": "SECOND_SUPPLEMENT",
    "COMPLETE": "COMPLETION",
    "COMPLETED": "COMPLETION",
    "FINISHED": "COMPLETION",
    "DONE": "COMPLETION",
}

STATUS_PHASES: dict[str, str] = {
    "IN_PROGRESS": "EXECUTION",
    "INPROGRESS": "EXECUTION",
    "ACTIVE": "EXECUTION",
    "PENDING": "LEAD",
    "NEW": "LEAD",
    "COMPLETED": "COMPLETION",
    "COMPLETE": "COMPLETION",
    "FINISHED": "COMPLETION",
    "DONE": "COMPLETION",
}


def _canonical_text(raw: object) -> str:
    return unicodedata.normalize("NFKC", str(raw)).strip().upper()


def _strip_labels(value: str) -> str:
    previous = None
    while value != previous:
        previous = value
        value = _PHASE_SUFFIX.sub("", value)
        value = _PHASE_PREFIX.sub("", value)
        value = _INSURANCE_SUFFIX.sub("", value).strip()
    return value


def normalize_phase(raw: object, registry: PhaseRegistry | None = None) -> str:
    """Return the registered phase key for ``raw``.

    Never raises: anything that cannot be recognised resolves to the first
    phase of the lifecycle.
    """

    registry = registry or get_phase_registry()
    start = registry.first_phase().key
    if raw is None:
        return start

    value = _canonical_text(raw)
    if not value:
        return start
    if registry.contains(value):
        return value

    value = _strip_labels(value)
    value = _SEPARATORS.sub("_", value).strip("_")
    value = PHASE_SYNONYMS.get(value, value)

    if registry.contains(value):
        return value

    logger.debug("unrecognised phase %r, falling back to %s", raw, start)
    return start


def phase_from_status(status: object) -> str | None:
    """Translate a project status into a raw phase name, if it implies one."""

    if status is None:
        return None
    value = _SEPARATORS.sub("_", _canonical_text(status))
    return STATUS_PHASES.get(value)
