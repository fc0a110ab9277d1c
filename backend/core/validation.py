from __future__ import annotations

import logging

from backend.core.schema import ProjectPositionMarker

logger = logging.getLogger(__name__)

REQUIRED_MARKER_FIELDS = ("project_id", "version_token")


class MalformedMarkerWarning(UserWarning):
    """Describes a project marker that lacks fields the engine expects.

    Engine code logs instances of this class; it never raises or issues them
    through :mod:`warnings`.
    """

    def __init__(self, project_id: object, missing: list[str]) -> None:
        self.project_id = project_id
        self.missing = missing
        super().__init__(f"project marker is missing {', '.join(missing)}")


def missing_marker_fields(marker: ProjectPositionMarker) -> list[str]:
    return [name for name in REQUIRED_MARKER_FIELDS if getattr(marker, name) in (None, "")]


def check_marker(marker: ProjectPositionMarker) -> MalformedMarkerWarning | None:
    """Log missing marker fields and return the problem found, if any. Never raises."""

    missing = missing_marker_fields(marker)
    if not missing:
        return None
    problem = MalformedMarkerWarning(marker.project_id, missing)
    logger.warning("%s (project_id=%r)", problem, marker.project_id)
    return problem
