"""
Error taxonomy for the scheduling engine.

Every engine error carries a kind, a human-readable message and the ids of the
entities involved, so request handlers can render it without re-deriving
context.
"""
from typing import Dict, Optional


class SchedulingError(Exception):
    """Base class for all engine errors."""

    kind = "scheduling_error"
    title = "Scheduling Error"
    status_code = 500

    def __init__(self, message: str, entity_ids: Optional[Dict[str, str]] = None):
        self.message = message
        self.entity_ids = entity_ids or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "kind": self.kind,
            "entity_ids": self.entity_ids,
        }


class ValidationError(SchedulingError):
    """A proposed meeting violates a scheduling constraint."""

    kind = "validation_error"
    title = "Constraint Violated"
    status_code = 409


class NotFoundError(SchedulingError):
    """A referenced teacher, subject, section, room or meeting does not exist."""

    kind = "not_found"
    title = "Not Found"
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found.",
            entity_ids={f"{resource_type.lower()}_id": str(resource_id)},
        )


class PreconditionError(SchedulingError):
    """No active period, or the catalogs needed for a run are empty."""

    kind = "precondition_failed"
    title = "Precondition Failed"
    status_code = 412


class PlacementFailure(SchedulingError):
    """A section/subject pairing could not be placed by the auto-scheduler."""

    kind = "placement_failure"
    title = "Placement Failure"
    status_code = 422


class PersistenceError(SchedulingError):
    """The timetable store rejected a write."""

    kind = "persistence_error"
    title = "Persistence Error"
    status_code = 500


class FormatError(SchedulingError, ValueError):
    """Malformed time or day input."""

    kind = "format_error"
    title = "Invalid Format"
    status_code = 400


class InvalidRangeError(SchedulingError, ValueError):
    """A time range whose end is not after its start."""

    kind = "invalid_range"
    title = "Invalid Time Range"
    status_code = 400
