"""
Domain errors.

ValidationError is raised synchronously and surfaced to the caller.
Engine failures are never raised past the insight orchestrator.
"""

from typing import Any


class DecisionLabError(Exception):
    """Base class for all DecisionLab errors."""


class ValidationError(DecisionLabError):
    """A decision (or an input to it) violates one or more structural rules."""

    def __init__(self, errors: list[str], subject: str = "decision structure"):
        self.errors = list(errors)
        self.subject = subject
        super().__init__(f"Invalid {subject}: {', '.join(self.errors)}")


class NotFoundError(DecisionLabError):
    """A referenced record does not exist (or is soft-deleted)."""

    def __init__(self, kind: str, entity_id: Any):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")
