"""Error taxonomy for the planning pipeline."""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for planner-related errors."""


class InvalidRequest(PlannerError):
    """Raised when a plan request fails validation before streaming starts."""


class ConfigurationError(PlannerError):
    """Raised when a required endpoint or credential is missing."""


class GenerationError(PlannerError):
    """Raised when the model returns a plan that cannot be used."""


class ExternalCallError(PlannerError):
    """Raised when a Todoist tool invocation fails."""


class ToolResolutionError(ExternalCallError):
    """Raised when no task-creation tool is advertised by the connection."""
