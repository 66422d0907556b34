"""
Planner error types.

Routes translate these into ``{'success': False, 'message': ...}`` JSON
responses using ``http_status``; anything else bubbles up as a 500.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class PlannerError(Exception):
    """Base exception for planning errors."""
    http_status = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': False,
            'message': self.message,
        }
        if self.context:
            payload['details'] = self.context
        return payload


class SettingsValidationError(PlannerError):
    """Raised when submitted settings are out of range."""


class CommitmentValidationError(PlannerError):
    """Raised when a commitment payload is malformed."""


class TaskValidationError(PlannerError):
    """Raised when a task payload is malformed."""


class CommitmentConflictError(PlannerError):
    """Raised when a commitment strictly overlaps an existing one."""
    http_status = 409


class TaskNotFeasibleError(PlannerError):
    """Raised when a new task cannot be scheduled before its deadline."""
    http_status = 422


class SessionNotFoundError(PlannerError):
    http_status = 404
