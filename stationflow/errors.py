"""Error types raised by the station workflow engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Discriminator carried by every :class:`WorkflowError`."""

    PANEL_NOT_FOUND = "PANEL_NOT_FOUND"
    DUPLICATE_WORKFLOW = "DUPLICATE_WORKFLOW"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_INSPECTION_TARGET = "INVALID_INSPECTION_TARGET"
    INVALID_CRITERIA = "INVALID_CRITERIA"
    MISSING_REQUIRED_CRITERIA = "MISSING_REQUIRED_CRITERIA"
    NOTES_REQUIRED = "NOTES_REQUIRED"
    INVALID_REWORK = "INVALID_REWORK"
    INCOMPLETE_PREREQUISITE = "INCOMPLETE_PREREQUISITE"


class WorkflowError(Exception):
    """A request the engine refused to carry out.

    A failed inspection is *not* a ``WorkflowError``; it is a normal outcome.
    This error is reserved for malformed or illegal requests, and it always
    leaves the workflow record untouched.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        panel_id: Optional[str] = None,
        current_state: Optional[str] = None,
        attempted_action: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message
        self.panel_id = panel_id
        self.current_state = current_state
        self.attempted_action = attempted_action
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for transport layers."""
        return {
            "code": self.code.value,
            "message": self.message,
            "panel_id": self.panel_id,
            "current_state": self.current_state,
            "attempted_action": self.attempted_action,
            "details": dict(self.details),
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"WorkflowError(code={self.code.value!r}, panel_id={self.panel_id!r}, "
            f"current_state={self.current_state!r}, message={self.message!r})"
        )


class CriteriaConfigurationError(ValueError):
    """Raised at startup when criteria or station configuration is invalid."""
