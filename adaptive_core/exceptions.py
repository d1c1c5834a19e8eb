"""Exceptions raised by the adaptive dialog engine."""

from typing import Any, Dict, Optional


class AdaptiveError(Exception):
    """Base exception for engine errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "ADAPTIVE_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class SchemaError(AdaptiveError):
    """Dialog schema document is structurally invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SCHEMA_ERROR", details)


class DialogNotFoundError(AdaptiveError):
    """A dialog id could not be resolved."""

    def __init__(self, dialog_id: str):
        super().__init__(
            f"Dialog not found: {dialog_id}",
            "DIALOG_NOT_FOUND",
            {"dialog_id": dialog_id},
        )
        self.dialog_id = dialog_id


class DialogStateError(AdaptiveError):
    """Runtime state was used in a way it does not support."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DIALOG_STATE_ERROR", details)


__all__ = [
    "AdaptiveError",
    "SchemaError",
    "DialogNotFoundError",
    "DialogStateError",
]
