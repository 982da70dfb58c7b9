"""
Decision workflow error types
"""
from typing import Any, Dict, Optional

NO_OFFENSE_SELECTED = "Please select an offense."


class DecisionError(Exception):
    """Base class for decision workflow failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        """Message shown to the operator"""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.user_message,
        }


class ValidationError(DecisionError):
    """Submission rejected locally, before any backend call"""

    def __init__(self, message: str = NO_OFFENSE_SELECTED, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class BackendError(DecisionError):
    """Lookup, insert, update or read failed in the decision store"""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation

    @property
    def user_message(self) -> str:
        return f"Error: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["operation"] = self.operation
        return data
