"""
Shared error handling for the rule engine service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RulesServiceException(Exception):
    """Base exception for rule engine services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(RulesServiceException):
    """Validation-related errors, e.g. a malformed rule payload."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RuleNotFoundError(RulesServiceException):
    """Raised when a rule id is not registered."""

    status_code = 404

    def __init__(self, rule_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_NOT_FOUND", f"Rule '{rule_id}' not found", {"rule_id": rule_id, **(details or {})})
        self.rule_id = rule_id

