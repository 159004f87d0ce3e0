"""
Report request errors.

Raised before streaming starts and rendered by the web layer as
``{"error": message, **extra}`` with the error's status code.
"""

from typing import Any, Dict, Optional

from subscription.tier_control import Deny


class ReportError(Exception):
    """Base class for errors that map to an HTTP response."""

    code = "report_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        self.headers = headers

    def body(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class AuthenticationError(ReportError):
    code = "unauthorized"
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class EntitlementDenied(ReportError):
    code = "entitlement_denied"

    @classmethod
    def from_decision(cls, decision: Deny) -> "EntitlementDenied":
        return cls(decision.reason, status_code=decision.http_status, extra=dict(decision.details))


class ScenarioNotFound(ReportError):
    code = "scenario_not_found"
    status_code = 400

    def __init__(self, message: str = "No scenario data found. Please complete the calculator first."):
        super().__init__(message)


class ReportGenerationFailed(ReportError):
    code = "report_failed"
    status_code = 500

    def __init__(self, message: str = "Failed to generate report."):
        super().__init__(message)
