"""
Error taxonomy for the media pipeline.

Every failure raised while validating, probing, compiling, executing or
resolving a request derives from ``GatewayError`` so the HTTP layer and the
CLI can render it uniformly.
"""
from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(
        self,
        message: str,
        code: str = "GATEWAY_ERROR",
        status_code: int = 500,
        details: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Render the error as a response body."""
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(GatewayError):
    """Missing or invalid request field, or an unknown operation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        valid_operations: Optional[List[str]] = None,
    ):
        self.field = field
        self.valid_operations = valid_operations
        super().__init__(message, "VALIDATION_ERROR", 400)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        if self.valid_operations:
            body["validOperations"] = self.valid_operations
        return body


class RequestShapeError(ValidationError):
    """Cross-field constraint violated (e.g. trim without an end boundary)."""


class InputNotFound(GatewayError):
    """A named input path does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Input file not found: {path}", "INPUT_NOT_FOUND", 404)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["path"] = self.path
        return body


class ProbeFailure(GatewayError):
    """The probing tool could not read or parse a media file."""

    def __init__(self, path: str, reason: str, details: Optional[str] = None):
        self.path = path
        super().__init__(f"Failed to probe {path}: {reason}", "PROBE_FAILED", 422, details)


class ExecutionFailure(GatewayError):
    """The engine exited non-zero, timed out, or could not be started."""

    def __init__(self, message: str, details: Optional[str] = None, timed_out: bool = False):
        self.timed_out = timed_out
        status_code = 504 if timed_out else 500
        code = "EXECUTION_TIMEOUT" if timed_out else "EXECUTION_FAILED"
        super().__init__(message, code, status_code, details)


class ArtifactMissing(GatewayError):
    """The engine exited cleanly but produced no artifact."""

    def __init__(self, path: str, details: Optional[str] = None):
        self.path = path
        super().__init__(f"No output produced at {path}", "ARTIFACT_MISSING", 500, details)


class WorkspaceError(GatewayError):
    """The media workspace could not be prepared."""

    def __init__(self, message: str):
        super().__init__(message, "WORKSPACE_ERROR", 500)
