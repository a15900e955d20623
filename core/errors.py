from typing import Any, Optional


class PlannerSyncError(RuntimeError):
    pass


class ValidationError(PlannerSyncError):
    """Raised for malformed caller input, always before any network call."""


class ConflictError(PlannerSyncError):
    """Raised when a conditional write is rejected because the version tag is stale."""

    def __init__(self, message: str, status: Optional[int] = 412, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class IdentityNotFoundError(PlannerSyncError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"Could not find user with email/ID: {identifier}")
        self.identifier = identifier


class RemoteRequestError(PlannerSyncError):
    """Non-success transport response; status and body are kept for diagnostics."""

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class GraphPermissionError(RemoteRequestError):
    pass


class GraphRateLimitError(RemoteRequestError):
    pass
