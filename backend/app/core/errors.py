"""Failures raised by the run lifecycle.

Three families matter to callers: ``NotFound`` and ``ConflictingState`` mean
the request itself is wrong and retrying it unchanged will fail again;
``UpstreamFailure`` means the routing provider let us down and the same call
may succeed later. Each class carries the HTTP status the API reports it as.
"""


class RunLifecycleError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(RunLifecycleError):
    status_code = 404


class ConflictingState(RunLifecycleError):
    status_code = 409


class UpstreamFailure(RunLifecycleError):
    status_code = 502


class AccountNotFound(NotFound):
    def __init__(self, email: str):
        super().__init__("Account does not exist")
        self.email = email


class EmailAlreadyRegistered(ConflictingState):
    def __init__(self, email: str):
        super().__init__("Email already taken")
        self.email = email


class RunAlreadyActive(ConflictingState):
    def __init__(self, email: str):
        super().__init__("An active run is already in progress for the user.")
        self.email = email


class NoActiveRun(ConflictingState):
    def __init__(self, email: str, message: str = "No active run."):
        super().__init__(message)
        self.email = email


class NoActiveRunToEnd(NoActiveRun):
    def __init__(self, email: str):
        super().__init__(email, "No active run to end.")


class NoActiveRunToRoute(NoActiveRun):
    def __init__(self, email: str):
        super().__init__(email, "No active run to route.")


class RouteLookupFailed(UpstreamFailure):
    """Route provider failure, tagged with the lifecycle operation in flight."""

    def __init__(self, operation: str, cause: str):
        super().__init__(f"Route lookup failed during {operation}: {cause}")
        self.operation = operation
        self.cause = cause
