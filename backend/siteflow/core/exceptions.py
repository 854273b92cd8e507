from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class SiteFlowError(Exception):
    def __init__(self, message: str, url: str = ""):
        self.message = message
        self.url = url
        super().__init__(self.message)


class DiscoveryError(SiteFlowError):
    """Base for failures that degrade discovery to the fallback URL set.

    ``reason`` is the code written into the ``error`` field of urls.json.
    """

    reason = "unexpected_error"


class EngineUnavailable(DiscoveryError):
    reason = "engine_unavailable"


class ReadyTimeout(DiscoveryError):
    reason = "ready_timeout"


class ScanFailure(DiscoveryError):
    reason = "scan_failed"


class UnexpectedError(DiscoveryError):
    reason = "unexpected_error"


class AuthMisconfigured(SiteFlowError):
    """Authenticated crawl requested but the login settings are incomplete."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing login settings: {', '.join(missing)}")


class PollTimeout(SiteFlowError):
    """Raised when a polled condition is not met within its attempt budget.

    Attributes:
        attempts: Number of checks performed before giving up.
        elapsed: Seconds spent sleeping between checks.
    """

    def __init__(self, message: str, attempts: int = 0, elapsed: float = 0.0):
        super().__init__(message)
        self.attempts = attempts
        self.elapsed = elapsed


class ReportError(SiteFlowError):
    pass
