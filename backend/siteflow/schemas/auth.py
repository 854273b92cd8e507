from enum import Enum

from pydantic import BaseModel


class AuthCookie(BaseModel):
    name: str
    value: str
    domain: str = ""
    path: str = "/"

    model_config = {"extra": "ignore", "frozen": True}

    def to_playwright(self) -> dict:
        return {"name": self.name, "value": self.value, "domain": self.domain, "path": self.path}


class AuthStatus(str, Enum):
    NOT_REQUESTED = "not_requested"
    UNCONFIGURED = "unconfigured"
    FAILED = "failed"
    AUTHENTICATED = "authenticated"


class AuthOutcome(BaseModel):
    """Result of the optional login step, handed to discovery as plain data."""

    status: AuthStatus = AuthStatus.NOT_REQUESTED
    cookies: tuple[AuthCookie, ...] = ()
    detail: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def not_requested(cls) -> "AuthOutcome":
        return cls(status=AuthStatus.NOT_REQUESTED)

    @classmethod
    def unconfigured(cls, detail: str | None = None) -> "AuthOutcome":
        return cls(status=AuthStatus.UNCONFIGURED, detail=detail)

    @classmethod
    def from_cookies(cls, cookies: list[AuthCookie] | None) -> "AuthOutcome":
        if not cookies:
            return cls(status=AuthStatus.FAILED, detail="Login produced no cookies")
        return cls(status=AuthStatus.AUTHENTICATED, cookies=tuple(cookies))

    @property
    def cookie_header(self) -> str:
        """``Cookie`` header value, empty unless authenticated with cookies."""
        if self.status != AuthStatus.AUTHENTICATED:
            return ""
        return "; ".join(f"{c.name}={c.value}" for c in self.cookies)
