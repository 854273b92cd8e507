from typing import Any

from pydantic import Field, field_validator

from siteflow.schemas.common import ArtifactModel, iso_now

_BOOL_FIELDS = (
    "has_password_input",
    "has_search_input",
    "login_detected",
    "missing_title",
)
_INT_FIELDS = ("h1_count", "images_missing_alt", "buttons_missing_label")
_LIST_FIELDS = ("buttons", "cta_buttons", "forms")
_DICT_FIELDS = ("headings", "landmarks")


class NavItem(ArtifactModel):
    text: str = ""
    href: str | None = None

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator("href", mode="before")
    @classmethod
    def _href(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class PageContext(ArtifactModel):
    """Structured record for one visited URL.

    Always present, even when the visit failed (``error`` set, the rest
    default). Malformed optional fields are coerced to their empty/false
    defaults instead of failing validation.
    """

    url: str
    title: str | None = None
    final_url: str | None = None
    nav_items: list[NavItem] = []
    links: list[str] = []
    has_password_input: bool = False
    has_search_input: bool = False
    login_detected: bool = False
    screenshot: str | None = None
    error: str | None = None

    headings: dict[str, list[str]] = {}
    buttons: list[dict[str, Any]] = []
    cta_buttons: list[dict[str, Any]] = []
    forms: list[dict[str, Any]] = []
    landmarks: dict[str, bool] = {}
    h1_count: int = 0
    missing_title: bool = False
    images_missing_alt: int = 0
    buttons_missing_label: int = 0

    @field_validator("title", "final_url", "screenshot", "error", mode="before")
    @classmethod
    def _optional_str(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("nav_items", mode="before")
    @classmethod
    def _nav_items(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, NavItem))]

    @field_validator("links", mode="before")
    @classmethod
    def _links(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [link for link in v if isinstance(link, str)]

    @field_validator(*_BOOL_FIELDS, mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return v if isinstance(v, bool) else False

    @field_validator(*_INT_FIELDS, mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int):
            return 0
        return max(v, 0)

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def _records(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]

    @field_validator("headings", mode="before")
    @classmethod
    def _headings(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            return {}
        return {
            k: [h for h in items if isinstance(h, str)]
            for k, items in v.items()
            if isinstance(items, list)
        }

    @field_validator("landmarks", mode="before")
    @classmethod
    def _landmarks(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            return {}
        return {k: flag for k, flag in v.items() if isinstance(flag, bool)}


class UxCounts(ArtifactModel):
    missing_title_pages: int = 0
    multiple_h1_pages: int = 0
    images_missing_alt: int = 0
    buttons_missing_label: int = 0
    broken_links: int = 0

    @field_validator("*", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int):
            return 0
        return v


class BrokenLink(ArtifactModel):
    url: str
    status: int = 0  # 0 = unreachable


class PageCollection(ArtifactModel):
    """Contents of pages.json."""

    target_url: str = ""
    generated_at: str = Field(default_factory=iso_now)
    count: int = 0
    pages: list[PageContext] = []


class UxReport(ArtifactModel):
    """Contents of ux_checks.json."""

    target_url: str = ""
    generated_at: str = Field(default_factory=iso_now)
    counts: UxCounts = Field(default_factory=UxCounts)
    broken_links: list[BrokenLink] = []
