from typing import Any, Literal

from pydantic import Field

from siteflow.schemas.common import ArtifactModel, iso_now


class DiscoveredUrl(ArtifactModel):
    url: str
    source: Literal["fallback", "engine"]


class UrlCounts(ArtifactModel):
    total: int = 0
    same_origin: int = 0


class DiscoveredUrlSet(ArtifactModel):
    """Contents of urls.json. ``error`` is only set on degraded outcomes."""

    target_url: str
    generated_at: str = Field(default_factory=iso_now)
    counts: UrlCounts = Field(default_factory=UrlCounts)
    urls: list[DiscoveredUrl] = []
    forms: list[Any] = []
    links: list[Any] = []
    error: str | None = None

    @classmethod
    def fallback(cls, target_url: str, reason: str, generated_at: str | None = None) -> "DiscoveredUrlSet":
        return cls(
            target_url=target_url,
            generated_at=generated_at or iso_now(),
            counts=UrlCounts(total=1, same_origin=1),
            urls=[DiscoveredUrl(url=target_url, source="fallback")],
            error=reason,
        )

    @property
    def url_list(self) -> list[str]:
        return [entry.url for entry in self.urls]

    @property
    def is_fallback(self) -> bool:
        return self.error is not None
