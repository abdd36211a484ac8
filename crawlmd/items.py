"""Pydantic models for extracted articles and the HTTP API payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Content extraction
# ---------------------------------------------------------------------------

class ArticleResult(BaseModel):
    """Readable article isolated from a full page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    content_html: str = ""
    text_content: str = ""
    excerpt: str | None = None
    byline: str | None = None
    site_name: str | None = None
    published_time: str | None = None
    dir: str | None = None
    length: int = 0

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v or ""


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------

class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CrawlRequest(_ApiModel):
    url: str

    @field_validator("url", mode="before")
    @classmethod
    def require_url(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("url is required")
        return v


class MarkdownRequest(_ApiModel):
    url: str | None = None
    html: str | None = None
    # Run readability on the fetched page before converting
    article: bool = True

    @field_validator("url", mode="before")
    @classmethod
    def strip_url(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v


class MetadataEntryModel(_ApiModel):
    key: str
    content: Any


class CrawlResponse(_ApiModel):
    url: str
    title: str = ""
    content: str = ""
    text_content: str = ""
    excerpt: str | None = None
    byline: str | None = None
    site_name: str | None = None
    published_time: str | None = None
    dir: str | None = None
    length: int = 0
    markdown: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class MarkdownResponse(_ApiModel):
    url: str | None = None
    markdown: str = ""


class MetadataResponse(_ApiModel):
    url: str
    entries: list[MetadataEntryModel] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(_ApiModel):
    error: str
    message: str | None = None
    status: int | None = None
