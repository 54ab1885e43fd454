from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Front-matter keys understood by the site; anything else is reported by lint.
KNOWN_FIELDS: frozenset[str] = frozenset(
    {
        "author",
        "pubDatetime",
        "modDatetime",
        "title",
        "postSlug",
        "featured",
        "draft",
        "tags",
        "ogImage",
        "description",
        "canonicalURL",
    }
)


def _strip_or_none(value: Any) -> Any:
    if isinstance(value, str):
        s = value.strip()
        return s or None
    return value


class PostFrontMatter(BaseModel):
    """Validated front-matter of a single post, keyed by the camelCase names used on disk."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    title: str = Field(min_length=1)
    pub_datetime: datetime | date | str = Field(alias="pubDatetime")
    mod_datetime: datetime | date | str | None = Field(default=None, alias="modDatetime")
    author: str | None = None
    post_slug: str | None = Field(default=None, alias="postSlug")
    featured: bool = False
    draft: bool = False
    tags: list[str] = Field(default_factory=lambda: ["others"])
    og_image: str | None = Field(default=None, alias="ogImage")
    description: str | None = None
    canonical_url: str | None = Field(default=None, alias="canonicalURL")

    @field_validator("title", mode="before")
    @classmethod
    def _title_strip(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator(
        "author", "post_slug", "og_image", "description", "canonical_url", mode="before"
    )
    @classmethod
    def _optional_strings(cls, v: Any) -> Any:
        return _strip_or_none(v)

    @field_validator("post_slug", mode="before")
    @classmethod
    def _slug_from_scalar(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, v: Any) -> Any:
        if v is None:
            return ["others"]
        if isinstance(v, str):
            return [part for part in (p.strip() for p in v.split(",")) if part]
        if isinstance(v, (list, tuple)):
            return [str(item).strip() for item in v if item is not None and str(item).strip()]
        return v

    @field_validator("pub_datetime", "mod_datetime", mode="before")
    @classmethod
    def _no_numeric_timestamps(cls, v: Any) -> Any:
        # pydantic would read bare numbers as Unix seconds
        if isinstance(v, (bool, int, float)):
            raise ValueError("must be a YAML timestamp or an ISO-8601 string")
        return v

    @field_validator("featured", "draft", mode="before")
    @classmethod
    def _null_flag(cls, v: Any) -> Any:
        return False if v is None else v

    def unknown_fields(self) -> list[str]:
        extra = self.model_extra or {}
        return sorted(k for k in extra if k not in KNOWN_FIELDS)
