from __future__ import annotations

import re
from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _normalize_extensions(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()

    for item in values:
        ext = (item or "").strip().casefold()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        if ext in seen:
            continue
        seen.add(ext)
        out.append(ext)

    if not out:
        raise ValueError("must contain at least one file extension")
    return out


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    website: str = "https://drunkcoding.net/"
    author: str = "Steven (Hoang Bao Duy)"
    title: str = "drunkcoding.net"
    desc: str = ""
    og_image: str | None = "favicon.svg"
    post_per_index: PositiveInt = 5
    post_per_page: PositiveInt = 10
    scheduled_post_margin_minutes: NonNegativeInt = 15
    timezone: str = "Asia/Bangkok"
    lang: str = "en"
    dir: Literal["ltr", "rtl", "auto"] = "ltr"

    @field_validator("timezone")
    @classmethod
    def _timezone_must_exist(cls, v: str) -> str:
        name = (v or "").strip()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown IANA timezone: {name!r}") from e
        return name

    @field_validator("website")
    @classmethod
    def _website_trailing_slash(cls, v: str) -> str:
        url = (v or "").strip()
        if url and not url.endswith("/"):
            url += "/"
        return url


class ContentConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    posts_dir: str = "src/content/blog"
    public_dir: str = "public"
    extensions: list[str] = Field(default_factory=lambda: [".md", ".mdx"])

    @field_validator("extensions")
    @classmethod
    def _normalize_ext(cls, v: list[str]) -> list[str]:
        return _normalize_extensions(v)


class LintConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    require_description: bool = True
    allow_multiple_front_matter: bool = False
    check_assets: bool = True
    min_body_chars: NonNegativeInt = 1


class MarkdownConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    h2_reformat: bool = True
    toc_heading: str = "Table of contents"
    toc_max_depth: int = Field(3, ge=2, le=6)
    toc_collapse: bool = True


class SnippetsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    inline_marker: str = "inline"
    origin_comment: str | None = None
    token_env: str = "GITHUB_TOKEN"
    timeout_seconds: float = Field(20.0, gt=0)
    max_attempts: PositiveInt = 4

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("inline_marker")
    @classmethod
    def _marker_non_empty(cls, v: str) -> str:
        marker = (v or "").strip()
        if not marker:
            raise ValueError("must be non-empty")
        return marker


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    site: SiteConfig = Field(default_factory=SiteConfig)
    content: ContentConfig = Field(default_factory=ContentConfig)
    lint: LintConfig = Field(default_factory=LintConfig)
    markdown: MarkdownConfig = Field(default_factory=MarkdownConfig)
    snippets: SnippetsConfig = Field(default_factory=SnippetsConfig)
