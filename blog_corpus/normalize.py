from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, time, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from .config import format_validation_errors
from .config_schema import SiteConfig
from .errors import ContentError
from .frontmatter import RawBlock
from .post import Post
from .post_schema import PostFrontMatter

_SLUG_INVALID_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lower-case, ASCII-fold and collapse everything but [a-z0-9] into single hyphens."""
    folded = unicodedata.normalize("NFKD", text or "")
    folded = folded.encode("ascii", "ignore").decode("ascii").lower()
    return _SLUG_INVALID_RE.sub("-", folded).strip("-")


def _dedupe_tags(values: list[str]) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for item in values:
        tag = (item or "").strip()
        if not tag:
            continue
        key = tag.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(tag)
    return tuple(out)


def coerce_datetime(value: Any, tz: tzinfo) -> datetime:
    """
    Turn a YAML timestamp, date or ISO-8601 string into an aware datetime.

    Naive values are taken to be in the site timezone.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValueError("empty datetime")
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as e:
            raise ValueError(f"not an ISO-8601 datetime: {value!r}") from e
    else:
        raise ValueError(f"unsupported datetime value: {value!r}")

    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def derive_slug(
    front_matter: PostFrontMatter, *, path: Path, block_index: int
) -> str:
    if front_matter.post_slug:
        slug = slugify(front_matter.post_slug)
        if slug:
            return slug
    if block_index > 0:
        return slugify(front_matter.title) or f"{slugify(path.stem)}-{block_index + 1}"
    return slugify(path.stem)


def post_from_block(
    path: str | Path,
    block: RawBlock,
    *,
    site: SiteConfig,
    block_index: int = 0,
) -> Post:
    """
    Validate one front-matter block and build a Post from it.

    Raises ContentError(code="schema_invalid") listing every invalid field.
    """
    p = Path(path)

    try:
        fm = PostFrontMatter.model_validate(block.meta)
    except ValidationError as e:
        raise ContentError(
            format_validation_errors(e, f"Invalid front-matter in {p}:"),
            code="schema_invalid",
            path=p,
            line=block.line,
        ) from e

    tz = ZoneInfo(site.timezone)
    try:
        pub = coerce_datetime(fm.pub_datetime, tz)
        mod = coerce_datetime(fm.mod_datetime, tz) if fm.mod_datetime is not None else None
    except ValueError as e:
        raise ContentError(
            f"Invalid front-matter in {p}:\n- pubDatetime/modDatetime: {e}",
            code="schema_invalid",
            path=p,
            line=block.line,
        ) from e

    slug = derive_slug(fm, path=p, block_index=block_index)
    if not slug:
        raise ContentError(
            f"Cannot derive a slug for {p}",
            code="slug_empty",
            path=p,
            line=block.line,
        )

    return Post(
        path=p,
        slug=slug,
        title=fm.title,
        author=fm.author or site.author,
        pub_datetime=pub,
        mod_datetime=mod,
        post_slug=fm.post_slug,
        featured=fm.featured,
        draft=fm.draft,
        tags=_dedupe_tags(fm.tags),
        og_image=fm.og_image,
        description=fm.description,
        canonical_url=fm.canonical_url,
        body=block.body,
        meta_text=block.meta_text,
        block_index=block_index,
        extra_fields=tuple(fm.unknown_fields()),
    )
