from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from .config_schema import AppConfig
from .errors import ExportError
from .listing import build_home, paginate, published_posts, unique_tags
from .post import Post


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def post_url(post: Post, *, website: str) -> str:
    return f"{website.rstrip('/')}/posts/{post.slug}/"


def post_entry(post: Post, *, website: str) -> dict[str, Any]:
    return {
        "slug": post.slug,
        "title": post.title,
        "author": post.author,
        "description": post.description,
        "tags": list(post.tags),
        "pubDatetime": _iso(post.pub_datetime),
        "modDatetime": _iso(post.mod_datetime),
        "featured": post.featured,
        "ogImage": post.og_image,
        "canonicalURL": post.canonical_url,
        "url": post_url(post, website=website),
        "source": str(post.path),
    }


def build_index(
    posts: Iterable[Post],
    *,
    config: AppConfig,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Build the published listing: drafts and not-yet-due posts are left out.
    """
    site = config.site
    current = now or datetime.now(timezone.utc)
    live = published_posts(posts, site=site, now=current)
    home = build_home(live, site=site)
    pages = paginate(live, site.post_per_page)

    return {
        "generated_at": current.isoformat(),
        "site": {
            "website": site.website,
            "title": site.title,
            "author": site.author,
            "description": site.desc,
            "lang": site.lang,
            "timezone": site.timezone,
        },
        "posts": [post_entry(p, website=site.website) for p in live],
        "home": {
            "featured": [p.slug for p in home.featured],
            "recent": [p.slug for p in home.recent],
        },
        "pages": [
            {"number": page.number, "posts": [p.slug for p in page.posts]}
            for page in pages
        ],
        "tags": [
            {"tag": t.tag, "name": t.name, "count": t.count}
            for t in unique_tags(live)
        ],
        "counts": {
            "published": len(live),
            "pages": len(pages),
        },
    }


def write_index_json(index: dict[str, Any], path: str | Path) -> Path:
    out = Path(path)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(index, ensure_ascii=False, indent=2, sort_keys=False)
        out.write_text(payload + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError) as e:
        raise ExportError(f"Failed to write index: {out}: {e}") from e
    return out
