from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from .config_schema import SiteConfig
from .normalize import slugify
from .post import Post


@dataclass(frozen=True)
class Page:
    number: int  # 1-based
    total_pages: int
    posts: Sequence[Post]

    @property
    def has_previous(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages


@dataclass(frozen=True)
class TagSummary:
    tag: str  # slugified, used in URLs
    name: str  # first spelling seen
    count: int


@dataclass(frozen=True)
class HomeListing:
    featured: Sequence[Post]
    recent: Sequence[Post]


def is_published(post: Post, *, now: datetime, margin: timedelta) -> bool:
    """
    Drafts are never published; other posts go live once `now` passes
    `pub_datetime - margin`.
    """
    if post.draft:
        return False
    return now > post.pub_datetime - margin


def sorted_posts(posts: Iterable[Post]) -> list[Post]:
    """Newest first by modDatetime (falling back to pubDatetime), slug breaks ties."""
    by_slug = sorted(posts, key=lambda p: p.slug)
    return sorted(by_slug, key=lambda p: p.sort_datetime.timestamp(), reverse=True)


def published_posts(
    posts: Iterable[Post],
    *,
    site: SiteConfig,
    now: datetime | None = None,
) -> list[Post]:
    current = now or datetime.now(timezone.utc)
    margin = timedelta(minutes=site.scheduled_post_margin_minutes)
    return sorted_posts(p for p in posts if is_published(p, now=current, margin=margin))


def build_home(posts: Sequence[Post], *, site: SiteConfig) -> HomeListing:
    """Featured posts plus the most recent non-featured ones, from an already sorted list."""
    featured = [p for p in posts if p.featured]
    recent = [p for p in posts if not p.featured][: site.post_per_index]
    return HomeListing(featured=tuple(featured), recent=tuple(recent))


def paginate(posts: Sequence[Post], per_page: int) -> list[Page]:
    if per_page < 1:
        raise ValueError("per_page must be >= 1")

    total = max(1, math.ceil(len(posts) / per_page))
    return [
        Page(
            number=n + 1,
            total_pages=total,
            posts=tuple(posts[n * per_page : (n + 1) * per_page]),
        )
        for n in range(total)
    ]


def unique_tags(posts: Iterable[Post]) -> list[TagSummary]:
    names: dict[str, str] = {}
    counts: dict[str, int] = {}
    for post in posts:
        seen_in_post: set[str] = set()
        for name in post.tags:
            tag = slugify(name)
            if not tag or tag in seen_in_post:
                continue
            seen_in_post.add(tag)
            names.setdefault(tag, name)
            counts[tag] = counts.get(tag, 0) + 1

    return [TagSummary(tag=tag, name=names[tag], count=counts[tag]) for tag in sorted(names)]


def posts_by_tag(posts: Iterable[Post], tag: str) -> list[Post]:
    wanted = slugify(tag)
    return [p for p in posts if any(slugify(t) == wanted for t in p.tags)]
