from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .post import Post


def slug_key(slug: str) -> str:
    return (slug or "").strip().casefold()


def find_duplicate_slugs(posts: Iterable[Post]) -> dict[str, list[Post]]:
    """Group posts by slug key, keeping only keys shared by more than one post."""
    groups: dict[str, list[Post]] = {}
    for post in posts:
        groups.setdefault(slug_key(post.slug), []).append(post)
    return {key: group for key, group in groups.items() if len(group) > 1}


@dataclass
class SeenSlugs:
    keys: set[str] = field(default_factory=set)

    def has(self, slug: str) -> bool:
        return slug_key(slug) in self.keys

    def add(self, slug: str) -> None:
        self.keys.add(slug_key(slug))

    def add_post(self, post: Post) -> str:
        key = slug_key(post.slug)
        self.keys.add(key)
        return key

    def has_post(self, post: Post) -> bool:
        return self.has(post.slug)

    def update(self, posts: Iterable[Post]) -> None:
        for post in posts:
            self.add_post(post)
