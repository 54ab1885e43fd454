from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from blog_corpus.config_schema import SiteConfig
from blog_corpus.listing import (
    build_home,
    is_published,
    paginate,
    posts_by_tag,
    published_posts,
    sorted_posts,
    unique_tags,
)
from blog_corpus.post import Post


_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _post(
    slug: str,
    *,
    pub: datetime,
    mod: datetime | None = None,
    draft: bool = False,
    featured: bool = False,
    tags: tuple[str, ...] = ("others",),
) -> Post:
    return Post(
        path=Path(f"/blog/{slug}.md"),
        slug=slug,
        title=slug.title(),
        author="a",
        pub_datetime=pub,
        mod_datetime=mod,
        draft=draft,
        featured=featured,
        tags=tags,
    )


class TestPublished(unittest.TestCase):
    def test_draft_never_published(self) -> None:
        post = _post("d", pub=_NOW - timedelta(days=10), draft=True)
        self.assertFalse(is_published(post, now=_NOW, margin=timedelta(minutes=15)))

    def test_scheduled_margin(self) -> None:
        margin = timedelta(minutes=15)
        soon = _post("soon", pub=_NOW + timedelta(minutes=10))
        later = _post("later", pub=_NOW + timedelta(minutes=20))
        self.assertTrue(is_published(soon, now=_NOW, margin=margin))
        self.assertFalse(is_published(later, now=_NOW, margin=margin))

    def test_published_posts_filters_and_sorts(self) -> None:
        posts = [
            _post("old", pub=_NOW - timedelta(days=30)),
            _post("updated", pub=_NOW - timedelta(days=60), mod=_NOW - timedelta(days=1)),
            _post("draft", pub=_NOW - timedelta(days=2), draft=True),
            _post("future", pub=_NOW + timedelta(days=2)),
        ]
        live = published_posts(posts, site=SiteConfig(), now=_NOW)
        self.assertEqual([p.slug for p in live], ["updated", "old"])


class TestSorting(unittest.TestCase):
    def test_ties_broken_by_slug(self) -> None:
        same = _NOW - timedelta(days=1)
        posts = [_post("b", pub=same), _post("a", pub=same)]
        self.assertEqual([p.slug for p in sorted_posts(posts)], ["a", "b"])


class TestHomeAndPages(unittest.TestCase):
    def test_home_featured_and_recent(self) -> None:
        posts = sorted_posts(
            [_post(f"p{i}", pub=_NOW - timedelta(days=i), featured=(i == 2)) for i in range(1, 9)]
        )
        home = build_home(posts, site=SiteConfig(post_per_index=3))
        self.assertEqual([p.slug for p in home.featured], ["p2"])
        self.assertEqual([p.slug for p in home.recent], ["p1", "p3", "p4"])

    def test_paginate(self) -> None:
        posts = [_post(f"p{i}", pub=_NOW - timedelta(days=i)) for i in range(1, 6)]
        pages = paginate(posts, 2)
        self.assertEqual([len(p.posts) for p in pages], [2, 2, 1])
        self.assertFalse(pages[0].has_previous)
        self.assertTrue(pages[0].has_next)
        self.assertTrue(pages[2].has_previous)
        self.assertFalse(pages[2].has_next)
        self.assertEqual(pages[2].total_pages, 3)

    def test_paginate_empty_gives_one_page(self) -> None:
        pages = paginate([], 10)
        self.assertEqual(len(pages), 1)
        self.assertEqual(pages[0].posts, ())

    def test_paginate_rejects_zero(self) -> None:
        with self.assertRaises(ValueError):
            paginate([], 0)


class TestTags(unittest.TestCase):
    def test_unique_tags_and_lookup(self) -> None:
        posts = [
            _post("a", pub=_NOW, tags=("Azure", "DevOps")),
            _post("b", pub=_NOW, tags=("azure",)),
        ]
        tags = unique_tags(posts)
        self.assertEqual([(t.tag, t.name, t.count) for t in tags], [("azure", "Azure", 2), ("devops", "DevOps", 1)])
        self.assertEqual([p.slug for p in posts_by_tag(posts, "AZURE")], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
