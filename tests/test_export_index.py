from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from blog_corpus.config_schema import AppConfig, SiteConfig
from blog_corpus.export_index import build_index, post_url, write_index_json
from blog_corpus.post import Post


_NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _post(slug: str, *, days_ago: int, **kwargs: object) -> Post:
    return Post(
        path=Path(f"/blog/{slug}.md"),
        slug=slug,
        title=slug,
        author="a",
        pub_datetime=_NOW - timedelta(days=days_ago),
        **kwargs,  # type: ignore[arg-type]
    )


class TestExportIndex(unittest.TestCase):
    def test_post_url(self) -> None:
        post = _post("hello", days_ago=1)
        self.assertEqual(post_url(post, website="https://example.com/"), "https://example.com/posts/hello/")

    def test_build_index_excludes_drafts_and_scheduled(self) -> None:
        posts = [
            _post("a", days_ago=1, tags=("Azure",)),
            _post("b", days_ago=2, featured=True),
            _post("c", days_ago=3),
            _post("draft", days_ago=1, draft=True),
            _post("future", days_ago=-1),
        ]
        cfg = AppConfig(site=SiteConfig(website="https://example.com", post_per_page=2, post_per_index=1))

        index = build_index(posts, config=cfg, now=_NOW)
        self.assertEqual([p["slug"] for p in index["posts"]], ["a", "b", "c"])
        self.assertEqual(index["home"], {"featured": ["b"], "recent": ["a"]})
        self.assertEqual([p["posts"] for p in index["pages"]], [["a", "b"], ["c"]])
        self.assertEqual(index["counts"], {"published": 3, "pages": 2})
        self.assertEqual(index["posts"][0]["url"], "https://example.com/posts/a/")
        self.assertIn({"tag": "azure", "name": "Azure", "count": 1}, index["tags"])

    def test_write_index_json(self) -> None:
        cfg = AppConfig()
        index = build_index([_post("a", days_ago=1)], config=cfg, now=_NOW)

        with tempfile.TemporaryDirectory() as td:
            out = write_index_json(index, Path(td) / "nested" / "index.json")
            data = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(data["posts"][0]["slug"], "a")
            self.assertEqual(data["generated_at"], _NOW.isoformat())


if __name__ == "__main__":
    unittest.main()
