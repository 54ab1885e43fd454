from __future__ import annotations

import unittest
from datetime import datetime, timezone
from pathlib import Path

from blog_corpus.config_schema import AppConfig, MarkdownConfig, SnippetsConfig
from blog_corpus.errors import SnippetError
from blog_corpus.post import Post
from blog_corpus.render import render_post, transform_body


_URL = "https://github.com/acme/tools/blob/main/run.sh#L1-L1"
_RAW = "https://raw.githubusercontent.com/acme/tools/main/run.sh"


class _FakeFetcher:
    def __init__(self, sources: dict[str, str]) -> None:
        self._sources = sources

    def fetch(self, raw_url: str) -> str:
        if raw_url not in self._sources:
            raise SnippetError(f"Failed to fetch {raw_url}, skipping: 404")
        return self._sources[raw_url]


def _post(body: str) -> Post:
    return Post(
        path=Path("/blog/p.md"),
        slug="p",
        title="P",
        author="a",
        pub_datetime=datetime(2024, 1, 1, tzinfo=timezone.utc),
        body=body,
        meta_text="title: P\npubDatetime: 2024-01-01T00:00:00Z",
    )


class TestTransformBody(unittest.TestCase):
    def test_pipeline_order(self) -> None:
        body = f"Intro\n## Table of contents\n## Usage\n[inline]({_URL})\n"
        cfg = AppConfig(markdown=MarkdownConfig(toc_collapse=False))

        out, result = transform_body(body, cfg, fetcher=_FakeFetcher({_RAW: "echo hi\n"}))
        self.assertIsNotNone(result)
        self.assertEqual(
            out,
            "Intro\n\n---\n\n## Table of contents\n\n- [Usage](#usage)\n\n---\n\n"
            "## Usage\n```bash\necho hi\n```\n",
        )

    def test_without_fetcher_links_stay(self) -> None:
        body = f"[inline]({_URL})\n"
        out, result = transform_body(body, AppConfig())
        self.assertIsNone(result)
        self.assertEqual(out, body)

    def test_h2_reformat_disabled(self) -> None:
        cfg = AppConfig(markdown=MarkdownConfig(h2_reformat=False))
        out, _ = transform_body("Intro\n## A\n", cfg)
        self.assertEqual(out, "Intro\n## A\n")

    def test_snippets_disabled(self) -> None:
        cfg = AppConfig(snippets=SnippetsConfig(enabled=False))
        out, result = transform_body(f"[inline]({_URL})", cfg, fetcher=_FakeFetcher({_RAW: "x"}))
        self.assertIsNone(result)
        self.assertIn(_URL, out)


class TestRenderPost(unittest.TestCase):
    def test_front_matter_preserved(self) -> None:
        errors: list[str] = []
        rendered = render_post(
            _post(f"## A\n[inline]({_URL})\n"),
            AppConfig(),
            fetcher=_FakeFetcher({}),
            on_snippet_error=lambda url, e: errors.append(url),
        )
        self.assertTrue(
            rendered.markdown.startswith("---\ntitle: P\npubDatetime: 2024-01-01T00:00:00Z\n---\n")
        )
        self.assertEqual(rendered.snippets_inlined, 0)
        self.assertEqual(rendered.snippet_failures, 1)
        self.assertEqual(errors, [_URL])


if __name__ == "__main__":
    unittest.main()
