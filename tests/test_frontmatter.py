from __future__ import annotations

import unittest

from blog_corpus.errors import ContentError
from blog_corpus.frontmatter import render_block, split_front_matter


_SINGLE = """\
---
title: Hello
pubDatetime: 2024-01-10T08:00:00Z
---
Body line.

---

More body after a thematic break.
"""

_CONCATENATED = """\
---
title: First
pubDatetime: 2024-01-10T08:00:00Z
---
First body.

---
title: Second
pubDatetime: 2024-02-10T08:00:00Z
postSlug: second-post
---
Second body.
"""


class TestSplitFrontMatter(unittest.TestCase):
    def test_single_block(self) -> None:
        doc = split_front_matter(_SINGLE)
        self.assertFalse(doc.concatenated)
        self.assertEqual(doc.primary.meta["title"], "Hello")
        self.assertIn("More body after a thematic break.", doc.primary.body)
        self.assertEqual(doc.primary.line, 1)

    def test_concatenated_blocks(self) -> None:
        doc = split_front_matter(_CONCATENATED)
        self.assertTrue(doc.concatenated)
        self.assertEqual(len(doc.blocks), 2)

        first, second = doc.blocks
        self.assertEqual(first.body.strip(), "First body.")
        self.assertEqual(second.meta["postSlug"], "second-post")
        self.assertEqual(second.body.strip(), "Second body.")
        self.assertEqual(second.line, 7)

    def test_yaml_inside_code_fence_is_not_a_block(self) -> None:
        text = (
            "---\ntitle: Doc\npubDatetime: 2024-01-10\n---\n"
            "```yaml\n---\ntitle: Not a post\n---\n```\n"
        )
        doc = split_front_matter(text)
        self.assertEqual(len(doc.blocks), 1)
        self.assertIn("Not a post", doc.primary.body)

    def test_bom_and_crlf_are_normalized(self) -> None:
        text = "\ufeff---\r\ntitle: Hi\r\npubDatetime: 2024-01-10\r\n---\r\nBody\r\n"
        doc = split_front_matter(text)
        self.assertEqual(doc.primary.meta["title"], "Hi")
        self.assertEqual(doc.primary.body, "Body\n")

    def test_missing_front_matter(self) -> None:
        with self.assertRaises(ContentError) as ctx:
            split_front_matter("# Just markdown\n")
        self.assertEqual(ctx.exception.code, "front_matter_missing")

    def test_unterminated_front_matter(self) -> None:
        with self.assertRaises(ContentError) as ctx:
            split_front_matter("---\ntitle: Hi\n")
        self.assertEqual(ctx.exception.code, "front_matter_unterminated")

    def test_invalid_yaml(self) -> None:
        with self.assertRaises(ContentError) as ctx:
            split_front_matter("---\ntitle: [unclosed\n---\nBody\n")
        self.assertEqual(ctx.exception.code, "front_matter_yaml")

    def test_non_mapping(self) -> None:
        with self.assertRaises(ContentError) as ctx:
            split_front_matter("---\n- a\n- b\n---\nBody\n")
        self.assertEqual(ctx.exception.code, "front_matter_not_mapping")

    def test_prose_between_thematic_breaks_stays_in_body(self) -> None:
        text = (
            "---\ntitle: Doc\npubDatetime: 2024-01-10\n---\nintro\n"
            "---\n\nauthor: me wrote this\n\n---\nmore\n"
        )
        doc = split_front_matter(text)
        self.assertEqual(len(doc.blocks), 1)
        self.assertIn("author: me wrote this", doc.primary.body)
        self.assertTrue(doc.primary.body.endswith("more\n"))

    def test_render_block_keeps_meta_text(self) -> None:
        doc = split_front_matter(_CONCATENATED)
        text = render_block(doc.blocks[1])
        self.assertTrue(text.startswith("---\ntitle: Second\n"))
        self.assertIn("postSlug: second-post\n---\n", text)
        self.assertTrue(text.endswith("Second body.\n"))


if __name__ == "__main__":
    unittest.main()
