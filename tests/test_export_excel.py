from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from blog_corpus.config_schema import AppConfig, ContentConfig, LintConfig
from blog_corpus.corpus import load_corpus
from blog_corpus.export_excel import POST_COLUMNS, export_content_workbook
from blog_corpus.lint import lint_corpus


_NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestExportExcel(unittest.TestCase):
    def test_exports_required_sheets(self) -> None:
        try:
            from openpyxl import load_workbook  # type: ignore[import-not-found]
        except Exception as e:  # pragma: no cover
            raise AssertionError("openpyxl is required for this test") from e

        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            _write(
                root / "blog" / "live.md",
                "---\ntitle: =Live\npubDatetime: 2024-01-10T08:00:00Z\n"
                "description: Live post\ntags: [azure, devops]\n---\nBody\n",
            )
            _write(
                root / "blog" / "draft.md",
                "---\ntitle: Draft\npubDatetime: 2024-01-11T08:00:00Z\ndraft: true\n---\nBody\n",
            )

            cfg = AppConfig(
                content=ContentConfig(posts_dir=str(root / "blog"), public_dir=str(root / "public")),
                lint=LintConfig(require_description=True),
            )
            corpus = load_corpus(cfg)
            report = lint_corpus(corpus, cfg, now=_NOW)

            out_path = root / "out" / "content.xlsx"
            export_content_workbook(corpus, report, cfg, out_path, now=_NOW)
            self.assertTrue(out_path.exists())

            wb = load_workbook(out_path)
            for name in ("posts", "drafts", "lint_issues", "tag_summary", "run_metadata"):
                self.assertIn(name, wb.sheetnames)

            rows = list(wb["posts"].iter_rows(values_only=True))
            header = [str(v) for v in rows[0]]
            self.assertEqual(header, list(POST_COLUMNS))
            self.assertEqual(len(rows), 2)
            self.assertEqual(rows[1][header.index("slug")], "live")
            self.assertEqual(rows[1][header.index("title")], "'=Live")
            self.assertEqual(rows[1][header.index("tags")], "azure | devops")
            self.assertEqual(rows[1][header.index("pub_datetime_utc")], datetime(2024, 1, 10, 8, 0))

            drafts = list(wb["drafts"].iter_rows(values_only=True))
            self.assertEqual(drafts[1][0], "draft")

            issues = list(wb["lint_issues"].iter_rows(values_only=True))
            codes = [r[3] for r in issues[1:]]
            self.assertEqual(codes, ["missing_description"])

            tags = list(wb["tag_summary"].iter_rows(values_only=True))
            self.assertEqual([r[0] for r in tags[1:]], ["azure", "devops"])

            self.assertEqual(wb["posts"].freeze_panes, "A2")


if __name__ == "__main__":
    unittest.main()
