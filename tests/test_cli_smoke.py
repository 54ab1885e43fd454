from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


_CONFIG = """\
site:
  website: https://example.com/
  post_per_page: 2
content:
  posts_dir: blog
  public_dir: public
snippets:
  enabled: false
"""


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _post(title: str, pub: str, *, extra: str = "") -> str:
    return f"---\ntitle: {title}\npubDatetime: {pub}\ndescription: About {title}\n{extra}---\n## Intro\nText.\n"


class TestCLISmoke(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.cfg_path = _write(self.root / "config.yaml", _CONFIG)
        _write(self.root / "blog" / "one.md", _post("One", "2024-01-10T08:00:00Z"))
        _write(self.root / "blog" / "two.md", _post("Two", "2024-02-10T08:00:00Z"))
        _write(self.root / "blog" / "wip.md", _post("Wip", "2024-03-10T08:00:00Z", extra="draft: true\n"))

    def tearDown(self) -> None:
        self._td.cleanup()

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        repo_root = Path(__file__).resolve().parents[1]

        env = dict(os.environ)
        env.pop("GITHUB_TOKEN", None)
        existing_pp = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = (
            f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)
        )

        return subprocess.run(
            [sys.executable, "-m", "blog_corpus", *args],
            cwd=self.root,
            env=env,
            capture_output=True,
            text=True,
        )

    def test_lint_clean_corpus(self) -> None:
        out_dir = self.root / "out"
        db_path = self.root / "state.sqlite"
        proc = self._run("lint", "--config", str(self.cfg_path), "--out", str(out_dir), "--db", str(db_path))

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("Checked 3 posts in 3 files: no errors", proc.stdout)
        self.assertTrue((out_dir / "run.log").exists())
        self.assertTrue(db_path.exists())

    def test_lint_errors_exit_4(self) -> None:
        _write(self.root / "blog" / "dup.md", _post("Dup", "2024-01-01", extra="postSlug: one\n"))
        proc = self._run("lint", "--config", str(self.cfg_path), "--out", str(self.root / "out"))

        self.assertEqual(proc.returncode, 4, msg=proc.stderr)
        self.assertIn("[duplicate_slug]", proc.stdout)

    def test_index_writes_published_posts(self) -> None:
        out_path = self.root / "out" / "index.json"
        proc = self._run(
            "index",
            "--config",
            str(self.cfg_path),
            "--out",
            str(out_path),
            "--now",
            "2024-06-01T00:00:00Z",
        )

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("published=2", proc.stdout)
        data = json.loads(out_path.read_text(encoding="utf-8"))
        self.assertEqual([p["slug"] for p in data["posts"]], ["two", "one"])

    def test_export_writes_index_and_workbook(self) -> None:
        out_dir = self.root / "export"
        proc = self._run("export", "--config", str(self.cfg_path), "--out", str(out_dir))

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertTrue((out_dir / "index.json").exists())
        self.assertTrue((out_dir / "content.xlsx").exists())
        self.assertIn("content_xlsx=", proc.stdout)

    def test_render_offline(self) -> None:
        proc = self._run(
            "render",
            "--config",
            str(self.cfg_path),
            str(self.root / "blog" / "one.md"),
            "--offline",
            "--log",
            str(self.root / "render.log"),
        )

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertTrue(proc.stdout.startswith("---\ntitle: One\n"))
        self.assertIn("---\n\n## Intro", proc.stdout)

    def test_split(self) -> None:
        combined = _write(
            self.root / "incoming" / "combined.md",
            _post("First", "2024-01-10") + _post("Second Part", "2024-01-11"),
        )
        out_dir = self.root / "split"
        proc = self._run(
            "split",
            "--config",
            str(self.cfg_path),
            str(combined),
            "--out",
            str(out_dir),
            "--log",
            str(self.root / "split.log"),
        )

        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertTrue((out_dir / "combined.md").exists())
        self.assertTrue((out_dir / "second-part.md").exists())

    def test_missing_post_file_exit_3(self) -> None:
        proc = self._run(
            "render",
            "--config",
            str(self.cfg_path),
            str(self.root / "blog" / "nope.md"),
            "--log",
            str(self.root / "render.log"),
        )
        self.assertEqual(proc.returncode, 3)
        self.assertIn("Failed to read post file", proc.stderr)


if __name__ == "__main__":
    unittest.main()
