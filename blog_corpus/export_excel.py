from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import yaml

from .config import config_sha256
from .config_schema import AppConfig
from .corpus import LoadedCorpus
from .errors import ExportError
from .lint import LintReport
from .listing import published_posts, sorted_posts, unique_tags
from .post import Post


_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")

POST_COLUMNS: tuple[str, ...] = (
    "slug",
    "title",
    "author",
    "pub_datetime_utc",
    "mod_datetime_utc",
    "featured",
    "draft",
    "published",
    "tags",
    "description",
    "og_image",
    "body_chars",
    "source",
    "block_index",
)

ISSUE_COLUMNS: tuple[str, ...] = ("path", "line", "severity", "code", "slug", "message")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_excel_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return str(value)
    s = value
    if s.startswith(_EXCEL_FORMULA_PREFIXES):
        return "'" + s
    return s


def _fmt_pipe_join(values: Iterable[str]) -> str:
    return " | ".join(t for t in ((v or "").strip() for v in values) if t)


def _naive_utc(dt: datetime | None) -> datetime | None:
    # openpyxl cannot store tz-aware datetimes
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _post_row(post: Post, *, published: bool) -> dict[str, Any]:
    return {
        "slug": _safe_excel_text(post.slug),
        "title": _safe_excel_text(post.title),
        "author": _safe_excel_text(post.author),
        "pub_datetime_utc": _naive_utc(post.pub_datetime),
        "mod_datetime_utc": _naive_utc(post.mod_datetime),
        "featured": bool(post.featured),
        "draft": bool(post.draft),
        "published": bool(published),
        "tags": _safe_excel_text(_fmt_pipe_join(post.tags)),
        "description": _safe_excel_text(post.description),
        "og_image": _safe_excel_text(post.og_image),
        "body_chars": len(post.body.strip()),
        "source": _safe_excel_text(str(post.path)),
        "block_index": int(post.block_index),
    }


def export_content_workbook(
    corpus: LoadedCorpus,
    report: LintReport,
    config: AppConfig,
    out_path: str | Path,
    *,
    now: datetime | None = None,
) -> Path:
    try:
        import pandas as pd  # type: ignore[import-not-found]
    except Exception as e:
        raise ExportError("pandas is required for Excel export") from e

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    current = now or datetime.now(timezone.utc)
    posts = sorted_posts(corpus.posts)
    live = published_posts(posts, site=config.site, now=current)
    live_keys = {(str(p.path), p.block_index) for p in live}

    post_rows: list[dict[str, Any]] = []
    draft_rows: list[dict[str, Any]] = []
    for post in posts:
        row = _post_row(post, published=(str(post.path), post.block_index) in live_keys)
        if post.draft:
            draft_rows.append(row)
        else:
            post_rows.append(row)

    issue_rows: list[dict[str, Any]] = [
        {
            "path": _safe_excel_text(str(i.path)),
            "line": i.line,
            "severity": _safe_excel_text(i.severity),
            "code": _safe_excel_text(i.code),
            "slug": _safe_excel_text(i.slug),
            "message": _safe_excel_text(i.message),
        }
        for i in report.issues
    ]

    tag_rows: list[dict[str, Any]] = [
        {"tag": _safe_excel_text(t.tag), "name": _safe_excel_text(t.name), "count": int(t.count)}
        for t in unique_tags(live)
    ]

    config_yaml = yaml.safe_dump(
        config.model_dump(mode="json"),
        sort_keys=True,
        allow_unicode=True,
    )

    meta_rows: list[dict[str, Any]] = [
        {"key": "exported_at_utc", "value": _safe_excel_text(_utc_now_iso())},
        {"key": "posts_dir", "value": _safe_excel_text(str(corpus.posts_dir))},
        {"key": "counts.files", "value": len(corpus.files)},
        {"key": "counts.posts", "value": len(posts)},
        {"key": "counts.published", "value": len(live)},
        {"key": "counts.drafts", "value": len(draft_rows)},
        {"key": "counts.load_failures", "value": len(corpus.failures)},
        {"key": "counts.lint_errors", "value": len(report.errors)},
        {"key": "counts.lint_warnings", "value": len(report.warnings)},
        {"key": "config_sha256", "value": _safe_excel_text(config_sha256(config))},
        {"key": "config_yaml", "value": _safe_excel_text(config_yaml)},
        {"key": "output_path", "value": _safe_excel_text(str(out))},
    ]

    sheets = {
        "posts": pd.DataFrame(post_rows, columns=list(POST_COLUMNS)),
        "drafts": pd.DataFrame(draft_rows, columns=list(POST_COLUMNS)),
        "lint_issues": pd.DataFrame(issue_rows, columns=list(ISSUE_COLUMNS)),
        "tag_summary": pd.DataFrame(tag_rows, columns=["tag", "name", "count"]),
        "run_metadata": pd.DataFrame(meta_rows),
    }

    try:
        with pd.ExcelWriter(out, engine="openpyxl") as writer:
            for name, df in sheets.items():
                df.to_excel(writer, sheet_name=name, index=False)

            wb = writer.book
            for name in sheets:
                if name in wb.sheetnames:
                    wb[name].freeze_panes = "A2"
    except Exception as e:
        raise ExportError(f"Failed to write workbook: {out}: {e}") from e

    return out
