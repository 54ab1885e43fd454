from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Sequence

from .assets import extract_asset_refs, is_external, missing_assets, resolve_asset
from .config_schema import AppConfig
from .corpus import LoadedCorpus
from .dedupe import find_duplicate_slugs
from .post import Post

Severity = Literal["error", "warning", "info"]


@dataclass(frozen=True)
class LintIssue:
    path: Path
    code: str
    severity: Severity
    message: str
    line: int | None = None
    slug: str | None = None


@dataclass(frozen=True)
class LintReport:
    issues: Sequence[LintIssue] = field(default_factory=tuple)
    files_checked: int = 0
    posts_checked: int = 0

    @property
    def errors(self) -> list[LintIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[LintIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def ok(self) -> bool:
        return not self.errors

    def counts_by_code(self) -> dict[str, int]:
        return dict(Counter(i.code for i in self.issues))


def _post_issues(post: Post, config: AppConfig, *, now: datetime) -> list[LintIssue]:
    issues: list[LintIssue] = []
    rules = config.lint

    if rules.require_description and not post.description:
        issues.append(
            LintIssue(
                path=post.path,
                code="missing_description",
                severity="error",
                message=f"Post '{post.slug}' has no description",
                slug=post.slug,
            )
        )

    if len(post.body.strip()) < rules.min_body_chars:
        issues.append(
            LintIssue(
                path=post.path,
                code="empty_body",
                severity="warning",
                message=f"Post '{post.slug}' body is shorter than {rules.min_body_chars} characters",
                slug=post.slug,
            )
        )

    for name in post.extra_fields:
        issues.append(
            LintIssue(
                path=post.path,
                code="unknown_field",
                severity="warning",
                message=f"Unknown front-matter field '{name}'",
                slug=post.slug,
            )
        )

    if post.pub_datetime > now:
        issues.append(
            LintIssue(
                path=post.path,
                code="future_pub_datetime",
                severity="info",
                message=f"Post '{post.slug}' is scheduled for {post.pub_datetime.isoformat()}",
                slug=post.slug,
            )
        )

    if rules.check_assets:
        public_dir = Path(config.content.public_dir)
        for ref, resolved in missing_assets(
            extract_asset_refs(post.body), post_path=post.path, public_dir=public_dir
        ):
            issues.append(
                LintIssue(
                    path=post.path,
                    code="missing_asset",
                    severity="error",
                    message=f"Asset '{ref.target}' does not exist ({resolved})",
                    line=ref.line,
                    slug=post.slug,
                )
            )

        og = (post.og_image or "").strip()
        if og and not is_external(og):
            resolved = resolve_asset("/" + og.lstrip("/"), post_path=post.path, public_dir=public_dir)
            if not resolved.is_file():
                issues.append(
                    LintIssue(
                        path=post.path,
                        code="missing_asset",
                        severity="error",
                        message=f"ogImage '{og}' does not exist ({resolved})",
                        slug=post.slug,
                    )
                )

    return issues


def lint_corpus(
    corpus: LoadedCorpus,
    config: AppConfig,
    *,
    now: datetime | None = None,
) -> LintReport:
    """Check every loaded file and post against the document hygiene rules."""
    current = now or datetime.now(timezone.utc)
    issues: list[LintIssue] = []

    for failure in corpus.failures:
        issues.append(
            LintIssue(
                path=failure.path,
                code=failure.code,
                severity="error",
                message=failure.message,
                line=failure.line,
            )
        )

    severity: Severity = "warning" if config.lint.allow_multiple_front_matter else "error"
    for f in corpus.concatenated_files():
        issues.append(
            LintIssue(
                path=f.path,
                code="multiple_front_matter_blocks",
                severity=severity,
                message=f"File holds {f.block_count} front-matter blocks; split it into one file per post",
            )
        )

    posts = corpus.posts
    for key, group in sorted(find_duplicate_slugs(posts).items()):
        paths = ", ".join(str(p.path) for p in group)
        for post in group:
            issues.append(
                LintIssue(
                    path=post.path,
                    code="duplicate_slug",
                    severity="error",
                    message=f"Slug '{key}' is used by {len(group)} posts: {paths}",
                    slug=post.slug,
                )
            )

    for post in posts:
        issues.extend(_post_issues(post, config, now=current))

    ordered = sorted(
        issues,
        key=lambda i: (str(i.path), i.line if i.line is not None else 0, i.code),
    )
    return LintReport(
        issues=tuple(ordered),
        files_checked=len(corpus.files),
        posts_checked=len(posts),
    )


# Recommendations shown under the summary, keyed by issue code.
_RECOMMENDATIONS: dict[str, str] = {
    "front_matter_missing": "Start each post with a '---' line followed by YAML front-matter.",
    "front_matter_unterminated": "Close the front-matter block with a '---' line.",
    "front_matter_yaml": "Fix the YAML syntax in the front-matter (quote values containing ':').",
    "front_matter_not_mapping": "Front-matter must be key: value pairs.",
    "schema_invalid": "Add the required fields (title, pubDatetime) with valid values.",
    "multiple_front_matter_blocks": "Run `split` to move each concatenated post into its own file.",
    "duplicate_slug": "Give each post a unique postSlug or rename the file.",
    "missing_asset": "Add the referenced files under the public directory or fix the paths.",
    "missing_description": "Add a description; it is used for listings and social previews.",
    "empty_body": "Write the post body or mark the post as draft.",
    "unknown_field": "Remove or rename unknown front-matter fields.",
}


def build_lint_summary(report: LintReport) -> dict[str, object]:
    counts = report.counts_by_code()
    errors = len(report.errors)
    warnings = len(report.warnings)

    if report.ok:
        summary = (
            f"Checked {report.posts_checked} posts in {report.files_checked} files: "
            f"no errors, {warnings} warnings."
        )
    else:
        summary = (
            f"Checked {report.posts_checked} posts in {report.files_checked} files: "
            f"{errors} errors, {warnings} warnings."
        )

    recommendations: list[str] = []
    for code in sorted(counts):
        rec = _RECOMMENDATIONS.get(code)
        if rec and rec not in recommendations:
            recommendations.append(rec)

    return {
        "ok": report.ok,
        "summary": summary,
        "counts": counts,
        "recommendations": recommendations,
    }


def format_lint_summary(summary: dict[str, object]) -> str:
    lines: list[str] = [str(summary.get("summary") or "").strip() or "Lint finished."]
    recs = summary.get("recommendations")
    if isinstance(recs, list) and recs:
        lines.append("Recommendations:")
        for r in recs:
            t = str(r or "").strip()
            if t:
                lines.append(f"- {t}")
    return "\n".join(lines)


def format_issue(issue: LintIssue) -> str:
    where = str(issue.path)
    if issue.line is not None:
        where += f":{issue.line}"
    return f"{where}: {issue.severity}: [{issue.code}] {issue.message}"
