from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Sequence
from zoneinfo import ZoneInfo

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .corpus import load_corpus, load_post_file
from .errors import ConfigError, ContentError, ExportError, SnippetError, StorageError
from .export_excel import export_content_workbook
from .export_index import build_index, write_index_json
from .lint import LintReport, build_lint_summary, format_issue, format_lint_summary, lint_corpus
from .normalize import coerce_datetime
from .render import render_post
from .retry import RetryConfig, RetryEvent
from .run_log import RunLogger
from .snippets import GitHubSnippetFetcher
from .split import split_concatenated_file
from .storage import SQLiteStateStore

_LOG_LEVELS = {"error": "ERROR", "warning": "WARN", "info": "INFO"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blog_corpus")

    subparsers = parser.add_subparsers(dest="command", required=True)

    lint = subparsers.add_parser(
        "lint",
        help="Check every post for front-matter, slug and asset problems.",
    )
    lint.add_argument("--config", required=True, help="Path to YAML config file.")
    lint.add_argument("--posts", help="Override content.posts_dir.")
    lint.add_argument("--out", help="Directory for run.log (default: current directory).")
    lint.add_argument("--db", help="SQLite file to record the run and its issues in.")
    lint.set_defaults(_handler=_cmd_lint)

    index = subparsers.add_parser(
        "index",
        help="Write the published listing (no drafts, no scheduled posts) as JSON.",
    )
    index.add_argument("--config", required=True, help="Path to YAML config file.")
    index.add_argument("--posts", help="Override content.posts_dir.")
    index.add_argument("--out", required=True, help="Path of the JSON file to write.")
    index.add_argument("--now", help="ISO-8601 timestamp to evaluate scheduled posts against.")
    index.set_defaults(_handler=_cmd_index)

    render = subparsers.add_parser(
        "render",
        help="Apply the Markdown transforms to one post and print the result.",
    )
    render.add_argument("--config", required=True, help="Path to YAML config file.")
    render.add_argument("post", help="Post file to render.")
    render.add_argument("--block", type=int, default=0, help="Block index in a concatenated file.")
    render.add_argument("--out", help="Write the result to this file instead of stdout.")
    render.add_argument("--offline", action="store_true", help="Skip fetching inline snippets.")
    render.add_argument("--cache", help="SQLite file used to cache fetched snippet sources.")
    render.add_argument("--log", help="Path for run.log (default: ./run.log).")
    render.set_defaults(_handler=_cmd_render)

    export = subparsers.add_parser(
        "export",
        help="Write index.json and a content.xlsx inventory workbook.",
    )
    export.add_argument("--config", required=True, help="Path to YAML config file.")
    export.add_argument("--posts", help="Override content.posts_dir.")
    export.add_argument("--out", required=True, help="Output directory.")
    export.set_defaults(_handler=_cmd_export)

    split = subparsers.add_parser(
        "split",
        help="Split a file holding several concatenated posts into one file per post.",
    )
    split.add_argument("--config", required=True, help="Path to YAML config file.")
    split.add_argument("file", help="Concatenated post file.")
    split.add_argument("--out", help="Output directory (default: the file's directory).")
    split.add_argument("--overwrite", action="store_true", help="Replace existing files.")
    split.add_argument("--log", help="Path for run.log (default: ./run.log).")
    split.set_defaults(_handler=_cmd_split)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _pkg_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "unknown"


def _versions() -> dict[str, str]:
    return {
        "python": sys.version.split()[0],
        "blog-corpus": _pkg_version("blog-corpus"),
        "pydantic": _pkg_version("pydantic"),
        "PyYAML": _pkg_version("PyYAML"),
        "requests": _pkg_version("requests"),
    }


def _log_issues(log: RunLogger, report: LintReport) -> None:
    for issue in report.issues:
        log.log(
            _LOG_LEVELS.get(issue.severity, "INFO"),
            "lint_issue",
            path=issue.path,
            code=issue.code,
            line=issue.line,
            slug=issue.slug,
            message=issue.message,
        )


def _parse_now(value: str | None, cfg: AppConfig) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        return coerce_datetime(value, ZoneInfo(cfg.site.timezone))
    except ValueError as e:
        raise ConfigError(f"Invalid --now value: {e}") from e


def _cmd_lint(args: argparse.Namespace) -> int:
    out_dir = Path(args.out) if args.out else Path.cwd()
    out_dir.mkdir(parents=True, exist_ok=True)

    with RunLogger.open(out_dir / "run.log", command="lint") as log:
        log.info("lint_command_started", config_path=str(args.config))

        try:
            cfg = load_config(args.config)
            corpus = load_corpus(cfg, posts_dir=args.posts)
            log.info(
                "corpus_loaded",
                path=corpus.posts_dir,
                files=len(corpus.files),
                posts=len(corpus.posts),
                failures=len(corpus.failures),
            )

            report = lint_corpus(corpus, cfg)
            _log_issues(log, report)

            if args.db:
                with SQLiteStateStore.open(args.db) as store:
                    run = store.create_run(
                        command="lint",
                        config_hash=config_sha256(cfg),
                        versions=_versions(),
                    )
                    log.set_run_id(run.run_id)
                    store.record_lint_issues(run.run_id, report.issues)
                    store.finish_run(run.run_id)

            for issue in report.issues:
                print(format_issue(issue))

            summary = build_lint_summary(report)
            print(format_lint_summary(summary))

            log.info(
                "lint_command_completed",
                ok=report.ok,
                errors=len(report.errors),
                warnings=len(report.warnings),
                counts=report.counts_by_code(),
            )
            return 0 if report.ok else 4
        except Exception as e:
            log.exception("lint_command_failed", exc=e)
            raise


def _cmd_index(args: argparse.Namespace) -> int:
    out_path = Path(args.out)

    with RunLogger.open(out_path.parent / "run.log", command="index") as log:
        log.info("index_command_started", config_path=str(args.config), out=str(out_path))

        try:
            cfg = load_config(args.config)
            now = _parse_now(args.now, cfg)
            corpus = load_corpus(cfg, posts_dir=args.posts)
            for failure in corpus.failures:
                log.warning("post_skipped", path=failure.path, code=failure.code)

            index = build_index(corpus.posts, config=cfg, now=now)
            write_index_json(index, out_path)
            log.info("index_written", path=out_path, **index["counts"])

            print(f"published={index['counts']['published']}")
            print(f"pages={index['counts']['pages']}")
            print(f"skipped={len(corpus.failures)}")
            print(f"index_json={out_path}")
            return 0
        except Exception as e:
            log.exception("index_command_failed", exc=e)
            raise


def _cmd_render(args: argparse.Namespace) -> int:
    log_path = Path(args.log) if args.log else Path.cwd() / "run.log"

    with RunLogger.open(log_path, command="render") as log, ExitStack() as stack:
        log.info("render_command_started", path=args.post, offline=bool(args.offline))

        try:
            cfg = load_config(args.config)
            result = load_post_file(args.post, site=cfg.site)
            if result.failures:
                first = result.failures[0]
                raise ContentError(first.message, code=first.code, path=first.path, line=first.line)

            matches = [p for p in result.posts if p.block_index == args.block]
            if not matches:
                raise ContentError(
                    f"No front-matter block {args.block} in {args.post}",
                    code="block_missing",
                    path=args.post,
                )
            post = matches[0]

            fetcher = None
            if cfg.snippets.enabled and not args.offline:
                store = None
                if args.cache:
                    store = stack.enter_context(SQLiteStateStore.open(args.cache))

                def _on_retry(ev: RetryEvent) -> None:
                    log.warning(
                        "snippet_retry",
                        url=ev.context_url,
                        attempt=ev.failure_attempt,
                        delay_seconds=ev.delay_seconds,
                        reason=ev.reason,
                    )

                fetcher = stack.enter_context(
                    GitHubSnippetFetcher(
                        token=resolve_runtime_secrets(cfg).github_token,
                        timeout_seconds=cfg.snippets.timeout_seconds,
                        retry=RetryConfig(max_attempts=cfg.snippets.max_attempts),
                        store=store,
                        on_retry=_on_retry,
                    )
                )

            def _on_snippet_error(url: str, exc: Exception) -> None:
                log.warning("snippet_fetch_failed", path=post.path, url=url, error=str(exc))
                _eprint(str(exc))

            rendered = render_post(post, cfg, fetcher=fetcher, on_snippet_error=_on_snippet_error)

            if args.out:
                out = Path(args.out)
                out.parent.mkdir(parents=True, exist_ok=True)
                out.write_text(rendered.markdown, encoding="utf-8", newline="\n")
            else:
                sys.stdout.write(rendered.markdown)
                if not rendered.markdown.endswith("\n"):
                    sys.stdout.write("\n")

            log.info(
                "render_command_completed",
                path=post.path,
                slug=post.slug,
                snippets_inlined=rendered.snippets_inlined,
                snippet_failures=rendered.snippet_failures,
            )
            return 0
        except Exception as e:
            log.exception("render_command_failed", exc=e)
            raise


def _cmd_export(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    with RunLogger.open(out_dir / "run.log", command="export") as log:
        log.info("export_command_started", config_path=str(args.config), out_dir=str(out_dir))

        try:
            cfg = load_config(args.config)
            corpus = load_corpus(cfg, posts_dir=args.posts)
            report = lint_corpus(corpus, cfg)
            _log_issues(log, report)

            now = datetime.now(timezone.utc)
            index_path = out_dir / "index.json"
            xlsx_path = out_dir / "content.xlsx"

            index = build_index(corpus.posts, config=cfg, now=now)
            write_index_json(index, index_path)
            log.info("index_written", path=index_path, **index["counts"])

            log.info("export_excel_started", path=xlsx_path)
            export_content_workbook(corpus, report, cfg, xlsx_path, now=now)
            log.info("export_excel_completed", path=xlsx_path)

            print(f"posts={len(corpus.posts)}")
            print(f"published={index['counts']['published']}")
            print(f"lint_errors={len(report.errors)}")
            print(f"index_json={index_path}")
            print(f"content_xlsx={xlsx_path}")
            print(f"run_log={out_dir / 'run.log'}")
            return 0
        except Exception as e:
            log.exception("export_command_failed", exc=e)
            raise


def _cmd_split(args: argparse.Namespace) -> int:
    log_path = Path(args.log) if args.log else Path.cwd() / "run.log"
    src = Path(args.file)
    out_dir = Path(args.out) if args.out else src.parent

    with RunLogger.open(log_path, command="split") as log:
        log.info("split_command_started", path=src, out_dir=str(out_dir))

        try:
            cfg = load_config(args.config)
            written = split_concatenated_file(
                src, out_dir, site=cfg.site, overwrite=bool(args.overwrite)
            )
            for p in written:
                log.info("post_written", path=p)
                print(p)

            log.info("split_command_completed", path=src, files=len(written))
            return 0
        except Exception as e:
            log.exception("split_command_failed", exc=e)
            raise


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (ContentError, SnippetError, StorageError, ExportError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
