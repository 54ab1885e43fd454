from __future__ import annotations

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig, SiteConfig
from .corpus import LoadedCorpus, load_corpus, load_post_file
from .errors import ConfigError, ContentError, ExportError, SnippetError, StorageError
from .lint import LintIssue, LintReport, lint_corpus
from .listing import published_posts, sorted_posts
from .post import Post
from .render import render_post

__all__ = [
    "AppConfig",
    "ConfigError",
    "ContentError",
    "ExportError",
    "LintIssue",
    "LintReport",
    "LoadedCorpus",
    "Post",
    "SiteConfig",
    "SnippetError",
    "StorageError",
    "config_sha256",
    "lint_corpus",
    "load_config",
    "load_corpus",
    "load_post_file",
    "published_posts",
    "render_post",
    "resolve_runtime_secrets",
    "sorted_posts",
]
