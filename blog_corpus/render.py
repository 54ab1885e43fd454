from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .config_schema import AppConfig
from .frontmatter import FENCE
from .markdown import h2_reformat, table_of_contents
from .post import Post
from .snippets import SnippetFetcher, SnippetInlineResult, inline_snippets


@dataclass(frozen=True)
class RenderedPost:
    post: Post
    markdown: str
    snippets_inlined: int = 0
    snippet_failures: int = 0


def transform_body(
    body: str,
    config: AppConfig,
    *,
    fetcher: SnippetFetcher | None = None,
    on_snippet_error: Callable[[str, Exception], None] | None = None,
) -> tuple[str, SnippetInlineResult | None]:
    """Apply the Markdown pipeline in site order: H2 separators, table of contents, snippets."""
    md = config.markdown
    out = body

    if md.h2_reformat:
        out = h2_reformat(out)

    out = table_of_contents(
        out,
        heading=md.toc_heading,
        max_depth=md.toc_max_depth,
        collapse=md.toc_collapse,
    )

    result = None
    if config.snippets.enabled and fetcher is not None:
        result = inline_snippets(
            out,
            fetcher,
            marker=config.snippets.inline_marker,
            origin_comment=config.snippets.origin_comment,
            on_error=on_snippet_error,
        )
        out = result.body

    return out, result


def render_post(
    post: Post,
    config: AppConfig,
    *,
    fetcher: SnippetFetcher | None = None,
    on_snippet_error: Callable[[str, Exception], None] | None = None,
) -> RenderedPost:
    body, result = transform_body(
        post.body,
        config,
        fetcher=fetcher,
        on_snippet_error=on_snippet_error,
    )
    meta_text = post.meta_text.rstrip("\n")
    markdown = f"{FENCE}\n{meta_text}\n{FENCE}\n{body}"
    return RenderedPost(
        post=post,
        markdown=markdown,
        snippets_inlined=result.inlined if result is not None else 0,
        snippet_failures=len(result.failures) if result is not None else 0,
    )
