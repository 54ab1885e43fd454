from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Protocol, Sequence
from urllib.parse import urlsplit

import requests

from .errors import SnippetError
from .markdown import fence_mask
from .retry import OnRetryFn, RetryConfig, SleepFn, call_with_retries
from .storage import SQLiteStateStore

RAW_HOST = "https://raw.githubusercontent.com"

_LINK_RE = re.compile(r"(?<!!)\[([^\]]*)\]\((https://github\.com/[^)\s]+)\)")
_BACKTICK_RUN_RE = re.compile(r"`+")


@dataclass(frozen=True)
class LanguageHandler:
    markdown: str
    comment_prefix: str | None  # None: the format has no comments

    def comment(self, text: str) -> str:
        if self.comment_prefix is None:
            return ""
        return f"{self.comment_prefix} {text}\n"


LANGUAGES: dict[str, LanguageHandler] = {
    ".js": LanguageHandler("javascript", "//"),
    ".ts": LanguageHandler("typescript", "//"),
    ".py": LanguageHandler("python", "#"),
    ".sh": LanguageHandler("bash", "#"),
    ".json": LanguageHandler("json", None),
    ".yaml": LanguageHandler("yaml", "#"),
    ".yml": LanguageHandler("yaml", "#"),
    ".tf": LanguageHandler("terraform", "#"),
    ".hcl": LanguageHandler("hcl", "#"),
    ".tfstacks.hcl": LanguageHandler("hcl", "#"),
    ".go": LanguageHandler("go", "//"),
    ".cs": LanguageHandler("csharp", "//"),
    ".csproj": LanguageHandler("xml", "//"),
    ".runsettings": LanguageHandler("xml", "//"),
}

DEFAULT_LANGUAGE = LanguageHandler("", "//")


def language_for(extension: str) -> LanguageHandler:
    return LANGUAGES.get((extension or "").casefold(), DEFAULT_LANGUAGE)


def file_extension(path: str) -> str:
    """Longest known multi-part suffix (e.g. `.tfstacks.hcl`), else the last suffix."""
    suffixes = PurePosixPath(path).suffixes
    for i in range(len(suffixes)):
        candidate = "".join(suffixes[i:]).casefold()
        if candidate in LANGUAGES:
            return candidate
    return suffixes[-1].casefold() if suffixes else ""


@dataclass(frozen=True)
class SnippetRef:
    url: str
    raw_url: str
    path: str
    start: int
    end: int

    @property
    def extension(self) -> str:
        return file_extension(self.path)


def parse_line_range(url: str) -> tuple[int, int]:
    """Return (start, end) from a `#L<start>-L<end>` fragment; anything else raises."""
    hash_parts = (urlsplit(url).fragment or "").split("-")
    if len(hash_parts) != 2:
        raise SnippetError(
            f"Inlining snippet points to {url} with an invalid hash. Expected #L<number>-L<number>"
        )

    try:
        start, end = (int(p.strip().lstrip("Ll")) for p in hash_parts)
    except ValueError as e:
        raise SnippetError(
            f"Inlining snippet points to {url} with an invalid hash. Expected #L<number>-L<number>"
        ) from e

    if start < 1 or end < start:
        raise SnippetError(f"Inlining snippet points to {url} with an empty line range")

    return start, end


def parse_snippet_url(url: str) -> SnippetRef:
    """
    Parse `https://github.com/<owner>/<repo>/blob/<ref>/<path>#L<start>-L<end>`.
    """
    start, end = parse_line_range(url)

    parts = urlsplit(url)
    segs = [s for s in (parts.path or "").split("/") if s]
    if len(segs) < 5 or segs[2] != "blob":
        raise SnippetError(f"Inlining snippet points to {url}, which is not a GitHub file URL")

    owner, repo, _, ref = segs[:4]
    path = "/".join(segs[4:])
    return SnippetRef(
        url=url,
        raw_url=f"{RAW_HOST}/{owner}/{repo}/{ref}/{path}",
        path=path,
        start=start,
        end=end,
    )


class SnippetFetcher(Protocol):
    def fetch(self, raw_url: str) -> str: ...


class GitHubSnippetFetcher:
    """
    Fetch raw file contents from GitHub with retries and an optional SQLite cache.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        token: str | None = None,
        timeout_seconds: float = 20.0,
        retry: RetryConfig | None = None,
        store: SQLiteStateStore | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._token = (token or "").strip() or None
        self._timeout = float(timeout_seconds)
        self._retry = retry or RetryConfig()
        self._store = store
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn

    def close(self) -> None:
        # a caller-supplied session is left for the caller to close
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "GitHubSnippetFetcher":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _get(self, raw_url: str) -> str:
        headers = {"Accept": "text/plain"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        resp = self._session.get(raw_url, headers=headers, timeout=self._timeout)
        resp.raise_for_status()
        return resp.text

    def fetch(self, raw_url: str) -> str:
        if self._store is not None:
            cached = self._store.get_snippet_source(raw_url)
            if cached is not None:
                return cached.content

        try:
            content = call_with_retries(
                lambda: self._get(raw_url),
                cfg=self._retry,
                operation="snippet_fetch",
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
                context_url=raw_url,
            )
        except requests.RequestException as e:
            raise SnippetError(f"Failed to fetch {raw_url}, skipping: {e}") from e

        if self._store is not None:
            self._store.put_snippet_source(raw_url, content)
        return content


def _fence_for(content: str) -> str:
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN_RE.finditer(content)), default=0)
    return "`" * max(3, longest + 1)


def render_snippet(ref: SnippetRef, source: str, *, origin_comment: str | None = None) -> str:
    """Cut lines start..end out of source and wrap them in a fenced code block."""
    lines = source.replace("\r\n", "\n").split("\n")
    content = "\n".join(lines[ref.start - 1 : ref.end])

    lang = language_for(ref.extension)
    if origin_comment:
        content = lang.comment(origin_comment.replace("<url>", ref.url)) + content

    fence = _fence_for(content)
    return f"{fence}{lang.markdown}\n{content}\n{fence}"


@dataclass(frozen=True)
class SnippetFailure:
    url: str
    error: str


@dataclass(frozen=True)
class SnippetInlineResult:
    body: str
    inlined: int = 0
    failures: Sequence[SnippetFailure] = field(default_factory=tuple)


def find_snippet_links(body: str, *, marker: str = "inline") -> list[str]:
    lines = (body or "").split("\n")
    mask = fence_mask(lines)
    return [
        m.group(2)
        for idx, line in enumerate(lines)
        if not mask[idx]
        for m in _LINK_RE.finditer(line)
        if m.group(1) == marker
    ]


def inline_snippets(
    body: str,
    fetcher: SnippetFetcher,
    *,
    marker: str = "inline",
    origin_comment: str | None = None,
    on_error: Callable[[str, Exception], None] | None = None,
) -> SnippetInlineResult:
    """
    Replace `[<marker>](https://github.com/...#Lx-Ly)` links with the code they point at.

    A malformed fragment raises SnippetError. A link that is not a GitHub file URL, or
    whose fetch fails, is passed to on_error and left in place.
    """
    lines = (body or "").split("\n")
    mask = fence_mask(lines)
    out: list[str] = []
    inlined = 0
    failures: list[SnippetFailure] = []

    for idx, line in enumerate(lines):
        if mask[idx]:
            out.append(line)
            continue

        rest = line
        pending = ""
        replaced = False
        while True:
            m = next((m for m in _LINK_RE.finditer(rest) if m.group(1) == marker), None)
            if m is None:
                break

            url = m.group(2)
            parse_line_range(url)
            try:
                ref = parse_snippet_url(url)
                source = fetcher.fetch(ref.raw_url)
            except SnippetError as e:
                failures.append(SnippetFailure(url=url, error=str(e)))
                if on_error is not None:
                    on_error(url, e)
                pending += rest[: m.end()]
                rest = rest[m.end() :]
                continue

            before = pending + rest[: m.start()]
            if before.strip():
                out.append(before.rstrip())
            out.append(render_snippet(ref, source, origin_comment=origin_comment))
            inlined += 1
            replaced = True
            pending = ""
            rest = rest[m.end() :].lstrip()

        remainder = pending + rest
        if not replaced:
            out.append(line)
        elif remainder.strip():
            out.append(remainder)

    return SnippetInlineResult(body="\n".join(out), inlined=inlined, failures=tuple(failures))
