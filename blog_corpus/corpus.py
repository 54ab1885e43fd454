from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from .config_schema import AppConfig, SiteConfig
from .errors import ContentError
from .frontmatter import read_front_matter
from .normalize import post_from_block
from .post import Post


@dataclass(frozen=True)
class LoadFailure:
    path: Path
    code: str
    message: str
    line: int | None = None


@dataclass(frozen=True)
class FileLoadResult:
    path: Path
    posts: Sequence[Post] = ()
    failures: Sequence[LoadFailure] = ()
    block_count: int = 0


@dataclass(frozen=True)
class LoadedCorpus:
    posts_dir: Path
    files: Sequence[FileLoadResult] = field(default_factory=tuple)

    @property
    def posts(self) -> list[Post]:
        return [post for f in self.files for post in f.posts]

    @property
    def failures(self) -> list[LoadFailure]:
        return [fail for f in self.files for fail in f.failures]

    def concatenated_files(self) -> list[FileLoadResult]:
        return [f for f in self.files if f.block_count > 1]


def _failure_from_error(path: Path, err: ContentError) -> LoadFailure:
    return LoadFailure(path=path, code=err.code, message=str(err), line=err.line)


def discover_post_files(posts_dir: str | Path, extensions: Iterable[str]) -> list[Path]:
    """
    Return post files under posts_dir, sorted by path.

    Files and directories whose name starts with `_` or `.` are skipped.
    """
    root = Path(posts_dir)
    if not root.is_dir():
        raise ContentError(f"Posts directory not found: {root}", code="posts_dir_missing", path=root)

    exts = {e.casefold() for e in extensions}
    out: list[Path] = []
    for p in root.rglob("*"):
        if not p.is_file() or p.suffix.casefold() not in exts:
            continue
        rel = p.relative_to(root)
        if any(part.startswith(("_", ".")) for part in rel.parts):
            continue
        out.append(p)
    return sorted(out)


def load_post_file(path: str | Path, *, site: SiteConfig) -> FileLoadResult:
    p = Path(path)

    try:
        document = read_front_matter(p)
    except ContentError as e:
        return FileLoadResult(path=p, failures=(_failure_from_error(p, e),))

    posts: list[Post] = []
    failures: list[LoadFailure] = []
    for idx, block in enumerate(document.blocks):
        try:
            posts.append(post_from_block(p, block, site=site, block_index=idx))
        except ContentError as e:
            failures.append(_failure_from_error(p, e))

    return FileLoadResult(
        path=p,
        posts=tuple(posts),
        failures=tuple(failures),
        block_count=len(document.blocks),
    )


def load_corpus(config: AppConfig, posts_dir: str | Path | None = None) -> LoadedCorpus:
    """Load every post file; per-file problems are collected rather than raised."""
    root = Path(posts_dir) if posts_dir is not None else Path(config.content.posts_dir)
    files = [
        load_post_file(p, site=config.site)
        for p in discover_post_files(root, config.content.extensions)
    ]
    return LoadedCorpus(posts_dir=root, files=tuple(files))
