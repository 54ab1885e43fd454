from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import yaml

from .errors import ContentError
from .markdown import fence_mask

FENCE = "---"
_CLOSING_FENCES = ("---", "...")

# A later `---` region only counts as another post's front-matter when its YAML
# mapping carries a required post key; prose and thematic breaks never do.
POST_KEYS: frozenset[str] = frozenset({"title", "pubDatetime"})


@dataclass(frozen=True)
class RawBlock:
    meta_text: str
    meta: dict[str, Any]
    body: str
    line: int


@dataclass(frozen=True)
class FrontMatterDocument:
    blocks: Sequence[RawBlock] = field(default_factory=tuple)

    @property
    def concatenated(self) -> bool:
        return len(self.blocks) > 1

    @property
    def primary(self) -> RawBlock:
        return self.blocks[0]


def normalize_text(text: str) -> str:
    s = text or ""
    if s.startswith("\ufeff"):
        s = s[1:]
    return s.replace("\r\n", "\n").replace("\r", "\n")


def _load_meta(meta_text: str, *, path: Path | None, line: int) -> dict[str, Any]:
    try:
        data = yaml.safe_load(meta_text)
    except yaml.YAMLError as e:
        raise ContentError(
            f"Invalid YAML in front-matter: {e}",
            code="front_matter_yaml",
            path=path,
            line=line,
        ) from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ContentError(
            "Front-matter must be a YAML mapping",
            code="front_matter_not_mapping",
            path=path,
            line=line,
        )

    return {str(k): v for k, v in data.items()}


def _is_fence(line: str, *, closing: bool = False) -> bool:
    s = line.rstrip()
    if closing:
        return s in _CLOSING_FENCES
    return s == FENCE


def _embedded_block_meta(candidate: list[str]) -> dict[str, Any] | None:
    text = "\n".join(candidate)
    if not text.strip():
        return None
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        return None
    if not isinstance(data, dict):
        return None
    meta = {str(k): v for k, v in data.items()}
    if not POST_KEYS.intersection(meta):
        return None
    return meta


def split_front_matter(text: str, *, path: str | Path | None = None) -> FrontMatterDocument:
    """
    Split a post file into its front-matter block(s) and bodies.

    The file must open with a `---` fence. Further blocks appear only in files that
    concatenate several posts; each one ends the body of the block before it.
    """
    p = Path(path) if path is not None else None
    lines = normalize_text(text).split("\n")

    if not lines or not _is_fence(lines[0]):
        raise ContentError(
            "File does not start with a '---' front-matter fence",
            code="front_matter_missing",
            path=p,
            line=1,
        )

    close = None
    for i in range(1, len(lines)):
        if _is_fence(lines[i], closing=True):
            close = i
            break

    if close is None:
        raise ContentError(
            "Front-matter block is not terminated by a closing '---'",
            code="front_matter_unterminated",
            path=p,
            line=1,
        )

    first_meta_text = "\n".join(lines[1:close])
    first_meta = _load_meta(first_meta_text, path=p, line=1)

    rest = lines[close + 1 :]
    offset = close + 2  # 1-based line number of rest[0]
    in_fence = fence_mask(rest)

    # (meta_text, meta, opening line, body start index within rest)
    starts: list[tuple[str, dict[str, Any], int, int]] = [(first_meta_text, first_meta, 1, 0)]
    # body end index for each block, aligned with starts
    ends: list[int] = []

    j = 0
    while j < len(rest):
        if in_fence[j] or not _is_fence(rest[j]):
            j += 1
            continue

        k = j + 1
        while k < len(rest) and not (not in_fence[k] and _is_fence(rest[k], closing=True)):
            k += 1
        if k >= len(rest):
            break

        meta = _embedded_block_meta(rest[j + 1 : k])
        if meta is None:
            j += 1
            continue

        ends.append(j)
        starts.append(("\n".join(rest[j + 1 : k]), meta, offset + j, k + 1))
        j = k + 1

    ends.append(len(rest))

    blocks: list[RawBlock] = []
    for (meta_text, meta, line, body_start), body_end in zip(starts, ends):
        blocks.append(
            RawBlock(
                meta_text=meta_text,
                meta=meta,
                body="\n".join(rest[body_start:body_end]),
                line=line,
            )
        )

    return FrontMatterDocument(blocks=tuple(blocks))


def read_front_matter(path: str | Path) -> FrontMatterDocument:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ContentError(f"Failed to read post file: {e}", code="read_failed", path=p) from e
    return split_front_matter(text, path=p)


def render_block(block: RawBlock) -> str:
    meta_text = block.meta_text.rstrip("\n")
    body = block.body
    if body and not body.endswith("\n"):
        body += "\n"
    return f"{FENCE}\n{meta_text}\n{FENCE}\n{body}"
