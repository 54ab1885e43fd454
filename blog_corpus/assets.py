from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlsplit

from .markdown import fence_mask

_MD_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+[\"'(][^)]*)?\s*\)")
_HTML_IMG_RE = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*([\"'])(.*?)\1", re.IGNORECASE)
_REF_DEF_RE = re.compile(r"^ {0,3}\[[^\]]+\]:\s*<?(\S+?)>?(?:\s+.*)?$")
_INLINE_CODE_RE = re.compile(r"`+[^`]*`+")

_EXTERNAL_PREFIXES = ("http://", "https://", "//", "data:", "mailto:", "ftp://")
IMAGE_SUFFIXES: frozenset[str] = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".avif", ".bmp", ".ico"}
)


@dataclass(frozen=True)
class AssetRef:
    target: str
    line: int  # 1-based line within the body
    kind: str  # markdown_image | html_img | reference


def is_external(target: str) -> bool:
    t = (target or "").strip().casefold()
    return t.startswith(_EXTERNAL_PREFIXES)


def extract_asset_refs(body: str) -> list[AssetRef]:
    """Find image references in a Markdown body, ignoring fenced and inline code."""
    lines = (body or "").split("\n")
    mask = fence_mask(lines)
    refs: list[AssetRef] = []

    for idx, raw in enumerate(lines):
        if mask[idx]:
            continue
        line = _INLINE_CODE_RE.sub("", raw)

        for m in _MD_IMAGE_RE.finditer(line):
            refs.append(AssetRef(target=m.group(1), line=idx + 1, kind="markdown_image"))

        for m in _HTML_IMG_RE.finditer(line):
            target = m.group(2).strip()
            if target:
                refs.append(AssetRef(target=target, line=idx + 1, kind="html_img"))

        ref = _REF_DEF_RE.match(line)
        if ref:
            target = ref.group(1)
            if Path(urlsplit(target).path).suffix.casefold() in IMAGE_SUFFIXES:
                refs.append(AssetRef(target=target, line=idx + 1, kind="reference"))

    return refs


def resolve_asset(target: str, *, post_path: str | Path, public_dir: str | Path) -> Path:
    """
    Map an asset reference to a filesystem path.

    Site-absolute targets (`/assets/...`) live under the public directory; relative
    targets are resolved next to the post file.
    """
    path_part = unquote(urlsplit((target or "").strip()).path)
    if path_part.startswith("/"):
        return Path(public_dir) / path_part.lstrip("/")
    return (Path(post_path).parent / path_part).resolve()


def missing_assets(
    refs: list[AssetRef], *, post_path: str | Path, public_dir: str | Path
) -> list[tuple[AssetRef, Path]]:
    out: list[tuple[AssetRef, Path]] = []
    for ref in refs:
        if is_external(ref.target):
            continue
        resolved = resolve_asset(ref.target, post_path=post_path, public_dir=public_dir)
        if not resolved.is_file():
            out.append((ref, resolved))
    return out
