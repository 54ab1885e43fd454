from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Iterator, Sequence

_FENCE_OPEN_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})(.*)$")
_ATX_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_THEMATIC_BREAK_RE = re.compile(r"^ {0,3}(?:(?:-[ \t]*){3,}|(?:\*[ \t]*){3,}|(?:_[ \t]*){3,})$")

_INLINE_LINK_RE = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_INLINE_CODE_RE = re.compile(r"`+([^`]*)`+")
_EMPHASIS_RE = re.compile(r"(\*{1,3}|~~)(.+?)\1")
_UNDERSCORE_EMPHASIS_RE = re.compile(r"(?<!\w)(_{1,3})(.+?)\1(?!\w)")
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_SLUG_STRIP_RE = re.compile(r"[^\w\- ]", re.UNICODE)

# Matches remark-toc's default heading test.
_DEFAULT_TOC_RE = re.compile(r"^(?:table[ -]of[ -])?contents?$|^toc$", re.IGNORECASE)


def fence_mask(lines: Sequence[str]) -> list[bool]:
    """Flag each line that belongs to a fenced code block, fence lines included."""
    mask: list[bool] = []
    fence: tuple[str, int] | None = None

    for line in lines:
        if fence is None:
            m = _FENCE_OPEN_RE.match(line)
            if m and not (m.group(2)[0] == "`" and "`" in m.group(3)):
                fence = (m.group(2)[0], len(m.group(2)))
                mask.append(True)
                continue
            mask.append(False)
            continue

        mask.append(True)
        stripped = line.strip()
        indent = len(line) - len(line.lstrip(" "))
        if (
            stripped
            and indent <= 3
            and set(stripped) == {fence[0]}
            and len(stripped) >= fence[1]
        ):
            fence = None

    return mask


@dataclass(frozen=True)
class Heading:
    depth: int
    text: str
    line: int  # 0-based index into the body's lines


def _parse_atx(line: str) -> tuple[int, str] | None:
    m = _ATX_RE.match(line)
    if not m:
        return None
    text = _ATX_CLOSING_RE.sub("", m.group(2) or "").strip()
    return len(m.group(1)), text


def iter_headings(body: str) -> Iterator[Heading]:
    lines = (body or "").split("\n")
    mask = fence_mask(lines)
    for idx, line in enumerate(lines):
        if mask[idx]:
            continue
        parsed = _parse_atx(line)
        if parsed is None:
            continue
        depth, text = parsed
        yield Heading(depth=depth, text=text, line=idx)


def plain_text(markdown_text: str) -> str:
    s = _INLINE_LINK_RE.sub(r"\1", markdown_text or "")
    s = _INLINE_CODE_RE.sub(r"\1", s)
    s = _EMPHASIS_RE.sub(r"\2", s)
    s = _UNDERSCORE_EMPHASIS_RE.sub(r"\2", s)
    s = _HTML_TAG_RE.sub("", s)
    return s.strip()


@dataclass
class AnchorSlugger:
    """GitHub-style heading anchors; repeated slugs get `-1`, `-2`, ... suffixes."""

    occurrences: dict[str, int] = field(default_factory=dict)

    @staticmethod
    def slug(text: str) -> str:
        value = unicodedata.normalize("NFC", plain_text(text)).lower()
        value = _SLUG_STRIP_RE.sub("", value)
        return value.replace(" ", "-")

    def next(self, text: str) -> str:
        original = self.slug(text)
        result = original
        while result in self.occurrences:
            self.occurrences[original] += 1
            result = f"{original}-{self.occurrences[original]}"
        self.occurrences[result] = 0
        return result


def _follows_break(lines: Sequence[str], idx: int) -> bool:
    j = idx - 1
    while j >= 0 and not lines[j].strip():
        j -= 1
    if j < 0 or not _THEMATIC_BREAK_RE.match(lines[j]):
        return False
    # a dash line right under text is a setext underline, not a break
    if lines[j].strip().startswith("-") and j > 0 and lines[j - 1].strip():
        return False
    return True


def h2_reformat(body: str) -> str:
    """
    Put a thematic break before every level-2 heading.

    Headings already preceded by a break are left alone so the transform can run twice.
    """
    lines = (body or "").split("\n")
    mask = fence_mask(lines)
    out: list[str] = []

    for idx, line in enumerate(lines):
        parsed = None if mask[idx] else _parse_atx(line)
        if parsed is not None and parsed[0] == 2:
            if not _follows_break(lines, idx):
                if out and out[-1].strip():
                    out.append("")
                out.append("---")
                out.append("")
        out.append(line)

    return "\n".join(out)


def _is_toc_heading(text: str, wanted: str) -> bool:
    plain = plain_text(text)
    if plain.casefold() == (wanted or "").strip().casefold():
        return True
    return bool(_DEFAULT_TOC_RE.match(plain))


def toc_entries(
    headings: Sequence[Heading],
    *,
    after_line: int,
    max_depth: int,
) -> list[tuple[int, str, str]]:
    """Return (depth, text, anchor) for headings after the TOC heading."""
    slugger = AnchorSlugger()
    entries: list[tuple[int, str, str]] = []
    for h in headings:
        anchor = slugger.next(h.text)
        if h.line <= after_line:
            continue
        if 2 <= h.depth <= max_depth:
            entries.append((h.depth, plain_text(h.text), anchor))
    return entries


def table_of_contents(
    body: str,
    *,
    heading: str = "Table of contents",
    max_depth: int = 3,
    collapse: bool = True,
) -> str:
    """
    Fill the section under the table-of-contents heading with links to later headings.

    Returns the body unchanged when there is no such heading or nothing to list.
    """
    lines = (body or "").split("\n")
    headings = list(iter_headings(body))

    toc_idx = None
    for pos, h in enumerate(headings):
        if _is_toc_heading(h.text, heading):
            toc_idx = pos
            break
    if toc_idx is None:
        return body

    toc = headings[toc_idx]
    entries = toc_entries(headings, after_line=toc.line, max_depth=max_depth)
    if not entries:
        return body

    end = len(lines)
    if toc_idx + 1 < len(headings):
        end = headings[toc_idx + 1].line
    # keep separators that sit right above the next heading
    while end - 1 > toc.line and (
        not lines[end - 1].strip() or _THEMATIC_BREAK_RE.match(lines[end - 1])
    ):
        end -= 1

    base_depth = min(depth for depth, _, _ in entries)
    items = [
        f"{'  ' * (depth - base_depth)}- [{text}](#{anchor})"
        for depth, text, anchor in entries
    ]

    section: list[str] = [""]
    if collapse:
        section += ["<details>", f"<summary>{plain_text(toc.text)}</summary>", ""]
    section += items
    if collapse:
        section += ["", "</details>"]
    if end < len(lines) and lines[end].strip():
        section.append("")

    return "\n".join(lines[: toc.line + 1] + section + lines[end:])
