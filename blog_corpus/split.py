from __future__ import annotations

from pathlib import Path

from .config_schema import SiteConfig
from .dedupe import SeenSlugs
from .errors import ContentError
from .frontmatter import read_front_matter, render_block
from .normalize import post_from_block


def split_concatenated_file(
    path: str | Path,
    out_dir: str | Path,
    *,
    site: SiteConfig,
    overwrite: bool = False,
) -> list[Path]:
    """
    Write each front-matter block of a concatenated post file to `<slug>.md`.

    Front-matter text is copied verbatim; only the file boundaries change.
    """
    src = Path(path)
    out = Path(out_dir)
    document = read_front_matter(src)

    seen = SeenSlugs()
    planned: list[tuple[Path, str]] = []
    for idx, block in enumerate(document.blocks):
        post = post_from_block(src, block, site=site, block_index=idx)
        if seen.has_post(post):
            raise ContentError(
                f"Two blocks in {src} resolve to the slug '{post.slug}'",
                code="duplicate_slug",
                path=src,
                line=block.line,
            )
        seen.add_post(post)

        target = out / f"{post.slug}{src.suffix or '.md'}"
        if target.exists() and not overwrite and target.resolve() != src.resolve():
            raise ContentError(
                f"Refusing to overwrite existing file: {target}",
                code="split_target_exists",
                path=target,
            )
        planned.append((target, render_block(block)))

    out.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for target, text in planned:
        target.write_text(text, encoding="utf-8", newline="\n")
        written.append(target)
    return written
