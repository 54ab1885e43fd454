from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Sequence


@dataclass(frozen=True)
class Post:
    """A validated post: one front-matter block plus the Markdown body that follows it."""

    path: Path
    slug: str
    title: str
    author: str
    pub_datetime: datetime

    mod_datetime: datetime | None = None
    post_slug: str | None = None
    featured: bool = False
    draft: bool = False
    tags: Sequence[str] = ()

    og_image: str | None = None
    description: str | None = None
    canonical_url: str | None = None

    body: str = ""
    meta_text: str = ""
    block_index: int = 0
    extra_fields: Sequence[str] = ()

    @property
    def sort_datetime(self) -> datetime:
        return self.mod_datetime or self.pub_datetime
