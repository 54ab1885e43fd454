from __future__ import annotations

from pathlib import Path


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ContentError(RuntimeError):
    """Raised when a post file cannot be parsed or validated."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "content_invalid",
        path: str | Path | None = None,
        line: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = Path(path) if path is not None else None
        self.line = line


class SnippetError(RuntimeError):
    """Raised when an inline code snippet link is malformed or cannot be fetched."""


class StorageError(RuntimeError):
    """Raised when reading or writing state in SQLite fails."""


class ExportError(RuntimeError):
    """Raised when writing an index or workbook fails."""
