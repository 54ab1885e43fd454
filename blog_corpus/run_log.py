from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RunLogger:
    """
    JSONL logger for command runs over the content corpus.

    Each line is one JSON object with `ts`, `level`, `event` and `session_id`, plus the
    run id, the post path the event concerns, and free-form `data` when given.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        overwrite: bool = True,
        command: str | None = None,
        run_id: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._overwrite = bool(overwrite)
        self._command = (command or "").strip() or None
        self._run_id = (run_id or "").strip() or None
        self._session_id = uuid.uuid4().hex
        self._fp: TextIO | None = None

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        command: str | None = None,
        run_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, overwrite=overwrite, command=command, run_id=run_id)
        logger._ensure_open()
        return logger

    @property
    def path(self) -> Path:
        return self._path

    def close(self) -> None:
        if self._fp is not None:
            try:
                self._fp.flush()
            finally:
                self._fp.close()
            self._fp = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def set_run_id(self, run_id: str) -> None:
        rid = (run_id or "").strip()
        if rid:
            self._run_id = rid

    def info(self, event: str, *, path: str | Path | None = None, **data: Any) -> None:
        self.log("INFO", event, path=path, **data)

    def warning(self, event: str, *, path: str | Path | None = None, **data: Any) -> None:
        self.log("WARN", event, path=path, **data)

    def error(self, event: str, *, path: str | Path | None = None, **data: Any) -> None:
        self.log("ERROR", event, path=path, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        path: str | Path | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, path=path, error=err, **data)

    def log(self, level: str, event: str, *, path: str | Path | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }

        if self._command:
            record["command"] = self._command
        if self._run_id:
            record["run_id"] = self._run_id

        p = str(path or "").strip()
        if p:
            record["path"] = p

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> TextIO:
        if self._fp is not None:
            return self._fp
        self._path.parent.mkdir(parents=True, exist_ok=True)
        mode = "w" if self._overwrite else "a"
        self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
        # later reopenings append to what this session already wrote
        self._overwrite = False
        return self._fp

    def _write(self, record: dict[str, Any]) -> None:
        fp = self._ensure_open()
        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        fp.write(payload + "\n")
        fp.flush()
