from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from .errors import StorageError
from .lint import LintIssue
from .storage_schema import initialize_sqlite


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dumps(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


@dataclass(frozen=True)
class RunRecord:
    run_id: str
    command: str
    started_at: str
    ended_at: str | None
    config_hash: str
    versions: dict[str, str]


@dataclass(frozen=True)
class SnippetSource:
    url: str
    content: str
    fetched_at: str


class SQLiteStateStore:
    """
    Small persistence layer for command runs, their lint findings and fetched snippet sources.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteStateStore":
        db_path = str(path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteStateStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def create_run(
        self,
        *,
        command: str,
        config_hash: str,
        versions: Mapping[str, str] | None = None,
        run_id: str | None = None,
        started_at: str | None = None,
    ) -> RunRecord:
        rid = (run_id or uuid.uuid4().hex).strip()
        if not rid:
            raise ValueError("run_id must be non-empty")

        cmd = (command or "").strip()
        if not cmd:
            raise ValueError("command must be non-empty")

        cfg_hash = (config_hash or "").strip()
        if not cfg_hash:
            raise ValueError("config_hash must be non-empty")

        start = (started_at or _utc_now_iso()).strip()

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT OR IGNORE INTO runs(
                      run_id, command, started_at, ended_at, config_hash, versions_json
                    ) VALUES (?, ?, ?, NULL, ?, ?)
                    """.strip(),
                    (rid, cmd, start, cfg_hash, _json_dumps(dict(versions or {}))),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to create run record: {e}") from e

        record = self.get_run(rid)
        if record is None:
            raise StorageError("Failed to read run record after insert")
        return record

    def finish_run(self, run_id: str, *, ended_at: str | None = None) -> None:
        rid = (run_id or "").strip()
        if not rid:
            raise ValueError("run_id must be non-empty")

        try:
            with self._conn:
                self._conn.execute(
                    "UPDATE runs SET ended_at = ? WHERE run_id = ?",
                    ((ended_at or _utc_now_iso()).strip(), rid),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to finish run: {e}") from e

    def get_run(self, run_id: str) -> RunRecord | None:
        rid = (run_id or "").strip()
        if not rid:
            raise ValueError("run_id must be non-empty")

        row = self._conn.execute(
            "SELECT run_id, command, started_at, ended_at, config_hash, versions_json FROM runs WHERE run_id = ?",
            (rid,),
        ).fetchone()
        if row is None:
            return None

        try:
            versions = json.loads((row["versions_json"] or "{}").strip())
        except ValueError:
            versions = {}
        if not isinstance(versions, dict):
            versions = {}

        return RunRecord(
            run_id=str(row["run_id"]),
            command=str(row["command"]),
            started_at=str(row["started_at"]),
            ended_at=str(row["ended_at"]) if row["ended_at"] is not None else None,
            config_hash=str(row["config_hash"]),
            versions={str(k): str(v) for k, v in versions.items()},
        )

    def record_lint_issues(self, run_id: str, issues: Iterable[LintIssue]) -> int:
        rid = (run_id or "").strip()
        if not rid:
            raise ValueError("run_id must be non-empty")

        rows = [
            (rid, str(i.path), i.code, i.severity, i.message, i.line, i.slug)
            for i in issues
        ]
        try:
            with self._conn:
                self._conn.executemany(
                    """
                    INSERT INTO lint_issues(run_id, path, code, severity, message, line, slug)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """.strip(),
                    rows,
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to record lint issues: {e}") from e
        return len(rows)

    def lint_issue_counts(self, run_id: str) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT severity, COUNT(1) AS n FROM lint_issues WHERE run_id = ? GROUP BY severity",
            ((run_id or "").strip(),),
        ).fetchall()
        return {str(r["severity"]): int(r["n"]) for r in rows}

    def get_snippet_source(self, url: str) -> SnippetSource | None:
        u = (url or "").strip()
        if not u:
            return None

        row = self._conn.execute(
            "SELECT url, content, fetched_at FROM snippet_sources WHERE url = ?",
            (u,),
        ).fetchone()
        if row is None:
            return None
        return SnippetSource(
            url=str(row["url"]),
            content=str(row["content"]),
            fetched_at=str(row["fetched_at"]),
        )

    def put_snippet_source(self, url: str, content: str, *, fetched_at: str | None = None) -> None:
        u = (url or "").strip()
        if not u:
            raise ValueError("url must be non-empty")

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO snippet_sources(url, content, fetched_at) VALUES (?, ?, ?)
                    ON CONFLICT(url) DO UPDATE SET
                      content = excluded.content,
                      fetched_at = excluded.fetched_at
                    """.strip(),
                    (u, content, (fetched_at or _utc_now_iso()).strip()),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to store snippet source: {e}") from e
