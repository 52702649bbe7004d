"""SQLiteStore — the default durable store.

Why SQLite:
- Ships with Python, no server to provision for a single balancer process.
- Real transactions: the LRU read-then-write runs inside BEGIN IMMEDIATE,
  on top of the per-process selection lock in BaseStore. Every other write
  takes the same lock, so no commit can land inside a selection.
- Rotation state survives restarts, so fairness does not reset on deploy.

Schema:
  reviewers     — one row per alias; timestamps stored as ISO-8601 UTC text
                  with fixed microsecond precision so they sort lexically.
  repositories  — one row per (project_name, name).
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from revbalance_store.base import BaseStore, Clock
from revbalance_store.errors import NotFoundError
from revbalance_store.models import Repository, Reviewer

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reviewers (
    alias             TEXT PRIMARY KEY,
    external_id       TEXT NOT NULL DEFAULT '',
    last_selected_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reviewers_lru ON reviewers (last_selected_at, alias);
CREATE INDEX IF NOT EXISTS idx_reviewers_external_id ON reviewers (external_id);

CREATE TABLE IF NOT EXISTS repositories (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    name                TEXT NOT NULL,
    project_name        TEXT NOT NULL,
    external_repo_id    TEXT NOT NULL DEFAULT '',
    enabled             INTEGER NOT NULL DEFAULT 1,
    last_reconciled_at  TEXT,
    UNIQUE (project_name, name)
);
"""


def _to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SQLiteStore(BaseStore):
    """Stores the reviewer pool and repository registry in a SQLite file.

    The path defaults to `.revbalance.db` in the working directory.
    Configure via .revbalance.yml: `store_path: /path/to/revbalance.db`.
    """

    def __init__(self, db_path: str = ".revbalance.db", clock: Clock | None = None):
        super().__init__(clock=clock)
        # Selections may come from worker threads; the selection lock serialises writers.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # -- reviewers -------------------------------------------------------

    def get_reviewer(self, alias: str) -> Reviewer:
        row = self._conn.execute("SELECT * FROM reviewers WHERE alias=?", (alias,)).fetchone()
        if row is None:
            raise NotFoundError(f"reviewer {alias!r} not found")
        return self._row_to_reviewer(row)

    def get_reviewer_by_external_id(self, external_id: str) -> Reviewer:
        if not external_id:
            raise NotFoundError("empty external id")
        row = self._conn.execute(
            "SELECT * FROM reviewers WHERE external_id=? ORDER BY alias LIMIT 1", (external_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"no reviewer with external id {external_id!r}")
        return self._row_to_reviewer(row)

    def upsert_reviewer(self, reviewer: Reviewer) -> None:
        with self._write():
            self._upsert_row(reviewer)

    def list_reviewers(self) -> list[Reviewer]:
        rows = self._conn.execute("SELECT * FROM reviewers ORDER BY alias").fetchall()
        return [self._row_to_reviewer(r) for r in rows]

    def delete_reviewer(self, alias: str) -> None:
        with self._write():
            cursor = self._conn.execute("DELETE FROM reviewers WHERE alias=?", (alias,))
        if cursor.rowcount == 0:
            raise NotFoundError(f"reviewer {alias!r} not found")

    def _least_recently_selected(self, aliases: set[str]) -> Reviewer:
        if not aliases:
            raise NotFoundError("no candidate aliases")
        ordered = sorted(aliases)
        placeholders = ",".join("?" for _ in ordered)
        row = self._conn.execute(
            f"SELECT * FROM reviewers WHERE alias IN ({placeholders}) ORDER BY last_selected_at, alias LIMIT 1",
            ordered,
        ).fetchone()
        if row is None:
            raise NotFoundError(f"none of {ordered} are known reviewers")
        return self._row_to_reviewer(row)

    def _write_selection(self, reviewer: Reviewer) -> None:
        # Committed by _selection_transaction.
        self._upsert_row(reviewer)

    @contextmanager
    def _write(self) -> Iterator[None]:
        # The connection is shared across threads; an outside commit would end a pop's BEGIN IMMEDIATE early.
        with self._selection_lock, self._conn:
            yield

    @contextmanager
    def _selection_transaction(self) -> Iterator[None]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    def _upsert_row(self, reviewer: Reviewer) -> None:
        self._conn.execute(
            """
            INSERT INTO reviewers (alias, external_id, last_selected_at)
            VALUES (?, ?, ?)
            ON CONFLICT(alias) DO UPDATE SET
              external_id=excluded.external_id,
              last_selected_at=excluded.last_selected_at
            """,
            (reviewer.alias, reviewer.external_id, _to_text(reviewer.last_selected_at)),
        )

    # -- repositories ----------------------------------------------------

    def add_repository(self, repository: Repository) -> Repository:
        try:
            with self._write():
                cursor = self._conn.execute(
                    """
                    INSERT INTO repositories
                      (name, project_name, external_repo_id, enabled, last_reconciled_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        repository.name,
                        repository.project_name,
                        repository.external_repo_id,
                        int(repository.enabled),
                        _to_text(repository.last_reconciled_at),
                    ),
                )
        except sqlite3.IntegrityError:
            raise ValueError(f"repository {repository.full_name} is already registered")
        repository.id = cursor.lastrowid
        logger.debug("Registered repository %s with id %s", repository.full_name, repository.id)
        return repository

    def get_repository(self, project_name: str, name: str) -> Repository:
        row = self._conn.execute(
            "SELECT * FROM repositories WHERE project_name=? AND name=?", (project_name, name)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"repository {project_name}/{name} not found")
        return self._row_to_repository(row)

    def list_repositories(self, enabled_only: bool = False) -> list[Repository]:
        query = "SELECT * FROM repositories"
        if enabled_only:
            query += " WHERE enabled=1"
        rows = self._conn.execute(query + " ORDER BY project_name, name").fetchall()
        return [self._row_to_repository(r) for r in rows]

    def update_repository(self, repository: Repository) -> None:
        with self._write():
            cursor = self._conn.execute(
                """
                UPDATE repositories SET
                  name=?, project_name=?, external_repo_id=?, enabled=?, last_reconciled_at=?
                WHERE id=?
                """,
                (
                    repository.name,
                    repository.project_name,
                    repository.external_repo_id,
                    int(repository.enabled),
                    _to_text(repository.last_reconciled_at),
                    repository.id,
                ),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"repository {repository.full_name} not found")

    def delete_repository(self, project_name: str, name: str) -> None:
        with self._write():
            cursor = self._conn.execute(
                "DELETE FROM repositories WHERE project_name=? AND name=?", (project_name, name)
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"repository {project_name}/{name} not found")

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_reviewer(row: sqlite3.Row) -> Reviewer:
        return Reviewer(
            alias=row["alias"],
            external_id=row["external_id"] or "",
            last_selected_at=_from_text(row["last_selected_at"]),
        )

    @staticmethod
    def _row_to_repository(row: sqlite3.Row) -> Repository:
        return Repository(
            id=row["id"],
            name=row["name"],
            project_name=row["project_name"],
            external_repo_id=row["external_repo_id"] or "",
            enabled=bool(row["enabled"]),
            last_reconciled_at=_from_text(row["last_reconciled_at"]),
        )
