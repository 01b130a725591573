"""SQLite implementation of the execution repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..contracts import ExecutionResult, StepResult, UserInfo, WorkflowInput, utcnow
from .models import ExecutionRecord, StepRecord
from .repository import ExecutionRepository


def _ts(value: datetime | None) -> str | None:
    # Fixed-width UTC timestamps so that text comparison orders correctly.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _dumps(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None


def _loads(value: str | None) -> Any:
    return json.loads(value) if value else None


class SQLiteExecutionRepository(ExecutionRepository):
    """Persist execution state using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                workflow TEXT NOT NULL,
                user TEXT NOT NULL,
                status TEXT NOT NULL,
                trigger_data TEXT,
                cancel_requested INTEGER NOT NULL DEFAULT 0,
                resume_at TEXT,
                resume_after INTEGER,
                error TEXT,
                started_at TEXT,
                completed_at TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS execution_steps (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT NOT NULL,
                step_id TEXT NOT NULL,
                position INTEGER,
                status TEXT NOT NULL,
                data TEXT,
                error TEXT,
                started_at TEXT,
                completed_at TEXT,
                UNIQUE (execution_id, step_id)
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_executions_due ON executions (status, resume_at)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _to_record(self, row: sqlite3.Row, steps: list[StepRecord]) -> ExecutionRecord:
        return ExecutionRecord(
            id=row["id"],
            workflow_id=row["workflow_id"],
            user_id=row["user_id"],
            workflow=WorkflowInput.model_validate(json.loads(row["workflow"])),
            user=UserInfo.model_validate(json.loads(row["user"])),
            status=row["status"],
            trigger_data=_loads(row["trigger_data"]),
            cancel_requested=bool(row["cancel_requested"]),
            resume_at=_dt(row["resume_at"]),
            resume_after=row["resume_after"],
            error=row["error"],
            started_at=_dt(row["started_at"]),
            completed_at=_dt(row["completed_at"]),
            steps=steps,
        )

    async def _steps(self, execution_id: str) -> list[StepRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT step_id, position, status, data, error, started_at, completed_at "
            "FROM execution_steps WHERE execution_id = ? ORDER BY id",
            execution_id,
        )
        return [
            StepRecord(
                step_id=r["step_id"],
                position=r["position"],
                status=r["status"],
                data=_loads(r["data"]),
                error=r["error"],
                started_at=_dt(r["started_at"]),
                completed_at=_dt(r["completed_at"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Repository API
    async def create_execution(
        self,
        execution_id: str,
        workflow: WorkflowInput,
        user: UserInfo,
        trigger_data: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        started_at = utcnow()
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO executions (id, workflow_id, user_id, workflow, user, status, "
            "trigger_data, started_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            execution_id,
            workflow.id,
            user.id,
            json.dumps(workflow.model_dump(mode="json")),
            json.dumps(user.model_dump(mode="json")),
            "pending",
            _dumps(trigger_data),
            _ts(started_at),
        )
        return ExecutionRecord(
            id=execution_id,
            workflow_id=workflow.id,
            user_id=user.id,
            workflow=workflow,
            user=user,
            trigger_data=trigger_data,
            started_at=started_at,
        )

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM executions WHERE id = ?", execution_id
        )
        if not row:
            return None
        return self._to_record(row, await self._steps(execution_id))

    async def list_executions(
        self, workflow_id: str | None = None, status: str | None = None
    ) -> list[ExecutionRecord]:
        query = "SELECT * FROM executions WHERE 1 = 1"
        params: list[Any] = []
        if workflow_id is not None:
            query += " AND workflow_id = ?"
            params.append(workflow_id)
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY started_at DESC"
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [self._to_record(row, []) for row in rows]

    async def list_due_executions(
        self, now: datetime, limit: int = 10
    ) -> list[ExecutionRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT * FROM executions WHERE status = 'waiting' AND resume_at IS NOT NULL "
            "AND resume_at <= ? ORDER BY resume_at LIMIT ?",
            _ts(now),
            limit,
        )
        return [self._to_record(row, await self._steps(row["id"])) for row in rows]

    async def has_active_execution(self, workflow_id: str) -> bool:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT 1 FROM executions WHERE workflow_id = ? "
            "AND status IN ('running', 'waiting') LIMIT 1",
            workflow_id,
        )
        return row is not None

    async def mark_step_started(
        self, execution_id: str, step_id: str, position: int | None = None
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO execution_steps (execution_id, step_id, position, status, started_at)
            VALUES (?, ?, ?, 'running', ?)
            ON CONFLICT (execution_id, step_id) DO UPDATE SET
                status = 'running', started_at = excluded.started_at, completed_at = NULL
            """,
            execution_id,
            step_id,
            position,
            _ts(utcnow()),
        )

    async def record_step_result(
        self, execution_id: str, result: StepResult, position: int | None = None
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO execution_steps
                (execution_id, step_id, position, status, data, error, started_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (execution_id, step_id) DO UPDATE SET
                position = COALESCE(excluded.position, position),
                status = excluded.status,
                data = excluded.data,
                error = excluded.error,
                started_at = excluded.started_at,
                completed_at = excluded.completed_at
            """,
            execution_id,
            result.step_id,
            position,
            result.status,
            _dumps(result.model_dump(mode="json")["data"]),
            result.error,
            _ts(result.started_at),
            _ts(result.completed_at),
        )

    async def mark_running(self, execution_id: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET status = 'running', resume_at = NULL WHERE id = ?",
            execution_id,
        )

    async def finish_execution(self, result: ExecutionResult) -> None:
        completed_at = result.completed_at if result.status != "waiting" else None
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET status = ?, error = ?, resume_at = ?, resume_after = ?, "
            "completed_at = ? WHERE id = ?",
            result.status,
            result.error,
            _ts(result.resume_at),
            result.resume_after,
            _ts(completed_at),
            result.execution_id,
        )

    async def request_cancel(self, execution_id: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET cancel_requested = 1 WHERE id = ?",
            execution_id,
        )

    async def is_cancel_requested(self, execution_id: str) -> bool:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT cancel_requested FROM executions WHERE id = ?",
            execution_id,
        )
        return bool(row and row["cancel_requested"])

    async def mark_cancelled(self, execution_id: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET status = 'cancelled', error = ?, resume_at = NULL, "
            "completed_at = ? WHERE id = ?",
            "Execution cancelled",
            _ts(utcnow()),
            execution_id,
        )

    def close(self) -> None:
        self._conn.close()
