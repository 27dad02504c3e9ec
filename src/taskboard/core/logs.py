"""Append-only audit trail of agent decisions."""

import sqlite3
from datetime import datetime

from taskboard.core.errors import ValidationError
from taskboard.db.models import AGENT_NAMES, AgentLog


def append_log(
    db: sqlite3.Connection,
    task_id: int,
    agent_name: str,
    action: str,
) -> AgentLog:
    """Insert a log entry. Does not commit; call inside an atomic block."""
    if agent_name not in AGENT_NAMES:
        raise ValidationError(f"Unknown agent: {agent_name}")
    cur = db.execute(
        "INSERT INTO agent_logs (task_id, agent_name, action) VALUES (?, ?, ?)",
        (task_id, agent_name, action),
    )
    row = db.execute("SELECT * FROM agent_logs WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_log(row)


def list_logs(
    db: sqlite3.Connection,
    task_id: int | None = None,
    limit: int | None = None,
) -> list[AgentLog]:
    """List log entries newest first, optionally for one task."""
    query = "SELECT * FROM agent_logs"
    params: list = []

    if task_id is not None:
        query += " WHERE task_id = ?"
        params.append(task_id)

    query += " ORDER BY id DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    rows = db.execute(query, params).fetchall()
    return [_row_to_log(r) for r in rows]


def _row_to_log(row: sqlite3.Row) -> AgentLog:
    return AgentLog(
        id=row["id"],
        task_id=row["task_id"],
        agent_name=row["agent_name"],
        action=row["action"],
        timestamp=_parse_dt(row["timestamp"]),
    )


def _parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)
