"""Task storage, progress updates and dashboard views."""

import logging
import math
import sqlite3
from datetime import date, datetime, time, timezone

from taskboard.core import teams as teams_mod
from taskboard.core.errors import NotFoundError, ValidationError
from taskboard.core.locking import atomic
from taskboard.core.logs import append_log
from taskboard.db.models import COMPLETED, IN_PROGRESS, PENDING, Task, User, status_for_progress

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def parse_deadline(value: date | datetime | str) -> date:
    """Coerce a deadline given as a date, datetime or ISO string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"Invalid deadline: {value!r} (expected YYYY-MM-DD)") from None


def days_until_deadline(deadline: date, now: datetime | None = None) -> int:
    """Whole days from now until the start of the deadline date (UTC), rounded up.

    Negative for overdue tasks.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    due = datetime.combine(deadline, time.min, tzinfo=timezone.utc)
    return math.ceil((due - now).total_seconds() / SECONDS_PER_DAY)


def insert_task(
    db: sqlite3.Connection,
    title: str,
    description: str,
    deadline: date,
    assigned_team_id: int | None,
    assigned_member_id: int | None,
) -> Task:
    """Insert a new Pending task. Does not commit; call inside an atomic block."""
    cur = db.execute(
        """INSERT INTO tasks (title, description, status, assigned_team_id,
                              assigned_member_id, progress, deadline, overload_flag)
           VALUES (?, ?, ?, ?, ?, 0, ?, 0)""",
        (title, description, PENDING, assigned_team_id, assigned_member_id, deadline.isoformat()),
    )
    return get_task(db, cur.lastrowid)


def get_task(db: sqlite3.Connection, task_id: int) -> Task | None:
    """Get a task by ID."""
    row = db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    if not row:
        return None
    return _row_to_task(row)


def require_task(db: sqlite3.Connection, task_id: int) -> Task:
    task = get_task(db, task_id)
    if not task:
        raise NotFoundError(f"Task not found: {task_id}")
    return task


def list_tasks(
    db: sqlite3.Connection,
    status: str | None = None,
    team_id: int | None = None,
    member_id: int | None = None,
) -> list[Task]:
    """List tasks in creation order with optional filters."""
    query = "SELECT * FROM tasks WHERE 1 = 1"
    params: list = []

    if status:
        query += " AND status = ?"
        params.append(status)

    if team_id is not None:
        query += " AND assigned_team_id = ?"
        params.append(team_id)

    if member_id is not None:
        query += " AND assigned_member_id = ?"
        params.append(member_id)

    query += " ORDER BY id ASC"
    rows = db.execute(query, params).fetchall()
    return [_row_to_task(r) for r in rows]


def update_task(
    db: sqlite3.Connection,
    task_id: int,
    **kwargs,
) -> Task:
    """Patch task fields. Status is always rewritten from progress."""
    require_task(db, task_id)
    allowed = {
        "title", "description", "progress", "deadline",
        "assigned_team_id", "assigned_member_id", "overload_flag",
    }
    updates = {k: v for k, v in kwargs.items() if k in allowed}
    if not updates:
        return get_task(db, task_id)

    if "progress" in updates:
        updates["progress"] = _check_progress(updates["progress"])
        updates["status"] = status_for_progress(updates["progress"])
    if "deadline" in updates:
        updates["deadline"] = parse_deadline(updates["deadline"]).isoformat()
    if "overload_flag" in updates:
        updates["overload_flag"] = int(bool(updates["overload_flag"]))

    set_parts = [f"{k} = ?" for k in updates]
    set_parts.append("updated_at = datetime('now')")
    values = list(updates.values()) + [task_id]
    with atomic(db):
        db.execute(f"UPDATE tasks SET {', '.join(set_parts)} WHERE id = ?", values)
    return get_task(db, task_id)


def update_progress(db: sqlite3.Connection, task_id: int, progress: int) -> Task:
    """Set a task's progress, log it and refresh workloads in one transaction."""
    from taskboard.core.workload import refresh_workloads

    progress = _check_progress(progress)
    require_task(db, task_id)

    with atomic(db):
        task = update_task(db, task_id, progress=progress)
        append_log(db, task_id, "Progress", f"User updated progress to {progress}%")
        refresh_workloads(db)

    logger.info("Task %s progress -> %d%% (%s)", task_id, progress, task.status)
    return task


def visible_tasks(db: sqlite3.Connection, user: User) -> list[Task]:
    """Tasks a user sees on their dashboard.

    Admins see everything, team leads the tasks routed to the team they
    lead, members the tasks assigned to them.
    """
    if user.role == "admin":
        return list_tasks(db)
    if user.role == "team_lead":
        team = teams_mod.find_team_led_by(db, user.id)
        if not team:
            return []
        return list_tasks(db, team_id=team.id)
    return list_tasks(db, member_id=user.id)


def task_summary(tasks: list[Task]) -> dict:
    """Count tasks per status for the dashboard header."""
    counts = {PENDING: 0, IN_PROGRESS: 0, COMPLETED: 0}
    for t in tasks:
        counts[t.status] += 1
    total = len(tasks)
    progress = (counts[COMPLETED] / total * 100) if total > 0 else 0
    return {
        "counts": counts,
        "total": total,
        "flagged": sum(1 for t in tasks if t.overload_flag),
        "completed_pct": round(progress, 1),
    }


def _check_progress(progress) -> int:
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise ValidationError(f"Progress must be an integer, got {progress!r}")
    if not 0 <= progress <= 100:
        raise ValidationError(f"Progress must be between 0 and 100, got {progress}")
    return progress


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        progress=row["progress"],
        deadline=date.fromisoformat(row["deadline"]),
        assigned_team_id=row["assigned_team_id"],
        assigned_member_id=row["assigned_member_id"],
        overload_flag=bool(row["overload_flag"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)
