"""Rebalancing engine: flag at-risk tasks and move them to less-loaded teammates."""

import logging
import sqlite3
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.locking import atomic
from taskboard.core.logs import append_log
from taskboard.core.oracles import (
    HealthAssessment,
    HealthOracle,
    OracleUnavailable,
    fallback_assessment,
)
from taskboard.core.workload import recompute_workloads, refresh_workloads
from taskboard.db.models import COMPLETED, AgentLog, Task, TeamMembership

logger = logging.getLogger(__name__)

Notifier = Callable[[Task, str], None]


@dataclass
class HealthCheckResult:
    tasks: list[Task] = field(default_factory=list)
    logs: list[AgentLog] = field(default_factory=list)
    scanned: int = 0
    cancelled: bool = False

    @property
    def flagged(self) -> list[Task]:
        return [t for t in self.tasks if t.overload_flag]

    @property
    def reassigned(self) -> list[Task]:
        return [t for t in self.tasks if not t.overload_flag]


def assess_with_fallback(
    oracle: HealthOracle,
    task: Task,
    days_until_deadline: int,
) -> HealthAssessment:
    try:
        return oracle.assess(task.title, task.progress, days_until_deadline)
    except OracleUnavailable as e:
        logger.warning("Health oracle unavailable for task %s, using fallback rule: %s", task.id, e)
    except Exception:
        logger.warning("Health oracle failed for task %s, using fallback rule", task.id, exc_info=True)
    return fallback_assessment(task.progress, days_until_deadline)


def find_relief_member(
    memberships: list[TeamMembership],
    task: Task,
) -> TeamMembership | None:
    """First teammate, in membership order, carrying strictly less work than the assignee.

    This is the first match, not the least-loaded teammate. The assignee's
    membership is the one in the task's team, else their first membership.
    Returns None when the assignee has no membership or no teammate qualifies.
    """
    if task.assigned_member_id is None:
        return None
    own = [m for m in memberships if m.member_id == task.assigned_member_id]
    if not own:
        return None
    current = next((m for m in own if m.team_id == task.assigned_team_id), own[0])

    for m in memberships:
        if m.team_id != current.team_id or m.member_id == current.member_id:
            continue
        if m.workload < current.workload:
            return m
    return None


def run_health_check(
    db: sqlite3.Connection,
    oracle: HealthOracle,
    now: datetime | None = None,
    cancel: threading.Event | None = None,
    notifier: Notifier | None = None,
) -> HealthCheckResult:
    """Scan every non-completed task, flag the newly at-risk ones and try to reassign them.

    Oracle failures fall back per task and never stop the scan. Each task's
    transition is committed on its own. Setting `cancel` stops the scan
    after the task in hand.
    """
    result = HealthCheckResult()

    for snapshot in tasks_mod.list_tasks(db):
        if cancel is not None and cancel.is_set():
            result.cancelled = True
            logger.info("Health check cancelled after %d tasks", result.scanned)
            break
        if snapshot.status == COMPLETED:
            continue

        days = tasks_mod.days_until_deadline(snapshot.deadline, now)
        assessment = assess_with_fallback(oracle, snapshot, days)
        result.scanned += 1

        with atomic(db):
            task = tasks_mod.get_task(db, snapshot.id)
            if task is None or task.status == COMPLETED:
                continue
            if not assessment.flag_overload or task.overload_flag:
                continue

            task = tasks_mod.update_task(db, task.id, overload_flag=True)
            flagged_log = append_log(db, task.id, "Reassignment", f"FLAGGED: {assessment.suggestion}")
            result.logs.append(flagged_log)

            memberships = recompute_workloads(tasks_mod.list_tasks(db), teams_mod.list_memberships(db))
            relief = find_relief_member(memberships, task)
            if relief is not None:
                task = tasks_mod.update_task(
                    db, task.id, assigned_member_id=relief.member_id, overload_flag=False
                )
                user = users_mod.get_user(db, relief.member_id)
                name = user.name if user else f"User {relief.member_id}"
                result.logs.append(append_log(
                    db, task.id, "Reassignment", f"Re-assigned task to {name} to relieve load."
                ))
                refresh_workloads(db)
                message = f"Re-assigned to {name}: {assessment.suggestion}"
            else:
                message = f"Flagged, no teammate with lower workload: {assessment.suggestion}"

        result.tasks.append(task)
        logger.info("Task %s: %s", task.id, message)
        if notifier is not None:
            try:
                notifier(task, message)
            except Exception:
                logger.warning("Notifier failed for task %s", task.id, exc_info=True)

    return result
