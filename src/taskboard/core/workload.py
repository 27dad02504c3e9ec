"""Workload calculation for team memberships.

A member's workload is the number of tasks assigned to them that are not
Completed. It is never set directly: after every task creation, progress
update or reassignment the store snapshot is recomputed and persisted.
"""

import dataclasses
import sqlite3
from collections import Counter
from collections.abc import Iterable

from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.db.models import COMPLETED, Task, TeamMembership


def recompute_workloads(
    tasks: Iterable[Task],
    memberships: Iterable[TeamMembership],
) -> list[TeamMembership]:
    """Return copies of the memberships with workload recomputed from the tasks.

    Pure: inputs are not modified and membership order is preserved.
    """
    active = Counter(
        t.assigned_member_id
        for t in tasks
        if t.assigned_member_id is not None and t.status != COMPLETED
    )
    return [dataclasses.replace(m, workload=active[m.member_id]) for m in memberships]


def refresh_workloads(db: sqlite3.Connection) -> list[TeamMembership]:
    """Recompute every membership's workload from the stored tasks and persist changes.

    Does not commit; callers run it inside the atomic block of the mutation
    that changed the task set.
    """
    current = teams_mod.list_memberships(db)
    updated = recompute_workloads(tasks_mod.list_tasks(db), current)
    for old, new in zip(current, updated):
        if old.workload != new.workload:
            db.execute(
                "UPDATE team_members SET workload = ? WHERE id = ?",
                (new.workload, new.id),
            )
    return updated
