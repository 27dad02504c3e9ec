"""Assignment engine: route a new task to a team and to that team's least-loaded member."""

import logging
import sqlite3
from datetime import date

from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.errors import ValidationError
from taskboard.core.locking import atomic
from taskboard.core.logs import append_log
from taskboard.core.oracles import (
    Classification,
    ClassificationOracle,
    OracleUnavailable,
    fallback_classification,
)
from taskboard.core.workload import recompute_workloads, refresh_workloads
from taskboard.db.models import AgentLog, Task, Team, TeamMembership

logger = logging.getLogger(__name__)


def classify_with_fallback(
    oracle: ClassificationOracle,
    title: str,
    description: str,
    teams: list[Team],
) -> Classification:
    """Ask the oracle for a team, falling back to the first team on any failure.

    A team id the oracle invents (not in the team list) counts as a failure.
    """
    try:
        result = oracle.classify(title, description, teams)
    except OracleUnavailable as e:
        logger.warning("Classification oracle unavailable, using default team: %s", e)
        return fallback_classification(teams)
    except Exception:
        logger.warning("Classification oracle failed, using default team", exc_info=True)
        return fallback_classification(teams)

    if not any(t.id == result.team_id for t in teams):
        logger.warning("Classification oracle chose unknown team %r, using default team", result.team_id)
        return fallback_classification(teams)
    return result


def rank_members(memberships: list[TeamMembership], team_id: int) -> list[TeamMembership]:
    """Members of a team ordered by ascending workload.

    The sort is stable, so equal workloads keep membership insertion order
    and the earliest member wins a tie.
    """
    team_members = [m for m in memberships if m.team_id == team_id]
    return sorted(team_members, key=lambda m: m.workload)


def create_task(
    db: sqlite3.Connection,
    title: str,
    description: str,
    deadline: date | str,
    oracle: ClassificationOracle,
) -> tuple[Task, list[AgentLog]]:
    """Create a task, route it to a team and member, and record both decisions.

    The oracle is consulted before the mutation lock is taken. Member
    ranking, the task insert, both log entries and the workload refresh run
    as one transaction: if any write fails nothing is kept.
    """
    title = title.strip()
    if not title:
        raise ValidationError("Task title is required")
    deadline = tasks_mod.parse_deadline(deadline)
    teams = teams_mod.list_teams(db)
    if not teams:
        raise ValidationError("Cannot create a task: no teams exist")

    classification = classify_with_fallback(oracle, title, description, teams)
    team = next(t for t in teams if t.id == classification.team_id)

    with atomic(db):
        memberships = recompute_workloads(
            tasks_mod.list_tasks(db), teams_mod.list_memberships(db)
        )
        ranked = rank_members(memberships, team.id)
        chosen = ranked[0] if ranked else None

        task = tasks_mod.insert_task(
            db,
            title,
            description,
            deadline,
            assigned_team_id=team.id,
            assigned_member_id=chosen.member_id if chosen else None,
        )
        logs = [
            append_log(
                db, task.id, "RAG",
                f"Selected Team {team.name}. Reason: {classification.reasoning}",
            )
        ]
        if chosen:
            name = _display_name(db, chosen.member_id)
            logs.append(append_log(
                db, task.id, "Assignment",
                f"Auto-assigned to {name} (Current Workload: {chosen.workload})",
            ))
        else:
            logs.append(append_log(
                db, task.id, "Assignment", "No members available in team. Task unassigned."
            ))
        refresh_workloads(db)

    logger.info(
        "Created task %s in team %s assigned to %s",
        task.id, team.id, task.assigned_member_id,
    )
    return task, logs


def _display_name(db: sqlite3.Connection, user_id: int) -> str:
    user = users_mod.get_user(db, user_id)
    return user.name if user else f"User {user_id}"
