"""MCP server exposing taskboard tools."""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from taskboard.config import get_config
from taskboard.core import assignment as assignment_mod
from taskboard.core import logs as logs_mod
from taskboard.core import rebalance as rebalance_mod
from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.errors import TaskboardError
from taskboard.core.oracles import ClassificationOracle, HealthOracle, build_oracles
from taskboard.db.engine import init_db


@dataclass
class AppContext:
    db: sqlite3.Connection
    config: object
    classifier: ClassificationOracle
    health: HealthOracle


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Initialize DB connection and oracles on startup, close on shutdown."""
    config = get_config()
    db = init_db(config.db_path)
    classifier, health = build_oracles(config)

    try:
        yield AppContext(db=db, config=config, classifier=classifier, health=health)
    finally:
        db.close()


mcp = FastMCP("taskboard", lifespan=app_lifespan)


def _ctx(ctx: Context) -> AppContext:
    """Extract AppContext from MCP Context."""
    return ctx.request_context.lifespan_context


# ── Task Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def create_task(
    ctx: Context,
    title: str,
    deadline: str,
    description: str = "",
) -> dict:
    """Create a task. The assignment agents pick its team and the least-loaded member.

    Deadline format: YYYY-MM-DD.
    """
    app = _ctx(ctx)
    try:
        task, logs = assignment_mod.create_task(app.db, title, description, deadline, app.classifier)
    except TaskboardError as e:
        return {"error": str(e)}
    result = _task_to_dict(task)
    result["logs"] = [_log_to_dict(entry) for entry in logs]
    return result


@mcp.tool()
def list_tasks(
    ctx: Context,
    user_id: int | None = None,
    status: str | None = None,
) -> list[dict]:
    """List tasks, optionally only those visible to a user and/or with a status (Pending, InProgress, Completed)."""
    app = _ctx(ctx)
    if user_id is not None:
        user = users_mod.get_user(app.db, user_id)
        if not user:
            return [{"error": f"User not found: {user_id}"}]
        tasks = tasks_mod.visible_tasks(app.db, user)
    else:
        tasks = tasks_mod.list_tasks(app.db)
    if status:
        tasks = [t for t in tasks if t.status == status]
    return [_task_to_dict(t) for t in tasks]


@mcp.tool()
def get_task(ctx: Context, task_id: int) -> dict:
    """Get a task with its agent log history (newest first)."""
    app = _ctx(ctx)
    task = tasks_mod.get_task(app.db, task_id)
    if not task:
        return {"error": f"Task not found: {task_id}"}
    result = _task_to_dict(task)
    result["logs"] = [_log_to_dict(entry) for entry in logs_mod.list_logs(app.db, task_id=task_id)]
    return result


@mcp.tool()
def update_progress(ctx: Context, task_id: int, progress: int) -> dict:
    """Set a task's progress from 0 to 100. Status follows: 0 Pending, 1-99 InProgress, 100 Completed."""
    app = _ctx(ctx)
    try:
        task = tasks_mod.update_progress(app.db, task_id, progress)
    except TaskboardError as e:
        return {"error": str(e)}
    return _task_to_dict(task)


@mcp.tool()
def run_health_check(ctx: Context) -> dict:
    """Scan open tasks, flag the ones at risk and move them to teammates with lower workload."""
    app = _ctx(ctx)
    try:
        result = rebalance_mod.run_health_check(app.db, app.health)
    except TaskboardError as e:
        return {"error": str(e)}
    return {
        "scanned": result.scanned,
        "flagged": [_task_to_dict(t) for t in result.flagged],
        "reassigned": [_task_to_dict(t) for t in result.reassigned],
        "logs": [_log_to_dict(entry) for entry in result.logs],
    }


@mcp.tool()
def board_summary(ctx: Context, user_id: int | None = None) -> dict:
    """Task counts per status, overall or for what one user can see."""
    app = _ctx(ctx)
    if user_id is not None:
        user = users_mod.get_user(app.db, user_id)
        if not user:
            return {"error": f"User not found: {user_id}"}
        tasks = tasks_mod.visible_tasks(app.db, user)
    else:
        tasks = tasks_mod.list_tasks(app.db)
    return tasks_mod.task_summary(tasks)


# ── Team Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def list_teams(ctx: Context) -> list[dict]:
    """List teams with their skills, lead and member workloads."""
    app = _ctx(ctx)
    result = []
    for team in teams_mod.list_teams(app.db):
        td = _team_to_dict(team)
        td["members"] = [
            {"member_id": m.member_id, "workload": m.workload}
            for m in teams_mod.list_memberships(app.db, team.id)
        ]
        result.append(td)
    return result


@mcp.tool()
def create_team(ctx: Context, name: str, skills: list[str] | None = None) -> dict:
    """Create a team. Skills are the vocabulary the classification agent matches tasks against."""
    app = _ctx(ctx)
    try:
        team = teams_mod.create_team(app.db, name, skills)
    except TaskboardError as e:
        return {"error": str(e)}
    return _team_to_dict(team)


@mcp.tool()
def add_team_skill(ctx: Context, team_id: int, skill: str) -> dict:
    """Add a skill to a team."""
    app = _ctx(ctx)
    try:
        team = teams_mod.add_skill(app.db, team_id, skill)
    except TaskboardError as e:
        return {"error": str(e)}
    return _team_to_dict(team)


@mcp.tool()
def add_team_member(ctx: Context, team_id: int, user_id: int) -> dict:
    """Add a user to a team."""
    app = _ctx(ctx)
    try:
        m = teams_mod.add_member(app.db, team_id, user_id)
    except TaskboardError as e:
        return {"error": str(e)}
    return {"id": m.id, "team_id": m.team_id, "member_id": m.member_id, "workload": m.workload}


# ── User Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def list_users(ctx: Context) -> list[dict]:
    """List users and their roles."""
    app = _ctx(ctx)
    return [
        {"id": u.id, "name": u.name, "email": u.email, "role": u.role}
        for u in users_mod.list_users(app.db)
    ]


@mcp.tool()
def signup(
    ctx: Context,
    name: str,
    email: str,
    role: str = "member",
    team_id: int | None = None,
) -> dict:
    """Register a user (admin, team_lead or member), optionally joining a team."""
    app = _ctx(ctx)
    try:
        user = users_mod.signup(app.db, name, email, role, team_id=team_id)
    except TaskboardError as e:
        return {"error": str(e)}
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


# ── Log Tools ─────────────────────────────────────────────────────────────────


@mcp.tool()
def list_logs(ctx: Context, task_id: int | None = None, limit: int = 50) -> list[dict]:
    """Agent activity log, newest first."""
    app = _ctx(ctx)
    return [_log_to_dict(entry) for entry in logs_mod.list_logs(app.db, task_id=task_id, limit=limit)]


# ── Helpers ───────────────────────────────────────────────────────────────────


def _task_to_dict(task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "progress": task.progress,
        "assigned_team_id": task.assigned_team_id,
        "assigned_member_id": task.assigned_member_id,
        "deadline": task.deadline.isoformat(),
        "overload_flag": task.overload_flag,
    }


def _team_to_dict(team) -> dict:
    return {
        "id": team.id,
        "name": team.name,
        "skills": team.skills,
        "lead_id": team.lead_id,
    }


def _log_to_dict(entry) -> dict:
    return {
        "task_id": entry.task_id,
        "agent": entry.agent_name,
        "action": entry.action,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
    }
