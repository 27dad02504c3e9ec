"""Web dashboard API for taskboard."""

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

from taskboard.config import get_config
from taskboard.core import assignment as assignment_mod
from taskboard.core import logs as logs_mod
from taskboard.core import rebalance as rebalance_mod
from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.errors import NotFoundError, PersistenceError, ValidationError
from taskboard.core.oracles import ClassificationOracle, HealthOracle, build_oracles
from taskboard.db.engine import init_db
from taskboard.web.dashboard import get_dashboard_html


def _get_db():
    config = get_config()
    return init_db(config.db_path)


def _error(e: Exception) -> JSONResponse:
    if isinstance(e, NotFoundError):
        return JSONResponse({"error": str(e)}, status_code=404)
    if isinstance(e, ValidationError):
        return JSONResponse({"error": str(e)}, status_code=400)
    return JSONResponse({"error": str(e)}, status_code=500)


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _tasks_for(db, request: Request):
    user_id = request.query_params.get("user_id")
    if not user_id:
        return tasks_mod.list_tasks(db)
    try:
        user = users_mod.require_user(db, int(user_id))
    except ValueError:
        raise ValidationError(f"Invalid user_id: {user_id!r}") from None
    return tasks_mod.visible_tasks(db, user)


# ── Handlers ──────────────────────────────────────────────────────────────────


async def index(request: Request):
    return HTMLResponse(get_dashboard_html())


async def api_list_users(request: Request):
    db = _get_db()
    try:
        return JSONResponse([_user_dict(u) for u in users_mod.list_users(db)])
    finally:
        db.close()


async def api_list_teams(request: Request):
    db = _get_db()
    try:
        result = []
        for team in teams_mod.list_teams(db):
            td = _team_dict(team)
            td["members"] = [_membership_dict(m) for m in teams_mod.list_memberships(db, team.id)]
            result.append(td)
        return JSONResponse(result)
    finally:
        db.close()


async def api_list_tasks(request: Request):
    db = _get_db()
    try:
        return JSONResponse([_task_dict(t) for t in _tasks_for(db, request)])
    except (NotFoundError, ValidationError) as e:
        return _error(e)
    finally:
        db.close()


async def api_summary(request: Request):
    db = _get_db()
    try:
        return JSONResponse(tasks_mod.task_summary(_tasks_for(db, request)))
    except (NotFoundError, ValidationError) as e:
        return _error(e)
    finally:
        db.close()


async def api_get_task(request: Request):
    task_id = request.path_params["task_id"]
    db = _get_db()
    try:
        task = tasks_mod.get_task(db, task_id)
        if not task:
            return JSONResponse({"error": "Task not found"}, status_code=404)
        td = _task_dict(task)
        td["logs"] = [_log_dict(entry) for entry in logs_mod.list_logs(db, task_id=task_id)]
        return JSONResponse(td)
    finally:
        db.close()


async def api_create_task(request: Request):
    classifier: ClassificationOracle = request.app.state.classifier
    db = _get_db()
    try:
        body = await _json_body(request)
        # The oracle call may block on the network; keep it off the event loop.
        task, logs = await run_in_threadpool(
            assignment_mod.create_task,
            db,
            str(body.get("title", "")),
            str(body.get("description", "")),
            body.get("deadline", ""),
            classifier,
        )
        td = _task_dict(task)
        td["logs"] = [_log_dict(entry) for entry in logs]
        return JSONResponse(td, status_code=201)
    except (NotFoundError, ValidationError, PersistenceError) as e:
        return _error(e)
    finally:
        db.close()


async def api_update_progress(request: Request):
    task_id = request.path_params["task_id"]
    db = _get_db()
    try:
        body = await _json_body(request)
        task = tasks_mod.update_progress(db, task_id, body.get("progress"))
        return JSONResponse(_task_dict(task))
    except (NotFoundError, ValidationError, PersistenceError) as e:
        return _error(e)
    finally:
        db.close()


async def api_health_check(request: Request):
    health: HealthOracle = request.app.state.health
    db = _get_db()
    try:
        result = await run_in_threadpool(rebalance_mod.run_health_check, db, health)
        return JSONResponse({
            "scanned": result.scanned,
            "cancelled": result.cancelled,
            "tasks": [_task_dict(t) for t in result.tasks],
            "logs": [_log_dict(entry) for entry in result.logs],
        })
    except PersistenceError as e:
        return _error(e)
    finally:
        db.close()


async def api_list_logs(request: Request):
    task_id = request.query_params.get("task_id")
    db = _get_db()
    try:
        logs = logs_mod.list_logs(db, task_id=int(task_id) if task_id else None, limit=200)
        return JSONResponse([_log_dict(entry) for entry in logs])
    except ValueError:
        return JSONResponse({"error": f"Invalid task_id: {task_id!r}"}, status_code=400)
    finally:
        db.close()


# ── Serialization ─────────────────────────────────────────────────────────────


def _user_dict(u) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role,
        "avatar": u.avatar,
    }


def _team_dict(t) -> dict:
    return {
        "id": t.id,
        "name": t.name,
        "skills": t.skills,
        "lead_id": t.lead_id,
    }


def _membership_dict(m) -> dict:
    return {
        "id": m.id,
        "team_id": m.team_id,
        "member_id": m.member_id,
        "workload": m.workload,
    }


def _task_dict(t) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "status": t.status,
        "progress": t.progress,
        "assigned_team_id": t.assigned_team_id,
        "assigned_member_id": t.assigned_member_id,
        "deadline": t.deadline.isoformat(),
        "overload_flag": t.overload_flag,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }


def _log_dict(entry) -> dict:
    return {
        "id": entry.id,
        "task_id": entry.task_id,
        "agent_name": entry.agent_name,
        "action": entry.action,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
    }


# ── App ───────────────────────────────────────────────────────────────────────


def create_app(
    classifier: ClassificationOracle | None = None,
    health: HealthOracle | None = None,
) -> Starlette:
    if classifier is None or health is None:
        default_classifier, default_health = build_oracles(get_config())
        classifier = classifier or default_classifier
        health = health or default_health

    routes = [
        Route("/", index),
        Route("/api/users", api_list_users),
        Route("/api/teams", api_list_teams),
        Route("/api/tasks", api_list_tasks, methods=["GET"]),
        Route("/api/tasks", api_create_task, methods=["POST"]),
        Route("/api/tasks/{task_id:int}", api_get_task),
        Route("/api/tasks/{task_id:int}/progress", api_update_progress, methods=["POST"]),
        Route("/api/health-check", api_health_check, methods=["POST"]),
        Route("/api/logs", api_list_logs),
        Route("/api/summary", api_summary),
    ]
    app = Starlette(routes=routes)
    app.state.classifier = classifier
    app.state.health = health
    return app


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
