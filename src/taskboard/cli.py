"""CLI entry point for taskboard."""

import json
import logging
import sys

import click

from taskboard.config import get_config
from taskboard.core import assignment as assignment_mod
from taskboard.core import logs as logs_mod
from taskboard.core import rebalance as rebalance_mod
from taskboard.core import seed as seed_mod
from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.errors import TaskboardError
from taskboard.core.oracles import build_oracles
from taskboard.db.engine import get_db
from taskboard.db.models import ROLES, STATUSES
from taskboard.integrations import slack as slack_mod


def _get_db():
    config = get_config()
    return get_db(config.db_path)


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine decisions to stderr")
def main(verbose):
    """tb - Taskboard team task CLI"""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command("seed")
def seed_command():
    """Create the default teams and users."""
    with _get_db() as db:
        created = seed_mod.seed_demo_data(db)
        click.echo(f"Seeded {created['teams']} teams and {created['users']} users.")


# ── User Commands ─────────────────────────────────────────────────────────────


@main.group("user")
def user_group():
    """Manage users."""
    pass


@user_group.command("add")
@click.argument("name")
@click.argument("email")
@click.option("--role", type=click.Choice(ROLES), default="member", help="User role")
def user_add(name, email, role):
    """Create a new user."""
    with _get_db() as db:
        try:
            user = users_mod.create_user(db, name, email, role)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Created user: {user.id} ({user.name}, {user.role})")


@user_group.command("signup")
@click.argument("name")
@click.argument("email")
@click.option("--role", type=click.Choice(ROLES), default="member", help="User role")
@click.option("--team", "team_id", type=int, default=None, help="Team ID to join")
def user_signup(name, email, role, team_id):
    """Register a user, or update the role of an existing one, and join a team."""
    with _get_db() as db:
        try:
            user = users_mod.signup(db, name, email, role, team_id=team_id)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Signed up: {user.id} ({user.name}, {user.role})")
        if team_id is not None:
            click.echo(f"  Team: {team_id}")


@user_group.command("login")
@click.argument("email")
def user_login(email):
    """Look up the user for an email."""
    with _get_db() as db:
        try:
            user = users_mod.login(db, email)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Logged in as {user.name} ({user.role})")


@user_group.command("list")
def user_list():
    """List users."""
    with _get_db() as db:
        users = users_mod.list_users(db)
        if not users:
            click.echo("No users found.")
            return
        for u in users:
            click.echo(f"  {u.id}: {u.name} <{u.email}> [{u.role}]")


# ── Team Commands ─────────────────────────────────────────────────────────────


@main.group("team")
def team_group():
    """Manage teams and memberships."""
    pass


@team_group.command("create")
@click.argument("name")
@click.option("--skills", default="", help="Comma-separated skills")
def team_create(name, skills):
    """Create a new team."""
    skill_list = [s.strip() for s in skills.split(",") if s.strip()]
    with _get_db() as db:
        try:
            team = teams_mod.create_team(db, name, skill_list)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Created team: {team.id} ({team.name})")
        if team.skills:
            click.echo(f"  Skills: {', '.join(team.skills)}")


@team_group.command("list")
def team_list():
    """List teams with member workloads."""
    with _get_db() as db:
        teams = teams_mod.list_teams(db)
        if not teams:
            click.echo("No teams found.")
            return
        names = {u.id: u.name for u in users_mod.list_users(db)}
        for team in teams:
            lead = names.get(team.lead_id, "none") if team.lead_id else "none"
            click.echo(f"  {team.id}: {team.name} (lead: {lead})")
            if team.skills:
                click.echo(f"     Skills: {', '.join(team.skills)}")
            for m in teams_mod.list_memberships(db, team.id):
                click.echo(f"     - {names.get(m.member_id, m.member_id)}: workload {m.workload}")


@team_group.command("add-member")
@click.argument("team_id", type=int)
@click.argument("user_id", type=int)
def team_add_member(team_id, user_id):
    """Add a user to a team."""
    with _get_db() as db:
        try:
            m = teams_mod.add_member(db, team_id, user_id)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"User {m.member_id} is a member of team {m.team_id} (workload {m.workload})")


@team_group.command("set-lead")
@click.argument("team_id", type=int)
@click.argument("user_id", type=int)
def team_set_lead(team_id, user_id):
    """Set a team's lead (0 clears it)."""
    with _get_db() as db:
        try:
            team = teams_mod.update_team(db, team_id, lead_id=user_id)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Team {team.id} lead: {team.lead_id or 'none'}")


@team_group.command("add-skill")
@click.argument("team_id", type=int)
@click.argument("skill")
def team_add_skill(team_id, skill):
    """Add a skill to a team."""
    with _get_db() as db:
        try:
            team = teams_mod.add_skill(db, team_id, skill)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Team {team.id} skills: {', '.join(team.skills)}")


# ── Task Commands ─────────────────────────────────────────────────────────────


@main.group("task")
def task_group():
    """Manage tasks."""
    pass


@task_group.command("add")
@click.argument("title")
@click.option("--description", "-d", default="", help="Task description")
@click.option("--deadline", required=True, help="Deadline date (YYYY-MM-DD)")
def task_add(title, description, deadline):
    """Create a task and let the agents route it."""
    classifier, _ = build_oracles(get_config())
    with _get_db() as db:
        try:
            task, logs = assignment_mod.create_task(db, title, description, deadline, classifier)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Created task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Team: {task.assigned_team_id}")
        click.echo(f"  Assignee: {task.assigned_member_id or 'unassigned'}")
        click.echo(f"  Deadline: {task.deadline.isoformat()}")
        for log in logs:
            click.echo(f"  [{log.agent_name}] {log.action}")


@task_group.command("list")
@click.option("--as", "as_email", default=None, help="Show only tasks visible to this user")
@click.option("--status", type=click.Choice(STATUSES), default=None, help="Filter by status")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def task_list(as_email, status, json_output):
    """List tasks."""
    with _get_db() as db:
        if as_email:
            try:
                tasks = tasks_mod.visible_tasks(db, users_mod.login(db, as_email))
            except TaskboardError as e:
                _fail(str(e))
        else:
            tasks = tasks_mod.list_tasks(db)
        if status:
            tasks = [t for t in tasks if t.status == status]

        if json_output:
            click.echo(json.dumps([_task_dict(t) for t in tasks], indent=2))
            return

        if not tasks:
            click.echo("No tasks found.")
            return

        status_icons = {
            "Pending": "○",
            "InProgress": "●",
            "Completed": "✓",
        }

        for task in tasks:
            icon = status_icons.get(task.status, "?")
            flag = " [AT RISK]" if task.overload_flag else ""
            who = task.assigned_member_id or "unassigned"
            click.echo(
                f"  {icon} {task.id}: {task.title} ({task.status}, {task.progress}%)"
                f" team={task.assigned_team_id} member={who} due={task.deadline.isoformat()}{flag}"
            )


@task_group.command("show")
@click.argument("task_id", type=int)
def task_show(task_id):
    """Show task details and its agent history."""
    with _get_db() as db:
        task = tasks_mod.get_task(db, task_id)
        if not task:
            _fail(f"Task not found: {task_id}")

        click.echo(f"Task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Status: {task.status} ({task.progress}%)")
        if task.description:
            click.echo(f"  Description: {task.description}")
        click.echo(f"  Team: {task.assigned_team_id}")
        click.echo(f"  Assignee: {task.assigned_member_id or 'unassigned'}")
        click.echo(f"  Deadline: {task.deadline.isoformat()}")
        if task.overload_flag:
            click.echo("  Overload: flagged")
        if task.created_at:
            click.echo(f"  Created: {task.created_at}")

        logs = logs_mod.list_logs(db, task_id=task_id)
        if logs:
            click.echo("  History:")
            for log in logs:
                click.echo(f"    [{log.timestamp}] {log.agent_name}: {log.action}")


@task_group.command("progress")
@click.argument("task_id", type=int)
@click.argument("progress", type=int)
def task_progress(task_id, progress):
    """Set a task's progress (0-100)."""
    with _get_db() as db:
        try:
            task = tasks_mod.update_progress(db, task_id, progress)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Updated {task.id}: {task.progress}% ({task.status})")


# ── Agent Commands ────────────────────────────────────────────────────────────


@main.command("health-check")
@click.option("--notify", default=None, help="Slack channel to post outcomes to")
def health_check(notify):
    """Run the health check: flag at-risk tasks and rebalance them."""
    config = get_config()
    _, health_oracle = build_oracles(config)
    notifier = None
    channel = notify or config.slack_channel
    if channel:
        try:
            notifier = slack_mod.health_notifier(config.slack_bot_token, channel)
        except slack_mod.SlackError as e:
            click.echo(f"Slack notifications disabled: {e}", err=True)

    with _get_db() as db:
        try:
            result = rebalance_mod.run_health_check(db, health_oracle, notifier=notifier)
        except TaskboardError as e:
            _fail(str(e))
        click.echo(f"Scanned {result.scanned} open tasks.")
        if not result.logs:
            click.echo("No new risks found.")
        for log in result.logs:
            click.echo(f"  task {log.task_id}: {log.action}")
        click.echo(f"  Flagged: {len(result.flagged)}  Reassigned: {len(result.reassigned)}")


@main.command("logs")
@click.option("--task", "task_id", type=int, default=None, help="Only logs for this task")
@click.option("--limit", type=int, default=50, help="Maximum entries to show")
def logs_command(task_id, limit):
    """Show the agent activity log, newest first."""
    with _get_db() as db:
        logs = logs_mod.list_logs(db, task_id=task_id, limit=limit)
        if not logs:
            click.echo("No agent activity yet.")
            return
        for log in logs:
            click.echo(f"  [{log.timestamp}] task {log.task_id} {log.agent_name}: {log.action}")


@main.command("summary")
@click.option("--as", "as_email", default=None, help="Summarize tasks visible to this user")
@click.option("--notify", default=None, help="Slack channel to post the summary to")
def summary_command(as_email, notify):
    """Show task counts by status."""
    config = get_config()
    with _get_db() as db:
        if as_email:
            try:
                tasks = tasks_mod.visible_tasks(db, users_mod.login(db, as_email))
            except TaskboardError as e:
                _fail(str(e))
        else:
            tasks = tasks_mod.list_tasks(db)
        summary = tasks_mod.task_summary(tasks)

    counts = summary["counts"]
    click.echo(
        f"Pending: {counts['Pending']}  InProgress: {counts['InProgress']}  "
        f"Completed: {counts['Completed']}  Flagged: {summary['flagged']}"
    )
    click.echo(f"Progress: {summary['completed_pct']}% of {summary['total']}")

    if notify:
        try:
            blocks = slack_mod.format_board_summary(summary)
            result = slack_mod.send_message(config.slack_bot_token, notify, "Board status", blocks)
            click.echo(f"Summary posted to {result.channel}")
        except slack_mod.SlackError as e:
            _fail(str(e))


# ── Dashboard Command ────────────────────────────────────────────────────────


@main.command("ui")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to listen on")
@click.option("--open/--no-open", default=True, help="Open browser automatically")
def ui_command(host, port, open):
    """Launch the web dashboard."""
    import webbrowser

    from taskboard.web.app import run_server

    url = f"http://{host}:{port}"
    click.echo(f"Starting dashboard at {url}")
    if open:
        webbrowser.open(url)
    run_server(host=host, port=port)


# ── MCP Server Command ───────────────────────────────────────────────────────


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from taskboard.mcp.server import mcp
    from taskboard.mcp import prompts  # noqa: F401 - registers prompts

    mcp.run(transport="stdio")


# ── Helpers ───────────────────────────────────────────────────────────────────


def _task_dict(task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "progress": task.progress,
        "team": task.assigned_team_id,
        "member": task.assigned_member_id,
        "deadline": task.deadline.isoformat(),
        "overload_flag": task.overload_flag,
    }


if __name__ == "__main__":
    main()
