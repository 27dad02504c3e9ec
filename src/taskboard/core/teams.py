"""Team and membership management."""

import json
import sqlite3
from datetime import datetime

from taskboard.core.errors import NotFoundError, ValidationError
from taskboard.core.locking import atomic
from taskboard.db.models import Team, TeamMembership


def create_team(
    db: sqlite3.Connection,
    name: str,
    skills: list[str] | None = None,
) -> Team:
    """Create a new team with no lead."""
    name = name.strip()
    if not name:
        raise ValidationError("Team name is required")

    with atomic(db):
        cur = db.execute(
            "INSERT INTO teams (name, skills) VALUES (?, ?)",
            (name, json.dumps(_clean_skills(skills or []))),
        )
    return get_team(db, cur.lastrowid)


def get_team(db: sqlite3.Connection, team_id: int) -> Team | None:
    """Get a team by ID."""
    row = db.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
    if not row:
        return None
    return _row_to_team(row)


def require_team(db: sqlite3.Connection, team_id: int) -> Team:
    team = get_team(db, team_id)
    if not team:
        raise NotFoundError(f"Team not found: {team_id}")
    return team


def list_teams(db: sqlite3.Connection) -> list[Team]:
    """List all teams in canonical (creation) order."""
    rows = db.execute("SELECT * FROM teams ORDER BY id ASC").fetchall()
    return [_row_to_team(r) for r in rows]


def update_team(
    db: sqlite3.Connection,
    team_id: int,
    **kwargs,
) -> Team:
    """Update team fields. Skills and lead change independently.

    A lead_id of 0 or None clears the lead.
    """
    require_team(db, team_id)
    allowed = {"name", "skills", "lead_id"}
    updates = {k: v for k, v in kwargs.items() if k in allowed}
    if "skills" in updates:
        updates["skills"] = json.dumps(_clean_skills(updates["skills"] or []))
    if "lead_id" in updates:
        lead_id = updates["lead_id"] or None
        if lead_id is not None and not db.execute(
            "SELECT 1 FROM users WHERE id = ?", (lead_id,)
        ).fetchone():
            raise NotFoundError(f"User not found: {lead_id}")
        updates["lead_id"] = lead_id
    if "name" in updates and not (updates["name"] or "").strip():
        raise ValidationError("Team name is required")
    if not updates:
        return get_team(db, team_id)

    set_clause = ", ".join(f"{k} = ?" for k in updates)
    values = list(updates.values()) + [team_id]
    with atomic(db):
        db.execute(f"UPDATE teams SET {set_clause} WHERE id = ?", values)
    return get_team(db, team_id)


def add_skill(db: sqlite3.Connection, team_id: int, skill: str) -> Team:
    """Append a skill to a team's vocabulary if it is not already present."""
    team = require_team(db, team_id)
    if skill.strip() in team.skills:
        return team
    return update_team(db, team_id, skills=team.skills + [skill])


def find_team_led_by(db: sqlite3.Connection, user_id: int) -> Team | None:
    row = db.execute(
        "SELECT * FROM teams WHERE lead_id = ? ORDER BY id ASC LIMIT 1", (user_id,)
    ).fetchone()
    if not row:
        return None
    return _row_to_team(row)


# ── Memberships ──────────────────────────────────────────────────────────────


def add_member(db: sqlite3.Connection, team_id: int, member_id: int) -> TeamMembership:
    """Add a user to a team. Returns the existing membership for a duplicate pair."""
    require_team(db, team_id)
    if not db.execute("SELECT 1 FROM users WHERE id = ?", (member_id,)).fetchone():
        raise NotFoundError(f"User not found: {member_id}")

    existing = _get_membership(db, team_id, member_id)
    if existing:
        return existing

    # Imported here to avoid a cycle: workload reads tasks, tasks read teams.
    from taskboard.core.workload import refresh_workloads

    with atomic(db):
        db.execute(
            "INSERT INTO team_members (team_id, member_id) VALUES (?, ?)",
            (team_id, member_id),
        )
        refresh_workloads(db)
    return _get_membership(db, team_id, member_id)


def list_memberships(
    db: sqlite3.Connection,
    team_id: int | None = None,
) -> list[TeamMembership]:
    """List memberships in insertion order, optionally for one team."""
    if team_id is not None:
        rows = db.execute(
            "SELECT * FROM team_members WHERE team_id = ? ORDER BY id ASC", (team_id,)
        ).fetchall()
    else:
        rows = db.execute("SELECT * FROM team_members ORDER BY id ASC").fetchall()
    return [_row_to_membership(r) for r in rows]


def _get_membership(
    db: sqlite3.Connection, team_id: int, member_id: int
) -> TeamMembership | None:
    row = db.execute(
        "SELECT * FROM team_members WHERE team_id = ? AND member_id = ?",
        (team_id, member_id),
    ).fetchone()
    if not row:
        return None
    return _row_to_membership(row)


def _clean_skills(skills: list[str]) -> list[str]:
    cleaned = []
    for s in skills:
        s = s.strip()
        if s and s not in cleaned:
            cleaned.append(s)
    return cleaned


def _row_to_team(row: sqlite3.Row) -> Team:
    return Team(
        id=row["id"],
        name=row["name"],
        skills=json.loads(row["skills"] or "[]"),
        lead_id=row["lead_id"],
        created_at=_parse_dt(row["created_at"]),
    )


def _row_to_membership(row: sqlite3.Row) -> TeamMembership:
    return TeamMembership(
        id=row["id"],
        team_id=row["team_id"],
        member_id=row["member_id"],
        workload=row["workload"],
        created_at=_parse_dt(row["created_at"]),
    )


def _parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)
