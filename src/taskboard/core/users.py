"""User management: creation, login lookup and signup merge."""

import logging
import sqlite3
from datetime import datetime

from taskboard.core import teams as teams_mod
from taskboard.core.errors import NotFoundError, ValidationError
from taskboard.core.locking import atomic
from taskboard.db.models import ROLES, User

logger = logging.getLogger(__name__)

AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"


def default_avatar(name: str) -> str:
    """Build the default avatar URI for a display name."""
    return AVATAR_URL.format(seed=name.replace(" ", "", 1))


def create_user(
    db: sqlite3.Connection,
    name: str,
    email: str,
    role: str = "member",
    avatar: str | None = None,
) -> User:
    """Create a new user."""
    name = name.strip()
    email = email.strip().lower()
    if not name:
        raise ValidationError("User name is required")
    if "@" not in email:
        raise ValidationError(f"Invalid email: {email!r}")
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role!r} (expected one of {', '.join(ROLES)})")
    if get_user_by_email(db, email):
        raise ValidationError(f"Email already registered: {email}")

    with atomic(db):
        cur = db.execute(
            "INSERT INTO users (name, email, role, avatar) VALUES (?, ?, ?, ?)",
            (name, email, role, avatar or default_avatar(name)),
        )
    return get_user(db, cur.lastrowid)


def get_user(db: sqlite3.Connection, user_id: int) -> User | None:
    """Get a user by ID."""
    row = db.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if not row:
        return None
    return _row_to_user(row)


def require_user(db: sqlite3.Connection, user_id: int) -> User:
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError(f"User not found: {user_id}")
    return user


def get_user_by_email(db: sqlite3.Connection, email: str) -> User | None:
    row = db.execute(
        "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
    ).fetchone()
    if not row:
        return None
    return _row_to_user(row)


def list_users(db: sqlite3.Connection) -> list[User]:
    """List all users in creation order."""
    rows = db.execute("SELECT * FROM users ORDER BY id ASC").fetchall()
    return [_row_to_user(r) for r in rows]


def login(db: sqlite3.Connection, email: str) -> User:
    """Resolve a login email to its user."""
    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError(f"No user registered with email: {email}")
    return user


def signup(
    db: sqlite3.Connection,
    name: str,
    email: str,
    role: str = "member",
    team_id: int | None = None,
) -> User:
    """Register a user, or merge into an existing one with the same email.

    An existing user keeps its identity but has its role corrected to the
    requested one. When a team is given, a team lead becomes that team's
    lead, and the user joins the team unless already a member.
    """
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role!r} (expected one of {', '.join(ROLES)})")
    if team_id is not None:
        teams_mod.require_team(db, team_id)

    with atomic(db):
        user = get_user_by_email(db, email)
        if user is None:
            user = create_user(db, name, email, role)
        elif user.role != role:
            logger.info("Correcting role of %s from %s to %s", user.email, user.role, role)
            db.execute("UPDATE users SET role = ? WHERE id = ?", (role, user.id))
            user = get_user(db, user.id)

        if team_id is not None:
            if role == "team_lead":
                teams_mod.update_team(db, team_id, lead_id=user.id)
            teams_mod.add_member(db, team_id, user.id)

    return user


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        role=row["role"],
        avatar=row["avatar"],
        created_at=_parse_dt(row["created_at"]),
    )


def _parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)
