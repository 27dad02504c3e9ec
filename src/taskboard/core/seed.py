"""Default teams and users for a fresh board."""

import sqlite3

from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod

DEFAULT_TEAMS = [
    ("Frontend", ["React", "Vue", "CSS", "Tailwind", "UI/UX"]),
    ("Backend", ["Node.js", "Python", "FastAPI", "SQL", "Microservices"]),
    ("Cloud", ["AWS", "Docker", "Kubernetes", "Terraform", "CI/CD"]),
    ("Cybersecurity", ["Penetration Testing", "Auditing", "SecOps", "Compliance"]),
    ("HR", ["Recruiting", "Culture", "Payroll", "Onboarding"]),
]

# (name, email, role, team led and joined)
DEFAULT_USERS = [
    ("Alice Admin", "admin@corp.com", "admin", None),
    ("Bob Frontend Lead", "bob@corp.com", "team_lead", "Frontend"),
    ("Charlie Backend Lead", "charlie@corp.com", "team_lead", "Backend"),
]


def seed_demo_data(db: sqlite3.Connection) -> dict:
    """Create the default teams and users. Safe to run more than once."""
    created = {"teams": 0, "users": 0}

    teams_by_name = {t.name: t for t in teams_mod.list_teams(db)}
    for name, skills in DEFAULT_TEAMS:
        if name not in teams_by_name:
            teams_by_name[name] = teams_mod.create_team(db, name, skills)
            created["teams"] += 1

    for name, email, role, team_name in DEFAULT_USERS:
        if not users_mod.get_user_by_email(db, email):
            created["users"] += 1
        team_id = teams_by_name[team_name].id if team_name else None
        users_mod.signup(db, name, email, role, team_id=team_id)

    return created
