"""Tests for user, team and membership management."""

import tempfile
from pathlib import Path

import pytest

from taskboard.core import seed as seed_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.errors import NotFoundError, ValidationError
from taskboard.db.engine import init_db


@pytest.fixture
def db():
    """Create a temporary SQLite database for testing."""
    with tempfile.TemporaryDirectory() as tmp:
        conn = init_db(Path(tmp) / "test.db")
        yield conn
        conn.close()


class TestUsers:
    def test_create_user(self, db):
        user = users_mod.create_user(db, "Alice Admin", "Admin@Corp.com", "admin")
        assert user.email == "admin@corp.com"
        assert user.role == "admin"
        assert user.avatar == "https://api.dicebear.com/7.x/avataaars/svg?seed=AliceAdmin"

    def test_duplicate_email_rejected(self, db):
        users_mod.create_user(db, "Alice", "alice@corp.com")
        with pytest.raises(ValidationError, match="already registered"):
            users_mod.create_user(db, "Alice Two", "alice@corp.com")

    def test_invalid_role(self, db):
        with pytest.raises(ValidationError, match="Invalid role"):
            users_mod.create_user(db, "Root", "root@corp.com", "superuser")

    def test_login(self, db):
        created = users_mod.create_user(db, "Bob", "bob@corp.com")
        assert users_mod.login(db, "bob@corp.com").id == created.id

    def test_login_unknown(self, db):
        with pytest.raises(NotFoundError):
            users_mod.login(db, "ghost@corp.com")

    def test_list_in_creation_order(self, db):
        users_mod.create_user(db, "Zed", "zed@corp.com")
        users_mod.create_user(db, "Amy", "amy@corp.com")
        assert [u.name for u in users_mod.list_users(db)] == ["Zed", "Amy"]


class TestSignup:
    def test_new_member_joins_team(self, db):
        team = teams_mod.create_team(db, "Backend", ["Python"])
        user = users_mod.signup(db, "Mia", "mia@corp.com", "member", team_id=team.id)
        memberships = teams_mod.list_memberships(db, team.id)
        assert [m.member_id for m in memberships] == [user.id]
        assert teams_mod.get_team(db, team.id).lead_id is None

    def test_team_lead_becomes_lead(self, db):
        team = teams_mod.create_team(db, "Frontend", ["React"])
        lead = users_mod.signup(db, "Bob", "bob@corp.com", "team_lead", team_id=team.id)
        assert teams_mod.get_team(db, team.id).lead_id == lead.id
        assert teams_mod.list_memberships(db, team.id)[0].member_id == lead.id

    def test_existing_email_merges_and_corrects_role(self, db):
        original = users_mod.create_user(db, "Bob", "bob@corp.com", "member")
        merged = users_mod.signup(db, "Robert", "bob@corp.com", "team_lead")
        assert merged.id == original.id
        assert merged.name == "Bob"
        assert merged.role == "team_lead"
        assert len(users_mod.list_users(db)) == 1

    def test_repeat_signup_does_not_duplicate_membership(self, db):
        team = teams_mod.create_team(db, "Cloud")
        users_mod.signup(db, "Eve", "eve@corp.com", "member", team_id=team.id)
        users_mod.signup(db, "Eve", "eve@corp.com", "member", team_id=team.id)
        assert len(teams_mod.list_memberships(db, team.id)) == 1

    def test_unknown_team(self, db):
        with pytest.raises(NotFoundError):
            users_mod.signup(db, "Eve", "eve@corp.com", "member", team_id=99)
        assert users_mod.list_users(db) == []


class TestTeams:
    def test_create_team_cleans_skills(self, db):
        team = teams_mod.create_team(db, "Cloud", [" AWS", "Docker", "", "AWS"])
        assert team.skills == ["AWS", "Docker"]
        assert team.lead_id is None

    def test_empty_name_rejected(self, db):
        with pytest.raises(ValidationError):
            teams_mod.create_team(db, "  ")

    def test_skills_and_lead_update_independently(self, db):
        team = teams_mod.create_team(db, "Cloud", ["AWS"])
        lead = users_mod.create_user(db, "Lee", "lee@corp.com", "team_lead")
        teams_mod.update_team(db, team.id, lead_id=lead.id)
        updated = teams_mod.add_skill(db, team.id, "Terraform")
        assert updated.skills == ["AWS", "Terraform"]
        assert updated.lead_id == lead.id

        cleared = teams_mod.update_team(db, team.id, lead_id=0)
        assert cleared.lead_id is None
        assert cleared.skills == ["AWS", "Terraform"]

    def test_add_existing_skill_is_noop(self, db):
        team = teams_mod.create_team(db, "Cloud", ["AWS"])
        assert teams_mod.add_skill(db, team.id, "AWS").skills == ["AWS"]

    def test_update_unknown_team(self, db):
        with pytest.raises(NotFoundError):
            teams_mod.update_team(db, 42, name="Ghost")

    def test_unknown_lead(self, db):
        team = teams_mod.create_team(db, "Cloud")
        with pytest.raises(NotFoundError):
            teams_mod.update_team(db, team.id, lead_id=77)

    def test_canonical_order(self, db):
        for name in ("HR", "Backend", "Cloud"):
            teams_mod.create_team(db, name)
        assert [t.name for t in teams_mod.list_teams(db)] == ["HR", "Backend", "Cloud"]


class TestMemberships:
    def test_duplicate_pair_returns_existing(self, db):
        team = teams_mod.create_team(db, "HR")
        user = users_mod.create_user(db, "Hal", "hal@corp.com")
        first = teams_mod.add_member(db, team.id, user.id)
        second = teams_mod.add_member(db, team.id, user.id)
        assert first.id == second.id
        assert len(teams_mod.list_memberships(db)) == 1

    def test_unknown_team(self, db):
        user = users_mod.create_user(db, "Hal", "hal@corp.com")
        with pytest.raises(NotFoundError):
            teams_mod.add_member(db, 5, user.id)

    def test_unknown_user(self, db):
        team = teams_mod.create_team(db, "HR")
        with pytest.raises(NotFoundError):
            teams_mod.add_member(db, team.id, 5)

    def test_insertion_order(self, db):
        team = teams_mod.create_team(db, "HR")
        ids = [users_mod.create_user(db, f"U{i}", f"u{i}@corp.com").id for i in range(3)]
        for uid in reversed(ids):
            teams_mod.add_member(db, team.id, uid)
        assert [m.member_id for m in teams_mod.list_memberships(db, team.id)] == list(reversed(ids))


class TestSeed:
    def test_seed_demo_data(self, db):
        created = seed_mod.seed_demo_data(db)
        assert created == {"teams": 5, "users": 3}

        teams = teams_mod.list_teams(db)
        assert [t.name for t in teams] == ["Frontend", "Backend", "Cloud", "Cybersecurity", "HR"]
        bob = users_mod.get_user_by_email(db, "bob@corp.com")
        assert teams[0].lead_id == bob.id
        assert [m.member_id for m in teams_mod.list_memberships(db, teams[0].id)] == [bob.id]
        assert teams[2].lead_id is None

    def test_seed_is_idempotent(self, db):
        seed_mod.seed_demo_data(db)
        again = seed_mod.seed_demo_data(db)
        assert again == {"teams": 0, "users": 0}
        assert len(teams_mod.list_teams(db)) == 5
        assert len(teams_mod.list_memberships(db)) == 2
