"""Tests for the health check and rebalancing engine."""

import tempfile
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from taskboard.core import logs as logs_mod
from taskboard.core import rebalance as rebalance_mod
from taskboard.core import tasks as tasks_mod
from taskboard.core import teams as teams_mod
from taskboard.core import users as users_mod
from taskboard.core.locking import atomic
from taskboard.core.oracles import (
    FallbackHealthOracle,
    HealthAssessment,
    HealthOracle,
    OracleUnavailable,
)
from taskboard.core.workload import refresh_workloads
from taskboard.db.engine import init_db
from taskboard.db.models import TeamMembership

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
TOMORROW = date(2026, 10, 18)
FAR = date(2026, 12, 31)


class AlwaysAtRisk(HealthOracle):
    def __init__(self):
        self.calls = []

    def assess(self, title, progress, days_until_deadline):
        self.calls.append((title, progress, days_until_deadline))
        return HealthAssessment(flag_overload=True, suggestion="Move it")


class DownHealthOracle(HealthOracle):
    def assess(self, title, progress, days_until_deadline):
        raise OracleUnavailable("connection refused")


@pytest.fixture
def db():
    """Team 1 (Frontend) with Ann, Ben and Cat; team 2 (Solo) with Dan only."""
    with tempfile.TemporaryDirectory() as tmp:
        conn = init_db(Path(tmp) / "test.db")
        frontend = teams_mod.create_team(conn, "Frontend", ["React"])
        solo = teams_mod.create_team(conn, "Solo", ["Everything"])
        for name in ("Ann", "Ben", "Cat"):
            user = users_mod.create_user(conn, f"{name} Dev", f"{name.lower()}@corp.com")
            teams_mod.add_member(conn, frontend.id, user.id)
        dan = users_mod.create_user(conn, "Dan Solo", "dan@corp.com")
        teams_mod.add_member(conn, solo.id, dan.id)
        yield conn
        conn.close()


def _make_task(db, title, member_id, deadline=FAR, progress=0, team_id=1):
    with atomic(db):
        task = tasks_mod.insert_task(db, title, "", deadline, team_id, member_id)
        if progress:
            task = tasks_mod.update_task(db, task.id, progress=progress)
        refresh_workloads(db)
    return task


def _workloads(db, team_id=1):
    return [m.workload for m in teams_mod.list_memberships(db, team_id)]


class TestOverloadAndReassignment:
    def test_flags_and_reassigns(self, db):
        at_risk = _make_task(db, "Ship checkout", member_id=1, deadline=TOMORROW, progress=10)
        _make_task(db, "Ann backlog", member_id=1)
        _make_task(db, "Ben backlog", member_id=2)
        _make_task(db, "Cat backlog 1", member_id=3)
        _make_task(db, "Cat backlog 2", member_id=3)
        assert _workloads(db) == [2, 1, 2]

        result = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)

        task = tasks_mod.get_task(db, at_risk.id)
        assert task.assigned_member_id == 2
        assert task.overload_flag is False
        assert [entry.action for entry in result.logs] == [
            "FLAGGED: Deadline imminent with low progress.",
            "Re-assigned task to Ben Dev to relieve load.",
        ]
        assert all(entry.agent_name == "Reassignment" for entry in result.logs)
        assert [t.id for t in result.reassigned] == [at_risk.id]
        assert _workloads(db) == [1, 2, 2]

    def test_logs_recorded_in_order(self, db):
        at_risk = _make_task(db, "Ship checkout", member_id=1, deadline=TOMORROW, progress=10)
        _make_task(db, "Ann backlog", member_id=1)
        rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)

        stored = logs_mod.list_logs(db, task_id=at_risk.id)
        # newest first
        assert stored[0].action.startswith("Re-assigned")
        assert stored[1].action.startswith("FLAGGED")

    def test_first_lower_teammate_wins_not_minimum(self, db):
        at_risk = _make_task(db, "Urgent", member_id=1, deadline=TOMORROW)
        for i in range(2):
            _make_task(db, f"Ann {i}", member_id=1)
        _make_task(db, "Ben 1", member_id=2)
        _make_task(db, "Ben 2", member_id=2)
        assert _workloads(db) == [3, 2, 0]

        rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        assert tasks_mod.get_task(db, at_risk.id).assigned_member_id == 2

    def test_equal_workload_is_not_relief(self, db):
        at_risk = _make_task(db, "Urgent", member_id=1, deadline=TOMORROW)
        _make_task(db, "Ben", member_id=2)
        _make_task(db, "Cat", member_id=3)

        result = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        task = tasks_mod.get_task(db, at_risk.id)
        assert task.overload_flag is True
        assert task.assigned_member_id == 1
        assert len(result.logs) == 1

    def test_sole_member_stays_flagged(self, db):
        at_risk = _make_task(db, "Solo job", member_id=4, team_id=2, deadline=TOMORROW)

        result = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        task = tasks_mod.get_task(db, at_risk.id)
        assert task.overload_flag is True
        assert task.assigned_member_id == 4
        assert [entry.action for entry in result.logs] == [
            "FLAGGED: Deadline imminent with low progress."
        ]
        assert [t.id for t in result.flagged] == [at_risk.id]

    def test_unassigned_task_stays_flagged(self, db):
        at_risk = _make_task(db, "Nobody", member_id=None, deadline=TOMORROW)
        rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        task = tasks_mod.get_task(db, at_risk.id)
        assert task.overload_flag is True
        assert task.assigned_member_id is None

    def test_already_flagged_not_logged_again(self, db):
        at_risk = _make_task(db, "Solo job", member_id=4, team_id=2, deadline=TOMORROW)
        rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        second = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)

        assert second.logs == []
        assert second.tasks == []
        assert len(logs_mod.list_logs(db, task_id=at_risk.id)) == 1

    def test_healthy_tasks_untouched(self, db):
        _make_task(db, "Plenty of time", member_id=1, deadline=FAR)
        _make_task(db, "Nearly done", member_id=1, deadline=TOMORROW, progress=80)
        result = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        assert result.scanned == 2
        assert result.logs == []
        assert logs_mod.list_logs(db) == []

    def test_completed_tasks_skipped(self, db):
        done = _make_task(db, "Done", member_id=1, deadline=TOMORROW, progress=100)
        oracle = AlwaysAtRisk()
        result = rebalance_mod.run_health_check(db, oracle, now=NOW)
        assert oracle.calls == []
        assert result.scanned == 0
        assert tasks_mod.get_task(db, done.id).overload_flag is False

    def test_oracle_receives_days_until_deadline(self, db):
        _make_task(db, "Soon", member_id=1, deadline=TOMORROW, progress=30)
        oracle = AlwaysAtRisk()
        rebalance_mod.run_health_check(db, oracle, now=NOW)
        assert oracle.calls == [("Soon", 30, 1)]

    def test_oracle_suggestion_logged(self, db):
        _make_task(db, "Solo job", member_id=4, team_id=2, deadline=FAR)
        result = rebalance_mod.run_health_check(db, AlwaysAtRisk(), now=NOW)
        assert result.logs[0].action == "FLAGGED: Move it"

    def test_reassignment_uses_fresh_workloads(self, db):
        # Both of Ann's urgent tasks can move, but after the first one Ben is no longer lighter.
        first = _make_task(db, "Urgent 1", member_id=1, deadline=TOMORROW)
        second = _make_task(db, "Urgent 2", member_id=1, deadline=TOMORROW)
        _make_task(db, "Ann 3", member_id=1)
        _make_task(db, "Ben 1", member_id=2)
        _make_task(db, "Cat 1", member_id=3)
        _make_task(db, "Cat 2", member_id=3)
        _make_task(db, "Cat 3", member_id=3)
        assert _workloads(db) == [3, 1, 3]

        rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW)
        assert tasks_mod.get_task(db, first.id).assigned_member_id == 2
        assert _workloads(db)[:2] == [2, 2]
        second = tasks_mod.get_task(db, second.id)
        assert second.assigned_member_id == 1
        assert second.overload_flag is True


class TestOracleFailures:
    def test_unavailable_oracle_uses_fallback_rule(self, db):
        at_risk = _make_task(db, "Solo job", member_id=4, team_id=2, deadline=TOMORROW, progress=10)
        healthy = _make_task(db, "Later", member_id=4, team_id=2, deadline=FAR)

        result = rebalance_mod.run_health_check(db, DownHealthOracle(), now=NOW)
        assert result.scanned == 2
        assert tasks_mod.get_task(db, at_risk.id).overload_flag is True
        assert tasks_mod.get_task(db, healthy.id).overload_flag is False

    def test_one_failure_does_not_abort_scan(self, db):
        first = _make_task(db, "First", member_id=4, team_id=2, deadline=FAR)
        second = _make_task(db, "Second", member_id=4, team_id=2, deadline=FAR)
        oracle = MagicMock(spec=HealthOracle)
        oracle.assess.side_effect = [
            RuntimeError("bad payload"),
            HealthAssessment(flag_overload=True, suggestion="Escalate"),
        ]

        result = rebalance_mod.run_health_check(db, oracle, now=NOW)
        assert result.scanned == 2
        assert tasks_mod.get_task(db, first.id).overload_flag is False
        assert tasks_mod.get_task(db, second.id).overload_flag is True


class TestCancellation:
    def test_cancel_before_start(self, db):
        _make_task(db, "One", member_id=4, team_id=2, deadline=TOMORROW)
        cancel = threading.Event()
        cancel.set()
        result = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW, cancel=cancel)
        assert result.cancelled is True
        assert result.scanned == 0
        assert logs_mod.list_logs(db) == []

    def test_cancel_stops_after_current_task(self, db):
        first = _make_task(db, "One", member_id=4, team_id=2, deadline=FAR)
        second = _make_task(db, "Two", member_id=4, team_id=2, deadline=FAR)
        cancel = threading.Event()

        class CancellingOracle(HealthOracle):
            def assess(self, title, progress, days_until_deadline):
                cancel.set()
                return HealthAssessment(flag_overload=True, suggestion="Stop after me")

        result = rebalance_mod.run_health_check(db, CancellingOracle(), now=NOW, cancel=cancel)
        assert result.cancelled is True
        assert result.scanned == 1
        assert tasks_mod.get_task(db, first.id).overload_flag is True
        assert tasks_mod.get_task(db, second.id).overload_flag is False


class TestNotifier:
    def test_notifier_called_per_transition(self, db):
        _make_task(db, "Solo job", member_id=4, team_id=2, deadline=TOMORROW)
        notifier = MagicMock()
        rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW, notifier=notifier)
        assert notifier.call_count == 1
        task, message = notifier.call_args.args
        assert task.title == "Solo job"
        assert "no teammate" in message

    def test_notifier_failure_does_not_abort(self, db):
        _make_task(db, "A", member_id=4, team_id=2, deadline=TOMORROW)
        _make_task(db, "B", member_id=4, team_id=2, deadline=TOMORROW)
        notifier = MagicMock(side_effect=RuntimeError("slack down"))
        result = rebalance_mod.run_health_check(db, FallbackHealthOracle(), now=NOW, notifier=notifier)
        assert len(result.flagged) == 2


class TestFindReliefMember:
    def test_prefers_membership_in_task_team(self):
        from taskboard.db.models import Task

        memberships = [
            TeamMembership(id=1, team_id=2, member_id=10, workload=4),
            TeamMembership(id=2, team_id=2, member_id=20, workload=0),
            TeamMembership(id=3, team_id=1, member_id=10, workload=4),
            TeamMembership(id=4, team_id=1, member_id=30, workload=1),
        ]
        task = Task(id=1, title="t", deadline=FAR, assigned_team_id=1, assigned_member_id=10)
        assert rebalance_mod.find_relief_member(memberships, task).member_id == 30

    def test_falls_back_to_first_membership(self):
        from taskboard.db.models import Task

        memberships = [
            TeamMembership(id=1, team_id=2, member_id=10, workload=4),
            TeamMembership(id=2, team_id=2, member_id=20, workload=0),
        ]
        task = Task(id=1, title="t", deadline=FAR, assigned_team_id=9, assigned_member_id=10)
        assert rebalance_mod.find_relief_member(memberships, task).member_id == 20

    def test_no_membership(self):
        from taskboard.db.models import Task

        task = Task(id=1, title="t", deadline=FAR, assigned_member_id=10)
        assert rebalance_mod.find_relief_member([], task) is None
