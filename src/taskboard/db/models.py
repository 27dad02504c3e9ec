"""Data models for taskboard."""

from dataclasses import dataclass, field
from datetime import date, datetime

ROLES = ("admin", "team_lead", "member")
AGENT_NAMES = ("RAG", "Assignment", "Progress", "Reassignment")

PENDING = "Pending"
IN_PROGRESS = "InProgress"
COMPLETED = "Completed"
STATUSES = (PENDING, IN_PROGRESS, COMPLETED)


def status_for_progress(progress: int) -> str:
    """Derive a task status from its progress percentage."""
    if progress >= 100:
        return COMPLETED
    if progress > 0:
        return IN_PROGRESS
    return PENDING


@dataclass
class User:
    id: int
    name: str
    email: str
    role: str = "member"
    avatar: str = ""
    created_at: datetime | None = None


@dataclass
class Team:
    id: int
    name: str
    skills: list[str] = field(default_factory=list)
    lead_id: int | None = None
    created_at: datetime | None = None


@dataclass
class TeamMembership:
    id: int
    team_id: int
    member_id: int
    workload: int = 0
    created_at: datetime | None = None


@dataclass
class Task:
    id: int
    title: str
    deadline: date
    description: str = ""
    progress: int = 0
    assigned_team_id: int | None = None
    assigned_member_id: int | None = None
    overload_flag: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def status(self) -> str:
        return status_for_progress(self.progress)


@dataclass
class AgentLog:
    id: int | None = None
    task_id: int = 0
    agent_name: str = ""
    action: str = ""
    timestamp: datetime | None = None
