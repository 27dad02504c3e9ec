"""Advisory oracles consulted by the assignment and rebalancing engines.

Each oracle has a remote implementation backed by Gemini and a
deterministic fallback. Which one an engine gets is decided once, by
build_oracles(); the engines only see the interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from taskboard.config import Config
from taskboard.db.models import Team
from taskboard.integrations import gemini as gemini_mod

logger = logging.getLogger(__name__)

FALLBACK_REASONING = "Fallback: classification service unavailable, default team assigned."
FALLBACK_AT_RISK = "Deadline imminent with low progress."
FALLBACK_NOMINAL = "System nominal."


class OracleUnavailable(Exception):
    """The oracle could not be reached, timed out, or answered with unusable data."""


@dataclass
class Classification:
    team_id: int
    reasoning: str


@dataclass
class HealthAssessment:
    flag_overload: bool
    suggestion: str


def fallback_classification(teams: list[Team]) -> Classification:
    """Route to the first team in canonical order."""
    return Classification(team_id=teams[0].id, reasoning=FALLBACK_REASONING)


def fallback_assessment(progress: int, days_until_deadline: int) -> HealthAssessment:
    """Flag a task when the deadline is under two days away and it is less than half done."""
    if days_until_deadline < 2 and progress < 50:
        return HealthAssessment(flag_overload=True, suggestion=FALLBACK_AT_RISK)
    return HealthAssessment(flag_overload=False, suggestion=FALLBACK_NOMINAL)


class ClassificationOracle(ABC):
    @abstractmethod
    def classify(self, title: str, description: str, teams: list[Team]) -> Classification:
        """Recommend a team for a task. Raises OracleUnavailable on failure."""


class HealthOracle(ABC):
    @abstractmethod
    def assess(self, title: str, progress: int, days_until_deadline: int) -> HealthAssessment:
        """Judge whether a task is at risk. Raises OracleUnavailable on failure."""


class FallbackClassificationOracle(ClassificationOracle):
    def classify(self, title, description, teams):
        return fallback_classification(teams)


class FallbackHealthOracle(HealthOracle):
    def assess(self, title, progress, days_until_deadline):
        return fallback_assessment(progress, days_until_deadline)


# ── Gemini-backed oracles ───────────────────────────────────────────────────

CLASSIFICATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "teamId": {"type": "INTEGER"},
        "reasoning": {"type": "STRING"},
    },
    "required": ["teamId", "reasoning"],
}

HEALTH_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "flagOverload": {"type": "BOOLEAN"},
        "suggestion": {"type": "STRING"},
    },
    "required": ["flagOverload", "suggestion"],
}


def classification_prompt(title: str, description: str, teams: list[Team]) -> str:
    teams_block = "\n".join(
        f"ID: {t.id}, Name: {t.name}, Skills: {', '.join(t.skills)}" for t in teams
    )
    return (
        "You are a task assignment agent for a software company.\n"
        "Assign the following task to the team whose skills fit it best.\n\n"
        f'Task Title: "{title}"\n'
        f'Task Description: "{description}"\n\n'
        f"Available Teams:\n{teams_block}\n\n"
        "Return a JSON object with the 'teamId' (integer) and a short 'reasoning' (string)."
    )


def health_prompt(title: str, progress: int, days_until_deadline: int) -> str:
    return (
        "Analyze the health of this task.\n"
        f'Title: "{title}"\n'
        f"Progress: {progress}%\n"
        f"Days until deadline: {days_until_deadline}\n\n"
        "If progress is low (< 50%) and the deadline is close (< 2 days), flag it as overload.\n"
        'Return JSON: { "flagOverload": boolean, "suggestion": string }'
    )


class GeminiClassificationOracle(ClassificationOracle):
    def __init__(self, client: gemini_mod.GeminiClient):
        self.client = client

    def classify(self, title, description, teams):
        try:
            data = self.client.generate_json(
                classification_prompt(title, description, teams), CLASSIFICATION_SCHEMA
            )
        except gemini_mod.GeminiError as e:
            raise OracleUnavailable(str(e)) from e

        team_id = data.get("teamId")
        reasoning = data.get("reasoning")
        if isinstance(team_id, bool) or not isinstance(team_id, int) or not isinstance(reasoning, str):
            raise OracleUnavailable(f"Unusable classification: {data!r}")
        return Classification(team_id=team_id, reasoning=reasoning)


class GeminiHealthOracle(HealthOracle):
    def __init__(self, client: gemini_mod.GeminiClient):
        self.client = client

    def assess(self, title, progress, days_until_deadline):
        try:
            data = self.client.generate_json(
                health_prompt(title, progress, days_until_deadline), HEALTH_SCHEMA
            )
        except gemini_mod.GeminiError as e:
            raise OracleUnavailable(str(e)) from e

        flag = data.get("flagOverload")
        suggestion = data.get("suggestion")
        if not isinstance(flag, bool) or not isinstance(suggestion, str):
            raise OracleUnavailable(f"Unusable health assessment: {data!r}")
        return HealthAssessment(flag_overload=flag, suggestion=suggestion)


def build_oracles(config: Config) -> tuple[ClassificationOracle, HealthOracle]:
    """Resolve the oracle pair for this process from configuration."""
    client = gemini_mod.get_client(
        config.gemini_api_key,
        model=config.oracle_model,
        base_url=config.oracle_base_url,
        timeout=config.oracle_timeout,
    )
    if client is None:
        logger.info("GEMINI_API_KEY not set; using fallback oracles")
        return FallbackClassificationOracle(), FallbackHealthOracle()
    return GeminiClassificationOracle(client), GeminiHealthOracle(client)
