"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path.home() / ".taskboard" / "tb.db")
    gemini_api_key: str | None = None
    oracle_model: str = "gemini-2.5-flash"
    oracle_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    oracle_timeout: float = 20.0
    slack_bot_token: str | None = None
    slack_channel: str | None = None

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if db := os.environ.get("TB_DB_PATH"):
            config.db_path = Path(db)

        config.gemini_api_key = os.environ.get("GEMINI_API_KEY") or None

        if model := os.environ.get("TB_ORACLE_MODEL"):
            config.oracle_model = model

        if base_url := os.environ.get("TB_ORACLE_BASE_URL"):
            config.oracle_base_url = base_url

        if timeout := os.environ.get("TB_ORACLE_TIMEOUT"):
            config.oracle_timeout = float(timeout)

        config.slack_bot_token = os.environ.get("SLACK_BOT_TOKEN")
        config.slack_channel = os.environ.get("TB_SLACK_CHANNEL")

        return config


def get_config() -> Config:
    return Config.from_env()
