"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool = True) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass
class Config:
    enable_ai: bool = True
    enable_github: bool = True
    enable_slack: bool = True
    enable_memory: bool = True

    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    default_model: str = "gemini-pro"

    github_token: str | None = None
    github_owner: str | None = None
    github_repo: str | None = None
    github_base_branch: str = "main"

    slack_bot_token: str | None = None
    slack_channel: str | None = None

    chroma_host: str | None = None
    chroma_port: int = 8000
    chroma_path: str | None = None
    memory_collection: str = "hackmate-memory"
    memory_capacity: int = 1000

    schedule_delay: float = 0.1
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        config.enable_ai = _env_flag("HACKMATE_ENABLE_AI")
        config.enable_github = _env_flag("HACKMATE_ENABLE_GITHUB")
        config.enable_slack = _env_flag("HACKMATE_ENABLE_SLACK")
        config.enable_memory = _env_flag("HACKMATE_ENABLE_MEMORY")

        config.gemini_api_key = os.environ.get("GEMINI_API_KEY")
        config.openai_api_key = os.environ.get("OPENAI_API_KEY")
        config.anthropic_api_key = os.environ.get("ANTHROPIC_API_KEY")

        if model := os.environ.get("HACKMATE_DEFAULT_MODEL"):
            config.default_model = model

        config.github_token = os.environ.get("GITHUB_TOKEN")
        config.github_owner = os.environ.get("GITHUB_OWNER")
        config.github_repo = os.environ.get("GITHUB_REPO")
        if branch := os.environ.get("GITHUB_BASE_BRANCH"):
            config.github_base_branch = branch

        config.slack_bot_token = os.environ.get("SLACK_BOT_TOKEN")
        config.slack_channel = os.environ.get("SLACK_CHANNEL_ID")

        config.chroma_host = os.environ.get("CHROMA_HOST")
        if port := os.environ.get("CHROMA_PORT"):
            config.chroma_port = int(port)
        config.chroma_path = os.environ.get("CHROMA_PATH")
        if collection := os.environ.get("HACKMATE_MEMORY_COLLECTION"):
            config.memory_collection = collection
        if capacity := os.environ.get("HACKMATE_MEMORY_CAPACITY"):
            config.memory_capacity = int(capacity)

        if delay := os.environ.get("HACKMATE_SCHEDULE_DELAY"):
            config.schedule_delay = float(delay)
        if level := os.environ.get("HACKMATE_LOG_LEVEL"):
            config.log_level = level.upper()

        return config

    @property
    def ai_configured(self) -> bool:
        return self.enable_ai and any(
            (self.gemini_api_key, self.openai_api_key, self.anthropic_api_key)
        )

    @property
    def github_configured(self) -> bool:
        return self.enable_github and bool(
            self.github_token and self.github_owner and self.github_repo
        )

    @property
    def slack_configured(self) -> bool:
        return self.enable_slack and bool(self.slack_bot_token and self.slack_channel)

    @property
    def vector_configured(self) -> bool:
        return self.enable_memory and bool(self.chroma_host or self.chroma_path)


def get_config() -> Config:
    return Config.from_env()
