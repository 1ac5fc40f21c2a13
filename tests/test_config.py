"""Tests for environment configuration."""

import pytest

from hackmate.config import Config


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "HACKMATE_ENABLE_AI", "HACKMATE_ENABLE_GITHUB", "HACKMATE_ENABLE_SLACK",
        "HACKMATE_ENABLE_MEMORY", "GEMINI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY",
        "GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "SLACK_BOT_TOKEN", "SLACK_CHANNEL_ID",
        "CHROMA_HOST", "CHROMA_PATH", "HACKMATE_SCHEDULE_DELAY", "HACKMATE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestFromEnv:
    def test_defaults(self, clean_env):
        config = Config.from_env()
        assert config.enable_ai and config.enable_memory
        assert not config.ai_configured
        assert not config.github_configured
        assert not config.slack_configured
        assert not config.vector_configured
        assert config.default_model == "gemini-pro"

    @pytest.mark.parametrize("value", ["0", "false", "No", "OFF"])
    def test_flags_off(self, clean_env, value):
        clean_env.setenv("HACKMATE_ENABLE_AI", value)
        clean_env.setenv("GEMINI_API_KEY", "k")
        config = Config.from_env()
        assert config.enable_ai is False
        assert not config.ai_configured

    def test_integrations_configured(self, clean_env):
        for name, value in {
            "OPENAI_API_KEY": "sk",
            "GITHUB_TOKEN": "t", "GITHUB_OWNER": "acme", "GITHUB_REPO": "app",
            "SLACK_BOT_TOKEN": "xoxb", "SLACK_CHANNEL_ID": "C1",
            "CHROMA_PATH": "/tmp/chroma",
            "HACKMATE_SCHEDULE_DELAY": "0.5",
            "HACKMATE_LOG_LEVEL": "debug",
        }.items():
            clean_env.setenv(name, value)
        config = Config.from_env()
        assert config.ai_configured
        assert config.github_configured
        assert config.slack_configured
        assert config.vector_configured
        assert config.schedule_delay == 0.5
        assert config.log_level == "DEBUG"
