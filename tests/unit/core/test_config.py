"""Tests for configuration models."""

import sys

import pytest

from archline.core.config import LLMConfig, State


def test_defaults_loaded(test_config):
    """Built-in defaults are present after a full load."""
    assert test_config.deploy.max_attempts == 5
    assert test_config.deploy.build_command == "npm run build"
    assert test_config.aws.region == "us-east-1"
    assert test_config.project.required_files == ["cdk.json"]
    assert test_config.audit.dir_name == ".archline-audit"
    assert "system" in test_config.prompts["fixer"]


def test_env_override(monkeypatch):
    """ARCHLINE_ nested environment variables override defaults."""
    monkeypatch.setenv("ARCHLINE_CONFIG__DEPLOY__MAX_ATTEMPTS", "3")
    monkeypatch.setenv("ARCHLINE_CONFIG__AWS__REGION", "eu-central-1")
    monkeypatch.setattr(sys, "argv", ["archline"])

    state = State()

    assert state.config.deploy.max_attempts == 3
    assert state.config.aws.region == "eu-central-1"


def test_max_attempts_must_be_positive(monkeypatch):
    """Zero attempts is rejected at load time."""
    monkeypatch.setattr(
        sys, "argv", ["archline", "--config.deploy.max_attempts", "0"]
    )

    with pytest.raises(Exception, match="max_attempts"):
        State()


def test_llm_provider_from_model_string():
    """Provider is the prefix before the colon."""
    assert LLMConfig(model="openai:gpt-4o").provider == "openai"
    assert LLMConfig(model="claude-3-7-sonnet-latest").provider == "anthropic"


def test_anthropic_model_env_override(monkeypatch):
    """ANTHROPIC_MODEL replaces the configured Anthropic model."""
    monkeypatch.setenv("ANTHROPIC_MODEL", "claude-sonnet-4-0")

    assert LLMConfig().model_name == "anthropic:claude-sonnet-4-0"
    assert LLMConfig(model="openai:gpt-4o").model_name == "openai:gpt-4o"


def test_credential_prefers_configured_key(monkeypatch):
    """Explicit api_key wins over the environment."""
    monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")

    assert LLMConfig(api_key="from-config").credential() == "from-config"
    assert LLMConfig().credential() == "from-env"


def test_credential_missing(monkeypatch):
    """No key anywhere gives None."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    assert LLMConfig().credential() is None


def test_runtime_state_starts_empty(make_state):
    """Debug runtime state starts with no attempts or history."""
    state = make_state()
    debug = state.runtime.debug

    assert debug.attempt == 0
    assert debug.history == ()
    assert debug.last_error is None
    assert debug.executor is None
