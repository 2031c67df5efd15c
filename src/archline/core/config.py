"""Application state and configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from archline.core.base import BaseConfig, BaseState
from archline.core.log import Logger
from archline.core.result import ErrorRecord
from archline.core.yaml_settings import (
    PROJECT_CONFIG_FILE,
    YamlWithIncludesSettingsSource,
)
from archline.state.attempt import AttemptHistory

# Names usable at the head of a {reference}, besides fields of State
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}

TEMPLATE_PATTERN = re.compile(r"\{([a-z_]+(?:\.[a-z_]+)*)\}")


def _resolve_reference(root: Any, dotted: str) -> str | None:
    """Value of a dotted reference as a string, or None if it does not
    name anything. Functions such as platformdirs.user_data_dir are
    called with the application name."""
    head, *rest = dotted.split(".")
    if head in TEMPLATE_NAMESPACE:
        obj, parts = TEMPLATE_NAMESPACE[head], rest
    else:
        obj, parts = root, [head, *rest]
    try:
        for part in parts:
            obj = getattr(obj, part)
        if callable(obj):
            obj = obj("archline", appauthor=False)
    except (AttributeError, TypeError):
        return None
    return str(obj)


def expand_templates(value: Any, root: Any) -> Any:
    """Replace {dotted.name} references in strings and paths found
    anywhere under value. Models, dicts and lists are updated in place.

    References that do not resolve are left as written, which keeps
    run-time placeholders like {log_root} intact.
    """
    if isinstance(value, str):
        def substitute(match: re.Match) -> str:
            resolved = _resolve_reference(root, match.group(1))
            return match.group(0) if resolved is None else resolved
        return TEMPLATE_PATTERN.sub(substitute, value)
    if isinstance(value, Path):
        return Path(expand_templates(str(value), root))
    if isinstance(value, BaseModel):
        for name in type(value).model_fields:
            current = getattr(value, name)
            expanded = expand_templates(current, root)
            if expanded != current:
                setattr(value, name, expanded)
    elif isinstance(value, dict):
        for key, item in value.items():
            value[key] = expand_templates(item, root)
    elif isinstance(value, list):
        value[:] = [expand_templates(item, root) for item in value]
    return value


# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class ProjectConfig(BaseConfig):
    """CDK project location and generation inputs."""

    dir: Path = Field(
        default_factory=Path.cwd,
        description="Path to the CDK project directory",
    )
    diagram: Path | None = Field(
        default=None,
        description=(
            "Path to the PlantUML diagram the project was generated "
            "from; sent to the model as context"
        ),
    )
    required_files: list[str] = Field(
        default_factory=lambda: ["cdk.json"],
        description="Files that must exist for the directory to count "
                    "as a CDK project",
    )


class AwsConfig(BaseConfig):
    """AWS credentials selection forwarded to cdk commands."""

    profile: str | None = Field(
        default=None,
        description="AWS profile exported as AWS_PROFILE",
    )
    region: str = Field(
        default="us-east-1",
        description="AWS region exported as AWS_REGION",
    )


class DeployConfig(BaseConfig):
    """External build, synth and deploy commands."""

    build_command: str = Field(default="npm run build")
    force_build_command: str = Field(
        default="npx tsc --build --force",
        description=(
            "Fallback build when the compiler refuses to overwrite "
            "its own input files"
        ),
    )
    synth_command: str = Field(default="npx cdk synth")
    deploy_command: str = Field(
        default="npx cdk deploy --require-approval never"
    )
    bootstrap_command: str = Field(default="npx cdk bootstrap")
    list_exports_command: str = Field(default="npx cdk list-exports")
    max_attempts: int = Field(
        default=5,
        ge=1,
        description="Maximum number of deploy attempts",
    )
    timeout: int | None = Field(
        default=None,
        description=(
            "Timeout per command in seconds. Unset means commands may "
            "block the loop indefinitely"
        ),
    )
    history_file: str = Field(
        default="fix-history.json",
        description="Attempt history written to the project directory",
    )
    error_log_template: str = Field(
        default="deployment-error-{attempt}.log",
        description="Per-attempt deploy error log in the project directory",
    )


class ExtractConfig(BaseConfig):
    """Rules for recovering relevant source files from error text."""

    ignored_dirs: list[str] = Field(
        default_factory=lambda: ["node_modules"],
        description="Dependency directories whose files are never sent",
    )
    runtime_prefixes: list[str] = Field(
        default_factory=lambda: ["internal/", "node:"],
        description="Prefixes of runtime-internal module paths",
    )
    build_output_dir: str = Field(
        default="dist",
        description="Compiler output directory mapped back to sources",
    )
    compiled_suffixes: list[str] = Field(
        default_factory=lambda: [".d.ts", ".js"],
    )
    source_suffix: str = Field(default=".ts")
    fallback_file: str = Field(
        default="lib/stack.ts",
        description="Main stack definition tried when nothing matched",
    )


class LLMConfig(BaseConfig):
    """LLM provider and model selection."""

    model: str = Field(
        default="anthropic:claude-3-7-sonnet-20250219",
        description=(
            "Model for fix requests. Format: 'provider:model' "
            "(e.g., anthropic:claude-sonnet-4-0, openai:gpt-4o)"
        ),
    )
    api_key: str | None = Field(
        default=None,
        description=(
            "API key for the provider. If not set, the provider's "
            "environment variable is used (e.g., ANTHROPIC_API_KEY)"
        ),
    )
    base_url: str | None = Field(
        default=None,
        description="Override API base URL for compatible endpoints",
    )
    max_tokens: int = Field(
        default=16000,
        description="Token budget for each fix response",
    )

    @property
    def provider(self) -> str:
        """Provider prefix of the model string."""
        if ":" in self.model:
            return self.model.split(":", 1)[0]
        return "anthropic"

    @property
    def model_name(self) -> str:
        """Model string with ANTHROPIC_MODEL override applied."""
        override = os.environ.get("ANTHROPIC_MODEL")
        if override and self.provider == "anthropic":
            return f"anthropic:{override}"
        return self.model if ":" in self.model else f"anthropic:{self.model}"

    def credential(self) -> str | None:
        """Configured API key, else the provider environment variable."""
        if self.api_key:
            return self.api_key
        return os.environ.get(f"{self.provider.upper()}_API_KEY")


class AuditConfig(BaseConfig):
    """Per-attempt audit trail of prompts and responses."""

    enabled: bool = Field(default=True)
    dir_name: str = Field(
        default=".archline-audit",
        description="Audit directory inside the project",
    )


class RegistryConfig(BaseConfig):
    """Cross-run registry of fixes that led to a successful deploy."""

    enabled: bool = Field(default=True)
    path: Path = Field(
        default_factory=lambda: (
            Path(platformdirs.user_data_dir("archline", appauthor=False))
            / "fix-registry.json"
        ),
        description="Registry JSON file",
    )
    max_hints: int = Field(
        default=3,
        description="Known fixes included in a prompt",
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default_factory=Logger,
        description="Logger configuration and runtime instance"
    )
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    extract: ExtractConfig = Field(default_factory=ExtractConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)

    log_level: str = Field(
        default="info",
        alias="log-level",
        description=(
            "Console log level: 'trace', 'debug', 'info', "
            "'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "archline"
        ),
        description="Root directory for log files",
    )
    prompts: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="LLM prompt overrides (prompts.fixer.system)",
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Initialize the global logger singleton after config loads."""
        from archline.core.log import setup_logger

        # --log-level is a shortcut for the console sink's level
        if "log_level" in self.model_fields_set:
            self.logger.console.level = self.log_level

        setup_logger(
            log_root=self.log_root,
            run_name=self.project.dir.name or "archline",
            level=self.log_level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self

    def close(self):
        """Close config and the global logger singleton."""
        from archline.core.log import logger
        if logger is not None:
            logger.close()

        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable during workflow execution)
# ============================================================

class DebugState(BaseState):
    """Deploy-and-repair loop runtime state."""

    attempt: int = Field(
        default=0,
        description="Number of deploy attempts made so far",
    )
    status: str = Field(
        default="pending",
        description="pending, deploying, fixing, succeeded, exhausted",
    )
    diagram: str = Field(
        default="",
        description="Diagram text read at validation",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment overrides for external commands",
    )
    last_error: ErrorRecord | None = Field(
        default=None,
        description="Error from the most recent failed deploy",
    )
    history: AttemptHistory = Field(
        default=(),
        description="Fix attempts, append-only",
    )
    deploy_output: str = Field(default="")
    exit_code: int | None = Field(default=None)

    # Collaborators built by the Validate node
    executor: Any = Field(default=None, exclude=True)
    requestor: Any = Field(default=None, exclude=True)
    registry: Any = Field(default=None, exclude=True)


class DeployState(BaseState):
    """Single deploy command runtime state."""

    stack: str | None = Field(default=None)
    status: str = Field(default="pending")


class Runtime(BaseModel):
    """All runtime state organized by workflow."""

    debug: DebugState = Field(default_factory=DebugState)
    deploy: DeployState = Field(default_factory=DeployState)


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Complete application state - configuration and runtime.

    This is the object that flows through every workflow node.
    `config` is loaded from YAML/env/CLI; `runtime` is mutated as
    the workflow runs.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates during workflow execution)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file=PROJECT_CONFIG_FILE,
        env_file=".env",
        env_prefix="ARCHLINE_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        # Disregard .env variables that don't match config
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings source priority.

        Priority order (highest to lowest):
        1. init_settings (direct instantiation arguments)
        2. YAML files with include support
        3. .env file
        4. Environment variables
        5. File secrets
        """
        return (
            init_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def expand_references(self) -> "State":
        """Expand {config.*} and {platformdirs.*} references in every
        string and Path field."""
        expand_templates(self, self)
        return self


__all__ = ["State", "Config", "BaseConfig", "BaseState"]
