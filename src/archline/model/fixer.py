"""Ask a pydantic-ai model for corrected project files."""

import traceback
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_ai import Agent
from pydantic_ai.exceptions import UserError
from pydantic_ai.models import Model

from archline.core.audit import AuditLogger, AuditRecord
from archline.core.config import LLMConfig
from archline.core.errors import (
    ConfigurationError,
    FixRequestError,
    MissingCredential,
    TransportError,
)
from archline.core.log import logger
from archline.core.result import ErrorRecord
from archline.deploy.context import RelevantFile
from archline.model.parser import FixResult, parse_fix_response
from archline.model.prompt import build_fix_prompt
from archline.state.attempt import Attempt
from archline.state.registry import RegisteredFix

DEFAULT_SYSTEM_PROMPT = (
    "You are an AWS CDK expert who repairs TypeScript CDK projects "
    "so that they build, synthesize and deploy."
)


class FixOutcome(BaseModel):
    """What one fix request produced.

    Exactly one of result and error is set.
    """

    result: FixResult | None = None
    error: str | None = None
    error_kind: str | None = None
    relevant_files: list[str] = Field(default_factory=list)
    audit_file: Path | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class FixRequestor:
    """Sends one prompt per attempt and parses the answer."""

    def __init__(
        self,
        llm_config: LLMConfig,
        audit: AuditLogger,
        model: Model | str | None = None,
        system_prompt: str | None = None,
    ):
        """Initialize requestor.

        Args:
            llm_config: Model name, credential and token budget
            audit: Where every request is recorded
            model: Explicit pydantic-ai model, overriding llm_config.model
            system_prompt: Override for the default system prompt
        """
        self.llm_config = llm_config
        self.audit = audit
        self.model = model
        self.system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT

    def require_credential(self) -> str | None:
        """Return the API key for the configured provider.

        Raises:
            MissingCredential: If a named provider has no key
        """
        if isinstance(self.model, Model):
            return self.llm_config.credential()
        key = self.llm_config.credential()
        if not key:
            env_var = f"{self.llm_config.provider.upper()}_API_KEY"
            raise MissingCredential(
                f"API key is not set. Please set the {env_var} "
                f"environment variable or llm.api_key."
            )
        return key

    def _create_model(self) -> Model | str:
        if self.model is not None:
            return self.model

        name = self.llm_config.model_name
        if self.llm_config.provider == "anthropic" and (
            self.llm_config.api_key or self.llm_config.base_url
        ):
            from pydantic_ai.models.anthropic import AnthropicModel
            from pydantic_ai.providers.anthropic import AnthropicProvider

            provider = AnthropicProvider(
                api_key=self.llm_config.credential(),
                base_url=self.llm_config.base_url,
            )
            return AnthropicModel(name.split(":", 1)[1], provider=provider)
        return name

    def _create_agent(self) -> Agent:
        """Build the agent for one request.

        Raises:
            ConfigurationError: If llm.model names no usable model
        """
        try:
            return Agent(
                self._create_model(),
                output_type=str,
                system_prompt=self.system_prompt,
            )
        except UserError as e:
            raise ConfigurationError(
                f"Cannot use model {self.llm_config.model}: {e}"
            ) from e

    async def _send(self, prompt: str) -> str:
        """Send prompt and return the response text.

        Raises:
            TransportError: On any provider or network failure
        """
        agent = self._create_agent()
        logger.debug(
            f"Sending request to {self.llm_config.model_name}",
            prompt_length=len(prompt),
            max_tokens=self.llm_config.max_tokens,
        )
        try:
            result = await agent.run(
                prompt,
                model_settings={"max_tokens": self.llm_config.max_tokens},
            )
        except Exception as e:
            tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            logger.debug(f"Model call traceback:\n{tb}")
            raise TransportError(f"Model request failed: {e}") from e
        return result.output

    async def request(
        self,
        error: ErrorRecord,
        files: Sequence[RelevantFile],
        history: Sequence[Attempt] = (),
        diagram: str | None = None,
        attempt: int = 1,
        known_fixes: Sequence[RegisteredFix] = (),
    ) -> FixOutcome:
        """Request corrected files for error.

        Parse and transport failures are returned in the outcome; only
        configuration problems raise.

        Args:
            error: Output of the failed deploy
            files: Relevant project files
            history: Earlier attempts, oldest first
            diagram: Architecture diagram text, if any
            attempt: Number of this fix attempt
            known_fixes: Registry hints for the same error

        Returns:
            FixOutcome with either the parsed FixResult or the error

        Raises:
            MissingCredential: If no API key is configured
            ConfigurationError: If the configured model is unusable
        """
        self.require_credential()

        prompt = build_fix_prompt(
            error, files, history=history, diagram=diagram,
            known_fixes=known_fixes,
        )
        record = AuditRecord(
            attempt=attempt,
            error=error,
            relevant_files=[f.path for f in files],
            prompt=prompt,
        )
        outcome = FixOutcome(relevant_files=record.relevant_files)

        try:
            text = await self._send(prompt)
            record.raw_response = text
            result = parse_fix_response(text)
        except TransportError as e:
            record.api_error = str(e)
            outcome.error, outcome.error_kind = str(e), e.kind
            logger.error(f"Error calling model API: {e}")
        except FixRequestError as e:
            record.parse_error = str(e)
            outcome.error, outcome.error_kind = str(e), e.kind
            logger.error(f"Error parsing model response: {e}")
        else:
            record.response = result.model_dump()
            record.success = True
            outcome.result = result
        finally:
            outcome.audit_file = self.audit.write(record)

        return outcome
