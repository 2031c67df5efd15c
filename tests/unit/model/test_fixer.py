"""Tests for FixRequestor using pydantic-ai FunctionModel."""

import json

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from archline.core.audit import AuditLogger
from archline.core.config import LLMConfig
from archline.core.errors import ConfigurationError, MissingCredential
from archline.core.result import ErrorRecord
from archline.deploy.context import RelevantFile
from archline.model.fixer import FixRequestor

ERROR = ErrorRecord(message="synth failed", stderr="TS2304: Cannot find name")
FILES = [RelevantFile(path="lib/stack.ts", content="old")]

GOOD_RESPONSE = json.dumps({
    "summary": "Added the missing import",
    "files": [{"filename": "lib/stack.ts", "content": "new"}],
})


def _model(text):
    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return ModelResponse(parts=[TextPart(text)])
    return FunctionModel(respond)


def _requestor(tmp_path, model):
    return FixRequestor(LLMConfig(), AuditLogger(tmp_path), model=model)


async def test_successful_request(tmp_path):
    """A valid response yields a FixResult and an audit file."""
    requestor = _requestor(tmp_path, _model(GOOD_RESPONSE))

    outcome = await requestor.request(ERROR, FILES, attempt=1)

    assert outcome.ok
    assert outcome.result.summary == "Added the missing import"
    assert outcome.result.files[0].content == "new"
    audit = json.loads(outcome.audit_file.read_text())
    assert audit["success"] is True
    assert audit["relevant_files"] == ["lib/stack.ts"]
    assert outcome.relevant_files == ["lib/stack.ts"]


async def test_prompt_reaches_model(tmp_path):
    """The prompt sent to the model carries error and files."""
    seen = []

    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen.append(messages)
        return ModelResponse(parts=[TextPart(GOOD_RESPONSE)])

    requestor = _requestor(tmp_path, FunctionModel(respond))
    await requestor.request(ERROR, FILES, diagram="@startuml\n@enduml")

    sent = str(seen[0])
    assert "TS2304" in sent
    assert "lib/stack.ts" in sent
    assert "@startuml" in sent


async def test_unparseable_response_is_outcome(tmp_path):
    """Garbage output is reported, not raised."""
    requestor = _requestor(tmp_path, _model("Sorry, I cannot help."))

    outcome = await requestor.request(ERROR, FILES)

    assert not outcome.ok
    assert outcome.error_kind == "malformed_response"
    audit = json.loads(outcome.audit_file.read_text())
    assert audit["success"] is False
    assert audit["parse_error"]
    assert audit["raw_response"] == "Sorry, I cannot help."


async def test_empty_fix_set_is_outcome(tmp_path):
    requestor = _requestor(tmp_path, _model('{"summary": "x", "files": []}'))

    outcome = await requestor.request(ERROR, FILES)

    assert outcome.error_kind == "empty_fix_set"


async def test_transport_failure_is_outcome(tmp_path):
    """Exceptions from the model become transport errors."""
    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise ConnectionError("connection refused")

    requestor = _requestor(tmp_path, FunctionModel(respond))

    outcome = await requestor.request(ERROR, FILES)

    assert not outcome.ok
    assert outcome.error_kind == "transport"
    assert "connection refused" in outcome.error
    audit = json.loads(outcome.audit_file.read_text())
    assert "connection refused" in audit["api_error"]


async def test_missing_credential_raises(tmp_path, monkeypatch):
    """Without a key the request is refused before any call."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    requestor = FixRequestor(LLMConfig(), AuditLogger(tmp_path))

    with pytest.raises(MissingCredential, match="ANTHROPIC_API_KEY"):
        await requestor.request(ERROR, FILES)

    assert not (tmp_path / ".archline-audit").exists()


def test_configured_key_satisfies_credential(tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    requestor = FixRequestor(LLMConfig(api_key="sk-test"), AuditLogger(tmp_path))

    assert requestor.require_credential() == "sk-test"


async def test_unknown_provider_is_configuration_error(tmp_path, monkeypatch):
    """A model string no provider understands ends the run."""
    monkeypatch.setenv("NOSUCHPROVIDER_API_KEY", "key")
    requestor = FixRequestor(
        LLMConfig(model="nosuchprovider:model-1"), AuditLogger(tmp_path)
    )

    with pytest.raises(ConfigurationError, match="nosuchprovider"):
        await requestor.request(ERROR, FILES)
