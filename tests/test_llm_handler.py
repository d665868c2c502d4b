"""
Tests for the generation service.

The OpenAI client is replaced with small dummies; no network calls are made.
"""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, List

import pytest

from flashcard_distil.core.config import ConfigError, load_config
from flashcard_distil.core.llm_handler import (
    GenerationService,
    LLMHandlerError,
    ReasoningModelError,
    adjust_llm_params_for_reasoning_model,
    is_reasoning_model_error,
    load_generation_service,
    make_llm_request_with_reasoning_fallback,
)
from flashcard_distil.core.types import GenerationRequest, ProviderInfo


class DummyCompletions:
    """Records create() calls and replays queued responses or errors."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[dict] = []

    def create(self, **params):
        self.calls.append(params)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class DummyClient:
    def __init__(self, *responses: Any):
        self.chat = SimpleNamespace(completions=DummyCompletions(list(responses)))


class BadRequest(Exception):
    """Shape of an OpenAI 400 error."""

    status_code = 400

    def __init__(self, param: str = "temperature", code: str = "unsupported_value"):
        super().__init__(f"Unsupported parameter: {param}")
        self.body = {"type": "invalid_request_error", "code": code, "param": param, "message": "not supported"}


def completion(text: Any) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def chunk(text: Any) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def make_service(client: DummyClient, **provider_fields) -> GenerationService:
    provider = ProviderInfo(id="p", name="Provider", model="m", **provider_fields)
    return GenerationService([provider], main_provider_id="p", client_factory=lambda _key_env, _base_url: client)


class TestReasoningFallback:
    def test_detects_reasoning_error(self):
        assert is_reasoning_model_error(BadRequest("temperature"))
        assert is_reasoning_model_error(BadRequest("max_tokens", code="unsupported_parameter"))

    def test_detects_wrapped_error_body(self):
        error = BadRequest()
        error.body = {"error": error.body}
        assert is_reasoning_model_error(error)

    def test_ignores_other_errors(self):
        assert not is_reasoning_model_error(BadRequest("messages"))
        assert not is_reasoning_model_error(ValueError("boom"))

    def test_adjust_params(self):
        adjusted = adjust_llm_params_for_reasoning_model({"model": "o1", "temperature": 0.2, "max_tokens": 100})
        assert adjusted == {"model": "o1", "max_completion_tokens": 100}

    def test_retries_without_temperature(self):
        client = DummyClient(BadRequest(), completion("ok"))
        response = make_llm_request_with_reasoning_fallback(client, {"model": "o1", "temperature": 0.2})

        assert response.choices[0].message.content == "ok"
        calls = client.chat.completions.calls
        assert calls[0]["temperature"] == 0.2
        assert "temperature" not in calls[1]

    def test_retry_failure(self):
        client = DummyClient(BadRequest(), RuntimeError("still broken"))
        with pytest.raises(ReasoningModelError, match="still broken"):
            make_llm_request_with_reasoning_fallback(client, {"model": "o1", "temperature": 0.2})

    def test_other_errors_propagate(self):
        client = DummyClient(RuntimeError("network down"))
        with pytest.raises(RuntimeError, match="network down"):
            make_llm_request_with_reasoning_fallback(client, {"model": "m"})


class TestExecute:
    def test_streaming_reports_accumulated_text(self):
        client = DummyClient([chunk("Front"), SimpleNamespace(choices=[]), chunk(None), chunk(" :: Back")])
        service = make_service(client)
        progress = []

        result = service.execute(GenerationRequest(provider=service.providers[0], prompt="P", on_progress=lambda c, t: progress.append((c, t))))

        assert result == "Front :: Back"
        assert progress == [("Front", "Front"), (" :: Back", "Front :: Back")]
        params = client.chat.completions.calls[0]
        assert params["stream"] is True
        assert params["messages"] == [{"role": "user", "content": "P"}]
        assert params["model"] == "m"

    def test_non_streaming(self):
        client = DummyClient(completion("Q :: A"))
        service = make_service(client, stream=False, temperature=0.3)

        result = service.execute(GenerationRequest(provider=service.providers[0], prompt="P"))

        assert result == "Q :: A"
        params = client.chat.completions.calls[0]
        assert "stream" not in params
        assert params["temperature"] == 0.3

    def test_non_streaming_empty_content(self):
        service = make_service(DummyClient(completion(None)), stream=False)
        assert service.execute(GenerationRequest(provider=service.providers[0], prompt="P")) is None

    def test_errors_wrapped(self):
        service = make_service(DummyClient(RuntimeError("connection refused")))
        with pytest.raises(LLMHandlerError, match="connection refused"):
            service.execute(GenerationRequest(provider=service.providers[0], prompt="P"))

    def test_missing_api_key(self):
        def no_key(_key_env, _base_url):
            raise ConfigError("OPENAI_API_KEY not found in environment")

        service = GenerationService([ProviderInfo(id="p")], client_factory=no_key)
        with pytest.raises(LLMHandlerError, match="OPENAI_API_KEY"):
            service.execute(GenerationRequest(provider=service.providers[0], prompt="P"))

    def test_find_provider(self):
        service = GenerationService([ProviderInfo(id="a"), ProviderInfo(id="b")])
        assert service.find_provider("b").id == "b"
        assert service.find_provider("") is None
        assert service.find_provider("zzz") is None


class TestLoadGenerationService:
    @pytest.fixture(autouse=True)
    def isolated_env(self, monkeypatch: pytest.MonkeyPatch):
        for var in ("FD_ENV_FILE", "FLASHCARD_DISTIL_ENV_FILE", "IS_REASONING_MODEL", "OPENAI_BASE_URL", "MODEL_TEMPERATURE"):
            monkeypatch.delenv(var, raising=False)
        load_config.cache_clear()
        yield
        load_config.cache_clear()

    def test_default_provider_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LLM_MODEL", "gpt-test")

        service = load_generation_service(str(tmp_path))

        assert service is not None
        assert [p.id for p in service.providers] == ["openai"]
        assert service.main_provider_id == "openai"
        assert service.providers[0].model == "gpt-test"
        assert service.providers[0].temperature == 0.2

    def test_reasoning_model_has_no_temperature(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("IS_REASONING_MODEL", "true")
        service = load_generation_service(str(tmp_path))
        assert service.providers[0].temperature is None

    def test_providers_file(self, tmp_path: Path):
        meta = tmp_path / ".flashcard_distil"
        meta.mkdir()
        data = {
            "main": "local",
            "providers": [
                {"id": "cloud", "name": "OpenAI", "model": "gpt-4o-mini"},
                {"id": "local", "name": "Ollama", "model": "llama3.1", "base_url": "http://localhost:11434/v1", "api_key_env": "OLLAMA_KEY"},
            ],
        }
        (meta / "providers.json").write_text(json.dumps(data), encoding="utf-8")

        service = load_generation_service(str(tmp_path))

        assert [p.id for p in service.providers] == ["cloud", "local"]
        assert service.main_provider_id == "local"
        assert service.find_provider("local").base_url == "http://localhost:11434/v1"
        assert service.find_provider("local").api_key_env == "OLLAMA_KEY"

    def test_malformed_providers_file_means_unavailable(self, tmp_path: Path):
        meta = tmp_path / ".flashcard_distil"
        meta.mkdir()
        (meta / "providers.json").write_text('{"providers": [{"name": "missing id"}]}', encoding="utf-8")

        assert load_generation_service(str(tmp_path)) is None
