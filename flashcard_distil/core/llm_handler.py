"""
Generation service for all LLM requests in the flashcard_distil system.

This module exposes the configured providers, resolves the main provider and
executes generation requests against OpenAI-compatible chat completion
endpoints, with streaming progress and reasoning model fallback.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .config import PROVIDERS_FILENAME, ConfigError, config, get_client, get_project_metadata_dir, load_project_env
from .types import GenerationRequest, ProviderInfo

logger = logging.getLogger(__name__)


class LLMHandlerError(Exception):
    """Base exception for generation service errors."""

    pass


class ReasoningModelError(LLMHandlerError):
    """Raised when reasoning model parameter adjustment fails."""

    pass


def is_reasoning_model_error(exception: Exception) -> bool:
    """
    Check if the exception indicates the model is a reasoning model.

    Detects error code 400 with parameters:
    - type: 'invalid_request_error'
    - code: 'unsupported_value' or 'unsupported_parameter'
    - param: 'temperature' or 'max_tokens'

    Args:
        exception: Exception from LLM API call

    Returns:
        True if this is a reasoning model error that needs parameter adjustment
    """
    if getattr(exception, "status_code", None) != 400:
        return False

    error_data = getattr(exception, "body", None)
    if not isinstance(error_data, dict):
        return False

    # The SDK exposes either the full payload or just its "error" member
    error_info = error_data.get("error", error_data)
    if not isinstance(error_info, dict):
        return False

    error_type = str(error_info.get("type") or "").lower()
    error_code = str(error_info.get("code") or "").lower()
    error_param = str(error_info.get("param") or "").lower()

    return (
        error_type == "invalid_request_error"
        and error_code in ("unsupported_value", "unsupported_parameter")
        and error_param in ("temperature", "max_tokens")
    )


def adjust_llm_params_for_reasoning_model(original_params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Adjust request parameters for reasoning model compatibility.

    Args:
        original_params: Original parameters dict

    Returns:
        Adjusted parameters dict without temperature, with max_tokens renamed
    """
    adjusted_params = original_params.copy()
    adjusted_params.pop("temperature", None)

    if "max_tokens" in adjusted_params:
        adjusted_params["max_completion_tokens"] = adjusted_params.pop("max_tokens")

    logger.info(f"Adjusted parameters for reasoning model: {sorted(adjusted_params)}")
    return adjusted_params


def make_llm_request_with_reasoning_fallback(client: Any, original_params: Dict[str, Any]) -> Any:
    """
    Make an LLM request with automatic fallback to reasoning model parameters.

    Args:
        client: OpenAI client instance
        original_params: Original request parameters

    Returns:
        Response (or stream) from the successful call

    Raises:
        ReasoningModelError: If the retry with adjusted parameters fails
    """
    try:
        return client.chat.completions.create(**original_params)
    except Exception as e:
        if not is_reasoning_model_error(e):
            raise

        logger.info("Detected reasoning model error, adjusting parameters")
        adjusted_params = adjust_llm_params_for_reasoning_model(original_params)
        try:
            return client.chat.completions.create(**adjusted_params)
        except Exception as retry_error:
            raise ReasoningModelError(f"Failed to make LLM request even after adjusting for reasoning model: {retry_error}") from e


class ProvidersFile(BaseModel):
    """Contents of .flashcard_distil/providers.json."""

    main: str = Field(default="", description="Id of the main (default) provider")
    providers: List[ProviderInfo] = Field(default_factory=list)


def default_provider() -> ProviderInfo:
    """Single provider described by the environment (LLM_MODEL, OPENAI_BASE_URL, ...)."""
    return ProviderInfo(
        id="openai",
        name="OpenAI",
        model=config.llm_model,
        base_url=config.openai_base_url,
        temperature=None if config.is_reasoning_model else config.model_temperature,
    )


def load_providers_file(vault_root: Optional[str] = None) -> Optional[ProvidersFile]:
    """
    Read the vault's provider list.

    Returns:
        Parsed file, or None when the vault has none

    Raises:
        ConfigError: If the file exists but is malformed
    """
    path = get_project_metadata_dir(vault_root) / PROVIDERS_FILENAME
    if not path.exists():
        return None
    try:
        return ProvidersFile.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Invalid provider configuration in {path}: {e}")


class GenerationService:
    """
    Provider registry plus execution against OpenAI-compatible endpoints.
    """

    def __init__(self, providers: List[ProviderInfo], main_provider_id: str = "", client_factory: Any = None):
        """
        Initialize the service.

        Args:
            providers: Available providers, in display order
            main_provider_id: Id of the provider used when none is selected
            client_factory: Callable(api_key_env, base_url) returning a client; defaults to get_client
        """
        self.providers = list(providers)
        self.main_provider_id = main_provider_id
        self._client_factory = client_factory or get_client

    def find_provider(self, provider_id: str) -> Optional[ProviderInfo]:
        if not provider_id:
            return None
        return next((p for p in self.providers if p.id == provider_id), None)

    def execute(self, request: GenerationRequest) -> Optional[str]:
        """
        Send the prompt to the request's provider.

        With streaming enabled every chunk is reported to `request.on_progress`
        together with the text accumulated so far.

        Returns:
            The full response text, or None if the provider returned no content

        Raises:
            LLMHandlerError: If the request fails
        """
        provider = request.provider
        try:
            client = self._client_factory(provider.api_key_env, provider.base_url)
        except ConfigError as e:
            raise LLMHandlerError(str(e))

        params: Dict[str, Any] = {
            "model": provider.model,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if provider.temperature is not None:
            params["temperature"] = provider.temperature
        if provider.stream:
            params["stream"] = True

        logger.debug(f"Executing request on provider '{provider.id}' (model={provider.model}, stream={provider.stream})")

        try:
            response = make_llm_request_with_reasoning_fallback(client, params)
            if provider.stream:
                return self._consume_stream(response, request)
            return response.choices[0].message.content
        except LLMHandlerError:
            raise
        except Exception as e:
            raise LLMHandlerError(f"Generation request to '{provider.display_name}' failed: {e}")

    def _consume_stream(self, stream: Any, request: GenerationRequest) -> str:
        total = ""
        for chunk in stream:
            if not chunk.choices:
                continue
            piece = chunk.choices[0].delta.content
            if not piece:
                continue
            total += piece
            if request.on_progress is not None:
                request.on_progress(piece, total)
        return total


def load_generation_service(vault_root: Optional[str] = None) -> Optional[GenerationService]:
    """
    Build the generation service for a vault.

    Loads the vault-scoped env first so provider defaults see its values.

    Returns:
        The service, or None when its configuration cannot be loaded
    """
    load_project_env(vault_root)
    try:
        providers_file = load_providers_file(vault_root)
    except ConfigError as e:
        logger.warning(f"Generation service unavailable: {e}")
        return None

    if providers_file is None:
        provider = default_provider()
        return GenerationService([provider], main_provider_id=provider.id)
    return GenerationService(providers_file.providers, main_provider_id=providers_file.main)
