"""
Configuration management for the Flashcard Distiller.

This module handles the per-vault settings blob, environment variables and
API keys. Environment files are loaded explicitly via python-dotenv from the
vault's `.flashcard_distil` directory; no implicit loading occurs at import time.
"""

import json
import logging
import os
import shutil
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .prompt import DEFAULT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


META_DIRNAME = ".flashcard_distil"
SETTINGS_FILENAME = "settings.json"
PROVIDERS_FILENAME = "providers.json"


class Settings(BaseModel):
    """
    Flashcard settings for one vault.

    Instances are immutable; a settings change produces a new instance
    that replaces the old one wholesale (see `SettingsStore.update`).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    flashcard_root: str = Field(default="Flashcards", alias="flashcardRoot", description="Output root for generated notes")
    flashcard_tag: str = Field(default="flashcards", alias="flashcardTag", description="Tag label without '#' and trailing '/'")
    selected_provider_id: str = Field(default="", alias="selectedProviderId", description="Provider id, empty for auto-select")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, alias="systemPrompt", description="Instruction text sent to the model")
    excluded_folders: Tuple[str, ...] = Field(default=("Templates",), alias="excludedFolders", description="Path prefixes never distilled")
    file_header: str = Field(default="", alias="fileHeader", description="Optional header written below the tag line")

    def to_blob(self) -> Dict[str, Any]:
        """Serialize to the persisted key-value blob."""
        return self.model_dump(mode="json", by_alias=True)


# Blob keys and their snake_case field names
SETTING_KEYS: Dict[str, str] = {
    field.alias: name for name, field in Settings.model_fields.items() if field.alias
}


def _field_name(key: str) -> str:
    if key in Settings.model_fields:
        return key
    if key in SETTING_KEYS:
        return SETTING_KEYS[key]
    raise ConfigError(f"Unknown setting '{key}'. Valid settings: {', '.join(SETTING_KEYS)}")


def normalize_setting(key: str, value: Any) -> Tuple[str, Any]:
    """
    Normalize a user-supplied setting value the same way the settings form does.

    - flashcardRoot is trimmed and must not be empty
    - flashcardTag is trimmed, with a leading '#' and a trailing '/' removed
    - excludedFolders accepts a comma-separated string; entries are trimmed and empties dropped
    - everything else is stored verbatim

    Returns:
        (field_name, normalized_value)

    Raises:
        ConfigError: If the key is unknown or flashcardRoot is empty
    """
    name = _field_name(key)

    if name == "flashcard_root":
        root = str(value).strip()
        if not root.rstrip("/"):
            raise ConfigError("flashcardRoot must name a folder inside the vault")
        return name, root

    if name == "flashcard_tag":
        tag = str(value).strip()
        if tag.startswith("#"):
            tag = tag[1:]
        if tag.endswith("/"):
            tag = tag[:-1]
        return name, tag

    if name == "excluded_folders":
        items = value.split(",") if isinstance(value, str) else list(value)
        return name, tuple(s.strip() for s in items if s and s.strip())

    return name, value


def get_settings_path(vault_root: Optional[str] = None) -> Path:
    return get_project_metadata_dir(vault_root) / SETTINGS_FILENAME


def load_settings(vault_root: Optional[str] = None) -> Settings:
    """
    Load the vault's settings blob merged over the defaults.

    A missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid JSON or holds invalid values
    """
    path = get_settings_path(vault_root)
    if not path.exists():
        return Settings()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read settings from {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}")


def save_settings(settings: Settings, vault_root: Optional[str] = None) -> Path:
    """Persist settings to the vault's settings blob and return its path."""
    meta = ensure_project_metadata_dir(vault_root)
    path = meta / SETTINGS_FILENAME
    path.write_text(json.dumps(settings.to_blob(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


class SettingsStore:
    """
    Holds the current settings snapshot for a vault.

    Readers take `current` once and keep using that snapshot; updates swap
    in a new immutable `Settings` object.
    """

    def __init__(self, vault_root: Optional[str] = None, settings: Optional[Settings] = None, persist: bool = True):
        self.vault_root = vault_root
        self.persist = persist
        self._current = settings if settings is not None else load_settings(vault_root)

    @property
    def current(self) -> Settings:
        return self._current

    def update(self, **changes: Any) -> Settings:
        """
        Apply normalized changes, persist them and return the new snapshot.

        Raises:
            ConfigError: If a key is unknown or a value fails validation
        """
        data = self._current.model_dump()
        for key, value in changes.items():
            name, normalized = normalize_setting(key, value)
            data[name] = normalized

        try:
            updated = Settings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid setting value: {e}")

        if self.persist:
            save_settings(updated, self.vault_root)
        self._current = updated
        logger.debug(f"Settings updated: {sorted(changes)}")
        return updated


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path.

    Notes:
    - This function does NOT perform implicit loading when env_path is None.
    - Callers should pass a vault-scoped env path resolved via helpers in this module.
    """
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


class Config:
    """Environment-backed settings for the default generation provider."""

    @property
    def openai_base_url(self) -> Optional[str]:
        """Get an OpenAI-compatible base URL (default: None, the OpenAI API)."""
        return os.getenv("OPENAI_BASE_URL") or None

    @property
    def llm_model(self) -> str:
        """Get the LLM model name (default: gpt-4o-mini)."""
        return os.getenv("LLM_MODEL", "gpt-4o-mini")

    @property
    def is_reasoning_model(self) -> bool:
        """Check if the configured model is a reasoning model (default: False)."""
        value = os.getenv("IS_REASONING_MODEL", "false").lower()
        return value in ("true", "1", "yes", "on")

    @property
    def model_temperature(self) -> float:
        """Get the sampling temperature (default: 0.2)."""
        try:
            temp = float(os.getenv("MODEL_TEMPERATURE", "0.2"))
        except (ValueError, TypeError):
            logger.warning("Invalid MODEL_TEMPERATURE format. Using 0.2 as default.")
            return 0.2
        if not (0.0 <= temp <= 2.0):
            logger.warning(f"Invalid MODEL_TEMPERATURE value: {temp}. Using 0.2 as default.")
            return 0.2
        return temp

    @property
    def openai_timeout(self) -> int:
        """Get OpenAI API timeout in seconds (default: 60)."""
        return int(os.getenv("OPENAI_TIMEOUT", "60"))

    @property
    def max_retries(self) -> int:
        """Get maximum number of retries for API calls (default: 3)."""
        return int(os.getenv("MAX_RETRIES", "3"))


# Global config instance
config = Config()

# --- Vault-scoped environment helpers ---

DEFAULT_ENV_FILENAME = os.getenv("FD_ENV_FILENAME", ".env")
ENV_FILE_ENV_VARS = ("FD_ENV_FILE", "FLASHCARD_DISTIL_ENV_FILE")
VAULT_ROOT_ENV_VARS = ("FD_VAULT_ROOT", "FLASHCARD_DISTIL_VAULT_ROOT")


def detect_vault_root(start_dir: Optional[str] = None) -> Optional[Path]:
    """Detect the vault root by looking for a .flashcard_distil directory upwards from start_dir (or CWD)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for current in [start] + list(start.parents):
        if (current / META_DIRNAME).exists():
            return current
    return None


def resolve_vault_root(vault_root: Optional[str] = None) -> Path:
    """
    Resolve the vault root directory.

    Order: explicit argument, FD_VAULT_ROOT / FLASHCARD_DISTIL_VAULT_ROOT,
    upward detection from the CWD, then the CWD itself.
    """
    if vault_root:
        return Path(vault_root)
    for var in VAULT_ROOT_ENV_VARS:
        if os.getenv(var):
            return Path(os.environ[var])
    return detect_vault_root() or Path.cwd()


def get_project_metadata_dir(vault_root: Optional[str] = None) -> Path:
    """Return the .flashcard_distil directory for a given or detected vault root."""
    return resolve_vault_root(vault_root) / META_DIRNAME


def ensure_project_metadata_dir(vault_root: Optional[str] = None) -> Path:
    """Ensure the .flashcard_distil directory exists for the vault and return its path."""
    meta_dir = get_project_metadata_dir(vault_root)
    meta_dir.mkdir(parents=True, exist_ok=True)
    return meta_dir


def get_project_env_path(vault_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    """Compute the path to the vault-scoped environment file inside .flashcard_distil."""
    return get_project_metadata_dir(vault_root) / filename


def ensure_project_env(
    vault_root: Optional[str] = None,
    source_env: Optional[str] = None,
    filename: str = DEFAULT_ENV_FILENAME,
    overwrite: bool = False,
) -> Path:
    """
    Create or copy a vault-scoped env file under .flashcard_distil.
    This NEVER loads env values, it only writes/places the file.

    Behavior:
    - If target exists and overwrite is False, the existing file is preserved.
    - If source_env is provided and exists, it's copied to the target.
    - Else, a minimal template is created at the target.

    Returns:
        Path to the env file under the vault's .flashcard_distil directory.
    """
    meta = ensure_project_metadata_dir(vault_root)
    target = meta / filename
    if target.exists() and not overwrite:
        return target

    if source_env and Path(source_env).is_file():
        shutil.copyfile(source_env, target)
        return target

    template = (
        "# Vault-scoped environment for flashcard_distil\n"
        "# Edit values as needed.\n"
        "LLM_MODEL=gpt-4o-mini\n"
        "IS_REASONING_MODEL=false\n"
        "MODEL_TEMPERATURE=0.2\n"
        "OPENAI_TIMEOUT=60\n"
        "MAX_RETRIES=3\n"
        "# OPENAI_BASE_URL=http://localhost:11434/v1\n"
        "# OPENAI_API_KEY=your-key-here\n"
    )
    target.write_text(template, encoding="utf-8")
    return target


def load_project_env(vault_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a vault-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via FD_ENV_FILE or FLASHCARD_DISTIL_ENV_FILE
    2) <vault_root>/.flashcard_distil/<filename> (default: .env)

    Returns the path loaded, or None if nothing was loaded.
    """
    for var in ENV_FILE_ENV_VARS:
        explicit = os.getenv(var)
        if explicit and Path(explicit).is_file():
            load_config(explicit, override=override)
            return explicit

    env_path = get_project_env_path(vault_root, filename)
    if env_path.exists():
        load_config(str(env_path), override=override)
        return str(env_path)

    return None


@lru_cache(maxsize=8)
def get_client(api_key_env: str = "OPENAI_API_KEY", base_url: Optional[str] = None) -> OpenAI:
    """
    Get a configured OpenAI client with timeout and retry settings.

    Behavior:
    - Does not implicitly load a .env from the current working directory.
    - If the API key variable is missing, attempts to load the vault-scoped env:
      FD_ENV_FILE → <vault>/.flashcard_distil/.env

    Args:
        api_key_env: Environment variable holding the API key
        base_url: Optional OpenAI-compatible endpoint

    Raises:
        ConfigError: If the API key is not configured after the env lookup
    """
    if not os.getenv(api_key_env):
        loaded_path = load_project_env()
        if not os.getenv(api_key_env):
            where = loaded_path or f"{META_DIRNAME}/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(
                f"{api_key_env} not found in environment. Looked for vault env at {where}. "
                f"Set it via environment, FD_ENV_FILE, or place it under {META_DIRNAME}/{DEFAULT_ENV_FILENAME}."
            )
    try:
        return OpenAI(
            api_key=os.environ[api_key_env],
            base_url=base_url,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}")
