"""
Debug logging module for distillation runs.

This module dumps LLM requests, responses and extraction diagnostics as JSON
files under the vault's .flashcard_distil/debug directory when FD_DEBUG=1.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .config import META_DIRNAME


def is_debug_enabled() -> bool:
    """
    Check if debug logging is enabled via environment variable.

    Returns:
        True if FD_DEBUG=1 is set
    """
    return os.getenv("FD_DEBUG", "0") == "1"


class DebugLogger:
    """
    Writes per-session debug dumps.

    Logs are stored in {vault_root}/.flashcard_distil/debug/session_<timestamp>/.
    """

    def __init__(self, vault_root: str = ".", enabled: Optional[bool] = None):
        """
        Initialize debug logger.

        Args:
            vault_root: Vault root directory for log storage
            enabled: Override debug enable flag, uses FD_DEBUG env var if None
        """
        self.vault_root = vault_root
        self.enabled = enabled if enabled is not None else is_debug_enabled()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        self.log_dir = Path(self.vault_root) / META_DIRNAME / "debug"
        self.session_dir = self.log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, step: str, payload: dict) -> None:
        timestamp = datetime.now().isoformat()
        log_data = {"timestamp": timestamp, "session_id": self.session_id, "step": step, **payload}

        filename = f"{step}_{timestamp.replace(':', '-').replace('.', '_')}.json"
        with open(self.session_dir / filename, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)

    def log_llm_request(self, source_path: str, provider_id: str, prompt: str) -> None:
        """
        Log a generation request.

        Args:
            source_path: Note being distilled
            provider_id: Selected provider
            prompt: Full prompt sent to the model
        """
        if not self.enabled:
            return
        self._write(
            "llm_request",
            {"source_path": source_path, "provider_id": provider_id, "prompt": prompt, "prompt_length": len(prompt)},
        )

    def log_llm_response(self, source_path: str, raw: Any, accumulated: str, extracted: Optional[str]) -> None:
        """
        Log the raw result, the streamed text and what was extracted from them.

        Args:
            source_path: Note being distilled
            raw: Raw result returned by the generation service
            accumulated: Last accumulated text seen from progress callbacks
            extracted: Text chosen by the extraction precedence, if any
        """
        if not self.enabled:
            return
        self._write(
            "llm_response",
            {
                "source_path": source_path,
                "raw_type": type(raw).__name__,
                "raw": raw,
                "accumulated": accumulated,
                "extracted": extracted,
                "extracted_length": len(extracted) if extracted else 0,
            },
        )


# Global debug logger instance
_debug_logger: Optional[DebugLogger] = None


def get_debug_logger(vault_root: str = ".") -> DebugLogger:
    """
    Get or create global debug logger instance.

    Args:
        vault_root: Vault root directory

    Returns:
        DebugLogger instance
    """
    global _debug_logger
    if _debug_logger is None or _debug_logger.vault_root != vault_root or _debug_logger.enabled != is_debug_enabled():
        _debug_logger = DebugLogger(vault_root)
    return _debug_logger
