"""
Vault access for the Flashcard Distiller.

This module provides the content store used by the distillation pipeline:
reading notes, checking existence, creating folders and writing notes.
Paths are vault-relative and forward-slash separated; all text is UTF-8.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

NOTE_EXTENSION = ".md"


class VaultError(Exception):
    """Raised when vault operations fail."""

    pass


class FolderExistsError(VaultError):
    """Raised when creating a folder that already exists."""

    pass


class ContentStore(Protocol):
    """Operations the distillation pipeline needs from a note store."""

    def read(self, path: str) -> str: ...

    def exists(self, path: str) -> bool: ...

    def create_folder(self, path: str) -> None: ...

    def create(self, path: str, content: str) -> None: ...

    def modify(self, path: str, content: str) -> None: ...


class VaultStore:
    """
    Filesystem-backed content store rooted at a vault directory.
    """

    def __init__(self, vault_root: Optional[str] = None):
        """
        Initialize the store.

        Args:
            vault_root: Vault directory. If None, uses the current working directory.
        """
        self.vault_root = Path(vault_root) if vault_root else Path.cwd()
        if not self.vault_root.is_dir():
            raise VaultError(f"Vault root does not exist: {self.vault_root}")

    def _full_path(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise VaultError(f"Path escapes the vault: {path}")
        return self.vault_root.joinpath(*rel.parts)

    def read(self, path: str) -> str:
        try:
            return self._full_path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise VaultError(f"Failed to read '{path}': {e}")

    def exists(self, path: str) -> bool:
        return self._full_path(path).exists()

    def create_folder(self, path: str) -> None:
        """
        Create a folder and any missing parents.

        Raises:
            FolderExistsError: If the folder already exists
            VaultError: If the folder cannot be created
        """
        full = self._full_path(path)
        if full.is_dir():
            raise FolderExistsError(f"Folder already exists: {path}")
        try:
            full.mkdir(parents=True)
        except FileExistsError:
            raise FolderExistsError(f"Folder already exists: {path}")
        except OSError as e:
            raise VaultError(f"Failed to create folder '{path}': {e}")

    def create(self, path: str, content: str) -> None:
        """
        Create a new note, including missing parent folders.

        Raises:
            VaultError: If the note already exists or cannot be written
        """
        full = self._full_path(path)
        if full.exists():
            raise VaultError(f"File already exists: {path}")
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(content, encoding="utf-8")
        except OSError as e:
            raise VaultError(f"Failed to create '{path}': {e}")

    def modify(self, path: str, content: str) -> None:
        """
        Replace the full content of an existing note.

        Raises:
            VaultError: If the note does not exist or cannot be written
        """
        full = self._full_path(path)
        if not full.is_file():
            raise VaultError(f"File not found: {path}")
        try:
            full.write_text(content, encoding="utf-8")
        except OSError as e:
            raise VaultError(f"Failed to write '{path}': {e}")

    def relative_path(self, path: str) -> Optional[str]:
        """
        Convert a filesystem path (absolute, or relative to the CWD or vault) to a vault path.

        Returns None when the path lies outside the vault.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            in_vault = self.vault_root / candidate
            candidate = in_vault if in_vault.exists() else Path.cwd() / candidate
        try:
            rel = candidate.resolve().relative_to(self.vault_root.resolve())
        except ValueError:
            return None
        return rel.as_posix()

    def resolve_active_note(self, path: Optional[str]) -> Optional[str]:
        """
        Resolve the note the user asked to distill.

        Returns the vault path of an existing markdown note, or None if `path`
        does not name one.
        """
        if not path:
            return None
        rel = self.relative_path(path)
        if rel is None or not rel.endswith(NOTE_EXTENSION):
            logger.debug(f"Not a vault note: {path}")
            return None
        if not self._full_path(rel).is_file():
            return None
        return rel
