"""
Placement of generated flashcard notes.

Pure path arithmetic: which notes are skipped, where a note's flashcards are
written, and how the tag line of a generated note looks. Every generated note
lives at `<flashcard root>/<source path>` so the output tree mirrors the vault.
"""

from typing import Iterable

from .config import Settings


def strip_trailing_slash(path: str) -> str:
    """Remove one trailing '/' if present."""
    return path[:-1] if path.endswith("/") else path


def is_within(path: str, folder: str) -> bool:
    """
    Check whether `path` equals `folder` or is nested under it.

    The test is segment-based: 'Flashcards2/a.md' is not within 'Flashcards'.
    """
    folder = strip_trailing_slash(folder)
    if not folder:
        return False
    return path == folder or path.startswith(folder + "/")


def is_excluded(path: str, excluded_folders: Iterable[str]) -> bool:
    return any(is_within(path, folder) for folder in excluded_folders)


def should_skip(path: str, settings: Settings) -> bool:
    """
    Decide whether a note must not be used as distillation input.

    True when the note sits in the flashcard root (it is generated output)
    or in any excluded folder.
    """
    if is_within(path, settings.flashcard_root):
        return True
    return is_excluded(path, settings.excluded_folders)


def destination_path(source_path: str, settings: Settings) -> str:
    """Mirrored location of the flashcard note for `source_path`."""
    return f"{strip_trailing_slash(settings.flashcard_root)}/{source_path}"


def strip_extension(path: str) -> str:
    """Drop the extension suffix of the last path segment ('Books/Fables.md' -> 'Books/Fables')."""
    head, sep, name = path.rpartition("/")
    if "." in name.lstrip("."):
        name = name[: name.rfind(".")]
    return f"{head}{sep}{name}"


def base_tag(settings: Settings) -> str:
    """The bare tag marker, e.g. '#flashcards'."""
    return f"#{settings.flashcard_tag}"


def tag_prefix(settings: Settings) -> str:
    """The prefix identifying generated notes, e.g. '#flashcards/'."""
    return f"{base_tag(settings)}/"


def tag_line(source_path: str, settings: Settings) -> str:
    """First line of a generated note, e.g. '#flashcards/Books/Fables'."""
    return f"{tag_prefix(settings)}{strip_extension(source_path)}"


def is_generated_content(content: str, settings: Settings) -> bool:
    """True when note content starts with the tag prefix, i.e. it is already a flashcard note."""
    return content.strip().startswith(tag_prefix(settings))


def parent_folder(path: str) -> str:
    """Folder part of a vault path, empty for top-level paths."""
    return path.rpartition("/")[0]
