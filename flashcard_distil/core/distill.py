"""
Flashcard distillation for the Flashcard Distiller.

This module runs one end-to-end distillation for one note: it checks the
note may be used as input, sends it with the instruction prompt to a
generation provider, cleans the response and writes it as a tagged
flashcard note in the mirrored output tree, replacing any earlier version.
"""

import logging
from typing import Callable, Optional

from .config import Settings, SettingsStore
from .debug_log import get_debug_logger
from .llm_handler import GenerationService, LLMHandlerError
from .placement import destination_path, is_generated_content, parent_folder, should_skip, tag_line
from .progress import reporter
from .prompt import build_prompt
from .response import extract_response_text, sanitize_response
from .timing import timer
from .types import DistillationOutcome, DistillStatus, FailureReason, GenerationRequest, ProviderInfo, SourceItem
from .vault import ContentStore, FolderExistsError, VaultError

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[], Optional[GenerationService]]
Notify = Callable[[str], None]

# Failures whose message stands on its own, without the "Failed to distill" prefix
QUIET_REASONS = (FailureReason.PROVIDER_UNAVAILABLE, FailureReason.NO_PROVIDER, FailureReason.EMPTY_RESPONSE, FailureReason.EMPTY_AFTER_SANITIZE)


class DistillationError(Exception):
    """Raised when a distillation step cannot continue."""

    def __init__(self, message: str, reason: FailureReason):
        super().__init__(message)
        self.reason = reason


def select_provider(service: GenerationService, selected_provider_id: str = "") -> Optional[ProviderInfo]:
    """
    Pick the provider for a run.

    Order: the configured provider if it still exists, the service's main
    provider, then the first available provider.
    """
    found = service.find_provider(selected_provider_id)
    if found is not None:
        return found

    main = service.find_provider(getattr(service, "main_provider_id", ""))
    if main is not None:
        return main

    return service.providers[0] if service.providers else None


def compose_flashcard_note(source_path: str, flashcards: str, settings: Settings) -> str:
    """Build the full text of a flashcard note: tag line, optional header, cards."""
    text = tag_line(source_path, settings) + "\n\n"
    header = settings.file_header.strip()
    if header:
        text += header + "\n\n"
    return text + flashcards


class FlashcardDistiller:
    """
    Runs distillations against a vault.

    Collaborators are injected so the pipeline can run without a real
    provider or filesystem:

    - settings_store: source of the current settings snapshot
    - store: content store holding notes
    - service_factory: returns the generation service, or None if unavailable
    - notify: receives user-visible notices
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        store: ContentStore,
        service_factory: ServiceFactory,
        notify: Optional[Notify] = None,
        vault_root: str = ".",
    ):
        self.settings_store = settings_store
        self.store = store
        self.service_factory = service_factory
        self.notify = notify or reporter.notice
        self.vault_root = vault_root

    @timer
    def distill(self, source_path: str) -> DistillationOutcome:
        """
        Distill flashcards for one note.

        Never raises; every failure is logged, reported through `notify`
        and returned as a failed outcome.

        Args:
            source_path: Vault-relative path of the note

        Returns:
            DistillationOutcome describing the terminal state
        """
        settings = self.settings_store.current

        if should_skip(source_path, settings):
            return self._skipped(source_path, "File is in an excluded folder or flashcard root")

        item = SourceItem(path=source_path)
        try:
            item = SourceItem(path=source_path, content=self.store.read(source_path))
        except Exception as e:
            logger.exception(f"Reading {source_path} failed")
            return self._failed(item, FailureReason.READ_FAILURE, str(e) or type(e).__name__)

        if not item.content.strip() or is_generated_content(item.content, settings):
            return self._skipped(source_path, "Skipping: empty or already a flashcard note")

        try:
            provider, flashcards = self._generate(item, settings)
            target = self.save_flashcards(item.path, flashcards, settings)
        except DistillationError as e:
            logger.warning(f"Distillation of {source_path} stopped: {e}")
            return self._failed(item, e.reason, str(e))
        except LLMHandlerError as e:
            logger.exception(f"Flashcard distillation failed for {source_path}")
            return self._failed(item, FailureReason.GENERATION_FAILURE, str(e))
        except VaultError as e:
            logger.exception(f"Saving flashcards for {source_path} failed")
            return self._failed(item, FailureReason.WRITE_FAILURE, str(e))
        except Exception as e:
            logger.exception(f"Flashcard distillation failed for {source_path}")
            return self._failed(item, FailureReason.GENERATION_FAILURE, str(e) or type(e).__name__)

        self.notify(f"Flashcards distilled • {item.basename}")
        return DistillationOutcome(
            status=DistillStatus.DONE,
            source_path=source_path,
            destination_path=target,
            provider_id=provider.id,
            flashcards=flashcards,
            message=f"Flashcards distilled • {item.basename}",
        )

    def _generate(self, item: SourceItem, settings: Settings):
        """Resolve a provider, run the request and return (provider, sanitized flashcards)."""
        reporter.step("Connecting to the generation service…")
        try:
            service = self.service_factory()
        except Exception as e:
            logger.warning(f"Generation service failed to load: {e}")
            service = None
        if service is None:
            raise DistillationError("AI provider service not available", FailureReason.PROVIDER_UNAVAILABLE)

        provider = select_provider(service, settings.selected_provider_id)
        if provider is None:
            raise DistillationError("No AI provider available", FailureReason.NO_PROVIDER)

        self.notify(f"Distilling flashcards • {item.basename}")
        reporter.step(f"Generating flashcards with {provider.display_name}…")

        prompt = build_prompt(settings.system_prompt, item.content)
        debug_logger = get_debug_logger(self.vault_root)
        debug_logger.log_llm_request(item.path, provider.id, prompt)

        accumulated = ""

        def on_progress(_chunk: str, total: str) -> None:
            nonlocal accumulated
            accumulated = total
            reporter.sub_step(f"Receiving flashcards ({len(total)} chars)")

        raw = service.execute(GenerationRequest(provider=provider, prompt=prompt, on_progress=on_progress))

        text = extract_response_text(raw, accumulated)
        debug_logger.log_llm_response(item.path, raw, accumulated, text)

        if not text or not text.strip():
            logger.warning(f"Received empty response for {item.path} (raw type: {type(raw).__name__}, streamed: {len(accumulated)} chars)")
            raise DistillationError(f"Nothing distilled for {item.basename} (empty response)", FailureReason.EMPTY_RESPONSE)

        flashcards = sanitize_response(text, settings.flashcard_tag)
        if not flashcards:
            raise DistillationError(f"No flashcards left after cleaning for {item.basename}", FailureReason.EMPTY_AFTER_SANITIZE)

        return provider, flashcards

    def save_flashcards(self, source_path: str, flashcards: str, settings: Settings) -> str:
        """
        Write the flashcard note for `source_path`, replacing any earlier version.

        Returns:
            Vault path of the written note

        Raises:
            VaultError: If a folder or the note cannot be written
        """
        reporter.step("Saving flashcards…")
        target = destination_path(source_path, settings)

        folder = parent_folder(target)
        if folder and not self.store.exists(folder):
            try:
                self.store.create_folder(folder)
            except FolderExistsError:
                pass

        content = compose_flashcard_note(source_path, flashcards, settings)
        if self.store.exists(target):
            self.store.modify(target, content)
        else:
            self.store.create(target, content)

        logger.info(f"Saved flashcards for {source_path} to {target}")
        return target

    def _skipped(self, source_path: str, message: str) -> DistillationOutcome:
        self.notify(message)
        return DistillationOutcome(status=DistillStatus.SKIPPED, source_path=source_path, message=message)

    def _failed(self, item: SourceItem, reason: FailureReason, detail: str) -> DistillationOutcome:
        if reason in QUIET_REASONS:
            message = detail
        else:
            message = f"Failed to distill flashcards: {detail}"
        self.notify(message)
        return DistillationOutcome(status=DistillStatus.FAILED, source_path=item.path, reason=reason, message=message)
