"""
Main CLI interface for the Flashcard Distiller.

This module provides the Typer-based command-line interface with commands for:
- Generating flashcards for a note
- Listing generation providers
- Viewing and updating vault settings
- Initializing a vault
"""

import logging
import os
import sys
from typing import Optional

import pyperclip
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core.config import (
    DEFAULT_ENV_FILENAME,
    META_DIRNAME,
    SETTING_KEYS,
    ConfigError,
    SettingsStore,
    ensure_project_env,
    get_settings_path,
    resolve_vault_root,
    save_settings,
)
from .core.distill import FlashcardDistiller, select_provider
from .core.llm_handler import load_generation_service
from .core.progress import reporter
from .core.prompt import DEFAULT_SYSTEM_PROMPT
from .core.types import DistillStatus
from .core.vault import VaultError, VaultStore

app = typer.Typer(
    name="flashcard-distil",
    help="Flashcard Distiller CLI - Turn vault notes into spaced-repetition flashcard notes",
    no_args_is_help=True,
)
config_app = typer.Typer(help="View and update vault settings", no_args_is_help=True)
app.add_typer(config_app, name="config")

console = Console()


def _setup_debug(debug: bool) -> None:
    """Set FD_DEBUG - the CLI flag always overrides .env - and route logs through rich."""
    if debug:
        os.environ["FD_DEBUG"] = "1"
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", handlers=[RichHandler(console=console, show_path=False)], force=True)
    elif os.environ.get("FD_DEBUG") != "1":
        os.environ["FD_DEBUG"] = "0"


@app.command()
def generate(
    note: Optional[str] = typer.Argument(None, help="Path of the note to distill (absolute, or relative to the vault)"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault root directory (default: detected from .flashcard_distil)"),
    show: bool = typer.Option(False, "--show", help="Render the saved flashcard note"),
    copy: bool = typer.Option(False, "--copy", help="Copy the flashcards to the clipboard"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging and request/response dumps"),
):
    """
    Generate flashcards for the active note.

    Examples:
        flashcard-distil generate "Books/Fables.md"
        flashcard-distil generate ~/vault/Papers/Attention.md --vault ~/vault --show
    """
    _setup_debug(debug)
    try:
        vault_root = str(resolve_vault_root(vault))
        store = VaultStore(vault_root)
        settings_store = SettingsStore(vault_root)
    except (ConfigError, VaultError) as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

    source_path = store.resolve_active_note(note)
    if source_path is None:
        console.print("[yellow]No active note found[/yellow]")
        return

    distiller = FlashcardDistiller(
        settings_store,
        store,
        lambda: load_generation_service(vault_root),
        vault_root=vault_root,
    )

    with reporter.initialize(console, f"Checking {source_path}…"):
        outcome = distiller.distill(source_path)
        reporter.complete_step()

    if outcome.status == DistillStatus.FAILED:
        console.print(f"[bold red]Error:[/bold red] distillation failed ({outcome.reason.value})")
        sys.exit(1)
    if outcome.status == DistillStatus.SKIPPED:
        return

    console.print(Panel(f"[bold]{escape(outcome.destination_path)}[/bold]", title="Flashcard note saved", border_style="green"))

    if show:
        console.print(Markdown(store.read(outcome.destination_path)))

    if copy and outcome.flashcards:
        try:
            pyperclip.copy(outcome.flashcards)
            console.print("[dim]Flashcards copied to clipboard[/dim]")
        except pyperclip.PyperclipException:
            # Clipboard support is optional
            pass


@app.command()
def providers(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault root directory"),
):
    """
    List generation providers and show which one distillation will use.
    """
    try:
        vault_root = str(resolve_vault_root(vault))
        settings = SettingsStore(vault_root).current
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

    service = load_generation_service(vault_root)
    if service is None:
        console.print("[bold red]Error:[/bold red] AI provider service not available")
        sys.exit(1)

    active = select_provider(service, settings.selected_provider_id)

    table = Table(title="Providers")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Model", style="white")
    table.add_column("", style="green")

    for provider in service.providers:
        marks = []
        if provider.id == service.main_provider_id:
            marks.append("main")
        if active is not None and provider.id == active.id:
            marks.append("in use")
        table.add_row(provider.id, provider.display_name, provider.model, ", ".join(marks))

    console.print(table)
    if not service.providers:
        console.print("[yellow]No AI provider available[/yellow]")
    elif settings.selected_provider_id and service.find_provider(settings.selected_provider_id) is None:
        console.print(f"[yellow]Selected provider '{settings.selected_provider_id}' not found, falling back to {active.id}[/yellow]")


@app.command()
def init(
    vault: Optional[str] = typer.Option(".", "--vault", "-v", help="Vault root directory"),
):
    """
    Create .flashcard_distil with default settings and an env template.

    Existing files are left untouched.
    """
    try:
        settings_path = get_settings_path(vault)
        if not settings_path.exists():
            save_settings(SettingsStore(vault, persist=False).current, vault)
        env_path = ensure_project_env(vault)
    except (ConfigError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"[bold green]Vault initialized[/bold green] ({META_DIRNAME})")
    console.print(f"  • Settings: {settings_path}")
    console.print(f"  • Environment: {env_path} (edit {DEFAULT_ENV_FILENAME} to add your API key)")


@config_app.command("show")
def config_show(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault root directory"),
):
    """Show the current settings."""
    try:
        settings = SettingsStore(vault).current
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for key, value in settings.to_blob().items():
        if isinstance(value, list):
            value = ", ".join(value)
        if key == "systemPrompt" and len(value) > 80:
            value = value[:80] + "…"
        table.add_row(key, escape(value) if value else "[dim](empty)[/dim]")

    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. flashcardRoot or excludedFolders"),
    value: str = typer.Argument(..., help="New value; excludedFolders takes a comma-separated list"),
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault root directory"),
):
    """
    Update one setting.

    Examples:
        flashcard-distil config set flashcardTag "#study/"
        flashcard-distil config set excludedFolders "Templates, Private, Journal"
    """
    try:
        updated = SettingsStore(vault).update(**{key: value})
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)

    blob = updated.to_blob()
    field_keys = {name: alias for alias, name in SETTING_KEYS.items()}
    shown = key if key in SETTING_KEYS else field_keys[key]
    console.print(f"[bold green]Updated[/bold green] {shown} = {blob[shown]!r}")


@config_app.command("reset-prompt")
def config_reset_prompt(
    vault: Optional[str] = typer.Option(None, "--vault", "-v", help="Vault root directory"),
):
    """Restore the default system prompt."""
    try:
        SettingsStore(vault).update(system_prompt=DEFAULT_SYSTEM_PROMPT)
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    console.print("[bold green]System prompt reset to default[/bold green]")


if __name__ == "__main__":
    app()
