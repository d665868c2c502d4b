"""
Tests for the command-line interface.

Commands run through Typer's CliRunner against a temporary vault with the
generation service replaced by a dummy client.
"""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import List

import pytest
from typer.testing import CliRunner

import flashcard_distil.main as main_mod
from flashcard_distil.core.llm_handler import GenerationService
from flashcard_distil.core.types import ProviderInfo

runner = CliRunner()


class DummyClient:
    def __init__(self, text: str):
        self.text = text
        self.chat = SimpleNamespace(completions=self)

    def create(self, **params):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.text))])


def use_service(monkeypatch: pytest.MonkeyPatch, text: str, providers: List[ProviderInfo] = None, main: str = "local") -> None:
    providers = providers or [ProviderInfo(id="local", name="Local", model="llama3", stream=False)]
    service = GenerationService(providers, main_provider_id=main, client_factory=lambda _key_env, _base_url: DummyClient(text))
    monkeypatch.setattr(main_mod, "load_generation_service", lambda _vault_root=None: service)


def write_note(vault: Path, rel: str, content: str) -> None:
    path = vault / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def cli_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FD_DEBUG", "0")
    for var in ("FD_VAULT_ROOT", "FLASHCARD_DISTIL_VAULT_ROOT", "FD_ENV_FILE", "FLASHCARD_DISTIL_ENV_FILE"):
        monkeypatch.delenv(var, raising=False)


class TestGenerate:
    def test_writes_flashcard_note(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        write_note(tmp_path, "Books/Fables.md", "The fox and the grapes.")
        use_service(monkeypatch, "#flashcards\nFox?\nSour grapes.")

        result = runner.invoke(main_mod.app, ["generate", "Books/Fables.md", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Flashcard note saved" in result.output
        saved = (tmp_path / "Flashcards" / "Books" / "Fables.md").read_text(encoding="utf-8")
        assert saved == "#flashcards/Books/Fables\n\nFox?\nSour grapes."

    def test_absolute_note_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        write_note(tmp_path, "Top.md", "Body")
        use_service(monkeypatch, "Q :: A")

        result = runner.invoke(main_mod.app, ["generate", str(tmp_path / "Top.md"), "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "Flashcards" / "Top.md").exists()

    def test_no_active_note(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        write_note(tmp_path, "image.png", "binary")
        use_service(monkeypatch, "Q :: A")

        for args in (["generate", "--vault", str(tmp_path)], ["generate", "image.png", "--vault", str(tmp_path)], ["generate", "Missing.md", "--vault", str(tmp_path)]):
            result = runner.invoke(main_mod.app, args)
            assert result.exit_code == 0
            assert "No active note found" in result.output

        assert not (tmp_path / "Flashcards").exists()

    def test_excluded_note_is_skipped(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        write_note(tmp_path, "Templates/Daily.md", "Template body")
        use_service(monkeypatch, "Q :: A")

        result = runner.invoke(main_mod.app, ["generate", "Templates/Daily.md", "--vault", str(tmp_path)])

        assert result.exit_code == 0
        assert "excluded folder" in result.output
        assert not (tmp_path / "Flashcards").exists()

    def test_empty_response_fails(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        write_note(tmp_path, "Books/Fables.md", "Body")
        use_service(monkeypatch, "")

        result = runner.invoke(main_mod.app, ["generate", "Books/Fables.md", "--vault", str(tmp_path)])

        assert result.exit_code == 1
        assert "empty_response" in result.output
        assert not (tmp_path / "Flashcards" / "Books" / "Fables.md").exists()

    def test_show_renders_note(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        write_note(tmp_path, "Books/Fables.md", "Body")
        use_service(monkeypatch, "Who tells fables?\nAesop")

        result = runner.invoke(main_mod.app, ["generate", "Books/Fables.md", "--vault", str(tmp_path), "--show"])

        assert result.exit_code == 0, result.output
        assert "Aesop" in result.output


class TestProviders:
    def test_lists_providers_and_marks_active(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        providers = [ProviderInfo(id="cloud", name="Cloud", model="gpt-4o-mini"), ProviderInfo(id="local", name="Local", model="llama3")]
        use_service(monkeypatch, "", providers=providers, main="cloud")

        result = runner.invoke(main_mod.app, ["providers", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "cloud" in result.output
        assert "local" in result.output
        assert "in use" in result.output

    def test_unavailable_service(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(main_mod, "load_generation_service", lambda _vault_root=None: None)

        result = runner.invoke(main_mod.app, ["providers", "--vault", str(tmp_path)])

        assert result.exit_code == 1
        assert "not available" in result.output


class TestInitAndConfig:
    def test_init_creates_settings_and_env(self, tmp_path: Path):
        result = runner.invoke(main_mod.app, ["init", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Vault initialized" in result.output
        blob = json.loads((tmp_path / ".flashcard_distil" / "settings.json").read_text(encoding="utf-8"))
        assert blob["flashcardRoot"] == "Flashcards"
        assert (tmp_path / ".flashcard_distil" / ".env").exists()

    def test_init_keeps_existing_settings(self, tmp_path: Path):
        settings_path = tmp_path / ".flashcard_distil" / "settings.json"
        settings_path.parent.mkdir()
        settings_path.write_text('{"flashcardRoot": "Cards"}', encoding="utf-8")

        result = runner.invoke(main_mod.app, ["init", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert json.loads(settings_path.read_text(encoding="utf-8")) == {"flashcardRoot": "Cards"}

    def test_config_set_normalizes_tag(self, tmp_path: Path):
        result = runner.invoke(main_mod.app, ["config", "set", "flashcardTag", "#study/", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "'study'" in result.output
        blob = json.loads((tmp_path / ".flashcard_distil" / "settings.json").read_text(encoding="utf-8"))
        assert blob["flashcardTag"] == "study"

    def test_config_set_excluded_folders(self, tmp_path: Path):
        result = runner.invoke(main_mod.app, ["config", "set", "excludedFolders", "Templates, Private", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        blob = json.loads((tmp_path / ".flashcard_distil" / "settings.json").read_text(encoding="utf-8"))
        assert blob["excludedFolders"] == ["Templates", "Private"]

    def test_config_set_empty_root_rejected(self, tmp_path: Path):
        result = runner.invoke(main_mod.app, ["config", "set", "flashcardRoot", "", "--vault", str(tmp_path)])

        assert result.exit_code == 1
        assert "flashcardRoot" in result.output
        assert not (tmp_path / ".flashcard_distil" / "settings.json").exists()

    def test_config_set_unknown_key(self, tmp_path: Path):
        result = runner.invoke(main_mod.app, ["config", "set", "outputDir", "x", "--vault", str(tmp_path)])

        assert result.exit_code == 1
        assert "Unknown setting" in result.output

    def test_config_show(self, tmp_path: Path):
        result = runner.invoke(main_mod.app, ["config", "show", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "flashcardRoot" in result.output
        assert "Templates" in result.output

    def test_config_reset_prompt(self, tmp_path: Path):
        runner.invoke(main_mod.app, ["config", "set", "systemPrompt", "Only one card.", "--vault", str(tmp_path)])

        result = runner.invoke(main_mod.app, ["config", "reset-prompt", "--vault", str(tmp_path)])

        assert result.exit_code == 0, result.output
        blob = json.loads((tmp_path / ".flashcard_distil" / "settings.json").read_text(encoding="utf-8"))
        assert blob["systemPrompt"] != "Only one card."
