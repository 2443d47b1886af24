"""Tests for the command line entry point."""

import asyncio
import json
import threading

import pytest

import idsign.main
from conftest import SERVICE_URL, FakeService, json_response
from idsign.config import Settings
from idsign.main import EXIT_FAILED, EXIT_OK, EXIT_USAGE, console_pin_prompt, main
from idsign.models import TokenOptions


@pytest.fixture
def cli_settings(monkeypatch) -> Settings:
    settings = Settings(_env_file=None, signing_service_url=SERVICE_URL, ui_language="en", client_key="client.key")
    monkeypatch.setattr(idsign.main, "get_settings", lambda: settings)
    return settings


@pytest.fixture
def document(tmp_path):
    path = tmp_path / "document.txt"
    path.write_text("Kinnitan, et olen tutvunud tingimustega.", encoding="utf-8")
    return path


class TestConfigCommand:
    """idsign config"""

    def test_prints_redacted_settings(self, cli_settings, capsys):
        assert main(["config"]) == EXIT_OK

        output = json.loads(capsys.readouterr().out)
        assert output["service"]["url"] == SERVICE_URL
        assert output["service"]["client_key"] == "***"


class TestSignCommands:
    """idsign sign / idsign mid"""

    def test_missing_file(self, cli_settings, tmp_path, capsys):
        assert main(["sign", str(tmp_path / "missing.txt")]) == EXIT_USAGE
        assert "Cannot read" in capsys.readouterr().err

    def test_empty_document(self, cli_settings, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("")

        assert main(["sign", str(path)]) == EXIT_USAGE

    def test_invalid_personal_code(self, cli_settings, document):
        assert main(["mid", str(document), "--personal-code", "123", "--phone", "+37200000766"]) == EXIT_USAGE

    def test_sign_without_token_backend(self, cli_settings, document, capsys):
        assert main(["sign", str(document)]) == EXIT_FAILED
        assert "ID card software is not available" in capsys.readouterr().err

    def test_mobile_id_success(self, cli_settings, document, monkeypatch, capsys):
        service = FakeService({"/mid": json_response({"error": "", "signedfile": "document.asice"})})
        monkeypatch.setattr(idsign.main.SigningServiceClient, "from_settings", lambda settings: service.client())

        exit_code = main(["mid", str(document), "--personal-code", "60001019906", "--phone", "+37200000766"])

        assert exit_code == EXIT_OK
        assert service.body("/mid") == {
            "isikukood": "60001019906",
            "nr": "+37200000766",
            "tekst": "Kinnitan, et olen tutvunud tingimustega.",
        }
        assert "Signing successful" in capsys.readouterr().out

    def test_mobile_id_rejection_shows_service_message(self, cli_settings, document, monkeypatch, capsys):
        service = FakeService({"/mid": json_response({"error": "Kasutaja katkestas"})})
        monkeypatch.setattr(idsign.main.SigningServiceClient, "from_settings", lambda settings: service.client())

        exit_code = main(["mid", str(document), "--personal-code", "60001019906", "--phone", "+37200000766", "--lang", "et"])

        assert exit_code == EXIT_FAILED
        assert "Kasutaja katkestas" in capsys.readouterr().err


class TestPinPrompt:
    """Terminal PIN entry."""

    @pytest.mark.asyncio
    async def test_returns_entered_pin(self, monkeypatch):
        monkeypatch.setattr(idsign.main.getpass, "getpass", lambda prompt: "12345")

        assert await console_pin_prompt(TokenOptions(lang="en")) == "12345"

    @pytest.mark.asyncio
    async def test_end_of_input_cancels(self, monkeypatch):
        def closed_stdin(prompt):
            raise EOFError()

        monkeypatch.setattr(idsign.main.getpass, "getpass", closed_stdin)

        assert await console_pin_prompt(TokenOptions()) is None

    @pytest.mark.asyncio
    async def test_empty_pin_cancels(self, monkeypatch):
        monkeypatch.setattr(idsign.main.getpass, "getpass", lambda prompt: "")

        assert await console_pin_prompt(TokenOptions()) is None

    def test_cancelled_prompt_does_not_block_shutdown(self, monkeypatch):
        """asyncio.run returns while getpass is still waiting for Enter."""
        enter_pressed = threading.Event()
        prompted = threading.Event()

        def waiting_getpass(prompt):
            prompted.set()
            enter_pressed.wait()
            return "12345"

        monkeypatch.setattr(idsign.main.getpass, "getpass", waiting_getpass)

        async def abandon_prompt():
            task = asyncio.create_task(console_pin_prompt(TokenOptions()))
            while not prompted.is_set():
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        runner = threading.Thread(target=asyncio.run, args=(abandon_prompt(),), daemon=True)
        try:
            runner.start()
            runner.join(timeout=5)
            assert not runner.is_alive()
        finally:
            enter_pressed.set()
