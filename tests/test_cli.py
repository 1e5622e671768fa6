"""Tests for CLI commands - configure, sync, exclusions, status, test-connection."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import keyring
import pytest
from click.testing import CliRunner
from keyring.errors import KeyringError, NoKeyringError
from pytest_httpx import HTTPXMock

from vaultsync.client.cli import cli
from vaultsync.client.cli.config import get_token

SERVER = "http://test"


class FakeKeyring:
    """Dictionary-backed keyring."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.passwords: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        if not self.available:
            raise NoKeyringError("no backend")
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        if not self.available:
            raise NoKeyringError("no backend")
        self.passwords[(service, username)] = password


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_keyring(monkeypatch: pytest.MonkeyPatch) -> FakeKeyring:
    store = FakeKeyring()
    monkeypatch.setattr(keyring, "get_password", store.get_password)
    monkeypatch.setattr(keyring, "set_password", store.set_password)
    monkeypatch.delenv("VAULTSYNC_TOKEN", raising=False)
    return store


@pytest.fixture
def config_dir(tmp_path: Path, fake_keyring: FakeKeyring) -> Iterator[Path]:
    """Point the CLI at a temporary config directory."""
    config = tmp_path / ".vaultsync"
    with patch("vaultsync.client.cli.config.get_config_dir", return_value=config):
        yield config


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Undo the handler installed by the CLI group."""
    yield
    vaultsync_logger = logging.getLogger("vaultsync")
    for handler in vaultsync_logger.handlers[:]:
        vaultsync_logger.removeHandler(handler)
    vaultsync_logger.setLevel(logging.NOTSET)
    vaultsync_logger.propagate = True


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "a.md").write_text("# Hello\n#project", encoding="utf-8")
    return vault


@pytest.fixture
def configured(runner: CliRunner, config_dir: Path, vault_dir: Path) -> Path:
    """Configure server, token and vault."""
    result = runner.invoke(
        cli,
        ["configure", "--server", SERVER, "--token", "secret", "--vault", str(vault_dir)],
    )
    assert result.exit_code == 0
    return config_dir


def read_config(config_dir: Path) -> dict:
    return json.loads((config_dir / "config.json").read_text())


class TestConfigureCommand:
    """Tests for 'vaultsync configure'."""

    def test_saves_settings(
        self, runner: CliRunner, config_dir: Path, vault_dir: Path, fake_keyring: FakeKeyring
    ) -> None:
        """Should write server, vault and token."""
        result = runner.invoke(
            cli,
            [
                "configure",
                "--server", f"{SERVER}/",
                "--token", " secret ",
                "--vault", str(vault_dir),
                "--no-auto-sync",
            ],
        )

        assert result.exit_code == 0
        assert "Configuration saved." in result.output
        assert "API token stored in the system keyring." in result.output
        config = read_config(config_dir)
        assert config["server_url"] == SERVER
        assert "token" not in config
        assert config["settings"]["vault_path"] == str(vault_dir.resolve())
        assert config["settings"]["auto_sync"] is False
        assert fake_keyring.passwords[("vaultsync", "api_token")] == "secret"

    def test_token_falls_back_to_config(
        self, runner: CliRunner, config_dir: Path, fake_keyring: FakeKeyring
    ) -> None:
        """Should store the token in the config file without a keyring."""
        fake_keyring.available = False

        result = runner.invoke(cli, ["configure", "--token", "secret"])

        assert result.exit_code == 0
        assert "config file" in result.output
        assert read_config(config_dir)["token"] == "secret"

    def test_hours_before_clamped(self, runner: CliRunner, config_dir: Path) -> None:
        """Should keep the pre-digest window within 1-12 hours."""
        result = runner.invoke(cli, ["configure", "--hours-before", "20"])

        assert result.exit_code == 0
        assert read_config(config_dir)["settings"]["scheduled_sync_hours_before"] == 12

    def test_keeps_unrelated_settings(self, runner: CliRunner, config_dir: Path) -> None:
        """Only the given options should change."""
        runner.invoke(cli, ["configure", "--no-scheduled-sync"])
        runner.invoke(cli, ["configure", "--hours-before", "4"])

        settings = read_config(config_dir)["settings"]
        assert settings["scheduled_sync"] is False
        assert settings["scheduled_sync_hours_before"] == 4


class TestTokenLookup:
    """Tests for get_token precedence."""

    def test_env_wins(
        self, config_dir: Path, fake_keyring: FakeKeyring, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The environment variable should override other sources."""
        fake_keyring.passwords[("vaultsync", "api_token")] = "from-keyring"
        monkeypatch.setenv("VAULTSYNC_TOKEN", "from-env")

        assert get_token({"token": "from-config"}) == "from-env"

    def test_keyring_before_config(self, config_dir: Path, fake_keyring: FakeKeyring) -> None:
        """The keyring should win over the config file."""
        fake_keyring.passwords[("vaultsync", "api_token")] = "from-keyring"

        assert get_token({"token": "from-config"}) == "from-keyring"

    def test_keyring_error_falls_back(
        self, config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A broken keyring should not prevent reading the config file."""
        def broken(service: str, username: str) -> str:
            raise KeyringError("locked")

        monkeypatch.setattr(keyring, "get_password", broken)

        assert get_token({"token": "from-config"}) == "from-config"
        assert get_token({}) is None


class TestSyncCommand:
    """Tests for 'vaultsync sync'."""

    def test_requires_token(self, runner: CliRunner, config_dir: Path) -> None:
        """Should fail before configuration."""
        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "Not configured" in result.output

    def test_requires_vault(self, runner: CliRunner, config_dir: Path) -> None:
        """Should fail without a vault."""
        runner.invoke(cli, ["configure", "--token", "secret"])

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "No vault configured" in result.output

    def test_first_sync_is_full(
        self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock
    ) -> None:
        """The first sync should fetch exclusions and upload every note."""
        httpx_mock.add_response(
            method="GET", url=f"{SERVER}/api/vault/exclusions", json={"folders": [], "tags": []}
        )
        httpx_mock.add_response(
            method="POST",
            url=f"{SERVER}/api/vault/sync",
            json={"batch_id": "b", "processed": 1, "indexed": 1, "errors": []},
        )

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 0, result.output
        assert "Sync complete: 1 uploaded, 0 deleted, 0 errors" in result.output
        body = json.loads(httpx_mock.get_requests()[1].content)
        assert [n["path"] for n in body["notes"]] == ["a.md"]
        assert body["is_final_batch"] is True
        assert body["vault_name"] == "vault"
        assert (configured / "state.db").exists()

    def test_failure_exits_nonzero(
        self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock
    ) -> None:
        """An API error should be reported with exit status 1."""
        httpx_mock.add_response(status_code=401, json={"error": "Invalid token"})

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "Sync failed: Invalid token" in result.output

    def test_garbled_response_exits_nonzero(
        self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock
    ) -> None:
        """A non-JSON success body from the sync endpoint should fail the run."""
        httpx_mock.add_response(
            method="GET", url=f"{SERVER}/api/vault/exclusions", json={"folders": [], "tags": []}
        )
        httpx_mock.add_response(
            method="POST", url=f"{SERVER}/api/vault/sync", text="<html>gateway</html>"
        )

        result = runner.invoke(cli, ["sync"])

        assert result.exit_code == 1
        assert "Sync failed: Invalid JSON response" in result.output


class TestExclusionsCommand:
    """Tests for 'vaultsync exclusions'."""

    def test_set_requires_rules(self, runner: CliRunner, configured: Path) -> None:
        """Should refuse to clear rules implicitly."""
        result = runner.invoke(cli, ["exclusions", "set"])

        assert result.exit_code == 1
        assert "--clear" in result.output

    def test_show(self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock) -> None:
        """Should list folders and tags."""
        httpx_mock.add_response(json={"folders": ["private/"], "tags": ["#draft"]})

        result = runner.invoke(cli, ["exclusions", "show"])

        assert result.exit_code == 0
        assert "private/" in result.output
        assert "#draft" in result.output

    def test_set(self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock) -> None:
        """Should push normalized rules and report removed notes."""
        httpx_mock.add_response(
            method="PUT",
            url=f"{SERVER}/api/vault/exclusions",
            json={"updated": True, "deleted_count": 2, "deleted_paths": ["x.md", "y.md"]},
        )

        result = runner.invoke(cli, ["exclusions", "set", "--folder", "private", "--tag", "draft"])

        assert result.exit_code == 0, result.output
        assert "Exclusions updated." in result.output
        assert "2 notes removed from the server." in result.output
        body = json.loads(httpx_mock.get_requests()[0].content)
        assert body == {"folders": ["private/"], "tags": ["#draft"]}


class TestInfoCommands:
    """Tests for status and test-connection."""

    def test_status(self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock) -> None:
        """Should print server counters and sync health."""
        httpx_mock.add_response(
            url=f"{SERVER}/api/vault/status",
            json={"vault_name": "vault", "total_notes": 5, "indexed_notes": 4,
                  "pending_notes": 1, "last_sync": None},
        )

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Notes on server: 5 (4 indexed, 1 pending)" in result.output
        assert "Last sync: never synced" in result.output

    def test_connection_success(
        self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock
    ) -> None:
        """Should confirm a working connection."""
        httpx_mock.add_response(json={})

        result = runner.invoke(cli, ["test-connection"])

        assert result.exit_code == 0
        assert f"Connected to {SERVER}" in result.output

    def test_connection_failure(
        self, runner: CliRunner, configured: Path, httpx_mock: HTTPXMock
    ) -> None:
        """Should fail with the server's message."""
        httpx_mock.add_response(status_code=401, json={"error": "Invalid token"})

        result = runner.invoke(cli, ["test-connection"])

        assert result.exit_code == 1
        assert "Connection failed: Invalid token" in result.output
