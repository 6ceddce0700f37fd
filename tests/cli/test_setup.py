"""CLI tests for the setup, mcp and doctor commands."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from gdrive_mcp.auth.models import TokenStatus
from gdrive_mcp.cli.main import main


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_manager(monkeypatch: pytest.MonkeyPatch):
    """Patch OAuthManager with an unauthenticated mock."""
    monkeypatch.delenv("GOOGLE_OAUTH_CLIENT_ID", raising=False)
    monkeypatch.delenv("GOOGLE_OAUTH_CLIENT_SECRET", raising=False)

    with patch("gdrive_mcp.auth.OAuthManager") as mock_manager_class:
        manager = MagicMock()
        manager.has_valid_tokens.return_value = False
        manager.authenticate = AsyncMock()
        manager.token_path = "/tmp/.gdrive-mcp/tokens.json"
        manager.get_status.return_value = (TokenStatus.MISSING, None)
        mock_manager_class.return_value = manager
        yield manager


@pytest.mark.unit
class TestSetupCommand:
    """Tests for the setup CLI command."""

    def test_should_show_error_without_credentials(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        result = cli_runner.invoke(main, ["setup"])

        assert result.exit_code == 1
        assert "OAuth client credentials required" in result.output
        mock_manager.authenticate.assert_not_called()

    def test_should_run_authentication_with_credentials(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        result = cli_runner.invoke(
            main, ["setup", "--client-id=test_id", "--client-secret=test_secret"]
        )

        mock_manager.authenticate.assert_called_once_with(
            client_id="test_id",
            client_secret="test_secret",  # pragma: allowlist secret
        )
        assert result.exit_code == 0
        assert "Browser will open" in result.output
        assert "Authentication successful" in result.output

    def test_should_read_credentials_from_environment(
        self,
        cli_runner: CliRunner,
        mock_manager: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_ID", "env_id")
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_SECRET", "env_secret")

        cli_runner.invoke(main, ["setup"])

        mock_manager.authenticate.assert_called_once_with(
            client_id="env_id",
            client_secret="env_secret",  # pragma: allowlist secret
        )

    def test_should_skip_when_already_authenticated_and_declined(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        mock_manager.has_valid_tokens.return_value = True

        result = cli_runner.invoke(
            main, ["setup", "--client-id=a", "--client-secret=b"], input="n\n"
        )

        assert "Already authenticated" in result.output
        mock_manager.authenticate.assert_not_called()

    def test_should_exit_when_authentication_fails(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        mock_manager.authenticate.side_effect = RuntimeError("access_denied")

        result = cli_runner.invoke(main, ["setup", "--client-id=a", "--client-secret=b"])

        assert result.exit_code == 1
        assert "Authentication failed: access_denied" in result.output


@pytest.mark.unit
class TestMcpCommand:
    """Tests for the mcp CLI command."""

    def test_should_refuse_to_start_without_token(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        with patch("gdrive_mcp.server.main") as server_main:
            result = cli_runner.invoke(main, ["mcp"])

        assert result.exit_code == 1
        assert "gdrive-mcp setup" in result.output
        server_main.assert_not_called()

    def test_should_start_server_when_authenticated(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        mock_manager.get_status.return_value = (TokenStatus.EXPIRED, MagicMock())

        with patch("gdrive_mcp.server.main") as server_main:
            result = cli_runner.invoke(main, ["mcp"])

        assert result.exit_code == 0
        server_main.assert_called_once_with()


@pytest.mark.unit
class TestDoctorCommand:
    """Tests for the doctor CLI command."""

    def test_should_report_missing_token(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        result = cli_runner.invoke(main, ["doctor"])

        assert result.exit_code == 1
        assert "Not authenticated" in result.output

    def test_should_report_valid_token(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        stored = MagicMock()
        stored.token.expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        stored.token.scopes = [
            "https://www.googleapis.com/auth/drive",
            "https://www.googleapis.com/auth/documents",
        ]
        mock_manager.get_status.return_value = (TokenStatus.VALID, stored)

        result = cli_runner.invoke(main, ["doctor"])

        assert result.exit_code == 0
        assert "Authenticated" in result.output
        assert "Scopes: 2 configured" in result.output
        assert "Ready to use" in result.output

    def test_should_warn_about_missing_scopes(
        self, cli_runner: CliRunner, mock_manager: MagicMock
    ) -> None:
        stored = MagicMock()
        stored.token.expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        stored.token.scopes = ["https://www.googleapis.com/auth/drive"]
        mock_manager.get_status.return_value = (TokenStatus.VALID, stored)

        result = cli_runner.invoke(main, ["doctor"])

        assert "Missing scopes: https://www.googleapis.com/auth/documents" in result.output
