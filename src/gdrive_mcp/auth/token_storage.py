"""Project-level OAuth token file for gdrive-mcp.

Tokens are kept in ``./.gdrive-mcp/tokens.json``, beside the project's
OAuth client credentials, so every project directory runs its own
``gdrive-mcp setup``. The file maps a service name to a serialized
``StoredToken``.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from gdrive_mcp.auth.models import (
    OAuthToken,
    StoredToken,
    TokenMetadata,
    TokenStatus,
)

logger = logging.getLogger(__name__)

CREDENTIALS_DIR_NAME = ".gdrive-mcp"
TOKEN_FILE_NAME = "tokens.json"

DIR_MODE = 0o700
FILE_MODE = 0o600


def get_token_path() -> Path:
    """Return ./.gdrive-mcp/tokens.json under the current working directory."""
    return Path.cwd() / CREDENTIALS_DIR_NAME / TOKEN_FILE_NAME


class TokenStorage:
    """Read and write service tokens in a single owner-only JSON file.

    The status lookup distinguishes a token that was never stored
    (MISSING) from one whose entry no longer parses (INVALID), so the
    API client can tell the user whether to authenticate or re-authenticate.
    """

    def __init__(self, token_path: Path | None = None) -> None:
        self.token_path = token_path or get_token_path()
        self._ensure_credentials_dir()

    def _ensure_credentials_dir(self) -> None:
        directory = self.token_path.parent
        directory.mkdir(parents=True, mode=DIR_MODE, exist_ok=True)
        directory.chmod(DIR_MODE)

    def _read_entries(self) -> dict[str, Any]:
        """Return the raw service entries, or {} when there is nothing usable."""
        try:
            data = json.loads(self.token_path.read_text())
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.token_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring token file {self.token_path}: top level is not an object")
            return {}
        return data

    def _write_entries(self, entries: dict[str, Any]) -> None:
        self._ensure_credentials_dir()
        self.token_path.write_text(json.dumps(entries, indent=2))
        self.token_path.chmod(FILE_MODE)

    def _parse(self, service_name: str, entry: Any) -> StoredToken | None:
        try:
            return StoredToken.model_validate(entry)
        except ValidationError as e:
            logger.warning(
                f"Stored token for '{service_name}' is invalid: {e.error_count()} error(s)"
            )
            return None

    def store(self, service_name: str, token: OAuthToken, metadata: TokenMetadata) -> None:
        """Save ``token`` for ``service_name``, replacing any earlier one."""
        entries = self._read_entries()
        stored = StoredToken(version=1, metadata=metadata, token=token)
        entries[service_name] = stored.model_dump(mode="json")
        self._write_entries(entries)

    def retrieve(self, service_name: str) -> StoredToken | None:
        """Return the stored token, or None if it is absent or does not parse."""
        entries = self._read_entries()
        if service_name not in entries:
            return None
        return self._parse(service_name, entries[service_name])

    def get_status(self, service_name: str) -> TokenStatus:
        entries = self._read_entries()
        if service_name not in entries:
            return TokenStatus.MISSING

        stored = self._parse(service_name, entries[service_name])
        if stored is None:
            return TokenStatus.INVALID
        if stored.token.is_expired():
            return TokenStatus.EXPIRED
        return TokenStatus.VALID
