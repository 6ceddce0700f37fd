"""Shared pytest fixtures for gdrive-mcp tests.

This module provides reusable fixtures for OAuth token storage, the Google
API client, and Docs API document payloads.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from gdrive_mcp.auth.models import OAuthToken, StoredToken, TokenMetadata, TokenStatus

# =============================================================================
# Token Fixtures
# =============================================================================


@pytest.fixture
def valid_token() -> OAuthToken:
    """Create a valid, non-expired OAuth token."""
    return OAuthToken(
        access_token="test_access_token_abc123",
        refresh_token="test_refresh_token_xyz789",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scopes=[
            "https://www.googleapis.com/auth/drive",
            "https://www.googleapis.com/auth/documents",
        ],
        token_type="Bearer",
    )


@pytest.fixture
def expired_token() -> OAuthToken:
    """Create an expired OAuth token."""
    return OAuthToken(
        access_token="expired_access_token",
        refresh_token="test_refresh_token",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        scopes=["https://www.googleapis.com/auth/drive"],
        token_type="Bearer",
    )


@pytest.fixture
def token_metadata() -> TokenMetadata:
    """Create token metadata for testing."""
    return TokenMetadata(
        service_name="gdrive-mcp",
        provider="google",
        created_at=datetime.now(timezone.utc) - timedelta(days=1),
    )


@pytest.fixture
def stored_token(valid_token: OAuthToken, token_metadata: TokenMetadata) -> StoredToken:
    """Create a complete stored token for testing."""
    return StoredToken(
        version=1,
        metadata=token_metadata,
        token=valid_token,
    )


# =============================================================================
# Token Storage Fixtures
# =============================================================================


@pytest.fixture
def temp_token_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for token storage tests."""
    token_dir = tmp_path / ".gdrive-mcp"
    token_dir.mkdir(parents=True, mode=0o700)
    return token_dir


@pytest.fixture
def temp_token_path(temp_token_dir: Path) -> Path:
    """Get the path for a temporary tokens.json file."""
    return temp_token_dir / "tokens.json"


@pytest.fixture
def token_storage(temp_token_path: Path):
    """Create a TokenStorage instance with temporary storage."""
    from gdrive_mcp.auth.token_storage import TokenStorage

    return TokenStorage(token_path=temp_token_path)


# =============================================================================
# OAuth Manager Fixtures
# =============================================================================


@pytest.fixture
def oauth_manager(token_storage):
    """Create an OAuthManager with temporary storage."""
    from gdrive_mcp.auth.oauth_manager import OAuthManager

    return OAuthManager(storage=token_storage)


# =============================================================================
# Mock Google Credentials
# =============================================================================


@pytest.fixture
def mock_google_credentials() -> MagicMock:
    """Create a mock Google OAuth2 Credentials object."""
    mock_creds = MagicMock()
    mock_creds.token = "mock_access_token"
    mock_creds.refresh_token = "mock_refresh_token"
    mock_creds.expiry = datetime.now(timezone.utc) + timedelta(hours=1)
    mock_creds.expired = False
    mock_creds.valid = True
    mock_creds.scopes = ["https://www.googleapis.com/auth/drive"]
    return mock_creds


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def mock_token_storage() -> MagicMock:
    """Create a mock token storage that returns a valid token."""
    mock_storage = MagicMock()
    mock_storage.get_status.return_value = TokenStatus.VALID

    stored = MagicMock()
    stored.token.access_token = "mock_access_token_12345"
    mock_storage.retrieve.return_value = stored

    return mock_storage


@pytest.fixture
def api_client(mock_token_storage: MagicMock):
    """Create a GoogleApiClient backed by the mock token storage."""
    from gdrive_mcp.server.api_client import GoogleApiClient

    return GoogleApiClient(storage=mock_token_storage, manager=MagicMock())


# =============================================================================
# Docs API Payloads
# =============================================================================


def text_run(content: str, start_index: int | None, end_index: int | None) -> dict[str, Any]:
    """Build a paragraph element holding a text run."""
    element: dict[str, Any] = {"textRun": {"content": content, "textStyle": {}}}
    if start_index is not None:
        element["startIndex"] = start_index
    if end_index is not None:
        element["endIndex"] = end_index
    return element


def paragraph(*elements: dict[str, Any]) -> dict[str, Any]:
    """Build a paragraph structural element spanning its elements."""
    block: dict[str, Any] = {"paragraph": {"elements": list(elements)}}
    starts = [e["startIndex"] for e in elements if "startIndex" in e]
    ends = [e["endIndex"] for e in elements if "endIndex" in e]
    if starts:
        block["startIndex"] = min(starts)
    if ends:
        block["endIndex"] = max(ends)
    return block


@pytest.fixture
def toc_document() -> dict[str, Any]:
    """A document whose table of contents occupies indices 1-1235.

    The first body paragraph therefore starts at 1235, not at 1.
    """
    return {
        "documentId": "doc_toc",
        "title": "Handbook",
        "revisionId": "rev_toc_1",
        "body": {
            "content": [
                {"endIndex": 1, "sectionBreak": {"sectionStyle": {}}},
                {
                    "startIndex": 1,
                    "endIndex": 1235,
                    "tableOfContents": {
                        "content": [
                            paragraph(text_run("Chapter 1 ....... 3\n", 2, 22)),
                        ]
                    },
                },
                paragraph(text_run("Introduction\n", 1235, 1248)),
                paragraph(
                    text_run("The ", 1248, 1252),
                    text_run("quick", 1252, 1257),
                    text_run(" brown fox\n", 1257, 1268),
                ),
            ]
        },
    }
