# =============================================================================
# Source Fetcher - Google Sheets Tab Reader
# =============================================================================
#
# Reads the raw cell grid of one tab from the configured spreadsheet.
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Matches the LLMProvider pattern in llm.py. The orchestrator only needs
# something with an async `fetch()`; tests pass a small fake that counts
# calls instead of patching the Google client.
#
# DESIGN DECISION: Sync Google client, async facade.
# googleapiclient is synchronous (httplib2 underneath). Each call runs in a
# worker thread via asyncio.to_thread() so a slow Sheets response suspends
# the run instead of blocking the event loop. A fresh service object is
# built per call because httplib2 connections are not thread-safe.
#
# ERRORS:
#   - ConfigurationError: SPREADSHEET_ID or service account fields missing.
#     Raised when the fetcher is constructed, so a misconfigured service
#     fails before the selector model is ever called. A malformed private
#     key is only detected when credentials are built for a call.
#   - TransportError: anything that goes wrong talking to Google (HTTP
#     errors, token refresh, sockets). The original exception is chained.
#   - An empty tab is not an error: fetch() returns [].
#
# ARCHITECTURE:
#   SourceFetcher (Protocol)
#   └── GoogleSheetsFetcher
#       ├── fetch()         - values of one tab (UNFORMATTED_VALUE)
#       └── list_sources()  - titles of all non-hidden tabs
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.config import settings
from app.errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
_TOKEN_URI = "https://oauth2.googleapis.com/token"

_TRANSPORT_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


class SourceFetcher(Protocol):
    """Anything that can return the raw rows of a named source."""

    async def fetch(self, source_name: str) -> list[list[Any]]:
        """
        Return the rows of one source.

        Raises:
            ConfigurationError: Required configuration is missing.
            TransportError: The provider call failed.
        """
        ...


class GoogleSheetsFetcher:
    """
    Reads tabs of one spreadsheet with a service account.

    Constructor arguments override settings; no-arg construction reads
    everything from the environment.

    Raises:
        ConfigurationError: The spreadsheet id or a service account field
            is missing.
    """

    def __init__(
        self,
        spreadsheet_id: str | None = None,
        client_email: str | None = None,
        private_key: str | None = None,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id or settings.spreadsheet_id
        self._client_email = client_email or settings.google_client_email
        # .env files store the PEM with literal "\n" sequences
        self._private_key = (
            private_key or settings.google_private_key
        ).replace("\\n", "\n")

        if not self._spreadsheet_id:
            raise ConfigurationError(
                "Missing SPREADSHEET_ID environment variable"
            )
        if not self._client_email or not self._private_key:
            raise ConfigurationError(
                "Missing GOOGLE_CLIENT_EMAIL or GOOGLE_PRIVATE_KEY "
                "environment variables."
            )

    async def fetch(self, source_name: str) -> list[list[Any]]:
        """Fetch the values of one tab. Returns [] for an empty tab."""
        credentials = self._credentials()

        logger.info("Fetching tab '%s' from spreadsheet", source_name)
        try:
            response = await asyncio.to_thread(
                self._get_values, credentials, self._spreadsheet_id, source_name,
            )
        except _TRANSPORT_ERRORS as e:
            raise TransportError(
                f"Failed to read tab '{source_name}': {e}"
            ) from e

        rows = response.get("values") or []
        logger.info("Fetched tab '%s': %d rows", source_name, len(rows))
        return rows

    async def list_sources(self) -> list[str]:
        """Return the titles of all non-hidden tabs, in sheet order."""
        credentials = self._credentials()

        try:
            meta = await asyncio.to_thread(
                self._get_metadata, credentials, self._spreadsheet_id,
            )
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"Failed to list tabs: {e}") from e

        titles = []
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("hidden") or not props.get("title"):
                continue
            titles.append(props["title"])
        return titles

    # -------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------

    def _credentials(self) -> service_account.Credentials:
        try:
            return service_account.Credentials.from_service_account_info(
                {
                    "client_email": self._client_email,
                    "private_key": self._private_key,
                    "token_uri": _TOKEN_URI,
                },
                scopes=SCOPES,
            )
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid Google service account credentials: {e}"
            ) from e

    @staticmethod
    def _get_values(
        credentials: service_account.Credentials,
        spreadsheet_id: str,
        source_name: str,
    ) -> dict:
        service = build(
            "sheets", "v4", credentials=credentials, cache_discovery=False,
        )
        return (
            service.spreadsheets()
            .values()
            .get(
                spreadsheetId=spreadsheet_id,
                range=a1_range(source_name),
                valueRenderOption="UNFORMATTED_VALUE",
                dateTimeRenderOption="FORMATTED_STRING",
            )
            .execute()
        )

    @staticmethod
    def _get_metadata(
        credentials: service_account.Credentials,
        spreadsheet_id: str,
    ) -> dict:
        service = build(
            "sheets", "v4", credentials=credentials, cache_discovery=False,
        )
        return (
            service.spreadsheets()
            .get(
                spreadsheetId=spreadsheet_id,
                fields="sheets.properties.title,sheets.properties.hidden",
            )
            .execute()
        )


def a1_range(source_name: str) -> str:
    """Whole-tab A1 range. Quotes inside the tab name are doubled."""
    return "'" + source_name.replace("'", "''") + "'"


# Lazy singleton - same pattern as get_llm_provider()
_fetcher: GoogleSheetsFetcher | None = None


def get_source_fetcher() -> GoogleSheetsFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = GoogleSheetsFetcher()
    return _fetcher
