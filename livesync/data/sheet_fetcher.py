"""
Google Sheets REST client for the live product sheet.

Uses httpx directly against the Sheets v4 REST API (same approach as the
Supabase REST stores) rather than a generated SDK. Authentication is either
an API key (publicly readable sheets) or a service account whose OAuth
token is minted with google-auth.

Failure classification:
  timeout / connection error / 429 / 5xx -> SourceUnavailable (transient)
  401 / 403 / bad service-account key    -> SourceAuthError   (permanent)
  404 / "Unable to parse range"          -> SheetNotFound     (permanent)
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from livesync.core.config import SyncConfig
from livesync.core.errors import (
    SheetNotFound,
    SourceAuthError,
    SourceError,
    SourceUnavailable,
)
from livesync.utils.logger import get_logger

logger = get_logger("data.sheet_fetcher")

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

RawRow = List[Any]


class SheetFetcher:
    """
    Pull raw rows from one sheet range.

    `fetch()` performs network I/O only; it never touches cache state.
    """

    def __init__(
        self,
        config: SyncConfig,
        client: Optional[httpx.AsyncClient] = None,
        credentials: Any = None,
    ) -> None:
        config.validate()
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=SHEETS_API_BASE,
            timeout=config.fetch_timeout_seconds,
        )
        self._credentials = credentials
        self._sheet_name: Optional[str] = config.sheet_name or None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(self) -> List[RawRow]:
        """Return every row of the configured range, header row included."""
        try:
            return await asyncio.wait_for(
                self._fetch_rows(), timeout=self.config.fetch_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise SourceUnavailable(
                f"Sheet fetch exceeded {self.config.fetch_timeout_seconds:.0f}s"
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_rows(self) -> List[RawRow]:
        sheet_range = await self._resolve_range()
        data = await self._get_json(
            f"/{quote(self.config.sheet_id, safe='')}/values/{quote(sheet_range, safe='!:')}",
            params={
                "majorDimension": "ROWS",
                "valueRenderOption": "UNFORMATTED_VALUE",
            },
        )
        rows = data.get("values") or []
        logger.debug(f"Fetched {len(rows)} rows from {sheet_range}")
        return rows

    async def _resolve_range(self) -> str:
        """Prefix the configured range with the sheet tab name."""
        if "!" in self.config.sheet_range:
            return self.config.sheet_range
        if self._sheet_name is None:
            # Metadata is only fetched once per fetcher
            meta = await self._get_json(
                f"/{quote(self.config.sheet_id, safe='')}",
                params={"fields": "sheets.properties.title"},
            )
            sheets = meta.get("sheets") or []
            if not sheets:
                raise SheetNotFound("No sheets found in the spreadsheet")
            self._sheet_name = sheets[0].get("properties", {}).get("title") or "Sheet1"
        return f"'{self._sheet_name}'!{self.config.sheet_range}"

    async def _get_json(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        headers, auth_params = await self._auth()
        try:
            response = await self._client.get(
                path, params={**params, **auth_params}, headers=headers
            )
        except httpx.TimeoutException as e:
            raise SourceUnavailable(f"Sheets API timed out: {e}") from e
        except httpx.TransportError as e:
            raise SourceUnavailable(f"Sheets API unreachable: {e}") from e

        if response.is_success:
            try:
                payload = response.json()
            except ValueError as e:
                raise SourceUnavailable("Sheets API returned malformed JSON") from e
            if not isinstance(payload, dict):
                raise SourceUnavailable(
                    f"Sheets API returned {type(payload).__name__}, expected a JSON object"
                )
            return payload

        raise classify_response(response)

    async def _auth(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        if self.config.uses_service_account:
            token = await asyncio.to_thread(self._access_token)
            return {"Authorization": f"Bearer {token}"}, {}
        return {}, {"key": self.config.api_key}

    def _access_token(self) -> str:
        """Return a valid OAuth token, refreshing it when expired (blocking)."""
        import google.auth.exceptions
        from google.auth.transport.requests import Request

        credentials = self._load_credentials()
        if not credentials.valid:
            try:
                credentials.refresh(Request())
            except google.auth.exceptions.RefreshError as e:
                raise SourceAuthError(f"Service account token refresh rejected: {e}") from e
            except google.auth.exceptions.TransportError as e:
                raise SourceUnavailable(f"Token endpoint unreachable: {e}") from e
        return credentials.token

    def _load_credentials(self):
        if self._credentials is not None:
            return self._credentials
        from google.oauth2 import service_account

        try:
            if self.config.service_account_file:
                self._credentials = service_account.Credentials.from_service_account_file(
                    self.config.service_account_file, scopes=SHEETS_SCOPES
                )
            else:
                self._credentials = service_account.Credentials.from_service_account_info(
                    {
                        "type": "service_account",
                        "client_email": self.config.service_account_email,
                        "private_key": self.config.service_account_private_key,
                        "token_uri": "https://oauth2.googleapis.com/token",
                    },
                    scopes=SHEETS_SCOPES,
                )
        except (ValueError, OSError) as e:
            raise SourceAuthError(f"Invalid service account credentials: {e}") from e
        return self._credentials


def classify_response(response: httpx.Response) -> SourceError:
    """Map a non-2xx Sheets API response to the error taxonomy."""
    status = response.status_code
    message = _error_message(response)

    if status in (401, 403):
        return SourceAuthError(f"Sheets API rejected credentials ({status}): {message}", status)
    if status == 404:
        return SheetNotFound(f"Spreadsheet not found ({status}): {message}", status)
    if status == 400 and "unable to parse range" in message.lower():
        return SheetNotFound(f"Sheet range not found: {message}", status)
    if status == 429:
        return SourceUnavailable(f"Sheets API rate limit hit: {message}", status)
    return SourceUnavailable(f"Sheets API returned {status}: {message}", status)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or "")
    return str(error or "")
