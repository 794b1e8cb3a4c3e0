"""
Ragic Sheet Store.

Low-level HTTP client for the Ragic forms that hold the attendance data.
Unlike display-oriented clients, every method raises on failure so the
fetch façade can decide between stale data and an error:

    - HTTP 429 or a Ragic error mentioning quota/limit -> RemoteQuotaExceeded
    - any other transport, auth or API error           -> RemoteUnavailable

The store requires an httpx.AsyncClient via explicit dependency injection;
its lifecycle is managed by the caller (see timeclock.http_client.build_http_client).
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx

from timeclock.exceptions import (
    QUOTA_ERROR_TOKENS,
    RemoteQuotaExceeded,
    RemoteUnavailable,
)
from timeclock.sheets.columns import FormConfig
from timeclock.sheets.models import SheetRow

logger = logging.getLogger(__name__)


@runtime_checkable
class SheetStore(Protocol):
    """Operations the attendance layer needs from the remote store."""

    async def fetch_rows(self, form: FormConfig) -> List[SheetRow]: ...

    async def append_row(self, form: FormConfig, values: Dict[str, Any]) -> int: ...

    async def update_fields(self, form: FormConfig, row_id: int, values: Dict[str, Any]) -> None: ...

    async def delete_row(self, form: FormConfig, row_id: int) -> None: ...


def _looks_like_quota(text: str) -> bool:
    lowered = text.lower()
    return any(token in lowered for token in QUOTA_ERROR_TOKENS)


class RagicSheetStore:
    """
    Ragic API client for append / partial update / delete of form records.

    Args:
        http_client: Shared httpx.AsyncClient (required).
        api_key: Ragic API key.
        base_url: Ragic base URL.
        timeout: Per-request timeout in seconds.
        fetch_limit: Maximum records requested per fetch.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://ap13.ragic.com",
        timeout: float = 30.0,
        fetch_limit: int = 10000,
    ) -> None:
        if http_client is None:
            raise ValueError(
                "http_client is required. Use the app lifespan client or "
                "build_http_client(settings) for scripts."
            )

        self._client = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._fetch_limit = fetch_limit

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Basic {self._api_key}",
            "Content-Type": "application/json",
        }

    def is_configured(self) -> bool:
        """Check if the store is properly configured."""
        return bool(self._api_key and self._base_url)

    def _build_url(self, sheet_path: str, record_id: Optional[int] = None) -> str:
        if not sheet_path.startswith("/"):
            sheet_path = f"/{sheet_path}"

        url = f"{self._base_url}{sheet_path}"
        if record_id is not None:
            url = f"{url}/{record_id}"
        return url

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        """Perform one API call and translate failures into the error taxonomy."""
        if not self.is_configured():
            raise RemoteUnavailable("Ragic store not configured")

        try:
            response = await self._client.request(
                method, url, headers=self._get_headers(), timeout=self._timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error(f"Ragic {method} {url} timed out: {e}")
            raise RemoteUnavailable(f"Ragic request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Ragic {method} {url} failed: {e}")
            raise RemoteUnavailable(f"Ragic request failed: {e}") from e

        if response.status_code == 429:
            logger.warning(f"Ragic rate limit hit on {method} {url}")
            raise RemoteQuotaExceeded("Ragic rate limit exceeded (429)", status_code=429)

        if response.status_code >= 400:
            body = response.text[:200]
            logger.error(f"Ragic API error: {response.status_code} - {body}")
            if _looks_like_quota(body):
                raise RemoteQuotaExceeded(
                    f"Ragic quota error: {body}", status_code=response.status_code
                )
            raise RemoteUnavailable(
                f"Ragic API error {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteUnavailable(f"Ragic returned invalid JSON: {e}") from e

        if isinstance(data, dict) and data.get("status") == "ERROR":
            message = str(data.get("msg") or data.get("message") or "unknown error")
            logger.error(f"Ragic API returned error payload: {message}")
            if _looks_like_quota(message):
                raise RemoteQuotaExceeded(f"Ragic quota error: {message}")
            raise RemoteUnavailable(f"Ragic error: {message}")

        return data

    # =========================================================================
    # Form Operations
    # =========================================================================

    async def fetch_rows(self, form: FormConfig) -> List[SheetRow]:
        """
        Fetch every record of a form, ordered by record id (oldest first).

        Ragic returns a dict keyed by record id; the "_metaData" entry is skipped.
        """
        url = self._build_url(form.sheet_path)
        data = await self._send(
            "GET", url, params={"api": "", "naming": "EID", "limit": self._fetch_limit}
        )

        rows: List[SheetRow] = []
        if isinstance(data, dict):
            for ragic_id, record in data.items():
                if ragic_id == "_metaData" or not isinstance(record, dict):
                    continue
                try:
                    row_id = int(record.get("_ragicId", ragic_id))
                except (TypeError, ValueError):
                    logger.warning(f"Skipping record with non-numeric id: {ragic_id}")
                    continue
                rows.append(SheetRow(row_id=row_id, values=form.to_logical(record)))

        rows.sort(key=lambda row: row.row_id)
        logger.debug(f"Fetched {len(rows)} rows from {form.form_key}")
        return rows

    async def append_row(self, form: FormConfig, values: Dict[str, Any]) -> int:
        """
        Create a record and return its record id.

        Raises:
            RemoteUnavailable: If Ragic does not report the new record id.
        """
        url = self._build_url(form.sheet_path)
        result = await self._send("POST", url, params={"api": ""}, json=form.to_field_ids(values))

        if isinstance(result, dict):
            for key in ("ragicId", "_ragicId"):
                if key in result:
                    row_id = int(result[key])
                    logger.debug(f"Created record {row_id} in {form.form_key}")
                    return row_id

        raise RemoteUnavailable(f"Ragic did not return a record id for {form.form_key}")

    async def update_fields(self, form: FormConfig, row_id: int, values: Dict[str, Any]) -> None:
        """
        Update only the given fields of a record.

        Ragic leaves fields absent from the payload untouched, so cells such
        as the clock-in timestamp keep their original format.
        """
        url = self._build_url(form.sheet_path, row_id)
        await self._send("POST", url, params={"api": ""}, json=form.to_field_ids(values))
        logger.debug(f"Record {row_id} in {form.form_key} updated ({', '.join(values)})")

    async def delete_row(self, form: FormConfig, row_id: int) -> None:
        """Delete a record."""
        url = self._build_url(form.sheet_path, row_id)
        await self._send("DELETE", url, params={"api": ""})
        logger.debug(f"Record {row_id} deleted from {form.form_key}")
