"""
Reverse geocoding via OpenStreetMap Nominatim.

A location label is decoration: any failure falls back to the raw
"lat, lon" pair so a clock event is never rejected because of it.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


def coordinate_label(lat: Any, lon: Any) -> str:
    return f"{lat}, {lon}"


class NominatimGeocoder:
    """
    (lat, lon) -> human-readable place name.

    Args:
        http_client: Shared httpx.AsyncClient.
        url: Nominatim reverse endpoint.
        language: accept-language for the returned label.
        enabled: When False, always return the coordinate pair.
    """

    USER_AGENT = "timeclock/1.0"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str = "https://nominatim.openstreetmap.org/reverse",
        language: str = "th",
        enabled: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._client = http_client
        self._url = url
        self._language = language
        self._enabled = enabled
        self._timeout = timeout

    async def reverse(self, lat: Any, lon: Any) -> str:
        fallback = coordinate_label(lat, lon)
        if not self._enabled:
            return fallback

        params = {
            "format": "json",
            "lat": lat,
            "lon": lon,
            "zoom": 18,
            "addressdetails": 1,
            "accept-language": self._language,
        }
        try:
            response = await self._client.get(
                self._url,
                params=params,
                headers={"User-Agent": self.USER_AGENT},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Location lookup failed for {fallback}: {e}")
            return fallback

        if isinstance(data, dict) and data.get("display_name"):
            return str(data["display_name"])
        return fallback
