"""alerts.in.ua status feed adapter.

The IoT endpoint answers ``GET <endpoint>/<region_id>.json`` with a short
status token: "A" (alert in the whole region), "P" (partial alert) or "N"
(no alert). Classification happens in the core; this adapter only maps HTTP
outcomes to the core error types.
"""

from __future__ import annotations

from typing import Optional

import httpx

from core.errors import AlertFeedAuthError, AlertFeedError, AlertFeedRateLimited


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class AlertsInUaFeed:
    """AlertFeedPort implementation over httpx."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        region_id: str,
        token: str,
    ) -> None:
        self._client = client
        self._url = f"{endpoint.rstrip('/')}/{region_id}.json"
        self._headers = {"Authorization": f"Bearer {token}"}

    @property
    def url(self) -> str:
        return self._url

    async def fetch_status(self) -> str:
        try:
            response = await self._client.get(self._url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise AlertFeedError(f"Alert feed transport error: {exc}") from exc

        if response.status_code == 401:
            raise AlertFeedAuthError("Alert feed returned 401 Unauthorized")
        if response.status_code == 429:
            raise AlertFeedRateLimited(
                "Alert feed returned 429 Too Many Requests",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if not response.is_success:
            raise AlertFeedError(f"Alert feed returned HTTP {response.status_code}")
        return response.text
