from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from app.core.errors import FetchError
from app.core.logger import get_logger
from app.schemas.events import FeedSummary, LifecycleEvent

logger = get_logger(component="EventSourceClient")

SUMMARY_PATH = "/api/v1/analytics/summaryForVC/{start}/{end}"


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way the analytics feed expects it: UTC, milliseconds, ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EventSourceClient:
    """
    Client for the upstream analytics feed that reports credential lifecycle events.

    Any response that cannot be trusted as a complete event list for the window is
    raised as ``FetchError`` so the caller can abort without losing the window.
    """

    def __init__(self, http_client: httpx.AsyncClient, *, base_url: str, timeout: float) -> None:
        self.http_client = http_client
        self.base_url = str(base_url).rstrip("/")
        self.timeout = timeout

    async def fetch(self, start: datetime, end: datetime) -> FeedSummary:
        """
        Fetch lifecycle events that happened within ``[start, end)``.

        Raises:
            FetchError: on transport errors, non-2xx responses, undecodable bodies,
                an unsuccessful ``success`` flag, or a ``data`` field that is not a list.
        """
        url = self.base_url + SUMMARY_PATH.format(start=format_timestamp(start), end=format_timestamp(end))
        logger.info("Fetching lifecycle events", start=format_timestamp(start), end=format_timestamp(end))

        try:
            response = await self.http_client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise FetchError(f"Analytics feed timed out after {self.timeout}s") from exc
        except httpx.RequestError as exc:
            raise FetchError(f"Analytics feed unreachable: {exc}") from exc

        if response.status_code == 404:
            raise FetchError("Analytics feed endpoint not found. Check the base URL configuration.")
        if not response.is_success:
            raise FetchError(f"Analytics feed returned status {response.status_code}: {response.text[:500]}")

        try:
            body = response.json()
        except ValueError as exc:
            raise FetchError("Analytics feed returned a body that is not valid JSON") from exc

        return self._normalize(body)

    @staticmethod
    def _normalize(body: Any) -> FeedSummary:
        if not isinstance(body, dict):
            raise FetchError(f"Analytics feed returned {type(body).__name__} instead of an object")

        success = body.get("success")
        if success is not True and success != "true":
            raise FetchError(f"Analytics feed reported an unsuccessful response: success={success!r}")

        data = body.get("data")
        if not isinstance(data, list):
            raise FetchError(f"Analytics feed data must be a list, got {type(data).__name__}")

        events: list[LifecycleEvent] = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning("Dropping feed item that is not an object", item=repr(item)[:200])
                continue
            record_id = item.get("record_public_id")
            if not record_id:
                logger.warning("Dropping feed item without record_public_id", item=item)
                continue
            events.append(LifecycleEvent(event_type=str(item.get("type") or ""), record_id=str(record_id)))

        logger.info("Fetched lifecycle events", event_count=len(events), raw_count=len(data))
        return FeedSummary(success=True, events=events, raw_count=len(data))
