from __future__ import annotations

from uuid import UUID

import httpx

from app.core.logger import get_logger

logger = get_logger(component="ProfileRefreshTrigger")


class ProfileRefreshTrigger:
    """Notifies the profile projection service that an owner's documents changed."""

    def __init__(self, http_client: httpx.AsyncClient, *, url: str | None, timeout: float = 10.0) -> None:
        self.http_client = http_client
        self.url = str(url) if url else None
        self.timeout = timeout

    async def notify(self, owner_id: UUID) -> None:
        """
        Ask the projection service to rebuild the owner's profile.

        Raises:
            httpx.HTTPError: when the request fails; callers treat this as best effort.
        """
        if not self.url:
            logger.debug("Profile refresh URL not configured, skipping", owner_id=str(owner_id))
            return

        response = await self.http_client.post(
            self.url,
            json={"user_id": str(owner_id)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.info("Profile refresh requested", owner_id=str(owner_id), status_code=response.status_code)
