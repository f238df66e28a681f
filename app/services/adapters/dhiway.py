from __future__ import annotations

from typing import Any

import httpx

from app.core.errors import AdapterError
from app.core.logger import get_logger
from app.services.adapters.base import CredentialAdapter, VerificationResult, looks_like_credential

logger = get_logger(component="DhiwayCredentialAdapter")


class DhiwayCredentialAdapter(CredentialAdapter):
    """
    Adapter for credentials anchored on the Dhiway platform.

    Published credentials are served as JSON from a ``.vc`` URL. The record's own
    ``data_link`` is preferred; ``record_url_template`` (containing ``{record_id}``)
    is the fallback for records stored without one. Verification goes through the
    shared verification service when it is configured, otherwise only the
    credential structure is checked.
    """

    issuer_name = "dhiway"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        record_url_template: str | None = None,
        verification_service_url: str | None = None,
        fetch_timeout: float = 10.0,
        verification_timeout: float = 8.0,
    ) -> None:
        self.http_client = http_client
        self.record_url_template = record_url_template
        self.verification_service_url = (
            str(verification_service_url).rstrip("/") if verification_service_url else None
        )
        self.fetch_timeout = fetch_timeout
        self.verification_timeout = verification_timeout

    def _resolve_url(self, record_id: str, data_link: str | None) -> str:
        if data_link:
            return data_link
        if self.record_url_template:
            return self.record_url_template.format(record_id=record_id)
        raise AdapterError(f"No data link known for credential {record_id}")

    async def fetch_authoritative_data(self, record_id: str, *, data_link: str | None = None) -> dict[str, Any]:
        url = self._resolve_url(record_id, data_link)
        logger.info("Fetching published credential", record_id=record_id)

        try:
            response = await self.http_client.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.fetch_timeout,
            )
        except httpx.TimeoutException as exc:
            raise AdapterError(f"Timed out fetching credential {record_id}") from exc
        except httpx.RequestError as exc:
            raise AdapterError(f"Failed to fetch credential {record_id}: {exc}") from exc

        if response.status_code == 404:
            raise AdapterError(f"Credential not found for public ID: {record_id}. It may not be published yet.")
        if not response.is_success:
            raise AdapterError(
                f"Failed to fetch credential {record_id} from Dhiway (Status: {response.status_code})"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AdapterError(f"Credential {record_id} is not valid JSON") from exc

        if not looks_like_credential(payload):
            raise AdapterError(f"Invalid credential structure received from Dhiway for {record_id}")

        logger.info("Fetched published credential", record_id=record_id, keys=sorted(payload)[:20])
        return payload

    async def verify(self, payload: dict[str, Any]) -> VerificationResult:
        if not looks_like_credential(payload):
            return VerificationResult(
                success=False,
                message="Invalid credential structure",
                errors=["Credential does not contain required fields"],
            )

        if self.verification_service_url is None:
            logger.debug("Verification service not configured, accepting structurally valid credential")
            return VerificationResult(success=True, message="Credential structure is valid")

        try:
            response = await self.http_client.post(
                f"{self.verification_service_url}/verification",
                json={
                    "credential": payload,
                    "config": {"method": "online", "issuerName": self.issuer_name},
                },
                timeout=self.verification_timeout,
            )
        except httpx.RequestError as exc:
            logger.error("Verification service error", error=str(exc))
            return VerificationResult(success=False, message=f"Verification request failed: {exc}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            return VerificationResult(
                success=False,
                message=body.get("message") or f"Verification service returned status {response.status_code}",
                errors=body.get("errors") or [],
            )

        return VerificationResult(
            success=body.get("success") is True,
            message=body.get("message"),
            errors=body.get("errors") or [],
        )
