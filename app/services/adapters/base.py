from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class VerificationResult(BaseModel):
    success: bool
    message: str | None = None
    errors: list[Any] = Field(default_factory=list)


class CredentialAdapter(ABC):
    """Issuer-specific access to authoritative credential data."""

    issuer_name: str

    @abstractmethod
    async def fetch_authoritative_data(self, record_id: str, *, data_link: str | None = None) -> dict[str, Any]:
        """
        Fetch the current credential document from the issuing platform.

        Raises:
            AdapterError: if the credential cannot be fetched or is not a valid credential.
        """

    @abstractmethod
    async def verify(self, payload: dict[str, Any]) -> VerificationResult:
        """Check the authenticity of a credential document. Never raises for a negative result."""


def looks_like_credential(payload: Any) -> bool:
    """Minimal structural check shared by adapters for W3C-style credentials."""
    if not isinstance(payload, dict) or not payload:
        return False
    return any(payload.get(key) for key in ("credentialSubject", "type", "@type", "@context"))
