from __future__ import annotations

from collections.abc import Iterable

from app.core.errors import MissingIssuerError, UnknownIssuerError
from app.core.logger import get_logger
from app.services.adapters.base import CredentialAdapter

logger = get_logger(component="AdapterRegistry")


def normalize_issuer(issuer_name: str) -> str:
    return issuer_name.strip().lower()


class AdapterRegistry:
    """Maps issuer names to their adapters. Adding an issuer means registering one more adapter."""

    def __init__(self, adapters: Iterable[CredentialAdapter] = ()) -> None:
        self._adapters: dict[str, CredentialAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: CredentialAdapter) -> None:
        key = normalize_issuer(adapter.issuer_name)
        if key in self._adapters:
            raise ValueError(f"An adapter is already registered for issuer '{key}'")
        self._adapters[key] = adapter

    def resolve(self, issuer_name: str | None) -> CredentialAdapter:
        if issuer_name is None or not issuer_name.strip():
            raise MissingIssuerError("No issuer recorded for this credential")
        adapter = self._adapters.get(normalize_issuer(issuer_name))
        if adapter is None:
            logger.warning("No adapter registered for issuer", issuer_name=issuer_name)
            raise UnknownIssuerError(f"No credential adapter available for issuer: {issuer_name}")
        return adapter

    @property
    def issuers(self) -> list[str]:
        return sorted(self._adapters)
