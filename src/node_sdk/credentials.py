"""
Credential resolution capability handed to nodes.

The runtime never stores secrets itself: it forwards a provider supplied
by the host, so nodes and the executor can be tested with stub providers.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class IntegrationData(BaseModel):
    """Decrypted OAuth integration available to a node at runtime."""
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: str
    name: str
    provider: str
    token: str
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    token_expires_at: Optional[str] = Field(None, alias="tokenExpiresAt")
    metadata: Dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class CredentialProvider(Protocol):
    """Resolves secrets and integrations by name/id."""

    def get_secret(self, name: str) -> Optional[str]:
        ...

    def get_integration(self, integration_id: str) -> Optional[IntegrationData]:
        ...


class StaticCredentialProvider:
    """Dict-backed provider for tests, the CLI and embedded runners."""

    def __init__(
        self,
        secrets: Optional[Mapping[str, str]] = None,
        integrations: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._secrets = dict(secrets or {})
        self._integrations: Dict[str, IntegrationData] = {}
        for integration_id, data in (integrations or {}).items():
            if not isinstance(data, IntegrationData):
                data = IntegrationData.model_validate({"id": integration_id, **data})
            self._integrations[integration_id] = data

    def get_secret(self, name: str) -> Optional[str]:
        return self._secrets.get(name)

    def get_integration(self, integration_id: str) -> Optional[IntegrationData]:
        return self._integrations.get(integration_id)


__all__ = [
    "CredentialProvider",
    "IntegrationData",
    "StaticCredentialProvider",
]
