"""Gateway configuration resolution (base URL + anonymous API key).

Precedence: explicit override > persisted config > runtime-config endpoint >
environment settings. The runtime endpoint is static configuration; any failure
there simply yields nothing.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from ocm.core.config import settings
from ocm.services.http_service import build_url
from ocm.services.session_service import CONFIG_KEY, KeyValueStore

logger = logging.getLogger(__name__)

RUNTIME_CONFIG_ENDPOINT = "/api/runtime-config"


class GatewayConfig(BaseModel):
    """Where the gateway lives and which anonymous key it expects."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str | None = None
    anon_key: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.anon_key)


def normalize_runtime_config(payload: Any) -> GatewayConfig:
    """Accept both supabaseUrl/supabaseAnonKey and baseUrl/anonKey spellings."""
    if not isinstance(payload, dict):
        return GatewayConfig()
    base_url = payload.get("supabaseUrl") or payload.get("baseUrl") or None
    anon_key = payload.get("supabaseAnonKey") or payload.get("anonKey") or None
    return GatewayConfig(
        base_url=base_url if isinstance(base_url, str) else None,
        anon_key=anon_key if isinstance(anon_key, str) else None,
    )


async def fetch_runtime_config(
    host_url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float | None = None,
) -> GatewayConfig:
    """GET /api/runtime-config from host_url; returns an empty config on any failure."""
    if not host_url:
        return GatewayConfig()
    try:
        async with httpx.AsyncClient(
            transport=transport, timeout=timeout or settings.timeout
        ) as client:
            response = await client.get(
                build_url(host_url, RUNTIME_CONFIG_ENDPOINT),
                headers={"Cache-Control": "no-store"},
            )
        if not response.is_success:
            return GatewayConfig()
        return normalize_runtime_config(response.json())
    except (httpx.HTTPError, ValueError):
        logger.info("Runtime config unavailable")
        return GatewayConfig()


class ConfigService:
    """Persisted gateway configuration."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        runtime_config_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store
        self.runtime_config_url = (
            settings.RUNTIME_CONFIG_URL if runtime_config_url is None else runtime_config_url
        )
        self._transport = transport
        self._runtime: GatewayConfig | None = None

    def load_persisted(self) -> GatewayConfig:
        """Persisted config; malformed data reads as empty."""
        raw = self.store.get(CONFIG_KEY)
        if not raw:
            return GatewayConfig()
        try:
            return GatewayConfig.model_validate_json(raw)
        except ValidationError:
            logger.info("Discarding malformed persisted gateway config")
            return GatewayConfig()

    def save(self, config: GatewayConfig) -> None:
        self.store.set(CONFIG_KEY, config.model_dump_json())

    def clear(self) -> None:
        self.store.delete(CONFIG_KEY)

    async def runtime(self) -> GatewayConfig:
        """Runtime config, fetched at most once per service instance."""
        if self._runtime is None:
            self._runtime = await fetch_runtime_config(
                self.runtime_config_url, transport=self._transport
            )
        return self._runtime

    async def load(
        self,
        *,
        base_url: str | None = None,
        anon_key: str | None = None,
    ) -> GatewayConfig:
        """Resolve the effective gateway config."""
        persisted = self.load_persisted()
        runtime = await self.runtime()
        resolved = GatewayConfig(
            base_url=base_url
            or persisted.base_url
            or runtime.base_url
            or settings.BASE_URL
            or None,
            anon_key=anon_key
            or persisted.anon_key
            or runtime.anon_key
            or settings.ANON_KEY
            or None,
        )

        if base_url or anon_key:
            self.save(resolved)
        elif not persisted.is_complete and runtime.is_complete:
            self.save(runtime)

        return resolved
