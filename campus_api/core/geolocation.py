"""Best-effort IP to location lookup."""

from __future__ import annotations

import ipaddress
from functools import lru_cache
from typing import Any

import httpx
import structlog

from campus_api.config import get_settings

logger = structlog.get_logger(__name__)


class IPLocator:
    """Resolve a client IP to "City, Region, Country" via an ip-api style endpoint.

    Private, loopback and unparsable addresses, lookups that fail, and a
    disabled locator all return the IP itself.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float,
        enabled: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._enabled = enabled
        self._transport = transport

    async def locate(self, ip_address: str) -> str:
        if not self._enabled or not self._is_public(ip_address):
            return ip_address
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{self._base_url}/{ip_address}",
                    params={"fields": "status,message,city,regionName,country"},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.info("geolocation_lookup_failed", ip_address=ip_address, error=str(exc))
            return ip_address
        return self._format(payload) or ip_address

    @staticmethod
    def _is_public(ip_address: str) -> bool:
        try:
            parsed = ipaddress.ip_address(ip_address)
        except ValueError:
            return False
        return not (parsed.is_private or parsed.is_loopback or parsed.is_link_local)

    @staticmethod
    def _format(payload: Any) -> str | None:
        if not isinstance(payload, dict) or payload.get("status") != "success":
            return None
        city = payload.get("city") or ""
        region = payload.get("regionName") or ""
        country = payload.get("country") or ""
        parts = [city] if city else []
        if region and region != city:
            parts.append(region)
        if country:
            parts.append(country)
        return ", ".join(parts) or None


@lru_cache
def get_ip_locator() -> IPLocator:
    """Create and cache the IP locator."""
    settings = get_settings()
    return IPLocator(
        base_url=settings.geolocation.base_url,
        timeout_seconds=settings.geolocation.timeout_seconds,
        enabled=settings.geolocation.enabled,
    )
