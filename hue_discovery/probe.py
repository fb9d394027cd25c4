"""HTTP probes that confirm a candidate host is a Hue Bridge."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx
from loguru import logger

from .models import DEFAULT_BRIDGE_PORT, BridgeRecord
from .settings import DiscoverySettings
from .validator import ContentKind, extract_identity

USER_AGENT = "hue-bridge-discovery/1.0"

StopCheck = Callable[[], bool]
ClientFactory = Callable[[], httpx.AsyncClient]


def never_stop() -> bool:
    return False


def create_http_client(settings: Optional[DiscoverySettings] = None) -> httpx.AsyncClient:
    """Client for local bridge probes and the cloud endpoint.

    Keep-alive is disabled: probes hit many hosts once each, and cancelled
    probes must not leave pooled sockets behind.
    """
    settings = settings or DiscoverySettings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.config_probe_timeout),
        limits=httpx.Limits(
            max_connections=settings.max_concurrent_probes * 2,
            max_keepalive_connections=0,
        ),
        headers={"User-Agent": USER_AGENT},
        follow_redirects=False,
    )


class BridgeProber:
    """Fetches bridge descriptors from one host and validates them."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Optional[DiscoverySettings] = None,
        method: str = "probe",
        timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self.settings = settings or DiscoverySettings()
        self.method = method
        self._timeout_override = timeout

    def _timeout(self, default: float) -> float:
        return self._timeout_override if self._timeout_override is not None else default

    async def _fetch(
        self, url: str, timeout: float, accept: str, should_stop: StopCheck
    ) -> Optional[str]:
        """GET ``url`` and return the body text, or None on any failure."""
        if should_stop():
            return None

        try:
            response = await self._client.get(
                url,
                timeout=timeout,
                headers={"Accept": accept, "Cache-Control": "no-cache"},
            )
        except httpx.TimeoutException:
            logger.debug(f"Timeout fetching {url}")
            return None
        except httpx.ConnectError as e:
            logger.debug(f"Cannot connect to {url}: {e}")
            return None
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.debug(f"Request to {url} failed: {e}")
            return None

        if should_stop():
            return None

        if response.status_code != 200:
            logger.debug(f"HTTP {response.status_code} for {url}")
            return None

        if not response.content:
            logger.debug(f"Empty response from {url}")
            return None

        try:
            return response.content.decode(response.encoding or "utf-8")
        except (LookupError, UnicodeDecodeError):
            logger.debug(f"Undecodable response from {url}")
            return None

    async def probe_config(
        self, ip: str, should_stop: StopCheck = never_stop
    ) -> Optional[BridgeRecord]:
        """Check ``/api/0/config`` (unauthenticated JSON config)."""
        body = await self._fetch(
            f"http://{ip}/api/0/config",
            self._timeout(self.settings.config_probe_timeout),
            "application/json",
            should_stop,
        )
        if body is None:
            return None

        identity = extract_identity(body, ContentKind.JSON)
        if identity is None:
            logger.debug(f"{ip} answered /api/0/config but is not a Hue Bridge")
            return None

        logger.debug(f"Hue Bridge confirmed via /api/0/config at {ip}: {identity.id}")
        return BridgeRecord(
            id=identity.id,
            ip_address=ip,
            port=DEFAULT_BRIDGE_PORT,
            name=identity.name,
            method=self.method,
        )

    async def probe_description(
        self, ip: str, should_stop: StopCheck = never_stop
    ) -> Optional[BridgeRecord]:
        """Check the UPnP ``/description.xml`` document."""
        return await self.probe_location(
            f"http://{ip}/description.xml",
            should_stop,
            timeout=self._timeout(self.settings.description_probe_timeout),
        )

    async def probe_location(
        self,
        location: str,
        should_stop: StopCheck = never_stop,
        timeout: Optional[float] = None,
    ) -> Optional[BridgeRecord]:
        """Fetch a device description URL and validate it as XML."""
        parsed = urlparse(location)
        if not parsed.hostname:
            logger.debug(f"Ignoring location without host: {location!r}")
            return None

        body = await self._fetch(
            location,
            timeout if timeout is not None else self._timeout(self.settings.description_probe_timeout),
            "application/xml",
            should_stop,
        )
        if body is None:
            return None

        identity = extract_identity(body, ContentKind.XML)
        if identity is None:
            logger.debug(f"{location} is not a Hue Bridge descriptor")
            return None

        try:
            port = parsed.port or DEFAULT_BRIDGE_PORT
        except ValueError:
            port = DEFAULT_BRIDGE_PORT

        logger.debug(f"Hue Bridge confirmed via {location}: {identity.id}")
        return BridgeRecord(
            id=identity.id,
            ip_address=parsed.hostname,
            port=port,
            name=identity.name,
            method=self.method,
        )

    async def probe(self, ip: str, should_stop: StopCheck = never_stop) -> Optional[BridgeRecord]:
        """Run the JSON and XML probes concurrently.

        The first confirmed bridge from either one is returned; None when
        both miss.
        """
        if should_stop():
            return None

        tasks = [
            asyncio.create_task(self.probe_config(ip, should_stop)),
            asyncio.create_task(self.probe_description(ip, should_stop)),
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                bridge = await next_done
                if bridge is not None:
                    return bridge
            return None
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
