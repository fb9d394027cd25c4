"""Bridge discovery over multicast DNS (``_hue._tcp.local.``)."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Set

from loguru import logger
from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ..models import DEFAULT_BRIDGE_NAME, DEFAULT_BRIDGE_PORT, BridgeRecord
from ..probe import StopCheck
from .base import DiscoveryStrategy

HUE_SERVICE_TYPE = "_hue._tcp.local."
RESOLVE_TIMEOUT_MS = 3000


def _decode(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    value = value.strip()
    return value or None


def instance_name(service_name: str, service_type: str = HUE_SERVICE_TYPE) -> str:
    """``Philips Hue - 1A2B3C._hue._tcp.local.`` -> ``Philips Hue - 1A2B3C``."""
    suffix = f".{service_type}"
    if service_name.endswith(suffix):
        return service_name[: -len(suffix)]
    return service_name.rstrip(".")


def record_from_service_info(info: AsyncServiceInfo, method: str = "mdns") -> Optional[BridgeRecord]:
    """Build a record from a resolved service, or None without an IPv4 address."""
    addresses = info.parsed_addresses(version=IPVersion.V4Only)
    if not addresses:
        logger.debug(f"mDNS service {info.name} has no IPv4 address")
        return None

    properties = info.properties or {}
    name = instance_name(info.name, info.type)
    bridge_id = _decode(properties.get(b"bridgeid")) or name

    return BridgeRecord(
        id=bridge_id,
        ip_address=addresses[0],
        port=info.port or DEFAULT_BRIDGE_PORT,
        name=name or DEFAULT_BRIDGE_NAME,
        method=method,
    )


class MDNSDiscovery(DiscoveryStrategy):
    """Browse for Hue services and stop at the first resolved bridge.

    mDNS answers are trusted as-is; no HTTP validation follows.
    """

    name = "mDNS Discovery"

    @property
    def timeout(self) -> float:
        return self.settings.mdns_timeout

    async def _resolve(
        self,
        zc: Zeroconf,
        service_type: str,
        name: str,
        first_bridge: asyncio.Future,
    ) -> None:
        info = AsyncServiceInfo(service_type, name)
        if not await info.async_request(zc, RESOLVE_TIMEOUT_MS):
            logger.debug(f"mDNS: could not resolve {name}")
            return

        bridge = record_from_service_info(info, self.name)
        if bridge is not None and not first_bridge.done():
            logger.info(f"mDNS: {bridge.id} at {bridge.ip_address}:{bridge.port}")
            first_bridge.set_result(bridge)

    async def _discover(self, found: List[BridgeRecord], should_stop: StopCheck) -> None:
        loop = asyncio.get_running_loop()
        first_bridge: asyncio.Future = loop.create_future()
        pending: Set[asyncio.Future] = set()

        aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)

        def on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if state_change is not ServiceStateChange.Added or should_stop():
                return
            logger.debug(f"mDNS: service added {name}")
            task = asyncio.ensure_future(self._resolve(zeroconf, service_type, name, first_bridge))
            pending.add(task)
            task.add_done_callback(pending.discard)

        browser = AsyncServiceBrowser(
            aiozc.zeroconf, [HUE_SERVICE_TYPE], handlers=[on_service_state_change]
        )
        try:
            found.append(await first_bridge)
        finally:
            for task in list(pending):
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            await browser.async_cancel()
            await aiozc.async_close()
