"""Brute-force probing of well-known bridge addresses."""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional

from loguru import logger
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from ..models import BridgeRecord
from ..network import (
    COMMON_BRIDGE_IPS,
    expand_ip_ranges,
    get_local_ip,
    subnet_scan_hosts,
    unique_hosts,
)
from ..probe import BridgeProber, StopCheck
from .base import DiscoveryStrategy


async def probe_hosts(
    hosts: Iterable[str],
    prober: BridgeProber,
    found: List[BridgeRecord],
    should_stop: StopCheck,
    concurrency: int,
    attempts: int = 1,
    wait=None,
) -> None:
    """Dual-probe every host, appending bridges not already in ``found``.

    Bridges are appended as soon as they are confirmed so a timeout upstream
    still keeps them.
    """
    semaphore = asyncio.Semaphore(concurrency)

    def stop_requested(retry_state) -> bool:
        return should_stop()

    async def probe_one(ip: str) -> None:
        async with semaphore:
            if should_stop():
                return
            retrying = AsyncRetrying(
                stop=stop_after_attempt(attempts) | stop_requested,
                wait=wait if wait is not None else wait_fixed(0.5),
                retry=retry_if_result(lambda bridge: bridge is None),
                retry_error_callback=lambda retry_state: None,
            )
            bridge: Optional[BridgeRecord] = await retrying(prober.probe, ip, should_stop)

        if bridge is None:
            return
        if any(existing.normalized_id == bridge.normalized_id for existing in found):
            logger.debug(f"Duplicate bridge {bridge.id} at {ip}")
            return
        logger.info(f"{prober.method}: {bridge.id} at {ip}")
        found.append(bridge)

    tasks = [asyncio.create_task(probe_one(ip)) for ip in hosts]
    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class IPScanDiscovery(DiscoveryStrategy):
    """Probe common router-assigned addresses plus the local /24's low range."""

    name = "IP Scan"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._retry_wait = wait_fixed(0.5)

    @property
    def timeout(self) -> float:
        return self.settings.ip_scan_timeout

    def candidate_hosts(self, local_ip: Optional[str] = None) -> List[str]:
        local_ip = local_ip if local_ip is not None else get_local_ip()
        subnet = subnet_scan_hosts(local_ip) if local_ip else []
        hosts = unique_hosts(
            COMMON_BRIDGE_IPS,
            subnet,
            expand_ip_ranges(self.settings.extra_ip_ranges),
        )
        if local_ip:
            hosts = [host for host in hosts if host != local_ip]
        return hosts

    async def _discover(self, found: List[BridgeRecord], should_stop: StopCheck) -> None:
        hosts = self.candidate_hosts()
        logger.debug(f"{self.name}: probing {len(hosts)} addresses")

        async with self._client_factory() as client:
            prober = BridgeProber(client, self.settings, method=self.name)
            await probe_hosts(
                hosts,
                prober,
                found,
                should_stop,
                concurrency=self.settings.max_concurrent_probes,
                attempts=self.settings.probe_attempts,
                wait=self._retry_wait,
            )
