"""Subnet-aware probing around the device's own address and gateway."""

from __future__ import annotations

from typing import List, Optional

from loguru import logger

from ..models import BridgeRecord
from ..network import (
    get_local_ip,
    guess_gateway,
    nearby_hosts,
    priority_subnet_hosts,
    unique_hosts,
)
from ..probe import BridgeProber, StopCheck
from .base import DiscoveryStrategy
from .ip_scan import probe_hosts

GATEWAY_NEIGHBOURHOOD = 20


class SmartDiscovery(DiscoveryStrategy):
    """Probe the addresses a home router most likely handed the bridge."""

    name = "Smart Discovery"

    @property
    def timeout(self) -> float:
        return self.settings.smart_timeout

    def candidate_hosts(self, local_ip: str) -> List[str]:
        gateway = guess_gateway(local_ip)
        around_gateway = nearby_hosts(gateway, GATEWAY_NEIGHBOURHOOD) if gateway else []
        return [
            host
            for host in unique_hosts(priority_subnet_hosts(local_ip), around_gateway)
            if host != local_ip
        ]

    async def _discover(self, found: List[BridgeRecord], should_stop: StopCheck) -> None:
        local_ip: Optional[str] = get_local_ip()
        if not local_ip:
            logger.info(f"{self.name}: no local network address, skipping")
            return

        hosts = self.candidate_hosts(local_ip)
        logger.debug(f"{self.name}: local IP {local_ip}, probing {len(hosts)} addresses")

        async with self._client_factory() as client:
            prober = BridgeProber(
                client,
                self.settings,
                method=self.name,
                timeout=self.settings.smart_probe_timeout,
            )
            await probe_hosts(
                hosts,
                prober,
                found,
                should_stop,
                concurrency=self.settings.max_concurrent_probes,
            )
