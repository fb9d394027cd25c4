"""Network diagnostics for when discovery comes back empty."""

from __future__ import annotations

import asyncio
import socket
import time
from typing import List, Optional, Tuple

import httpx
from loguru import logger
from pydantic import BaseModel

from .network import get_local_ip, guess_gateway, subnet_prefix
from .probe import create_http_client
from .settings import CLOUD_DISCOVERY_URL, DiscoverySettings

CLOUD_HOST = "discovery.meethue.com"
COMMON_GATEWAYS = ("192.168.1.1", "192.168.0.1", "10.0.0.1")

RECOMMENDATIONS = (
    "Restart the Hue Bridge",
    "Make sure the bridge and this device are on the same network",
    "Check the router settings for multicast and UPnP",
)


class NetworkInfo(BaseModel):
    local_ip: Optional[str] = None
    subnet: Optional[str] = None
    gateway: Optional[str] = None
    # None when the connectivity check was skipped
    internet_available: Optional[bool] = None


def check_internet(host: str = CLOUD_HOST, port: int = 443, timeout: float = 3.0) -> bool:
    """True if a TCP connection to ``host:port`` succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug(f"Internet check against {host}:{port} failed: {e}")
        return False


def collect_network_info(check_connectivity: bool = True) -> NetworkInfo:
    """Snapshot of the local network.

    The connectivity check blocks for up to a few seconds; pass
    ``check_connectivity=False`` to skip it.
    """
    local_ip = get_local_ip()
    return NetworkInfo(
        local_ip=local_ip,
        subnet=f"{subnet_prefix(local_ip)}.0/24" if local_ip else None,
        gateway=guess_gateway(local_ip) if local_ip else None,
        internet_available=check_internet() if check_connectivity else None,
    )


async def check_cloud_service(
    client: httpx.AsyncClient, url: str = CLOUD_DISCOVERY_URL, timeout: float = 10.0
) -> Tuple[bool, str]:
    """Check that the vendor discovery endpoint answers with a non-empty 200."""
    start_time = time.monotonic()
    try:
        response = await client.get(url, timeout=timeout, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        return False, f"Error: {e!r}"

    elapsed = time.monotonic() - start_time
    if response.status_code != 200:
        return False, f"HTTP {response.status_code}"
    if not response.content:
        return False, "Empty response from service"
    return True, f"Service available (response time {elapsed:.2f}s)"


async def ping_host(
    client: httpx.AsyncClient, host: str, timeout: float = 2.0
) -> Tuple[bool, Optional[float]]:
    """HEAD ``http://host``; any status below 500 counts as reachable."""
    start_time = time.monotonic()
    try:
        response = await client.head(f"http://{host}", timeout=timeout)
    except httpx.HTTPError as e:
        logger.debug(f"Ping {host} failed: {e!r}")
        return False, None
    return response.status_code < 500, time.monotonic() - start_time


def format_network_info(info: NetworkInfo) -> List[str]:
    if info.internet_available is None:
        internet = "not checked"
    else:
        internet = "available" if info.internet_available else "unavailable"
    return [
        "Network:",
        f"  Local IP: {info.local_ip or 'unknown'}",
        f"  Subnet: {info.subnet or 'unknown'}",
        f"  Gateway: {info.gateway or 'unknown'}",
        f"  Internet: {internet}",
    ]


async def generate_report(
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[DiscoverySettings] = None,
) -> str:
    """Multi-line report covering the local network, the cloud endpoint and gateways."""
    settings = settings or DiscoverySettings()
    info = await asyncio.to_thread(collect_network_info)

    owns_client = client is None
    client = client or create_http_client(settings)
    try:
        cloud_ok, cloud_message = await check_cloud_service(client, settings.cloud_url)

        hosts = list(COMMON_GATEWAYS)
        if info.gateway and info.gateway not in hosts:
            hosts.insert(0, info.gateway)
        pings = await asyncio.gather(*(ping_host(client, host) for host in hosts))
    finally:
        if owns_client:
            await client.aclose()

    lines = ["Hue Bridge network diagnostics", "=" * 40, ""]
    lines += format_network_info(info)
    lines += ["", f"Cloud discovery: {cloud_message}", "", "Local network:"]
    for host, (reachable, elapsed) in zip(hosts, pings):
        if reachable:
            lines.append(f"  OK   {host} responds ({elapsed * 1000:.0f}ms)")
        else:
            lines.append(f"  FAIL {host} unreachable")

    lines += ["", "Recommendations:"]
    if not info.internet_available or not cloud_ok:
        lines.append("  - Check the internet connection")
    if not info.local_ip:
        lines.append("  - Connect this device to the local network")
    lines += [f"  - {tip}" for tip in RECOMMENDATIONS]
    return "\n".join(lines)
