"""Local network introspection used to narrow the candidate address space."""

from __future__ import annotations

import ipaddress
import socket
from typing import Iterable, List, Optional

from loguru import logger

# Last octets where consumer routers tend to place a bridge
PRIORITY_LAST_OCTETS = (
    1,
    2, 3, 4, 5, 6, 7, 8, 9, 10,
    20, 21, 22, 23, 24, 25,
    50, 51, 52, 53, 54, 55,
    100, 101, 102, 103, 104, 105,
    200, 201, 202, 203, 204, 205,
)

COMMON_BRIDGE_IPS = (
    "192.168.1.2", "192.168.1.3", "192.168.1.4", "192.168.1.5",
    "192.168.1.6", "192.168.1.7", "192.168.1.8", "192.168.1.10",
    "192.168.0.2", "192.168.0.3", "192.168.0.4", "192.168.0.5",
    "192.168.0.6", "192.168.0.7", "192.168.0.8", "192.168.0.10",
    "192.168.100.2", "192.168.100.3", "192.168.100.4", "192.168.100.5",
    "192.168.86.2", "192.168.86.3", "192.168.86.4", "192.168.86.5",
    "10.0.0.2", "10.0.0.3", "10.0.0.4", "10.0.0.5", "10.0.1.2", "10.0.1.3",
    "172.16.0.2", "172.16.0.3", "172.16.1.2", "172.16.1.3",
)


def get_local_ip() -> Optional[str]:
    """Determine this machine's LAN IPv4 address.

    Connecting a UDP socket sends nothing; it only selects the outbound
    interface.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.settimeout(0.1)
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
    except OSError as e:
        logger.debug(f"Could not determine local IP: {e}")
        return None

    if not _is_ipv4(ip) or ipaddress.IPv4Address(ip).is_loopback:
        return None
    return ip


def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def subnet_prefix(ip: str) -> Optional[str]:
    """``192.168.1.34`` -> ``192.168.1``."""
    if not _is_ipv4(ip):
        return None
    return ip.rsplit(".", 1)[0]


def guess_gateway(ip: str) -> Optional[str]:
    """Assume the router sits at ``.1`` of the device's /24."""
    prefix = subnet_prefix(ip)
    return f"{prefix}.1" if prefix else None


def priority_subnet_hosts(ip: str) -> List[str]:
    prefix = subnet_prefix(ip)
    if not prefix:
        return []
    return [f"{prefix}.{octet}" for octet in PRIORITY_LAST_OCTETS if f"{prefix}.{octet}" != ip]


def nearby_hosts(center: str, count: int) -> List[str]:
    """Addresses within ``count // 2`` of ``center`` in the same /24."""
    prefix = subnet_prefix(center)
    if not prefix:
        return []
    last = int(center.rsplit(".", 1)[1])
    span = count // 2
    return [
        f"{prefix}.{octet}"
        for octet in range(last - span, last + span + 1)
        if 0 < octet < 255
    ]


def subnet_scan_hosts(ip: str, first: int = 2, last: int = 20) -> List[str]:
    prefix = subnet_prefix(ip)
    if not prefix:
        return []
    return [f"{prefix}.{octet}" for octet in range(first, last + 1) if f"{prefix}.{octet}" != ip]


def expand_ip_ranges(ranges: Iterable[str]) -> List[str]:
    """Expand ``a.b.c.d-a.b.c.e`` ranges, CIDR blocks and single addresses."""
    all_ips: List[str] = []
    for ip_range in ranges:
        ip_range = ip_range.strip()
        if not ip_range:
            continue
        try:
            if "-" in ip_range:
                start_ip, end_ip = ip_range.split("-", 1)
                start = ipaddress.IPv4Address(start_ip.strip())
                end = ipaddress.IPv4Address(end_ip.strip())
                current = start
                while current <= end:
                    all_ips.append(str(current))
                    current += 1
            else:
                network = ipaddress.IPv4Network(ip_range, strict=False)
                if network.num_addresses == 1:
                    all_ips.append(str(network.network_address))
                else:
                    all_ips.extend(str(ip) for ip in network.hosts())
        except ValueError:
            logger.warning(f"Invalid IP range: {ip_range}")
    return all_ips


def unique_hosts(*groups: Iterable[str]) -> List[str]:
    """Concatenate host lists, dropping repeats while keeping order."""
    seen = set()
    hosts: List[str] = []
    for group in groups:
        for host in group:
            if host not in seen:
                seen.add(host)
                hosts.append(host)
    return hosts
