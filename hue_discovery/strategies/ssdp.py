"""Bridge discovery through SSDP (UPnP) multicast search."""

from __future__ import annotations

import asyncio
import socket
from typing import Callable, Dict, List, Optional, Set, Tuple

from loguru import logger

from ..models import BridgeRecord
from ..probe import BridgeProber, StopCheck
from .base import DiscoveryStrategy

SSDP_ADDR = ("239.255.255.250", 1900)
SSDP_MX = 3
SEARCH_TARGETS = (
    "urn:schemas-upnp-org:device:basic:1",
    "upnp:rootdevice",
    "urn:schemas-upnp-org:device:IpBridge:1",
)
REPLY_MARKERS = ("ipbridge", "hue")


def build_msearch(st: str, mx: int = SSDP_MX) -> bytes:
    return "\r\n".join(
        [
            "M-SEARCH * HTTP/1.1",
            f"HOST: {SSDP_ADDR[0]}:{SSDP_ADDR[1]}",
            'MAN: "ssdp:discover"',
            f"MX: {mx}",
            f"ST: {st}",
            "",
            "",
        ]
    ).encode("utf-8")


def parse_ssdp_headers(packet: str) -> Dict[str, str]:
    """Parse an HTTP-style SSDP reply into lower-cased header names."""
    headers: Dict[str, str] = {}
    for line in packet.splitlines()[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().lower()] = value.strip()
    return headers


def extract_location(packet: str) -> Optional[str]:
    """Return the LOCATION of a reply that looks like it came from a bridge."""
    lowered = packet.lower()
    if not any(marker in lowered for marker in REPLY_MARKERS):
        return None
    return parse_ssdp_headers(packet).get("location") or None


class SSDPProtocol(asyncio.DatagramProtocol):
    """Forwards each new bridge LOCATION to ``on_location``."""

    def __init__(self, on_location: Callable[[str], None]) -> None:
        self._on_location = on_location
        self._seen: Set[str] = set()
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        packet = data.decode("utf-8", errors="ignore")
        location = extract_location(packet)
        if not location or location in self._seen:
            return
        self._seen.add(location)
        logger.debug(f"SSDP: {addr[0]} advertises {location}")
        self._on_location(location)

    def error_received(self, exc: Exception) -> None:
        logger.debug(f"SSDP socket error: {exc}")


async def open_ssdp_endpoint(protocol_factory: Callable[[], SSDPProtocol]):
    loop = asyncio.get_running_loop()
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
    sock.bind(("0.0.0.0", 0))
    sock.setblocking(False)
    return await loop.create_datagram_endpoint(protocol_factory, sock=sock)


class SSDPDiscovery(DiscoveryStrategy):
    """Multicast M-SEARCH, then validate each advertised description URL."""

    name = "SSDP Discovery"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._listen_window = float(SSDP_MX + 1)

    @property
    def timeout(self) -> float:
        return self.settings.ssdp_timeout

    async def _discover(self, found: List[BridgeRecord], should_stop: StopCheck) -> None:
        probes: Set[asyncio.Task] = set()

        async with self._client_factory() as client:
            prober = BridgeProber(client, self.settings, method=self.name)

            async def validate(location: str) -> None:
                bridge = await prober.probe_location(location, should_stop)
                if bridge is not None and not any(b.is_same_bridge(bridge) for b in found):
                    logger.info(f"SSDP: {bridge.id} at {bridge.ip_address}")
                    found.append(bridge)

            def on_location(location: str) -> None:
                if should_stop():
                    return
                task = asyncio.ensure_future(validate(location))
                probes.add(task)
                task.add_done_callback(probes.discard)

            transport, _ = await open_ssdp_endpoint(lambda: SSDPProtocol(on_location))
            try:
                for st in SEARCH_TARGETS:
                    transport.sendto(build_msearch(st), SSDP_ADDR)
                await asyncio.sleep(self._listen_window)
                if probes and not should_stop():
                    await asyncio.gather(*probes, return_exceptions=True)
            finally:
                transport.close()
                for task in list(probes):
                    task.cancel()
                await asyncio.gather(*probes, return_exceptions=True)
