"""Discovery strategies, one per technique."""

from .base import DiscoveryStrategy
from .cloud import CloudDiscovery
from .ip_scan import IPScanDiscovery
from .mdns import MDNSDiscovery
from .smart import SmartDiscovery
from .ssdp import SSDPDiscovery

__all__ = [
    "DiscoveryStrategy",
    "CloudDiscovery",
    "IPScanDiscovery",
    "MDNSDiscovery",
    "SmartDiscovery",
    "SSDPDiscovery",
]
