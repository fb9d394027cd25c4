"""Data structures shared by every discovery strategy."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BRIDGE_NAME = "Philips Hue Bridge"
DEFAULT_BRIDGE_PORT = 80


class DiscoveryMode(str, Enum):
    """Which strategy set the coordinator runs."""

    CONCURRENT = "concurrent"
    SEQUENTIAL = "sequential"


class DiscoveryStage(str, Enum):
    """Lifecycle stage of a discovery session."""

    IDLE = "idle"
    FAST_PATH = "fast_path"
    PARALLEL_FALLBACK = "parallel_fallback"
    TIMED_OUT = "timed_out"
    COMPLETED = "completed"


def normalize_bridge_id(raw_id: str) -> str:
    """Strip ``:`` separators and uppercase a bridge identifier."""
    return raw_id.replace(":", "").strip().upper()


@dataclass(frozen=True)
class BridgeRecord:
    """One physical bridge found on the network."""

    id: str
    ip_address: str
    port: int = DEFAULT_BRIDGE_PORT
    name: str = DEFAULT_BRIDGE_NAME
    method: str = field(default="unknown", compare=False)

    @property
    def normalized_id(self) -> str:
        return normalize_bridge_id(self.id)

    def normalized(self) -> BridgeRecord:
        """Return a copy whose ``id`` is the normalized identifier."""
        if self.id == self.normalized_id:
            return self
        return replace(self, id=self.normalized_id)

    def is_same_bridge(self, other: BridgeRecord) -> bool:
        return (
            self.normalized_id == other.normalized_id
            or self.ip_address == other.ip_address
        )


def merge_bridges(
    existing: Iterable[BridgeRecord], new: Iterable[BridgeRecord]
) -> List[BridgeRecord]:
    """Return normalized records from ``new`` not already present in ``existing``.

    A record is a duplicate when its normalized id OR its IP address matches a
    record seen earlier, either in ``existing`` or earlier in ``new``. The
    first record seen wins.
    """
    seen_ids = {bridge.normalized_id for bridge in existing}
    seen_ips = {bridge.ip_address for bridge in existing}
    unique: List[BridgeRecord] = []

    for bridge in new:
        candidate = bridge.normalized()
        if candidate.id in seen_ids or candidate.ip_address in seen_ips:
            continue
        seen_ids.add(candidate.id)
        seen_ips.add(candidate.ip_address)
        unique.append(candidate)

    return unique


def dedupe_bridges(bridges: Iterable[BridgeRecord]) -> List[BridgeRecord]:
    """Normalize and deduplicate a single list of records."""
    return merge_bridges([], bridges)


class CloudBridgeEntry(BaseModel):
    """One element of the vendor discovery endpoint response."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    internalipaddress: str = Field(..., min_length=7)
    port: Optional[int] = Field(default=None, ge=1, le=65535)

    def to_record(self) -> BridgeRecord:
        return BridgeRecord(
            id=self.id,
            ip_address=self.internalipaddress,
            port=self.port or DEFAULT_BRIDGE_PORT,
            method="cloud",
        )
