"""Find Philips Hue Bridges on the local network."""

from loguru import logger

from .coordinator import BridgeDiscovery, DiscoverySession, StrategyPlan, build_strategy_plan
from .logging_setup import configure_logging
from .models import (
    BridgeRecord,
    DiscoveryMode,
    DiscoveryStage,
    dedupe_bridges,
    merge_bridges,
    normalize_bridge_id,
)
from .settings import DiscoverySettings
from .validator import ContentKind, extract_identity, is_hue_bridge_descriptor

__version__ = "1.0.0"

# Silent until the application opts in via configure_logging()
logger.disable("hue_discovery")

__all__ = [
    "BridgeDiscovery",
    "BridgeRecord",
    "ContentKind",
    "DiscoveryMode",
    "DiscoverySession",
    "DiscoverySettings",
    "DiscoveryStage",
    "StrategyPlan",
    "build_strategy_plan",
    "configure_logging",
    "dedupe_bridges",
    "extract_identity",
    "is_hue_bridge_descriptor",
    "merge_bridges",
    "normalize_bridge_id",
]
