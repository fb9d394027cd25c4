"""Common contract for discovery strategies."""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from loguru import logger

from ..models import BridgeRecord
from ..probe import ClientFactory, StopCheck, create_http_client, never_stop
from ..settings import DiscoverySettings


class DiscoveryStrategy(ABC):
    """One way of finding bridges.

    ``run`` is total: it always returns a list, possibly empty, within
    ``timeout`` seconds. Only ``asyncio.CancelledError`` escapes, so the
    coordinator can abort a strategy that lost the race.
    """

    name: str = "strategy"

    def __init__(
        self,
        settings: Optional[DiscoverySettings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings or DiscoverySettings()
        self._client_factory = client_factory or (lambda: create_http_client(self.settings))

    @property
    @abstractmethod
    def timeout(self) -> float:
        """Upper bound on one run, in seconds."""

    @abstractmethod
    async def _discover(self, found: List[BridgeRecord], should_stop: StopCheck) -> None:
        """Append confirmed bridges to ``found`` as they are discovered."""

    async def run(
        self, should_stop: StopCheck = never_stop, found: Optional[List[BridgeRecord]] = None
    ) -> List[BridgeRecord]:
        """Run once and return the confirmed bridges.

        When ``found`` is given, bridges are appended to it as they are
        confirmed, so a caller can read partial results while this runs.
        """
        if found is None:
            found = []
        if should_stop():
            return []

        start_time = time.monotonic()
        logger.info(f"{self.name}: starting (timeout {self.timeout:.0f}s)")

        try:
            await asyncio.wait_for(self._discover(found, should_stop), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.info(f"{self.name}: timed out, keeping {len(found)} partial result(s)")
        except asyncio.CancelledError:
            logger.debug(f"{self.name}: cancelled")
            raise
        except Exception as e:
            logger.warning(f"{self.name} failed: {e!r}")
            return []

        duration = time.monotonic() - start_time
        logger.info(f"{self.name}: {len(found)} bridge(s) in {duration:.1f}s")
        return list(found)
