"""Discovery through the vendor's cloud registry (discovery.meethue.com)."""

from __future__ import annotations

import json
from typing import List

import httpx
from loguru import logger
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..models import BridgeRecord, CloudBridgeEntry
from ..probe import StopCheck
from .base import DiscoveryStrategy


class CloudStatusError(Exception):
    """Retryable HTTP status from the discovery endpoint (5xx or 408)."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    CloudStatusError,
)


def parse_cloud_response(text: str) -> List[BridgeRecord]:
    """Turn the registry's JSON array into records, skipping malformed entries."""
    stripped = text.strip()
    if not stripped.startswith(("[", "{")):
        logger.warning(f"Cloud response is not JSON: {stripped[:200]!r}")
        return []

    try:
        data = json.loads(stripped)
    except ValueError as e:
        logger.warning(f"Cloud JSON error: {e}")
        return []

    if not isinstance(data, list):
        logger.warning(f"Unexpected cloud response: {stripped[:200]!r}")
        return []

    bridges: List[BridgeRecord] = []
    for item in data:
        try:
            bridges.append(CloudBridgeEntry.model_validate(item).to_record())
        except ValidationError as e:
            logger.debug(f"Skipping malformed cloud entry {item!r}: {e.error_count()} error(s)")
    return bridges


class CloudDiscovery(DiscoveryStrategy):
    """Ask the vendor registry which bridges share our public IP.

    The registry is trusted, so entries are not probed over the LAN.
    """

    name = "Cloud Discovery"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._retry_wait = wait_incrementing(start=1, increment=1)

    @property
    def timeout(self) -> float:
        attempts = self.settings.cloud_attempts
        return self.settings.cloud_timeout * attempts + sum(range(1, attempts)) + 1.0

    async def _discover(self, found: List[BridgeRecord], should_stop: StopCheck) -> None:
        url = self.settings.cloud_url
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.cloud_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )

        async with self._client_factory() as client:
            try:
                async for attempt in retrying:
                    with attempt:
                        if should_stop():
                            return
                        logger.debug(
                            f"Cloud discovery attempt {attempt.retry_state.attempt_number}"
                            f"/{self.settings.cloud_attempts}"
                        )
                        response = await client.get(
                            url,
                            timeout=self.settings.cloud_timeout,
                            headers={"Accept": "application/json", "Cache-Control": "no-cache"},
                        )
                        if response.status_code >= 500 or response.status_code == 408:
                            raise CloudStatusError(response.status_code)
            except (httpx.HTTPError, CloudStatusError) as e:
                logger.warning(f"Cloud discovery failed: {e!r}")
                return

        if response.status_code != 200:
            logger.warning(f"Cloud discovery returned HTTP {response.status_code}")
            return

        bridges = parse_cloud_response(response.text)
        for bridge in bridges:
            logger.info(f"Cloud: {bridge.id} at {bridge.ip_address}")
        found.extend(bridges)
