"""Discovery session state machine.

A session runs a fast path of strategies one at a time, then, if nothing
was found, a set of fallback strategies concurrently. The fallback stage is
bounded by ``session_timeout``, measured from the moment it begins, and the
result is delivered exactly once.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from loguru import logger

from .diagnostics import collect_network_info
from .models import (
    BridgeRecord,
    DiscoveryMode,
    DiscoveryStage,
    dedupe_bridges,
    merge_bridges,
)
from .probe import ClientFactory
from .settings import DiscoverySettings
from .strategies import (
    CloudDiscovery,
    DiscoveryStrategy,
    IPScanDiscovery,
    MDNSDiscovery,
    SmartDiscovery,
    SSDPDiscovery,
)

CompletionCallback = Callable[[List[BridgeRecord]], None]


@dataclass
class StrategyPlan:
    """Which strategies run, and in which phase."""

    mode: DiscoveryMode
    fast_path: List[DiscoveryStrategy] = field(default_factory=list)
    fallback: List[DiscoveryStrategy] = field(default_factory=list)


def build_strategy_plan(
    settings: DiscoverySettings, client_factory: Optional[ClientFactory] = None
) -> StrategyPlan:
    def make(cls):
        return cls(settings, client_factory)

    if settings.mode is DiscoveryMode.SEQUENTIAL:
        return StrategyPlan(
            mode=settings.mode,
            fast_path=[make(CloudDiscovery), make(SmartDiscovery), make(IPScanDiscovery)],
        )

    fast_path: List[DiscoveryStrategy] = []
    if settings.mdns_enabled:
        fast_path.append(make(MDNSDiscovery))
    fast_path.append(make(CloudDiscovery))

    fallback: List[DiscoveryStrategy] = [make(SmartDiscovery), make(IPScanDiscovery)]
    if settings.ssdp_enabled:
        fallback.append(make(SSDPDiscovery))

    return StrategyPlan(mode=settings.mode, fast_path=fast_path, fallback=fallback)


class DiscoverySession:
    """Mutable state of one discovery run. Guarded by the coordinator lock."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.loop = loop
        self.result: asyncio.Future = loop.create_future()
        self.stop_event = threading.Event()
        self.tasks: Set[asyncio.Task] = set()
        self.started_at = time.monotonic()

        self.is_running = True
        self.has_completed = False
        self.stage = DiscoveryStage.IDLE
        self.accumulated_results: Dict[str, BridgeRecord] = {}
        # Bridges each fallback strategy has confirmed before reporting
        self.in_progress: Dict[str, List[BridgeRecord]] = {}
        self.completed_strategy_count = 0
        self.expected_strategy_count = 0
        self.finish_reason: Optional[str] = None

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class BridgeDiscovery:
    """Finds Hue Bridges on the local network.

    Only one session runs at a time; a request made while one is running
    gets an empty result immediately.
    """

    def __init__(
        self,
        settings: Optional[DiscoverySettings] = None,
        plan: Optional[StrategyPlan] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings or DiscoverySettings()
        self.plan = plan or build_strategy_plan(self.settings, client_factory)
        self._lock = threading.RLock()
        self._session: Optional[DiscoverySession] = None
        self.last_session: Optional[DiscoverySession] = None
        self._callback_tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._session is not None and self._session.is_running

    @property
    def stage(self) -> DiscoveryStage:
        with self._lock:
            session = self._session or self.last_session
            return session.stage if session else DiscoveryStage.IDLE

    def discover_bridges(self, completion: CompletionCallback) -> asyncio.Task:
        """Start a session on the running loop; ``completion`` gets the result once."""
        task = asyncio.get_running_loop().create_task(self.discover_bridges_async())
        self._callback_tasks.add(task)

        def deliver(done: asyncio.Task) -> None:
            self._callback_tasks.discard(done)
            if done.cancelled():
                bridges: List[BridgeRecord] = []
            elif done.exception() is not None:
                logger.opt(exception=done.exception()).error("Discovery session crashed")
                bridges = []
            else:
                bridges = done.result()
            try:
                completion(bridges)
            except Exception:
                logger.exception("Discovery completion callback raised")

        task.add_done_callback(deliver)
        return task

    def discover_bridges_sync(self) -> List[BridgeRecord]:
        """Blocking wrapper for scripts and the CLI."""
        try:
            return asyncio.run(self.discover_bridges_async())
        except Exception as e:
            logger.error(f"Bridge discovery failed: {e}")
            return []

    async def discover_bridges_async(self) -> List[BridgeRecord]:
        session = self._begin_session()
        if session is None:
            logger.warning("Discovery already in progress, rejecting new request")
            return []

        logger.info(
            f"Starting bridge discovery ({self.plan.mode.value}, "
            f"fallback timeout {self.settings.session_timeout:.0f}s)"
        )
        self._log_network_info()
        self._spawn(session, self._drive(session))

        try:
            return await asyncio.shield(session.result)
        except asyncio.CancelledError:
            self._finish(session, [], "cancelled")
            raise
        finally:
            await self._teardown(session)

    def stop_discovery(self) -> None:
        """Cancel the running session, if any. Safe from any thread."""
        with self._lock:
            session = self._session
            if session is None or session.has_completed:
                logger.debug("stop_discovery: no discovery in progress")
                return
            logger.info("Stopping bridge discovery")
            self._finish(session, [], "stopped")

    def _begin_session(self) -> Optional[DiscoverySession]:
        with self._lock:
            if self._session is not None and self._session.is_running:
                return None
            session = DiscoverySession(asyncio.get_running_loop())
            self._session = session
            self.last_session = session
            return session

    def _spawn(self, session: DiscoverySession, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        session.tasks.add(task)
        return task

    def _log_network_info(self) -> None:
        # No connectivity check here; that one blocks on DNS and TCP connect
        info = collect_network_info(check_connectivity=False)
        logger.debug(f"Network info: {info.model_dump()}")

    async def _drive(self, session: DiscoverySession) -> None:
        try:
            with self._lock:
                session.stage = DiscoveryStage.FAST_PATH

            for strategy in self.plan.fast_path:
                if session.should_stop():
                    return
                bridges = dedupe_bridges(await strategy.run(session.should_stop))
                if bridges:
                    self._finish(session, bridges, strategy.name)
                    return
                logger.info(f"{strategy.name} found nothing")

            if not self.plan.fallback:
                self._finish(session, [], "all strategies finished")
                return

            await self._run_fallback(session)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Discovery coordinator failed")
            self._finish(session, [], "error")

    async def _run_fallback(self, session: DiscoverySession) -> None:
        strategies = self.plan.fallback
        with self._lock:
            if session.has_completed:
                return
            session.stage = DiscoveryStage.PARALLEL_FALLBACK
            session.expected_strategy_count = len(strategies)
            session.completed_strategy_count = 0
            session.in_progress = {strategy.name: [] for strategy in strategies}

        logger.info(f"Fast path empty, running {', '.join(s.name for s in strategies)} in parallel")
        self._spawn(session, self._session_timer(session))
        tasks = [self._spawn(session, self._run_reporting(session, s)) for s in strategies]
        await asyncio.gather(*tasks)

    async def _session_timer(self, session: DiscoverySession) -> None:
        """Finish the fallback stage after ``session_timeout`` with what was confirmed so far."""
        await asyncio.sleep(self.settings.session_timeout)
        with self._lock:
            if session.has_completed:
                return
            session.stage = DiscoveryStage.TIMED_OUT
            logger.warning(f"Discovery timed out after {self.settings.session_timeout:.0f}s")

            collected = list(session.accumulated_results.values())
            for found in session.in_progress.values():
                collected.extend(found)
            self._finish(session, collected, "timeout")

    async def _run_reporting(self, session: DiscoverySession, strategy: DiscoveryStrategy) -> None:
        found = session.in_progress.setdefault(strategy.name, [])
        bridges = await strategy.run(session.should_stop, found)
        self._report(session, strategy.name, bridges)

    def _report(self, session: DiscoverySession, source: str, bridges: List[BridgeRecord]) -> None:
        """Merge one fallback strategy's result into the session."""
        with self._lock:
            if session.has_completed:
                logger.debug(f"Discarding late report from {source} ({len(bridges)} bridge(s))")
                return

            session.completed_strategy_count += 1
            for bridge in merge_bridges(session.accumulated_results.values(), bridges):
                session.accumulated_results[bridge.id] = bridge

            if bridges:
                self._finish(session, bridges, source)
            elif session.completed_strategy_count >= session.expected_strategy_count:
                self._finish(
                    session, list(session.accumulated_results.values()), "all strategies finished"
                )

    def _finish(self, session: DiscoverySession, bridges: List[BridgeRecord], reason: str) -> None:
        with self._lock:
            if session.has_completed:
                logger.debug(f"Session already completed, ignoring finish ({reason})")
                return
            session.has_completed = True
            session.is_running = False
            session.stage = DiscoveryStage.COMPLETED
            session.finish_reason = reason
            session.stop_event.set()
            if self._session is session:
                self._session = None
            results = dedupe_bridges(bridges)

        logger.info(
            f"Discovery complete via {reason}: {len(results)} bridge(s) in {session.elapsed:.1f}s"
        )
        for bridge in results:
            logger.info(f"  {bridge.name} [{bridge.id}] at {bridge.ip_address}:{bridge.port}")

        def resolve() -> None:
            if not session.result.done():
                session.result.set_result(results)

        if _running_loop() is session.loop:
            resolve()
        else:
            try:
                session.loop.call_soon_threadsafe(resolve)
            except RuntimeError:
                logger.debug("Session loop closed before the result could be delivered")

    async def _teardown(self, session: DiscoverySession) -> None:
        session.stop_event.set()
        current = asyncio.current_task()
        pending = [t for t in session.tasks if not t.done() and t is not current]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
