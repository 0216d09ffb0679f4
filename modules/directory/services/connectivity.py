"""
Connectivity Monitor.

Tracks whether the remote store is reachable. A background asyncio task
probes periodically; callers also report the outcome of real requests so
a failed mutation flips the state without waiting for the next probe.

Callbacks registered with ``on_change`` fire on online/offline
transitions only. They may be plain functions or coroutines.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]
ChangeCallback = Callable[[bool], Union[None, Awaitable[None]]]


@dataclass
class ConnectivityStatus:
    """Snapshot of the current connectivity state."""

    online: bool
    last_change: Optional[datetime] = None
    last_check: Optional[datetime] = None
    last_latency_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "online": self.online,
            "last_change": self.last_change.isoformat() if self.last_change else None,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "last_latency_ms": self.last_latency_ms,
        }


class ConnectivityMonitor:
    """
    Online/offline signal for the remote store.

    Args:
        probe: Coroutine returning True when the remote store answered.
        check_interval: Seconds between background probes.
        probe_timeout: Upper bound for a single probe.
        initially_online: State assumed before the first probe.
    """

    def __init__(
        self,
        probe: Probe,
        check_interval: float = 15.0,
        probe_timeout: float = 5.0,
        initially_online: bool = True,
    ) -> None:
        self._probe = probe
        self._check_interval = check_interval
        self._probe_timeout = probe_timeout

        self._status = ConnectivityStatus(online=initially_online)
        self._callbacks: list[ChangeCallback] = []
        self._task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_online(self) -> bool:
        return self._status.online

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> ConnectivityStatus:
        s = self._status
        return ConnectivityStatus(
            online=s.online,
            last_change=s.last_change,
            last_check=s.last_check,
            last_latency_ms=s.last_latency_ms,
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def on_change(self, callback: ChangeCallback) -> None:
        """Register a callback fired with the new state on transitions."""
        self._callbacks.append(callback)

    async def _set_online(self, online: bool) -> None:
        if online == self._status.online:
            return

        self._status.online = online
        self._status.last_change = datetime.now(timezone.utc)
        logger.info(f"Remote store is now {'online' if online else 'offline'}")

        for callback in list(self._callbacks):
            try:
                result = callback(online)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"Connectivity callback failed: {e}")

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    async def check_now(self) -> bool:
        """Run one probe and update the state."""
        start = time.monotonic()
        try:
            reachable = bool(await asyncio.wait_for(self._probe(), timeout=self._probe_timeout))
        except asyncio.TimeoutError:
            logger.debug("Connectivity probe timed out")
            reachable = False
        except Exception as e:
            logger.debug(f"Connectivity probe failed: {e}")
            reachable = False

        self._status.last_check = datetime.now(timezone.utc)
        self._status.last_latency_ms = int((time.monotonic() - start) * 1000) if reachable else None

        await self._set_online(reachable)
        return reachable

    async def report_success(self) -> None:
        """A request to the remote store just succeeded."""
        await self._set_online(True)

    async def report_failure(self) -> None:
        """A request to the remote store failed at the transport level."""
        await self._set_online(False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Start the background probing task.

        Must be called with a running event loop (IAppModule.async_startup).
        """
        if self.is_running:
            return

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._monitor_loop(), name="connectivity_monitor")
        self._task.add_done_callback(self._handle_task_exit)
        logger.info(f"ConnectivityMonitor started (interval={self._check_interval:.0f}s)")

    async def stop(self) -> None:
        """Cancel the probing task and wait for it to finish."""
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("ConnectivityMonitor stopped")

    async def _monitor_loop(self) -> None:
        while True:
            await self.check_now()
            await asyncio.sleep(self._check_interval)

    @staticmethod
    def _handle_task_exit(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Connectivity monitor task failed: {exc}", exc_info=exc)
