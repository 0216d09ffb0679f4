"""
Unit Tests for ConnectivityMonitor.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from modules.directory.services.connectivity import ConnectivityMonitor


class TestCheckNow:
    """Tests for single probes."""

    @pytest.mark.asyncio
    async def test_reachable_probe(self):
        """A True probe keeps the monitor online and records latency."""
        monitor = ConnectivityMonitor(AsyncMock(return_value=True))

        assert await monitor.check_now() is True
        status = monitor.status()
        assert status.online is True
        assert status.last_check is not None
        assert status.last_latency_ms is not None

    @pytest.mark.asyncio
    async def test_probe_exception_means_offline(self):
        """Probe errors count as unreachable."""
        monitor = ConnectivityMonitor(AsyncMock(side_effect=OSError("no route")))

        assert await monitor.check_now() is False
        assert monitor.is_online is False
        assert monitor.status().last_latency_ms is None

    @pytest.mark.asyncio
    async def test_probe_timeout_means_offline(self):
        """Probes slower than probe_timeout count as unreachable."""
        async def hang():
            await asyncio.sleep(5)
            return True

        monitor = ConnectivityMonitor(hang, probe_timeout=0.01)

        assert await monitor.check_now() is False
        assert monitor.is_online is False


class TestTransitions:
    """Tests for change callbacks."""

    @pytest.mark.asyncio
    async def test_callbacks_fire_on_transitions_only(self):
        """Repeated observations of the same state fire nothing."""
        seen = []
        monitor = ConnectivityMonitor(AsyncMock(return_value=True))
        monitor.on_change(seen.append)

        await monitor.report_success()
        await monitor.report_failure()
        await monitor.report_failure()
        await monitor.report_success()

        assert seen == [False, True]
        assert monitor.status().last_change is not None

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self):
        """Coroutine callbacks are awaited."""
        callback = AsyncMock()
        monitor = ConnectivityMonitor(AsyncMock(return_value=True), initially_online=False)
        monitor.on_change(callback)

        await monitor.check_now()

        callback.assert_awaited_once_with(True)

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_others(self):
        """A callback error is logged and later callbacks still run."""
        broken = MagicMock(side_effect=RuntimeError("bad"))
        good = MagicMock()
        monitor = ConnectivityMonitor(AsyncMock(return_value=True))
        monitor.on_change(broken)
        monitor.on_change(good)

        await monitor.report_failure()

        good.assert_called_once_with(False)
        assert monitor.is_online is False


class TestLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_probes_immediately_and_stop_cancels(self):
        """The background loop probes right away and stops cleanly."""
        probe = AsyncMock(return_value=False)
        monitor = ConnectivityMonitor(probe, check_interval=60)

        monitor.start()
        await asyncio.sleep(0.05)

        assert monitor.is_running is True
        assert probe.await_count == 1
        assert monitor.is_online is False

        await monitor.stop()
        assert monitor.is_running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        """A second start() does not spawn another loop."""
        probe = AsyncMock(return_value=True)
        monitor = ConnectivityMonitor(probe, check_interval=60)

        monitor.start()
        monitor.start()
        await asyncio.sleep(0.05)

        assert probe.await_count == 1
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        """stop() before start() is a no-op."""
        monitor = ConnectivityMonitor(AsyncMock(return_value=True))
        await monitor.stop()
        assert monitor.is_running is False

    def test_status_to_dict(self):
        monitor = ConnectivityMonitor(AsyncMock(return_value=True))

        data = monitor.status().to_dict()

        assert data == {
            "online": True,
            "last_change": None,
            "last_check": None,
            "last_latency_ms": None,
        }
