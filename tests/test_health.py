"""
Tests for the connection health monitor.

Tests cover:
- Staleness threshold and recovery on pong
- Debounced "connection lost" flag
- Transitions that must not go stale
"""

import asyncio

import pytest

from tabletop_sync.client.health import ConnectionHealthMonitor, ConnectionStatus
from tabletop_sync.protocol import constants

DEBOUNCE = 0.05


@pytest.fixture
def monitor(fake_clock):
    m = ConnectionHealthMonitor(lost_debounce_s=DEBOUNCE, clock=fake_clock)
    yield m
    m.close()


class TestDefaults:

    def test_timing_constants(self):
        """Heartbeat, staleness, backoff and debounce keep their fixed values."""
        assert constants.HEARTBEAT_INTERVAL_S == 5.0
        assert constants.STALE_AFTER_S == 10.0
        assert constants.RECONNECT_DELAY_S == 2.0
        assert constants.LOST_DEBOUNCE_S == 0.3

    def test_initial_state(self, fake_clock):
        m = ConnectionHealthMonitor(clock=fake_clock)
        assert m.status is ConnectionStatus.CONNECTING
        assert m.connection_lost is False
        assert m.stale_after_s == 10.0


class TestStaleness:

    @pytest.mark.asyncio
    async def test_goes_stale_at_threshold(self, monitor, fake_clock):
        monitor.mark_connected()
        fake_clock.advance(9.5)
        assert monitor.check() is ConnectionStatus.CONNECTED
        fake_clock.advance(0.5)
        assert monitor.check() is ConnectionStatus.STALE

    @pytest.mark.asyncio
    async def test_pong_resets_window(self, monitor, fake_clock):
        monitor.mark_connected()
        fake_clock.advance(8)
        monitor.record_pong()
        fake_clock.advance(8)
        assert monitor.check() is ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_pong_recovers_from_stale(self, monitor, fake_clock):
        monitor.mark_connected()
        fake_clock.advance(12)
        monitor.check()
        await asyncio.sleep(DEBOUNCE * 3)
        assert monitor.connection_lost is True

        monitor.record_pong()
        assert monitor.status is ConnectionStatus.CONNECTED
        assert monitor.connection_lost is False

    @pytest.mark.asyncio
    async def test_not_live_never_goes_stale(self, monitor, fake_clock):
        """Only a live connection can become stale."""
        monitor.mark_reconnecting()
        fake_clock.advance(60)
        assert monitor.check() is ConnectionStatus.RECONNECTING


class TestLostDebounce:

    @pytest.mark.asyncio
    async def test_lost_appears_only_after_delay(self, monitor):
        monitor.mark_connected()
        monitor.mark_reconnecting()
        assert monitor.connection_lost is False
        assert monitor.lost_pending is True
        await asyncio.sleep(DEBOUNCE * 3)
        assert monitor.connection_lost is True
        assert monitor.lost_pending is False

    @pytest.mark.asyncio
    async def test_blip_never_shows(self, monitor):
        """Reconnecting inside the debounce window cancels the pending flag."""
        monitor.mark_connected()
        monitor.mark_reconnecting()
        monitor.mark_connecting()
        monitor.mark_connected()
        assert monitor.lost_pending is False
        await asyncio.sleep(DEBOUNCE * 3)
        assert monitor.connection_lost is False

    @pytest.mark.asyncio
    async def test_connected_clears_flag_immediately(self, monitor):
        monitor.mark_connected()
        monitor.mark_reconnecting()
        await asyncio.sleep(DEBOUNCE * 3)
        assert monitor.connection_lost is True
        monitor.mark_connected()
        assert monitor.connection_lost is False

    @pytest.mark.asyncio
    async def test_one_timer_across_non_connected_states(self, monitor):
        """Moving between non-connected states does not restart the debounce."""
        monitor.mark_connected()
        monitor.mark_reconnecting()
        first = monitor._lost_timer
        monitor.mark_connecting()
        assert monitor._lost_timer is first

    @pytest.mark.asyncio
    async def test_offline_shows_lost(self, monitor):
        monitor.mark_offline()
        await asyncio.sleep(DEBOUNCE * 3)
        assert monitor.status is ConnectionStatus.OFFLINE
        assert monitor.connection_lost is True

    @pytest.mark.asyncio
    async def test_on_change_called(self, fake_clock):
        calls = []
        m = ConnectionHealthMonitor(lost_debounce_s=DEBOUNCE, clock=fake_clock, on_change=lambda: calls.append(1))
        m.mark_connected()
        m.mark_reconnecting()
        await asyncio.sleep(DEBOUNCE * 3)
        # connected, reconnecting, lost flag raised
        assert len(calls) == 3
        m.close()
