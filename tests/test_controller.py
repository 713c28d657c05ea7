"""Tests for the polling controller"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, Mock

from solarb_relay.errors import BackendUnreachable
from solarb_relay.modules.controller import BotState, PollingController
from solarb_relay.modules.history import TradeHistory
from solarb_relay.modules.models import (
    ArbitrageDecision,
    TradeOutcome,
    TradeRecord,
    TradeStatus
)

from tests import TEST_ADDRESS


def decision(profit: int, profitable: bool = True) -> ArbitrageDecision:
    return ArbitrageDecision(
        profitable=profitable,
        profit=profit,
        reason='Profitable opportunity found' if profitable else 'Not enough profit',
        token_amounts={}
    )


def completed(profit: int) -> TradeOutcome:
    record = TradeRecord(datetime.now(), profit, profit, ['sig1'], {})
    return TradeOutcome(TradeStatus.COMPLETED, 'Trade completed', record=record)


@pytest.fixture
def relay():
    client = Mock()
    client.is_healthy = AsyncMock(return_value=True)
    client.check_arbitrage = AsyncMock(return_value=decision(10_500_000))
    client.get_balance = AsyncMock(return_value=Decimal('1.5'))
    return client


@pytest.fixture
def signer():
    wallet = Mock()
    wallet.connected = True
    wallet.public_key = TEST_ADDRESS
    return wallet


@pytest.fixture
def coordinator():
    mock = Mock()
    mock.in_flight = False
    mock.payer_address = None
    mock.history = TradeHistory()
    mock.execute_trade = AsyncMock(return_value=completed(10_500_000))
    return mock


@pytest.fixture
def controller(relay, signer, coordinator):
    return PollingController(relay, signer, coordinator)


async def run_ticks(controller: PollingController, interval: float = 10, **kwargs):
    """Start, let the immediate first tick and any launched execution finish, then stop"""
    started, reason = await controller.start(interval, **kwargs)
    assert started, reason
    await asyncio.sleep(0.01)
    await controller.wait_for_execution()
    controller.stop()


class TestStart:
    """Test start preconditions"""

    @pytest.mark.asyncio
    async def test_refuses_without_signer(self, controller, signer):
        signer.connected = False
        started, reason = await controller.start(15)

        assert not started
        assert reason == 'Signer not connected'
        assert controller.state is BotState.STOPPED

    @pytest.mark.asyncio
    async def test_refuses_without_payer(self, controller, signer):
        signer.public_key = None
        started, _ = await controller.start(15)
        assert not started

    @pytest.mark.asyncio
    async def test_refuses_when_relay_unhealthy(self, controller, relay):
        relay.is_healthy = AsyncMock(return_value=False)
        started, reason = await controller.start(15)

        assert not started
        assert reason == 'Relay not healthy'
        relay.check_arbitrage.assert_not_called()

    @pytest.mark.asyncio
    async def test_refuses_bad_interval(self, controller):
        started, _ = await controller.start(0)
        assert not started

    @pytest.mark.asyncio
    async def test_start_resets_stats(self, controller):
        controller.stats.checks = 42
        await run_ticks(controller)

        assert controller.stats.checks == 1
        assert controller.stats.started_at is not None


class TestPolling:
    """Test ticks, thresholds and stopping"""

    @pytest.mark.asyncio
    async def test_first_check_runs_immediately(self, controller, relay):
        await controller.start(10)
        await asyncio.sleep(0.01)

        assert relay.check_arbitrage.await_count == 1
        controller.stop()

    @pytest.mark.asyncio
    async def test_auto_execute_and_account(self, controller, coordinator, relay):
        await run_ticks(controller, min_profit_threshold=10_000_000)

        coordinator.execute_trade.assert_awaited_once()
        assert controller.stats.opportunities == 1
        assert controller.stats.successful_trades == 1
        assert controller.stats.total_profit == 10_500_000
        assert controller.stats.average_profit == 10_500_000
        assert controller.balance == Decimal('1.5')
        relay.get_balance.assert_awaited_with(TEST_ADDRESS)

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, controller, coordinator):
        await run_ticks(controller, min_profit_threshold=10_500_000)
        coordinator.execute_trade.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_below_threshold_skips(self, controller, coordinator):
        await run_ticks(controller, min_profit_threshold=10_500_001)

        coordinator.execute_trade.assert_not_called()
        assert controller.stats.opportunities == 1

    @pytest.mark.asyncio
    async def test_not_profitable_skips(self, controller, relay, coordinator):
        relay.check_arbitrage = AsyncMock(return_value=decision(5_000_000, profitable=False))
        await run_ticks(controller)

        coordinator.execute_trade.assert_not_called()
        assert controller.stats.checks == 1
        assert controller.stats.opportunities == 0

    @pytest.mark.asyncio
    async def test_in_flight_execution_drops_trigger(self, controller, coordinator):
        coordinator.in_flight = True
        await run_ticks(controller)
        coordinator.execute_trade.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_ticks(self, controller, relay):
        await controller.start(0.02)
        await asyncio.sleep(0.005)
        controller.stop()
        count = relay.check_arbitrage.await_count

        await asyncio.sleep(0.08)

        assert relay.check_arbitrage.await_count == count
        assert controller.state is BotState.STOPPED
        controller.stop()

    @pytest.mark.asyncio
    async def test_repeats_on_interval(self, controller, relay, coordinator):
        relay.check_arbitrage = AsyncMock(return_value=decision(0, profitable=False))
        await controller.start(0.02)
        await asyncio.sleep(0.07)
        controller.stop()

        assert relay.check_arbitrage.await_count >= 3

    @pytest.mark.asyncio
    async def test_stop_on_check_error(self, controller, relay):
        relay.check_arbitrage = AsyncMock(side_effect=BackendUnreachable("Relay timeout"))
        await controller.start(0.01, stop_on_error=True)
        await asyncio.sleep(0.05)

        assert controller.state is BotState.STOPPED
        assert relay.check_arbitrage.await_count == 1

    @pytest.mark.asyncio
    async def test_check_error_without_stop_keeps_running(self, controller, relay):
        relay.check_arbitrage = AsyncMock(side_effect=BackendUnreachable("Relay timeout"))
        await controller.start(0.01)
        await asyncio.sleep(0.05)

        assert controller.state is BotState.RUNNING
        assert relay.check_arbitrage.await_count >= 2
        controller.stop()

    @pytest.mark.asyncio
    async def test_stop_on_partial_trade(self, controller, coordinator):
        coordinator.execute_trade = AsyncMock(
            return_value=TradeOutcome(TradeStatus.PARTIAL, 'Chain rejected', failed_step=2)
        )
        await controller.start(10, stop_on_error=True)
        await asyncio.sleep(0.01)
        await controller.wait_for_execution()

        assert controller.state is BotState.STOPPED
        assert controller.last_outcome.status is TradeStatus.PARTIAL
        assert controller.stats.successful_trades == 0

    @pytest.mark.asyncio
    async def test_check_now(self, controller, relay):
        result = await controller.check_now()

        assert result.profitable
        assert controller.stats.checks == 1
        assert controller.last_decision is result
