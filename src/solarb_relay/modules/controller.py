"""
Polling controller: periodic opportunity checks with auto-execution
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from prometheus_client import Gauge

from .execution import ExecutionCoordinator
from .models import ArbitrageDecision, SessionStats, TradeOutcome, TradeStatus
from .relay_client import RelayClient
from .scheduler import PeriodicTask
from .signer import Signer
from ..constants import DEFAULT_CHECK_INTERVAL, lamports_to_sol
from ..errors import ArbitrageError

logger = logging.getLogger(__name__)

# Metrics
balance_gauge = Gauge('wallet_balance_sol', 'Payer wallet balance in SOL')
running_gauge = Gauge('arbitrage_bot_running', '1 while the polling controller is running')


class BotState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class PollingController:
    """Checks the relay on a timer and hands profitable routes to the coordinator"""

    def __init__(self, relay: RelayClient, signer: Signer, coordinator: ExecutionCoordinator):
        self.relay = relay
        self.signer = signer
        self.coordinator = coordinator

        self.state = BotState.STOPPED
        self.interval_seconds = DEFAULT_CHECK_INTERVAL
        self.min_profit_threshold = 0
        self.stop_on_error = False

        self.stats = SessionStats()
        self.balance: Optional[Decimal] = None
        self.last_decision: Optional[ArbitrageDecision] = None
        self.last_outcome: Optional[TradeOutcome] = None

        self._task: Optional[PeriodicTask] = None
        self._execution: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.state is BotState.RUNNING

    @property
    def history(self):
        return self.coordinator.history

    async def start(
        self,
        interval_seconds: float = DEFAULT_CHECK_INTERVAL,
        min_profit_threshold: int = 0,
        stop_on_error: bool = False
    ) -> Tuple[bool, str]:
        """Start polling; refuses without changing state when preconditions fail"""
        if self.running:
            return False, "Bot already running"
        if interval_seconds <= 0:
            return False, "Interval must be positive"
        if not self.signer.connected:
            return False, "Signer not connected"
        if not (self.coordinator.payer_address or self.signer.public_key):
            return False, "No payer address"
        if not await self.relay.is_healthy():
            return False, "Relay not healthy"

        self.interval_seconds = interval_seconds
        self.min_profit_threshold = int(min_profit_threshold)
        self.stop_on_error = stop_on_error
        self.stats = SessionStats(started_at=datetime.now())

        self.state = BotState.RUNNING
        running_gauge.set(1)
        self._task = PeriodicTask(self._tick, interval_seconds, name="arb-poll")
        self._task.start()

        logger.info(
            f"Bot started: every {interval_seconds}s, threshold "
            f"{lamports_to_sol(self.min_profit_threshold)} SOL, stop_on_error={stop_on_error}"
        )
        return True, "Bot started"

    def stop(self):
        """Cancel pending checks; an execution already running is left to finish"""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self.running:
            self.state = BotState.STOPPED
            running_gauge.set(0)
            logger.info(f"Bot stopped after {self.stats.checks} checks")

    async def wait_for_execution(self):
        if self._execution is not None and not self._execution.done():
            await self._execution

    async def check_now(self) -> ArbitrageDecision:
        """One evaluation through the relay; counted in the session stats"""
        decision = await self.relay.check_arbitrage()
        self.stats.checks += 1
        if decision.profitable:
            self.stats.opportunities += 1
            logger.info(f"Profitable opportunity: {lamports_to_sol(decision.profit):.6f} SOL")
        else:
            logger.info(f"No profitable opportunity: {decision.reason}")
        self.last_decision = decision
        return decision

    async def execute_now(self) -> TradeOutcome:
        outcome = await self.coordinator.execute_trade()
        await self._account(outcome)
        return outcome

    async def _tick(self):
        try:
            decision = await self.check_now()
        except ArbitrageError as e:
            logger.error(f"Check failed: {e.message}")
            if self.stop_on_error:
                self.stop()
            return

        if not decision.profitable:
            return

        if decision.profit < self.min_profit_threshold:
            logger.info(
                f"Skipping: profit {lamports_to_sol(decision.profit):.6f} SOL below threshold "
                f"{lamports_to_sol(self.min_profit_threshold):.6f} SOL"
            )
            return
        if not self.signer.connected:
            logger.warning("Skipping: signer not connected")
            return
        if self.coordinator.in_flight or (self._execution is not None and not self._execution.done()):
            logger.info("Skipping: a trade is already executing")
            return

        logger.info("Auto-executing profitable trade")
        self._execution = asyncio.get_running_loop().create_task(self._auto_execute())

    async def _auto_execute(self):
        outcome = await self.execute_now()
        if outcome.status in (TradeStatus.FAILED, TradeStatus.PARTIAL) and self.stop_on_error:
            logger.warning(f"Stopping after {outcome.status.value} trade: {outcome.reason}")
            self.stop()

    async def _account(self, outcome: TradeOutcome):
        self.last_outcome = outcome
        if outcome.status is not TradeStatus.COMPLETED:
            return

        self.stats.successful_trades += 1
        self.stats.total_profit += outcome.record.profit
        await self.refresh_balance()

    async def refresh_balance(self) -> Optional[Decimal]:
        address = self.coordinator.payer_address or self.signer.public_key
        if not address:
            return None
        try:
            self.balance = await self.relay.get_balance(address)
        except ArbitrageError as e:
            logger.warning(f"Balance refresh failed: {e.message}")
            return self.balance
        balance_gauge.set(float(self.balance))
        return self.balance

    def status(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'execution': self.coordinator.state.value,
            'currentStep': self.coordinator.current_step,
            'balance': str(self.balance) if self.balance is not None else None,
            'stats': self.stats.to_dict(),
            'history': len(self.history)
        }
