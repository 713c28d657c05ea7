"""
Execution coordinator: drives one trade through build, sign, submit and confirm
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from prometheus_client import Counter, Histogram

from .history import TradeHistory
from .models import (
    ExecutionResult,
    TradeOutcome,
    TradeRecord,
    TradeStatus,
    UnsignedTransactionSet
)
from .relay_client import RelayClient
from .signer import Signer
from ..constants import (
    CONFIRMATION_POLL_ATTEMPTS,
    CONFIRMATION_POLL_INTERVAL_SECONDS,
    INTER_STEP_DELAY_SECONDS,
    REASON_IN_PROGRESS,
    lamports_to_sol
)
from ..errors import ArbitrageError, SigningRejected, SubmissionError, TradeInProgress

logger = logging.getLogger(__name__)

# Metrics
trade_counter = Counter('arbitrage_trades_total', 'Arbitrage trades by outcome', ['status'])
profit_histogram = Histogram('arbitrage_profit_sol', 'Expected profit of completed trades in SOL')


class ExecutionState(Enum):
    IDLE = "idle"
    BUILDING = "building"
    AWAITING_SIGNATURE = "awaiting_signature"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (ExecutionState.IDLE, ExecutionState.DONE, ExecutionState.FAILED)


class ExecutionCoordinator:
    """Runs at most one multi-step trade at a time.

    Steps are signed and submitted strictly in order. A failure at any step
    aborts the rest; steps that already landed stay on chain. Every error is
    folded into the returned TradeOutcome instead of propagating.
    """

    def __init__(
        self,
        relay: RelayClient,
        signer: Signer,
        history: Optional[TradeHistory] = None,
        payer_address: Optional[str] = None,
        inter_step_delay: float = INTER_STEP_DELAY_SECONDS,
        confirmation_poll_attempts: int = CONFIRMATION_POLL_ATTEMPTS,
        confirmation_poll_interval: float = CONFIRMATION_POLL_INTERVAL_SECONDS
    ):
        self.relay = relay
        self.signer = signer
        self.history = history if history is not None else TradeHistory()
        self.payer_address = payer_address
        self.inter_step_delay = inter_step_delay
        self.confirmation_poll_attempts = confirmation_poll_attempts
        self.confirmation_poll_interval = confirmation_poll_interval

        self.state = ExecutionState.IDLE
        self.current_step: Optional[int] = None

    @property
    def in_flight(self) -> bool:
        return self.state not in TERMINAL_STATES

    def _payer(self) -> Optional[str]:
        return self.payer_address or self.signer.public_key

    async def execute_trade(self) -> TradeOutcome:
        """Ask the relay for a fresh unsigned set, then sign and submit it"""
        if self.in_flight:
            return TradeOutcome(
                TradeStatus.IN_PROGRESS, REASON_IN_PROGRESS, error_type=TradeInProgress.error_type
            )

        payer = self._payer()
        if not payer:
            return self._record_outcome(TradeOutcome(
                TradeStatus.FAILED, "No payer address", error_type=SigningRejected.error_type
            ))

        self.state = ExecutionState.BUILDING
        self.current_step = None
        try:
            data = await self.relay.create_swap_transactions(payer)
        except ArbitrageError as e:
            logger.error(f"Building transactions failed: {e.message}")
            self.state = ExecutionState.FAILED
            return self._record_outcome(TradeOutcome(
                TradeStatus.FAILED, e.message, failed_step=e.step, error_type=e.error_type
            ))
        except Exception as e:
            logger.exception("Building transactions failed unexpectedly")
            self.state = ExecutionState.FAILED
            return self._record_outcome(TradeOutcome(TradeStatus.FAILED, f"Unexpected error: {e}"))

        if not data.get('profitable'):
            reason = data.get('reason') or data.get('error') or 'Unknown reason'
            logger.info(f"Trade not profitable: {reason}")
            self.state = ExecutionState.IDLE
            return self._record_outcome(TradeOutcome(TradeStatus.NOT_PROFITABLE, reason))

        try:
            transaction_set = UnsignedTransactionSet.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            self.state = ExecutionState.FAILED
            return self._record_outcome(TradeOutcome(
                TradeStatus.FAILED, f"Malformed transaction set: {e}"
            ))

        return await self._guarded_run(transaction_set, payer)

    async def execute_signed(self, transaction_set: UnsignedTransactionSet) -> TradeOutcome:
        """Sign and submit an already-built set"""
        if self.in_flight:
            return TradeOutcome(
                TradeStatus.IN_PROGRESS, REASON_IN_PROGRESS, error_type=TradeInProgress.error_type
            )

        payer = self._payer()
        if not payer:
            return self._record_outcome(TradeOutcome(
                TradeStatus.FAILED, "No payer address", error_type=SigningRejected.error_type
            ))

        # Claim the in-flight slot before the first await
        self.state = ExecutionState.AWAITING_SIGNATURE
        return await self._guarded_run(transaction_set, payer)

    async def _guarded_run(self, transaction_set: UnsignedTransactionSet, payer: str) -> TradeOutcome:
        completed: List[ExecutionResult] = []
        try:
            return await self._run_steps(transaction_set, payer, completed)
        except Exception as e:
            logger.exception(f"Unexpected error during step {self.current_step}")
            self.state = ExecutionState.FAILED
            return self._record_outcome(TradeOutcome(
                TradeStatus.PARTIAL if completed else TradeStatus.FAILED,
                f"Unexpected error: {e}",
                steps=list(completed),
                failed_step=self.current_step
            ))
        finally:
            if self.in_flight:
                self.state = ExecutionState.FAILED

    async def _run_steps(
        self,
        transaction_set: UnsignedTransactionSet,
        payer: str,
        completed: List[ExecutionResult]
    ) -> TradeOutcome:
        logger.info(
            f"Executing {len(transaction_set)} transactions, expected profit "
            f"{lamports_to_sol(transaction_set.profit):.6f} SOL"
        )
        for index, unsigned in enumerate(transaction_set.transactions):
            self.current_step = unsigned.step
            if index > 0 and self.inter_step_delay > 0:
                await asyncio.sleep(self.inter_step_delay)

            try:
                result = await self._run_step(unsigned.transaction, unsigned.step, payer)
            except ArbitrageError as e:
                failed_step = e.step if e.step is not None else unsigned.step
                logger.error(f"Step {failed_step} ({unsigned.description}) failed: {e.message}")
                self.state = ExecutionState.FAILED
                status = TradeStatus.PARTIAL if completed else TradeStatus.FAILED
                return self._record_outcome(TradeOutcome(
                    status,
                    e.message,
                    steps=completed,
                    failed_step=failed_step,
                    error_type=e.error_type
                ))

            completed.append(result)
            logger.info(
                f"Step {unsigned.step} ({unsigned.description}) done: {result.signature}"
            )

        record = TradeRecord(
            timestamp=datetime.now(),
            profit=transaction_set.profit,
            balance_change=sum(step.balance_change or 0 for step in completed),
            signatures=[step.signature for step in completed],
            token_amounts=transaction_set.token_amounts
        )
        self.history.append(record)
        self.state = ExecutionState.DONE
        self.current_step = None
        profit_histogram.observe(float(record.profit_sol))
        logger.info(f"Trade completed, profit {record.profit_sol:.6f} SOL")

        return self._record_outcome(TradeOutcome(
            TradeStatus.COMPLETED, "Trade completed", steps=completed, record=record
        ))

    async def _run_step(self, unsigned_transaction: str, step: int, payer: str) -> ExecutionResult:
        self.state = ExecutionState.AWAITING_SIGNATURE
        try:
            signed = await self.signer.sign_transaction(unsigned_transaction)
        except SigningRejected as e:
            e.step = step
            raise

        self.state = ExecutionState.SUBMITTING
        result = await self.relay.execute_signed_transaction(signed, step, payer)

        if not result.confirmed:
            self.state = ExecutionState.CONFIRMING
            result = await self._follow_up(result)
        return result

    async def _follow_up(self, result: ExecutionResult) -> ExecutionResult:
        """Re-check an unconfirmed step a bounded number of times"""
        for attempt in range(self.confirmation_poll_attempts):
            await asyncio.sleep(self.confirmation_poll_interval)
            try:
                status = await self.relay.get_transaction_status(result.signature)
            except ArbitrageError as e:
                logger.warning(f"Status check {attempt + 1} for step {result.step} failed: {e.message}")
                continue

            if status == "failed":
                raise SubmissionError(
                    f"Transaction failed on chain: {result.signature}", step=result.step
                )
            if status in ("confirmed", "finalized"):
                logger.info(f"Step {result.step} confirmed after follow-up")
                return ExecutionResult(
                    signature=result.signature,
                    step=result.step,
                    balance_before=result.balance_before,
                    balance_after=result.balance_after,
                    confirmed=True
                )

        logger.warning(f"Step {result.step} still unconfirmed, continuing: {result.signature}")
        return result

    def _record_outcome(self, outcome: TradeOutcome) -> TradeOutcome:
        trade_counter.labels(status=outcome.status.value).inc()
        return outcome
