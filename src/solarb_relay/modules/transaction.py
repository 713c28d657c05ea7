"""
Transaction building and execution module
"""

import asyncio
from typing import List, Optional
import logging
import time

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.transaction import VersionedTransaction

from .jupiter import JupiterClient
from .models import (
    ArbitrageOpportunity,
    ExecutionResult,
    UnsignedTransaction,
    UnsignedTransactionSet
)
from .chain import (
    LANDED_STATUSES,
    RPC_ERRORS,
    decode_transaction as decode_wire_transaction,
    is_fully_signed,
    parse_pubkey,
    parse_signature,
    response_value,
    status_name
)
from ..constants import (
    CONFIRMATION_POLL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    ERROR_MESSAGES
)
from ..errors import (
    BackendUnreachable,
    BuildError,
    ConfirmationTimeout,
    SubmissionError
)

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """Build one unsigned Jupiter swap transaction per hop"""

    def __init__(self, jupiter: JupiterClient, wrap_and_unwrap_sol: bool = True):
        self.jupiter = jupiter
        self.wrap_and_unwrap_sol = wrap_and_unwrap_sol

    async def build_unsigned_transactions(
        self,
        opportunity: ArbitrageOpportunity,
        payer_address: str,
        descriptions: Optional[List[str]] = None
    ) -> UnsignedTransactionSet:
        """All-or-nothing: any failed build raises BuildError"""
        transactions = []
        for index, quote in enumerate(opportunity.quotes):
            step = index + 1
            description = descriptions[index] if descriptions else f"Step {step}"

            swap_transaction = await self.jupiter.get_swap_transaction(
                quote.raw_response,
                payer_address,
                wrap_and_unwrap_sol=self.wrap_and_unwrap_sol
            )
            if not swap_transaction:
                raise BuildError(
                    f"{ERROR_MESSAGES['BUILD_FAILED']} for step {step} ({description})",
                    step=step
                )

            transactions.append(UnsignedTransaction(
                step=step,
                transaction=swap_transaction,
                description=description
            ))

        logger.info(f"Built {len(transactions)} unsigned transactions for {payer_address}")
        return UnsignedTransactionSet(
            transactions=tuple(transactions),
            profit=opportunity.profit,
            token_amounts=opportunity.token_amounts
        )


class TransactionExecutor:
    """Submit signed transactions and watch them land"""

    def __init__(
        self,
        client: AsyncClient,
        rate_limiter=None,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        poll_interval: float = CONFIRMATION_POLL_SECONDS
    ):
        self.client = client
        self.rate_limiter = rate_limiter
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval

    async def _throttle(self):
        if self.rate_limiter:
            await self.rate_limiter.acquire()

    async def get_balance(self, address: str) -> int:
        """Lamport balance of an account"""
        pubkey = parse_pubkey(address)
        await self._throttle()
        try:
            response = await self.client.get_balance(pubkey, commitment=Confirmed)
            return response_value(response)
        except RPC_ERRORS as e:
            raise BackendUnreachable(f"{ERROR_MESSAGES['BACKEND_UNREACHABLE']}: {e}") from e

    @staticmethod
    def decode_transaction(signed_transaction: str) -> VersionedTransaction:
        try:
            transaction = decode_wire_transaction(signed_transaction)
        except ValueError as e:
            raise SubmissionError(f"Invalid signed transaction: {e}") from e
        if not is_fully_signed(transaction):
            raise SubmissionError("Transaction is missing required signatures")
        return transaction

    async def send_transaction(self, transaction: VersionedTransaction) -> str:
        """Broadcast with preflight at confirmed commitment"""
        await self._throttle()
        try:
            response = await self.client.send_raw_transaction(
                bytes(transaction),
                opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            )
            signature = response_value(response)
        except RPC_ERRORS as e:
            raise SubmissionError(f"{ERROR_MESSAGES['SUBMISSION_FAILED']}: {e}") from e

        if not signature:
            raise SubmissionError(ERROR_MESSAGES['SUBMISSION_FAILED'])
        return str(signature)

    async def _status(self, signature: str, search_transaction_history: bool = False):
        await self._throttle()
        response = await self.client.get_signature_statuses(
            [parse_signature(signature)],
            search_transaction_history=search_transaction_history
        )
        statuses = response_value(response)
        return statuses[0] if statuses else None

    async def confirm_transaction(self, signature: str, timeout: Optional[float] = None) -> bool:
        """Poll signature status until confirmed.

        Raises SubmissionError if the chain reports the transaction failed and
        ConfirmationTimeout if it is still pending when the window closes.
        """
        timeout = self.confirmation_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            try:
                status = await self._status(signature)
            except RPC_ERRORS as e:
                logger.warning(f"Error checking transaction status: {e}")
                status = None

            if status is not None:
                if status.err:
                    raise SubmissionError(f"Transaction failed: {status.err}")
                if status.confirmation_status in LANDED_STATUSES:
                    return True

            await asyncio.sleep(self.poll_interval)

        raise ConfirmationTimeout(
            f"{ERROR_MESSAGES['CONFIRMATION_TIMEOUT']}: {signature}"
        )

    async def get_transaction_status(self, signature: str) -> str:
        """processed / confirmed / finalized / failed / unknown"""
        parse_signature(signature)
        try:
            status = await self._status(signature, search_transaction_history=True)
        except RPC_ERRORS as e:
            raise BackendUnreachable(f"{ERROR_MESSAGES['BACKEND_UNREACHABLE']}: {e}") from e

        if status is None:
            return "unknown"
        if status.err:
            return "failed"
        return status_name(status.confirmation_status)

    async def execute_signed_transaction(
        self,
        signed_transaction: str,
        step: int,
        user_public_key: str
    ) -> ExecutionResult:
        """Submit one signed hop and report the payer's balance delta"""
        try:
            transaction = self.decode_transaction(signed_transaction)
        except SubmissionError as e:
            e.step = step
            raise

        balance_before = await self.get_balance(user_public_key)

        try:
            signature = await self.send_transaction(transaction)
        except SubmissionError as e:
            e.step = step
            raise
        logger.info(f"Step {step} sent: {signature}")

        confirmed = True
        try:
            await self.confirm_transaction(signature)
        except ConfirmationTimeout as e:
            # Not fatal: the caller follows up through get_transaction_status
            logger.warning(f"Step {step}: {e.message}")
            confirmed = False
        except SubmissionError as e:
            e.step = step
            raise

        # The signature is reported even when the follow-up balance read fails
        try:
            balance_after = await self.get_balance(user_public_key)
        except BackendUnreachable as e:
            logger.warning(f"Step {step}: balance after submission unknown: {e.message}")
            balance_after = None

        result = ExecutionResult(
            signature=signature,
            step=step,
            balance_before=balance_before,
            balance_after=balance_after,
            confirmed=confirmed
        )
        logger.info(f"Step {step} balance change: {result.balance_change} lamports")
        return result
