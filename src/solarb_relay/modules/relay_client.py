"""
Bot-side HTTP client for the relay server
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import aiohttp

from .models import ArbitrageDecision, ExecutionResult
from ..constants import ERROR_MESSAGES, RELAY_URL, REQUEST_TIMEOUT_SECONDS
from ..errors import ArbitrageError, BackendUnreachable, error_from_payload

logger = logging.getLogger(__name__)

# Submission waits on chain confirmation server side
EXECUTE_TIMEOUT_SECONDS = 120


class RelayClient:
    """Talks to every relay endpoint; failures surface as typed ArbitrageErrors"""

    def __init__(self, base_url: str = RELAY_URL, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def _request(self, method: str, path: str, timeout: Optional[float] = None,
                       **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        if not self.session:
            self.session = aiohttp.ClientSession()

        try:
            async with self.session.request(
                method, url,
                timeout=aiohttp.ClientTimeout(total=timeout or self.timeout),
                **kwargs
            ) as response:
                try:
                    data = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    body = await response.text()
                    raise BackendUnreachable(
                        f"Relay returned non-JSON ({response.status}) for {path}: {body[:200]}"
                    )
                if response.status >= 400:
                    logger.error(f"Relay error {response.status} on {path}: {data}")
                    raise error_from_payload(data)
                return data

        except asyncio.TimeoutError as e:
            raise BackendUnreachable(f"Relay timeout: {url}") from e
        except aiohttp.ClientError as e:
            raise BackendUnreachable(f"{ERROR_MESSAGES['BACKEND_UNREACHABLE']}: {e}") from e

    async def health(self) -> Dict[str, Any]:
        return await self._request('GET', '/health')

    async def is_healthy(self) -> bool:
        try:
            data = await self.health()
        except ArbitrageError as e:
            logger.warning(f"Relay health check failed: {e.message}")
            return False
        return data.get('status') == 'healthy'

    async def get_balance(self, address: str) -> Decimal:
        """Balance in SOL"""
        data = await self._request('GET', f'/balance/{address}')
        return Decimal(str(data['balance']))

    async def check_arbitrage(self) -> ArbitrageDecision:
        data = await self._request('GET', '/arb')
        return ArbitrageDecision.from_dict(data)

    async def create_swap_transactions(self, user_public_key: str) -> Dict[str, Any]:
        """Raw payload: either an unsigned transaction set or a not-profitable verdict"""
        return await self._request(
            'POST', '/create-swap-transactions',
            json={'userPublicKey': user_public_key}
        )

    async def execute_signed_transaction(
        self,
        signed_transaction: str,
        step: int,
        user_public_key: str
    ) -> ExecutionResult:
        data = await self._request(
            'POST', '/execute-signed-transaction',
            timeout=EXECUTE_TIMEOUT_SECONDS,
            json={
                'signedTransaction': signed_transaction,
                'step': step,
                'userPublicKey': user_public_key
            }
        )
        if not data.get('success'):
            error = error_from_payload(data)
            if error.step is None:
                error.step = step
            raise error
        return ExecutionResult.from_dict(data)

    async def get_transaction_status(self, signature: str) -> str:
        data = await self._request('GET', f'/transaction-status/{signature}')
        return data['status']

    async def get_quote(self, input_mint: str, output_mint: str, amount: int,
                        slippage_bps: Optional[int] = None) -> Dict[str, Any]:
        params = {'inputMint': input_mint, 'outputMint': output_mint, 'amount': str(amount)}
        if slippage_bps is not None:
            params['slippageBps'] = str(slippage_bps)
        return await self._request('GET', '/quote', params=params)

    async def get_swap_transaction(self, quote_response: Dict[str, Any],
                                   user_public_key: str) -> str:
        data = await self._request(
            'POST', '/swap-transaction',
            json={'quoteResponse': quote_response, 'userPublicKey': user_public_key}
        )
        return data['transaction']
