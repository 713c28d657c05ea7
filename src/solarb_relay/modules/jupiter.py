"""
Jupiter aggregator client: quotes and unsigned swap transactions
"""

import aiohttp
import asyncio
from typing import Dict, Optional, Any
from decimal import Decimal, InvalidOperation
import logging

from .models import Quote
from ..constants import (
    JUPITER_API,
    RELAY_SLIPPAGE_BPS,
    REQUEST_TIMEOUT_SECONDS
)

logger = logging.getLogger(__name__)

class BaseHTTPClient:
    """Shared aiohttp session handling for aggregator clients"""

    def __init__(self, rate_limiter=None, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.rate_limiter = rate_limiter
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

    async def _request(self, method: str, url: str, **kwargs) -> Optional[Dict]:
        """Make HTTP request with rate limiting; None on any failure"""
        if self.rate_limiter:
            await self.rate_limiter.acquire()

        try:
            if not self.session:
                self.session = aiohttp.ClientSession()

            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with self.session.request(
                method, url, timeout=timeout, **kwargs
            ) as response:
                if response.status == 200:
                    return await response.json()
                else:
                    body = await response.text()
                    logger.error(f"Request failed: {response.status} - {url} - {body[:200]}")
                    return None

        except asyncio.TimeoutError:
            logger.error(f"Request timeout: {url}")
            return None
        except (aiohttp.ClientError, ValueError) as e:
            logger.error(f"Request error: {e}")
            return None

class JupiterClient(BaseHTTPClient):
    """Jupiter aggregator client"""

    def __init__(self, base_url: str = JUPITER_API, rate_limiter=None,
                 timeout: float = REQUEST_TIMEOUT_SECONDS):
        super().__init__(rate_limiter, timeout)
        self.base_url = base_url.rstrip('/')
        self.quote_url = f"{self.base_url}/quote"
        self.swap_url = f"{self.base_url}/swap"

    async def get_raw_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = RELAY_SLIPPAGE_BPS
    ) -> Optional[Dict[str, Any]]:
        """Fetch the unparsed quote payload"""
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            logger.warning(f"Refusing quote for non-positive amount: {amount!r}")
            return None

        params = {
            'inputMint': input_mint,
            'outputMint': output_mint,
            'amount': str(amount),
            'slippageBps': str(slippage_bps)
        }
        return await self._request('GET', self.quote_url, params=params)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = RELAY_SLIPPAGE_BPS
    ) -> Optional[Quote]:
        """Get a quote from Jupiter; None means no route"""
        data = await self.get_raw_quote(input_mint, output_mint, amount, slippage_bps)
        if not data:
            return None
        return self.parse_quote(data, input_mint, output_mint, amount, slippage_bps)

    def parse_quote(
        self,
        data: Dict[str, Any],
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int
    ) -> Optional[Quote]:
        try:
            output_amount = int(data.get('outAmount') or 0)
        except (TypeError, ValueError):
            logger.error(f"Unparseable outAmount in Jupiter quote: {data.get('outAmount')!r}")
            return None

        if output_amount <= 0:
            logger.info(f"No route {input_mint[:6]} -> {output_mint[:6]} for {amount}")
            return None

        try:
            price_impact = Decimal(str(data.get('priceImpactPct', '0')))
        except InvalidOperation:
            price_impact = Decimal('0')

        route_names = [
            step.get('swapInfo', {}).get('label', 'Unknown')
            for step in data.get('routePlan', [])
        ]

        return Quote(
            input_mint=input_mint,
            output_mint=output_mint,
            input_amount=amount,
            output_amount=output_amount,
            slippage_bps=slippage_bps,
            price_impact=price_impact,
            route=route_names,
            raw_response=data
        )

    async def get_swap_transaction(
        self,
        quote_response: Dict[str, Any],
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True
    ) -> Optional[str]:
        """Get an unsigned, base64 swap transaction from Jupiter"""
        swap_data = {
            'quoteResponse': quote_response,
            'userPublicKey': user_public_key,
            'wrapAndUnwrapSol': wrap_and_unwrap_sol
        }

        data = await self._request(
            'POST',
            self.swap_url,
            json=swap_data,
            headers={'Content-Type': 'application/json'}
        )

        if data and data.get('swapTransaction'):
            return data['swapTransaction']

        if data and data.get('error'):
            logger.error(f"Jupiter swap build error: {data['error']}")

        return None
