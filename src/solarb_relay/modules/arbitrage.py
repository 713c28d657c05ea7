"""
Cyclic route evaluation: SOL -> USDT -> USDC -> SOL by default
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .jupiter import JupiterClient
from .models import ArbitrageDecision, ArbitrageOpportunity, Quote
from ..constants import (
    DEFAULT_MIN_PROFIT_LAMPORTS,
    DEFAULT_ROUTE,
    DEFAULT_TRADE_AMOUNT,
    REASON_NO_ROUTE,
    REASON_NOT_PROFITABLE,
    REASON_PROFITABLE,
    RELAY_SLIPPAGE_BPS,
    ROUTE_TOKENS,
    lamports_to_sol
)

logger = logging.getLogger(__name__)

class RouteEvaluator:
    """Prices a fixed cycle of hops by chaining Jupiter quotes amount-to-amount"""

    def __init__(
        self,
        jupiter: JupiterClient,
        route: Sequence[str] = DEFAULT_ROUTE,
        trade_amount: int = DEFAULT_TRADE_AMOUNT,
        min_profit: int = DEFAULT_MIN_PROFIT_LAMPORTS,
        slippage_bps: int = RELAY_SLIPPAGE_BPS,
        tokens: Optional[Dict[str, Dict]] = None
    ):
        tokens = tokens or ROUTE_TOKENS
        if len(route) < 2:
            raise ValueError("Route needs at least two tokens")
        unknown = [symbol for symbol in route if symbol not in tokens]
        if unknown:
            raise ValueError(f"Unknown route tokens: {', '.join(unknown)}")

        self.jupiter = jupiter
        self.route = list(route)
        self.trade_amount = int(trade_amount)
        self.min_profit = int(min_profit)
        self.slippage_bps = slippage_bps
        self.tokens = tokens

    @property
    def hops(self) -> List[Tuple[str, str]]:
        """(from_symbol, to_symbol) pairs closing back on the first token"""
        cycle = self.route + [self.route[0]]
        return list(zip(cycle, cycle[1:]))

    @property
    def route_label(self) -> str:
        return " → ".join(self.route + [self.route[0]])

    def hop_descriptions(self) -> List[str]:
        return [f"{src} → {dst}" for src, dst in self.hops]

    def token_amounts(self, quotes: Sequence[Quote]) -> Dict[str, str]:
        """Snapshot of amounts along the route, keyed like the dashboard expects"""
        amounts = {self.route[0].lower(): str(quotes[0].input_amount)}
        for symbol, quote in zip(self.route[1:], quotes):
            amounts[symbol.lower()] = str(quote.output_amount)
        amounts[f"final{self.route[0].capitalize()}"] = str(quotes[-1].output_amount)
        return amounts

    async def check_arbitrage(self) -> Optional[ArbitrageOpportunity]:
        """Quote every hop in order; None as soon as one hop has no output"""
        logger.info(f"Checking {self.route_label}...")

        quotes: List[Quote] = []
        amount = self.trade_amount
        for src, dst in self.hops:
            quote = await self.jupiter.get_quote(
                self.tokens[src]['mint'],
                self.tokens[dst]['mint'],
                amount,
                self.slippage_bps
            )
            if quote is None or quote.output_amount <= 0:
                logger.info(f"No route for hop {src} → {dst}")
                return None
            quotes.append(quote)
            amount = quote.output_amount

        opportunity = ArbitrageOpportunity(
            quotes=tuple(quotes),
            token_amounts=self.token_amounts(quotes)
        )
        logger.info(
            f"Profit: {opportunity.profit} lamports "
            f"({lamports_to_sol(opportunity.profit)} {self.route[0]})"
        )
        return opportunity

    def decide(self, opportunity: ArbitrageOpportunity) -> ArbitrageDecision:
        profitable = opportunity.profit > self.min_profit
        return ArbitrageDecision(
            profitable=profitable,
            profit=opportunity.profit,
            reason=REASON_PROFITABLE if profitable else REASON_NOT_PROFITABLE,
            token_amounts=opportunity.token_amounts,
            opportunity=opportunity
        )

    async def evaluate(self) -> Optional[ArbitrageDecision]:
        """check_arbitrage plus the profitability decision; None when a hop has no route"""
        opportunity = await self.check_arbitrage()
        if opportunity is None:
            return None
        return self.decide(opportunity)

    @staticmethod
    def no_route_response() -> Dict[str, object]:
        return {'profitable': False, 'error': REASON_NO_ROUTE}
