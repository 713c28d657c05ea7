"""
Data model for quotes, opportunities, transactions and trade outcomes
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..constants import lamports_to_sol


@dataclass(frozen=True)
class Quote:
    """Standardized Jupiter quote for one hop"""
    input_mint: str
    output_mint: str
    input_amount: int
    output_amount: int
    slippage_bps: int
    price_impact: Decimal
    route: List[str]
    raw_response: Dict[str, Any]


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """Chained quotes for a full cycle, priced in the start token's smallest unit"""
    quotes: Tuple[Quote, ...]
    token_amounts: Dict[str, str]
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def initial_amount(self) -> int:
        return self.quotes[0].input_amount

    @property
    def final_amount(self) -> int:
        return self.quotes[-1].output_amount

    @property
    def profit(self) -> int:
        return self.final_amount - self.initial_amount

    def is_chained(self) -> bool:
        """Each hop spends exactly what the previous hop produced, ending where it started"""
        for previous, current in zip(self.quotes, self.quotes[1:]):
            if current.input_amount != previous.output_amount:
                return False
            if current.input_mint != previous.output_mint:
                return False
        return self.quotes[-1].output_mint == self.quotes[0].input_mint


@dataclass(frozen=True)
class ArbitrageDecision:
    profitable: bool
    profit: int
    reason: str
    token_amounts: Dict[str, str]
    opportunity: Optional[ArbitrageOpportunity] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'profitable': self.profitable,
            'profit': str(self.profit),
            'reason': self.reason,
            'tokenAmounts': self.token_amounts
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArbitrageDecision':
        """Parse a relay /arb payload; the no-route shape carries ``error`` instead of ``reason``"""
        return cls(
            profitable=bool(data.get('profitable')),
            profit=int(data.get('profit') or 0),
            reason=data.get('reason') or data.get('error') or '',
            token_amounts=data.get('tokenAmounts') or {}
        )


@dataclass(frozen=True)
class UnsignedTransaction:
    step: int
    transaction: str  # base64
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'step': self.step,
            'transaction': self.transaction,
            'description': self.description
        }


@dataclass(frozen=True)
class UnsignedTransactionSet:
    """Unsigned swap transactions for every hop, in signing order"""
    transactions: Tuple[UnsignedTransaction, ...]
    profit: int
    token_amounts: Dict[str, str]

    def __len__(self) -> int:
        return len(self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'profitable': True,
            'profit': str(self.profit),
            'tokenAmounts': self.token_amounts,
            'transactions': [tx.to_dict() for tx in self.transactions]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UnsignedTransactionSet':
        transactions = tuple(
            UnsignedTransaction(
                step=int(item['step']),
                transaction=item['transaction'],
                description=item.get('description', '')
            )
            for item in sorted(data['transactions'], key=lambda item: int(item['step']))
        )
        return cls(
            transactions=transactions,
            profit=int(data['profit']),
            token_amounts=data.get('tokenAmounts', {})
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of submitting one signed hop; balance_after is None when it could not be read"""
    signature: str
    step: int
    balance_before: int
    balance_after: Optional[int]
    confirmed: bool = True

    @property
    def balance_change(self) -> Optional[int]:
        if self.balance_after is None:
            return None
        return self.balance_after - self.balance_before

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': True,
            'signature': self.signature,
            'step': self.step,
            'balanceBefore': str(self.balance_before),
            'balanceAfter': None,
            'confirmed': self.confirmed
        }
        if self.balance_after is not None:
            data['balanceAfter'] = str(self.balance_after)
            data['balanceChange'] = str(self.balance_change)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutionResult':
        balance_after = data.get('balanceAfter')
        return cls(
            signature=data['signature'],
            step=int(data['step']),
            balance_before=int(data['balanceBefore']),
            balance_after=int(balance_after) if balance_after is not None else None,
            confirmed=bool(data.get('confirmed', True))
        )


@dataclass(frozen=True)
class TradeRecord:
    timestamp: datetime
    profit: int
    balance_change: int
    signatures: List[str]
    token_amounts: Dict[str, str]

    @property
    def profit_sol(self) -> Decimal:
        return lamports_to_sol(self.profit)


class TradeStatus(Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    NOT_PROFITABLE = "not_profitable"
    IN_PROGRESS = "in_progress"


@dataclass
class TradeOutcome:
    status: TradeStatus
    reason: str
    steps: List[ExecutionResult] = field(default_factory=list)
    failed_step: Optional[int] = None
    error_type: Optional[str] = None
    record: Optional[TradeRecord] = None

    @property
    def success(self) -> bool:
        return self.status is TradeStatus.COMPLETED

    @property
    def signatures(self) -> List[str]:
        return [step.signature for step in self.steps]


@dataclass
class SessionStats:
    """Counters for one controller run; reset on every start"""
    checks: int = 0
    opportunities: int = 0
    successful_trades: int = 0
    total_profit: int = 0
    started_at: Optional[datetime] = None

    @property
    def average_profit(self) -> int:
        if not self.successful_trades:
            return 0
        return self.total_profit // self.successful_trades

    def uptime_seconds(self, now: Optional[datetime] = None) -> float:
        if self.started_at is None:
            return 0.0
        return ((now or datetime.now()) - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'checks': self.checks,
            'opportunities': self.opportunities,
            'successfulTrades': self.successful_trades,
            'totalProfit': str(self.total_profit),
            'averageProfit': str(self.average_profit),
            'startedAt': self.started_at.isoformat() if self.started_at else None,
            'uptimeSeconds': self.uptime_seconds()
        }
