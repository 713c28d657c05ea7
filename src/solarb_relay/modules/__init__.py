"""
Relay and bot modules
"""

from .arbitrage import RouteEvaluator
from .controller import BotState, PollingController
from .execution import ExecutionCoordinator, ExecutionState
from .history import TradeHistory
from .jupiter import JupiterClient
from .rate_limiter import RateLimiter
from .relay_client import RelayClient
from .chain import create_rpc_client
from .scheduler import CancellationToken, PeriodicTask
from .signer import KeypairSigner, Signer
from .transaction import TransactionBuilder, TransactionExecutor

__all__ = [
    'RouteEvaluator',
    'BotState',
    'PollingController',
    'ExecutionCoordinator',
    'ExecutionState',
    'TradeHistory',
    'JupiterClient',
    'RateLimiter',
    'RelayClient',
    'create_rpc_client',
    'CancellationToken',
    'PeriodicTask',
    'KeypairSigner',
    'Signer',
    'TransactionBuilder',
    'TransactionExecutor'
]
