"""
Solana Arbitrage Relay

A relay server and auto-trading bot for the SOL → USDT → USDC → SOL route on Jupiter.
"""

__version__ = "1.0.0"
__author__ = "Solana Arbitrage Relay Team"

from .config import get_config, initialize_config
from .errors import ArbitrageError

__all__ = [
    'ArbitrageError',
    'get_config',
    'initialize_config',
]
