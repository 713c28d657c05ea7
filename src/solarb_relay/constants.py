"""
Constants and addresses for the Solana arbitrage relay
"""

from decimal import Decimal
from typing import Dict, List

# ===== NETWORK CONSTANTS =====
MAINNET_RPC = "https://api.mainnet-beta.solana.com"
DEVNET_RPC = "https://api.devnet.solana.com"

# Commitment levels
COMMITMENT_PROCESSED = "processed"
COMMITMENT_CONFIRMED = "confirmed"
COMMITMENT_FINALIZED = "finalized"

# ===== TOKEN ADDRESSES =====
# Native SOL
WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"

# Stable coins
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

# ===== API ENDPOINTS =====
JUPITER_API = "https://quote-api.jup.ag/v6"

# ===== ROUTE TOKENS =====
ROUTE_TOKENS = {
    "SOL": {
        "mint": WRAPPED_SOL_MINT,
        "decimals": 9
    },
    "USDT": {
        "mint": USDT_MINT,
        "decimals": 6
    },
    "USDC": {
        "mint": USDC_MINT,
        "decimals": 6
    }
}

# SOL -> USDT -> USDC -> SOL
DEFAULT_ROUTE: List[str] = ["SOL", "USDT", "USDC"]

# ===== TRADING CONSTANTS =====
LAMPORTS_PER_SOL = 10 ** 9

# Notional fed into the first hop (0.5 SOL)
DEFAULT_TRADE_AMOUNT = 500_000_000
# Strict lower bound on route profit before the relay calls it profitable
DEFAULT_MIN_PROFIT_LAMPORTS = 10_000_000

# Slippage
RELAY_SLIPPAGE_BPS = 300
MANUAL_SWAP_SLIPPAGE_BPS = 50

# ===== TIMING =====
REQUEST_TIMEOUT_SECONDS = 10
CONFIRMATION_TIMEOUT_SECONDS = 60
CONFIRMATION_POLL_SECONDS = 0.5
INTER_STEP_DELAY_SECONDS = 2.0
DEFAULT_CHECK_INTERVAL = 15
CONFIRMATION_POLL_ATTEMPTS = 5
CONFIRMATION_POLL_INTERVAL_SECONDS = 3.0

# ===== SESSION =====
TRADE_HISTORY_SIZE = 50

# ===== SERVER =====
RELAY_HOST = "0.0.0.0"
RELAY_PORT = 5000
RELAY_URL = "http://localhost:5000"
METRICS_PORT = 8000
BOT_METRICS_PORT = 8001

# ===== RATE LIMITS =====
RATE_LIMITS = {
    "jupiter": {"calls_per_second": 10, "burst": 20},
    "rpc": {"calls_per_second": 40, "burst": 50}
}

# ===== MESSAGES =====
REASON_PROFITABLE = "Profitable opportunity found"
REASON_NOT_PROFITABLE = "Not enough profit"
REASON_NO_ROUTE = "No routes found"
REASON_IN_PROGRESS = "Trade already in progress"

ERROR_MESSAGES: Dict[str, str] = {
    "NO_ROUTE": REASON_NO_ROUTE,
    "BUILD_FAILED": "Failed to build swap transaction",
    "SIGNING_REJECTED": "Wallet declined to sign the transaction",
    "SUBMISSION_FAILED": "Chain rejected the transaction",
    "CONFIRMATION_TIMEOUT": "Transaction not confirmed within the wait window",
    "BACKEND_UNREACHABLE": "Relay or RPC not reachable",
    "INVALID_ADDRESS": "Invalid public key"
}

# ===== UTILITY FUNCTIONS =====
def lamports_to_sol(lamports: int) -> Decimal:
    """Convert lamports to SOL"""
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)

def sol_to_lamports(sol: Decimal) -> int:
    """Convert SOL to lamports"""
    return int(Decimal(sol) * Decimal(LAMPORTS_PER_SOL))

def format_token_amount(amount: int, decimals: int) -> Decimal:
    """Format token amount with proper decimals"""
    return Decimal(amount) / Decimal(10 ** decimals)
