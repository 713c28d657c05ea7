"""
Configuration management for the arbitrage relay and bot
"""

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .constants import (
    BOT_METRICS_PORT,
    CONFIRMATION_POLL_ATTEMPTS,
    CONFIRMATION_POLL_INTERVAL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_MIN_PROFIT_LAMPORTS,
    DEFAULT_ROUTE,
    DEFAULT_TRADE_AMOUNT,
    INTER_STEP_DELAY_SECONDS,
    JUPITER_API,
    MAINNET_RPC,
    MANUAL_SWAP_SLIPPAGE_BPS,
    METRICS_PORT,
    RELAY_HOST,
    RELAY_PORT,
    RELAY_SLIPPAGE_BPS,
    RELAY_URL,
    ROUTE_TOKENS,
    sol_to_lamports
)

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _parse_bool(value: str) -> bool:
    if value.strip().lower() in ('1', 'true', 'yes', 'on'):
        return True
    if value.strip().lower() in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"Not a boolean: {value}")


def _parse_route(value: str) -> List[str]:
    return [symbol.strip().upper() for symbol in value.split(',') if symbol.strip()]


@dataclass
class RelaySettings:
    """Relay server settings"""
    rpc_endpoint: str
    jupiter_api: str
    route: List[str]
    trade_amount: int
    min_profit_lamports: int
    slippage_bps: int
    manual_slippage_bps: int
    confirmation_timeout_seconds: float
    host: str
    port: int
    metrics_port: int


@dataclass
class BotSettings:
    """Polling bot settings"""
    relay_url: str
    interval_seconds: float
    min_profit_threshold: int  # lamports
    stop_on_error: bool
    inter_step_delay_seconds: float
    confirmation_poll_attempts: int
    confirmation_poll_interval_seconds: float
    payer_address: Optional[str]
    wallet_path: str
    metrics_port: int


class Config:
    """Centralized configuration: config.json, then environment overrides"""

    def __init__(self, config_dir: str = "config"):
        self.config_dir = config_dir
        self._main_config: Dict[str, Any] = {}
        self._env_overrides: Dict[str, Any] = {}

        self.reload()

    def reload(self):
        """Reload the configuration file and environment"""
        main_config_path = os.path.join(self.config_dir, "config.json")
        if os.path.exists(main_config_path):
            try:
                with open(main_config_path, 'r') as f:
                    self._main_config = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Error loading configuration: {e}")
                raise
            logger.info(f"Loaded main config from {main_config_path}")
        else:
            self._main_config = {}

        self._env_overrides = {}
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration overrides from environment variables"""
        env_mappings = {
            'RPC_ENDPOINT': ('relay.rpc_endpoint', str),
            'JUPITER_API': ('relay.jupiter_api', str),
            'ROUTE': ('relay.route', _parse_route),
            'TRADE_AMOUNT': ('relay.trade_amount', int),
            'MIN_PROFIT_LAMPORTS': ('relay.min_profit_lamports', int),
            'SLIPPAGE_BPS': ('relay.slippage_bps', int),
            'RELAY_HOST': ('relay.host', str),
            'RELAY_PORT': ('relay.port', int),
            'RELAY_URL': ('bot.relay_url', str),
            'CHECK_INTERVAL': ('bot.interval_seconds', float),
            'MIN_PROFIT_THRESHOLD': ('bot.min_profit_threshold', Decimal),
            'STOP_ON_ERROR': ('bot.stop_on_error', _parse_bool),
            'PAYER_ADDRESS': ('bot.payer_address', str),
            'WALLET_PATH': ('bot.wallet_path', str),
        }

        for env_var, (config_key, type_func) in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                try:
                    self._env_overrides[config_key] = type_func(value)
                    logger.info(f"Override {config_key} from environment: {value}")
                except (ValueError, ArithmeticError):
                    logger.warning(f"Invalid value for {env_var}: {value}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a dotted configuration value with environment override support"""
        if key in self._env_overrides:
            return self._env_overrides[key]

        value: Any = self._main_config
        for part in key.split('.'):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    @property
    def relay(self) -> RelaySettings:
        return RelaySettings(
            rpc_endpoint=self.get('relay.rpc_endpoint', MAINNET_RPC),
            jupiter_api=self.get('relay.jupiter_api', JUPITER_API),
            route=list(self.get('relay.route', DEFAULT_ROUTE)),
            trade_amount=int(self.get('relay.trade_amount', DEFAULT_TRADE_AMOUNT)),
            min_profit_lamports=int(self.get('relay.min_profit_lamports', DEFAULT_MIN_PROFIT_LAMPORTS)),
            slippage_bps=int(self.get('relay.slippage_bps', RELAY_SLIPPAGE_BPS)),
            manual_slippage_bps=int(self.get('relay.manual_slippage_bps', MANUAL_SWAP_SLIPPAGE_BPS)),
            confirmation_timeout_seconds=float(
                self.get('relay.confirmation_timeout_seconds', CONFIRMATION_TIMEOUT_SECONDS)
            ),
            host=self.get('relay.host', RELAY_HOST),
            port=int(self.get('relay.port', RELAY_PORT)),
            metrics_port=int(self.get('relay.metrics_port', METRICS_PORT))
        )

    @property
    def bot(self) -> BotSettings:
        # Threshold is configured in SOL like the dashboard input
        threshold_sol = Decimal(str(self.get('bot.min_profit_threshold', '0.01')))
        return BotSettings(
            relay_url=self.get('bot.relay_url', RELAY_URL),
            interval_seconds=float(self.get('bot.interval_seconds', DEFAULT_CHECK_INTERVAL)),
            min_profit_threshold=sol_to_lamports(threshold_sol),
            stop_on_error=bool(self.get('bot.stop_on_error', False)),
            inter_step_delay_seconds=float(
                self.get('bot.inter_step_delay_seconds', INTER_STEP_DELAY_SECONDS)
            ),
            confirmation_poll_attempts=int(
                self.get('bot.confirmation_poll_attempts', CONFIRMATION_POLL_ATTEMPTS)
            ),
            confirmation_poll_interval_seconds=float(
                self.get('bot.confirmation_poll_interval_seconds', CONFIRMATION_POLL_INTERVAL_SECONDS)
            ),
            payer_address=self.get('bot.payer_address'),
            wallet_path=self.get('bot.wallet_path', 'wallet.json'),
            metrics_port=int(self.get('bot.metrics_port', BOT_METRICS_PORT))
        )

    def validate(self) -> bool:
        """Validate configuration"""
        relay = self.relay
        unknown = [symbol for symbol in relay.route if symbol not in ROUTE_TOKENS]
        if len(relay.route) < 2 or unknown:
            logger.error(f"Invalid route: {relay.route}")
            return False
        if relay.trade_amount <= 0:
            logger.error(f"Trade amount must be positive: {relay.trade_amount}")
            return False
        if not 0 <= relay.slippage_bps <= 10_000:
            logger.error(f"Slippage out of range: {relay.slippage_bps}")
            return False

        bot = self.bot
        if bot.interval_seconds <= 0:
            logger.error(f"Check interval must be positive: {bot.interval_seconds}")
            return False
        if bot.min_profit_threshold < 0:
            logger.error("Profit threshold cannot be negative")
            return False

        return True


def configure_logging(log_name: str, level: int = logging.INFO, log_dir: str = "logs"):
    """File + console logging for an entry point"""
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(os.path.join(log_dir, f"{log_name}.log")),
            logging.StreamHandler()
        ]
    )


# Global config instance
config = None

def initialize_config(config_dir: str = "config") -> Config:
    """Initialize global configuration"""
    global config
    config = Config(config_dir)

    if not config.validate():
        raise ValueError("Invalid configuration")

    return config

def get_config() -> Config:
    """Get global configuration instance"""
    global config
    if config is None:
        config = initialize_config()
    return config
