"""
Auto-trading bot: polls the relay and signs profitable routes with a local wallet
"""

import asyncio
import logging
import signal

from .config import BotSettings, configure_logging, initialize_config
from .constants import lamports_to_sol
from .metrics import start_metrics_server
from .modules.controller import PollingController
from .modules.execution import ExecutionCoordinator
from .modules.history import TradeHistory
from .modules.relay_client import RelayClient
from .modules.signer import KeypairSigner, Signer

logger = logging.getLogger(__name__)


def build_controller(settings: BotSettings, signer: Signer, relay: RelayClient) -> PollingController:
    coordinator = ExecutionCoordinator(
        relay,
        signer,
        history=TradeHistory(),
        payer_address=settings.payer_address,
        inter_step_delay=settings.inter_step_delay_seconds,
        confirmation_poll_attempts=settings.confirmation_poll_attempts,
        confirmation_poll_interval=settings.confirmation_poll_interval_seconds
    )
    return PollingController(relay, signer, coordinator)


async def run(settings: BotSettings, signer: Signer):
    """Run the controller until SIGINT/SIGTERM"""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    async with RelayClient(settings.relay_url) as relay:
        await signer.connect()
        controller = build_controller(settings, signer, relay)

        started, reason = await controller.start(
            settings.interval_seconds,
            settings.min_profit_threshold,
            settings.stop_on_error
        )
        if not started:
            logger.error(f"Bot did not start: {reason}")
            await signer.disconnect()
            return

        await controller.refresh_balance()
        await stop_event.wait()
        logger.info("Shutdown signal received")

        controller.stop()
        await controller.wait_for_execution()
        await signer.disconnect()

        stats = controller.stats
        logger.info(
            f"Session: {stats.checks} checks, {stats.opportunities} opportunities, "
            f"{stats.successful_trades} trades, {lamports_to_sol(stats.total_profit):.6f} SOL profit"
        )


def main():
    """Main entry point"""
    configure_logging("bot")
    config = initialize_config()
    settings = config.bot

    signer = KeypairSigner.load(settings.wallet_path)
    start_metrics_server(settings.metrics_port)
    asyncio.run(run(settings, signer))


if __name__ == "__main__":
    main()
