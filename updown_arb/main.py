"""
Main entry point for the ETH/BTC Up/Down arbitrage bot.
Wires the monitor, detector and trader together and runs their loops.
"""

import asyncio
import signal
import sys
from typing import Awaitable, Callable, Optional

# Use uvloop for better performance on Linux
try:
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except ImportError:
    pass  # uvloop not available (Windows)

from .config import load_config, Config, MarketsConfig
from .clients.clob_client import ClobClient, Market
from .arbitrage.detector import ArbitrageDetector
from .monitor.market_monitor import MarketMonitor, MarketSnapshot
from .execution.trader import Trader
from .utils.logger import setup_logging, get_logger

logger = get_logger("main")

# Returns the (eth, btc) markets that are current right now
MarketProvider = Callable[[], Awaitable[tuple[Market, Market]]]


def configured_market_provider(
    clob_client: ClobClient,
    markets: MarketsConfig
) -> MarketProvider:
    """
    Provider for the operator-configured condition ids.

    Only looks up metadata for the ids it is given; it never chooses markets.
    """
    async def provide() -> tuple[Market, Market]:
        eth_market, btc_market = await asyncio.gather(
            clob_client.get_market(markets.eth_condition_id),
            clob_client.get_market(markets.btc_condition_id),
        )
        return eth_market, btc_market

    return provide


class ArbBot:
    """
    Bot orchestrator.

    Coordinates:
    - Price polling and opportunity detection
    - Position recording and order placement
    - Settlement sweeps
    - Period rollover
    """

    def __init__(
        self,
        config: Config,
        clob_client: Optional[ClobClient] = None,
        market_provider: Optional[MarketProvider] = None
    ):
        """Initialize bot with configuration."""
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.clob_client = clob_client or ClobClient(
            host=config.polymarket.clob_url,
            api_key=config.polymarket.api_key,
            api_secret=config.polymarket.api_secret,
            api_passphrase=config.polymarket.api_passphrase,
            private_key=config.wallet.private_key,
            chain_id=config.wallet.chain_id
        )
        self.market_provider = market_provider or configured_market_provider(
            self.clob_client, config.markets
        )

        self.detector = ArbitrageDetector(
            min_profit_threshold=config.trading.min_profit_threshold
        )
        self.trader = Trader(
            clob_client=self.clob_client,
            max_position_size=config.trading.max_position_size,
            simulation_mode=config.risk.simulation_mode
        )
        self.monitor: Optional[MarketMonitor] = None

        # Stats
        self._snapshots_seen = 0
        self._opportunities_seen = 0

    async def initialize(self) -> None:
        """Initialize client and load the current markets."""
        logger.info(
            "Initializing Up/Down arbitrage bot",
            extra={"simulation_mode": self.config.risk.simulation_mode}
        )

        await self.clob_client.initialize()

        if not self.config.risk.simulation_mode and not self.clob_client.can_trade:
            raise ValueError("Live trading requires API credentials and a private key")

        eth_market, btc_market = await self.market_provider()
        logger.info(
            "Tracking markets",
            extra={
                "eth_market": eth_market.label,
                "btc_market": btc_market.label
            }
        )

        self.monitor = MarketMonitor(
            clob_client=self.clob_client,
            eth_market=eth_market,
            btc_market=btc_market,
            check_interval_ms=self.config.trading.check_interval_ms
        )

        logger.info("Bot initialized successfully")

    async def run(self) -> None:
        """Run the main bot loops until shutdown."""
        if not self.monitor:
            raise RuntimeError("Bot not initialized")

        self._running = True
        logger.info("Starting Up/Down arbitrage bot")

        tasks = [
            asyncio.create_task(self.monitor.start_monitoring(self.on_snapshot)),
            asyncio.create_task(self._run_pending_sweep()),
            asyncio.create_task(self._run_period_watch()),
            asyncio.create_task(self._run_stats_reporter()),
        ]

        try:
            await self._shutdown_event.wait()
        finally:
            self._running = False
            self.monitor.stop()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def on_snapshot(self, snapshot: MarketSnapshot) -> None:
        """Detect opportunities in a snapshot and hand them to the trader."""
        self._snapshots_seen += 1

        for opportunity in self.detector.detect_opportunities(snapshot):
            self._opportunities_seen += 1
            try:
                await self.trader.execute_arbitrage(opportunity)
            except Exception as e:
                logger.error(f"Trade execution error: {e}")

    async def _run_pending_sweep(self) -> None:
        """Periodically settle pending trades."""
        interval = self.config.trading.pending_check_interval_seconds
        while self._running:
            try:
                await asyncio.sleep(interval)
                await self.trader.check_pending_trades()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Pending trade sweep error: {e}")

    async def _run_period_watch(self) -> None:
        """Switch markets when a new 15-minute period starts."""
        interval = self.config.trading.market_check_interval_seconds
        while self._running:
            try:
                await asyncio.sleep(interval)
                if await self.monitor.should_discover_new_markets():
                    await self.rollover_markets()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Market rollover error: {e}")

    async def rollover_markets(self) -> None:
        """Ask the market provider for the current pair and switch the monitor to it."""
        logger.info("New 15-minute period started, refreshing markets")
        eth_market, btc_market = await self.market_provider()
        await self.monitor.update_markets(eth_market, btc_market)

    async def _run_stats_reporter(self) -> None:
        """Periodically report statistics."""
        interval = self.config.trading.stats_interval_seconds
        while self._running:
            try:
                await asyncio.sleep(interval)
                await self._log_stats()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Stats reporter error: {e}")

    async def _log_stats(self) -> None:
        """Log current statistics."""
        total_profit, trades = await self.trader.get_stats()
        pending = await self.trader.get_pending_trades()

        logger.info(
            "Bot statistics",
            extra={
                "snapshots_seen": self._snapshots_seen,
                "opportunities_seen": self._opportunities_seen,
                "trades_executed": trades,
                "pending_trades": len(pending),
                "total_profit": float(total_profit)
            }
        )

    async def shutdown(self) -> None:
        """Gracefully shutdown the bot."""
        logger.info("Shutting down bot")
        self._running = False
        self.request_shutdown()

        if self.monitor:
            self.monitor.stop()

        await self.clob_client.close()

        await self._log_stats()
        logger.info("Bot shutdown complete")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def setup_signal_handlers(bot: ArbBot) -> None:
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        bot.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(
        level=config.logging.log_level,
        json_format=config.logging.json_logging
    )

    bot = ArbBot(config)
    setup_signal_handlers(bot)

    try:
        await bot.initialize()
        await bot.run()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await bot.shutdown()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
