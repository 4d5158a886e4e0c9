"""
Structured logging for the Up/Down arbitrage bot.
Supports JSON logging for log aggregation.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "updown_arb"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to emit one JSON object per line
        logger_name: Optional specific logger name

    Returns:
        Configured logger instance
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(logger_name or ROOT_LOGGER_NAME)
    logger.setLevel(log_level)

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class TradeLogger:
    """Specialized logger for trade lifecycle events."""

    def __init__(self):
        self.logger = get_logger("trades")

    def opportunity_detected(
        self,
        strategy: str,
        total_cost: float,
        expected_profit: float,
        profit_percent: float
    ):
        """Log when a cross-market opportunity is handed to the trader."""
        self.logger.info(
            "Arbitrage opportunity detected",
            extra={
                "event": "opportunity_detected",
                "strategy": strategy,
                "total_cost": total_cost,
                "expected_profit": expected_profit,
                "profit_percent": profit_percent
            }
        )

    def order_placed(
        self,
        token_id: str,
        side: str,
        size: float,
        price: float,
        order_id: str
    ):
        """Log when an order is accepted."""
        self.logger.info(
            "Order placed",
            extra={
                "event": "order_placed",
                "token_id": token_id,
                "side": side,
                "size": size,
                "price": price,
                "order_id": order_id
            }
        )

    def order_failed(
        self,
        token_id: str,
        side: str,
        error: Optional[str] = None
    ):
        """Log when an order could not be placed."""
        self.logger.warning(
            "Order failed",
            extra={
                "event": "order_failed",
                "token_id": token_id,
                "side": side,
                "error": error
            }
        )

    def position_recorded(
        self,
        trade_key: str,
        units: float,
        investment: float,
        fills: int,
        simulated: bool
    ):
        """Log when a position is created or accumulated."""
        self.logger.info(
            "Position recorded",
            extra={
                "event": "position_recorded",
                "trade_key": trade_key,
                "units": units,
                "investment_usd": investment,
                "fills": fills,
                "simulated": simulated
            }
        )

    def trade_settled(
        self,
        trade_key: str,
        eth_winner: bool,
        btc_winner: bool,
        payout: float,
        profit: float,
        total_profit: float
    ):
        """Log when both markets behind a position have resolved."""
        self.logger.info(
            "Trade settled",
            extra={
                "event": "trade_settled",
                "trade_key": trade_key,
                "eth_winner": eth_winner,
                "btc_winner": btc_winner,
                "payout_usd": payout,
                "profit_usd": profit,
                "total_profit_usd": total_profit
            }
        )
