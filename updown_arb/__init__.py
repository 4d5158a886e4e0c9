"""
Polymarket ETH/BTC 15-minute Up/Down arbitrage bot

Entry point: python -m updown_arb.main

Buys one outcome in each of two correlated 15-minute markets whenever the
two asks sum to less than the $1.00 a winning outcome pays, then settles
the accumulated position once both markets resolve.

Key Modules:
- updown_arb.monitor: Current markets, token ids and price snapshots
- updown_arb.arbitrage: Opportunity detection
- updown_arb.execution: Position tracking and settlement
- updown_arb.clients: Polymarket CLOB client
"""
