"""Scrape football predictions and settle bets against results."""

__version__ = "0.1.0"
