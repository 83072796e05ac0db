# -*- coding: utf-8 -*-
"""
Formatting utilities for alert messages.
Handles timezone conversion, number formatting, and date formatting.
"""
from datetime import datetime, timezone
from typing import Optional
import pytz


def format_number(value: float) -> str:
    """
    Format a target/observed value with thousands separators.
    Large values keep 2 decimals, small ones keep up to 8 (altcoin prices).

    Examples:
        67420.5 -> "67,420.50"
        0.00001234 -> "0.00001234"
    """
    if abs(value) >= 1:
        return f"{value:,.2f}"
    formatted = f"{value:.8f}".rstrip("0").rstrip(".")
    return formatted or "0"


def format_percentage(value: float) -> str:
    """
    Format a percentage target: 10 -> "10.00%", -2.5 -> "-2.50%".
    Values are already in percent units (10 means 10%).
    """
    return f"{value:.2f}%"


def get_local_time(tz_name: str = "UTC") -> datetime:
    """Current time in the given timezone."""
    return datetime.now(pytz.timezone(tz_name))


def format_datetime(dt: Optional[datetime] = None, tz_name: str = "UTC") -> str:
    """
    Format datetime as "2025-11-11 11:30 UTC" in the given timezone.

    Args:
        dt: datetime object (if None, uses current time); naive values are treated as UTC
        tz_name: pytz timezone name

    Returns:
        Formatted string
    """
    tz = pytz.timezone(tz_name)
    if dt is None:
        dt = get_local_time(tz_name)
    elif dt.tzinfo is None:
        # Assume UTC if no timezone
        dt = dt.replace(tzinfo=timezone.utc).astimezone(tz)
    else:
        dt = dt.astimezone(tz)

    return dt.strftime("%Y-%m-%d %H:%M %Z")


def format_pair_display(pair: str) -> str:
    """
    Format pair for display (e.g., BTCUSDT -> BTC/USDT, BTC/USDT unchanged).
    """
    if "/" in pair:
        return pair
    for quote in ("USDT", "BTC", "ETH"):
        if pair.endswith(quote) and len(pair) > len(quote):
            return f"{pair[:-len(quote)]}/{quote}"
    return pair
