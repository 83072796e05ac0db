"""
Timeframe definitions and display mappings.
Single source of truth for all timeframe-related constants.
"""

# Candle timeframes a technical rule may be evaluated on (order = display order)
TIMEFRAMES = ["1m", "5m", "15m", "30m", "1h", "2h", "4h", "12h", "1d", "1w"]

TIMEFRAME_DISPLAY = {
    "1m": "1 minute",
    "5m": "5 minutes",
    "15m": "15 minutes",
    "30m": "30 minutes",
    "1h": "1 hour",
    "2h": "2 hours",
    "4h": "4 hours",
    "12h": "12 hours",
    "1d": "1 day",
    "1w": "1 week",
}


def is_valid_timeframe(timeframe: str, allowed=None) -> bool:
    """Check timeframe against the allowed set (defaults to TIMEFRAMES)."""
    if allowed is None:
        allowed = TIMEFRAMES
    return timeframe in allowed


def format_timeframe_display(timeframe: str) -> str:
    """Human label for a timeframe, falling back to the raw code."""
    return TIMEFRAME_DISPLAY.get(timeframe, timeframe)
