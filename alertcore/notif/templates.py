# -*- coding: utf-8 -*-
"""
Message templates for alert deliveries (Telegram, email, webhook summary).
"""
from datetime import datetime
from typing import Optional

from alertcore.notif.formatter import (
    format_datetime,
    format_number,
    format_pair_display,
    format_percentage,
)
from alertcore.notif.router import FiringContext
from alertcore.rules.rule_defs import Comparison
from alertcore.utils.timeframes import format_timeframe_display

ALERT_DISCLAIMER = "⚠️ This is a market condition alert, not financial advice. DYOR."

COMPARISON_DISPLAY = {
    Comparison.ABOVE: "above",
    Comparison.BELOW: "below",
    Comparison.PCT_CHANGE: "changed by",
    Comparison.CHANGE_24H: "24h change reached",
}


def format_target(comparison: Comparison, target: float) -> str:
    """PCTCHG and 24HRCHG targets are percentages, the rest are plain values."""
    if comparison in (Comparison.PCT_CHANGE, Comparison.CHANGE_24H):
        return format_percentage(target)
    return format_number(target)


def describe_condition(context: FiringContext) -> str:
    """
    One-line condition, e.g. "RSI(period=14) value 4 hours above 70.00".
    """
    subject = context.indicator_id
    if context.parameter_values:
        params = ", ".join(f"{k}={v}" for k, v in context.parameter_values.items())
        subject = f"{subject}({params})"
    if context.timeframe:
        subject = f"{subject} {context.output} {format_timeframe_display(context.timeframe)}"

    verb = COMPARISON_DISPLAY[context.comparison]
    return f"{subject} {verb} {format_target(context.comparison, context.target)}"


def template_rule_fired(context: FiringContext, tz_name: str = "UTC") -> str:
    """
    Template for a fired rule.

    Args:
        context: Firing context from the router
        tz_name: Timezone used to display the firing time
    """
    pair = format_pair_display(context.pair)
    condition = describe_condition(context)
    timestamp = format_datetime(context.fired_at, tz_name)

    lines = [f"🔔 Alert: {pair}", "", condition]
    if context.observed_value is not None:
        lines.append(f"Current: {format_number(context.observed_value)}")
    lines.extend(["", f"⏰ {timestamp}", f"🆔 {context.rule_id}", ALERT_DISCLAIMER])
    return "\n".join(lines)


def template_email_subject(context: FiringContext) -> str:
    return f"[Alert] {format_pair_display(context.pair)}: {describe_condition(context)}"


def template_ping(bot_name: str, version: str, now: Optional[datetime] = None, tz_name: str = "UTC") -> str:
    """Template for the CLI --ping test message."""
    return f"✅ {bot_name} v{version} online ({format_datetime(now, tz_name)})"
