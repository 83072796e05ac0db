"""
Delivery router - fans a firing out to the rule's enabled channels.

Every channel is attempted independently: an exception or failure in one
sender never stops the others, and nothing is retried here (retries belong
to the senders themselves).
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from alertcore.rules.rule_defs import Comparison, DeliveryChannel, Rule


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryResult:
    status: DeliveryStatus
    reason: Optional[str] = None

    @classmethod
    def sent(cls) -> "DeliveryResult":
        return cls(DeliveryStatus.SENT)

    @classmethod
    def failed(cls, reason: str) -> "DeliveryResult":
        return cls(DeliveryStatus.FAILED, reason)

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.SENT


@dataclass(frozen=True)
class FiringContext:
    """
    What the senders need to describe a firing.

    For PCTCHG rules target is a percentage (10 means 10%); how it is compared
    against the market is up to the evaluation collaborator.
    """
    rule_id: str
    pair: str
    indicator_id: str
    output: str
    comparison: Comparison
    target: float
    fired_at: datetime
    timeframe: Optional[str] = None
    observed_value: Optional[float] = None
    parameter_values: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_rule(cls, rule: Rule, fired_at: datetime, observed_value: Optional[float] = None) -> "FiringContext":
        return cls(
            rule_id=rule.id,
            pair=rule.pair,
            indicator_id=rule.indicator_id,
            output=rule.output,
            comparison=rule.comparison,
            target=rule.target,
            fired_at=fired_at,
            timeframe=rule.timeframe,
            observed_value=observed_value,
            parameter_values=dict(rule.parameter_values),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "pair": self.pair,
            "indicator_id": self.indicator_id,
            "output": self.output,
            "comparison": self.comparison.value,
            "target": self.target,
            "timeframe": self.timeframe,
            "observed_value": self.observed_value,
            "parameters": dict(self.parameter_values),
            "fired_at": self.fired_at.isoformat(),
        }


# A sender delivers one firing over one channel
ChannelSender = Callable[[str, FiringContext], DeliveryResult]


@dataclass
class DeliveryReport:
    rule_id: str
    results: Dict[DeliveryChannel, DeliveryResult] = field(default_factory=dict)

    @property
    def sent_channels(self) -> List[DeliveryChannel]:
        return [c for c, r in self.results.items() if r.ok]

    @property
    def failed_channels(self) -> List[DeliveryChannel]:
        return [c for c, r in self.results.items() if not r.ok]

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and not self.sent_channels

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "results": {
                c.value: {"status": r.status.value, "reason": r.reason}
                for c, r in self.results.items()
            },
        }


class DeliveryRouter:
    """Invokes one sender per enabled channel of a rule."""

    def __init__(self, senders: Optional[Mapping[DeliveryChannel, ChannelSender]] = None):
        self._senders: Dict[DeliveryChannel, ChannelSender] = dict(senders or {})

    def register(self, channel: DeliveryChannel, sender: ChannelSender):
        self._senders[channel] = sender

    def dispatch(self, rule: Rule, context: FiringContext) -> DeliveryReport:
        """
        Send a firing on every channel enabled on the rule.

        Returns:
            DeliveryReport with one Sent/Failed result per channel. A rule with
            no channels yields an empty report.
        """
        report = DeliveryReport(rule_id=rule.id)
        for channel in rule.ordered_channels():
            sender = self._senders.get(channel)
            if sender is None:
                logger.warning(f"No sender configured for {channel.value} (rule {rule.id})")
                report.results[channel] = DeliveryResult.failed("no sender configured")
                continue

            try:
                result = sender(rule.id, context)
            except Exception as e:
                logger.exception(f"{channel.value} sender raised for rule {rule.id}: {e}")
                result = DeliveryResult.failed(str(e) or type(e).__name__)

            if not isinstance(result, DeliveryResult):
                result = DeliveryResult.failed(f"sender returned {type(result).__name__}")

            if not result.ok:
                logger.warning(f"Delivery via {channel.value} failed for rule {rule.id}: {result.reason}")
            report.results[channel] = result

        if not rule.delivery_channels:
            logger.debug(f"Rule {rule.id} fired with no delivery channels")
        return report
