"""
Rule definitions for the alert engine.

A Rule is only ever produced by the validator (alertcore.rules.validator) or
reloaded from storage; its shape always agrees with its indicator's kind.
"""
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from alertcore.indicators.catalog import IndicatorKind, ParameterValue, SIMPLE_OUTPUT


class Comparison(str, Enum):
    """Comparison operators. Values are the identifiers used by the alert form."""
    ABOVE = "ABOVE"
    BELOW = "BELOW"
    PCT_CHANGE = "PCTCHG"
    CHANGE_24H = "24HRCHG"

    @classmethod
    def parse(cls, text: str) -> Optional["Comparison"]:
        """Accept either the form value ("PCTCHG") or the member name ("PCT_CHANGE")."""
        if not isinstance(text, str):
            return None
        key = text.strip().upper()
        for member in cls:
            if key == member.value or key == member.name:
                return member
        return None


TECHNICAL_COMPARISONS = frozenset({Comparison.ABOVE, Comparison.BELOW})
SIMPLE_COMPARISONS = frozenset(Comparison)


def allowed_comparisons(kind: IndicatorKind) -> FrozenSet[Comparison]:
    return TECHNICAL_COMPARISONS if kind is IndicatorKind.TECHNICAL else SIMPLE_COMPARISONS


class DeliveryChannel(str, Enum):
    TELEGRAM = "telegram"
    EMAIL = "email"
    WEBHOOK = "webhook"

    @classmethod
    def parse(cls, text: Any) -> Optional["DeliveryChannel"]:
        if not isinstance(text, str):
            return None
        try:
            return cls(text.strip().lower())
        except ValueError:
            return None


# Dispatch order, independent of the order channels were requested in
CHANNEL_ORDER = (DeliveryChannel.TELEGRAM, DeliveryChannel.EMAIL, DeliveryChannel.WEBHOOK)


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, Mapping) and not value:
        return True
    return False


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and not _is_absent(data[key]):
            return data[key]
    return None


@dataclass(frozen=True)
class RuleSubmission:
    """
    Raw rule payload as sent by the UI/API layer. Nothing here is trusted.

    target and cooldown arrive as text; parameters map name -> raw value;
    delivery_channels is whatever identifiers the client sent.
    """
    pair: Any = None
    indicator_id: Any = None
    comparison: Any = None
    target: Any = None
    timeframe: Any = None
    output_value: Any = None
    parameters: Optional[Mapping[str, Any]] = None
    cooldown: Any = None
    delivery_channels: Iterable[Any] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleSubmission":
        """
        Build a submission from an API payload.

        Accepts camelCase (indicatorId, outputValue, deliveryChannels) and
        snake_case keys, the form's "indicator" / "params" keys, and the form's
        deliveryMethods shape ({"telegram": true, "email": false, ...}).
        """
        channels = _first_present(data, "deliveryChannels", "delivery_channels", "deliveryMethods")
        if isinstance(channels, Mapping):
            channels = [name for name, enabled in channels.items() if enabled]
        elif isinstance(channels, str):
            channels = [channels]
        elif channels is None:
            channels = []

        return cls(
            pair=data.get("pair"),
            indicator_id=_first_present(data, "indicatorId", "indicator_id", "indicator"),
            comparison=data.get("comparison"),
            target=data.get("target"),
            timeframe=data.get("timeframe"),
            output_value=_first_present(data, "outputValue", "output_value", "output"),
            parameters=_first_present(data, "parameters", "params"),
            cooldown=data.get("cooldown"),
            delivery_channels=tuple(channels),
        )


class RuleShapeError(ValueError):
    """A Rule was constructed with fields that contradict its indicator kind."""


@dataclass(frozen=True)
class Rule:
    """
    Validated, immutable alert rule.

    cooldown None means one-shot: the rule fires once and stays silent until
    re-armed. parameter_values is read-only and covers every declared
    parameter of a technical indicator (defaults filled in).
    """
    id: str
    pair: str
    indicator_id: str
    kind: IndicatorKind
    output: str
    comparison: Comparison
    target: float
    timeframe: Optional[str] = None
    parameter_values: Mapping[str, ParameterValue] = field(default_factory=dict)
    cooldown: Optional[timedelta] = None
    delivery_channels: FrozenSet[DeliveryChannel] = frozenset()
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # Freeze the parameter mapping so callers cannot mutate a stored rule
        object.__setattr__(self, "parameter_values", MappingProxyType(dict(self.parameter_values)))
        object.__setattr__(self, "delivery_channels", frozenset(self.delivery_channels))

        if not self.pair:
            raise RuleShapeError("pair must not be empty")
        if not math.isfinite(self.target):
            raise RuleShapeError("target must be finite")
        if self.cooldown is not None and self.cooldown < timedelta(0):
            raise RuleShapeError("cooldown must not be negative")
        if self.comparison not in allowed_comparisons(self.kind):
            raise RuleShapeError(f"{self.comparison.value} is not allowed for {self.kind.value} indicators")

        if self.kind is IndicatorKind.TECHNICAL:
            if not self.timeframe:
                raise RuleShapeError("technical rules need a timeframe")
        else:
            if self.timeframe is not None or self.parameter_values:
                raise RuleShapeError("simple rules take no timeframe or parameters")
            if self.output != SIMPLE_OUTPUT:
                raise RuleShapeError(f"simple rules expose only the {SIMPLE_OUTPUT!r} output")

    @property
    def is_one_shot(self) -> bool:
        return self.cooldown is None

    def ordered_channels(self):
        return [c for c in CHANNEL_ORDER if c in self.delivery_channels]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pair": self.pair,
            "indicator_id": self.indicator_id,
            "kind": self.kind.value,
            "output": self.output,
            "comparison": self.comparison.value,
            "target": self.target,
            "timeframe": self.timeframe,
            "parameter_values": dict(self.parameter_values),
            "cooldown_seconds": None if self.cooldown is None else int(self.cooldown.total_seconds()),
            "delivery_channels": [c.value for c in self.ordered_channels()],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Rebuild a stored rule. Shape checks in __post_init__ still apply."""
        cooldown_seconds = data.get("cooldown_seconds")
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=data["id"],
            pair=data["pair"],
            indicator_id=data["indicator_id"],
            kind=IndicatorKind(data["kind"]),
            output=data["output"],
            comparison=Comparison(data["comparison"]),
            target=float(data["target"]),
            timeframe=data.get("timeframe"),
            parameter_values=data.get("parameter_values") or {},
            cooldown=None if cooldown_seconds is None else timedelta(seconds=cooldown_seconds),
            delivery_channels=frozenset(DeliveryChannel(c) for c in data.get("delivery_channels") or []),
            created_at=created_at or datetime.now(timezone.utc),
        )


def new_rule_id() -> str:
    return f"rule_{uuid.uuid4().hex[:12]}"
