"""
Indicator catalog - metadata only.

Describes which indicators a rule may reference, the parameters each one
takes and the outputs it exposes. Numeric computation of the indicators lives
with the market data collaborator, not here.

The catalog is built once at process start and is read-only afterwards, so
concurrent readers need no locking.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from loguru import logger

# Typed parameter value union (Number -> int/float, String -> str, Boolean -> bool)
ParameterValue = Union[int, float, str, bool]

# Output name used by simple indicators (they expose exactly one value)
SIMPLE_OUTPUT = "value"

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


class IndicatorKind(str, Enum):
    SIMPLE = "simple"
    TECHNICAL = "technical"


class ParameterType(str, Enum):
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"

    def coerce(self, raw: Any) -> ParameterValue:
        """
        Convert a raw submitted value into this parameter type.

        Raises:
            ValueError: raw cannot be represented as this type
        """
        if self is ParameterType.NUMBER:
            return _coerce_number(raw)
        if self is ParameterType.STRING:
            if not isinstance(raw, str):
                raise ValueError(f"expected text, got {type(raw).__name__}")
            return raw
        return _coerce_boolean(raw)


def _coerce_number(raw: Any) -> Union[int, float]:
    # bool is an int subclass; "true" is not a period length
    if isinstance(raw, bool):
        raise ValueError("expected a number, got a boolean")

    if isinstance(raw, (int, float)):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                raise ValueError(f"{raw!r} is not a number") from None
    else:
        raise ValueError(f"expected a number, got {type(raw).__name__}")

    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{raw!r} is not a finite number")
    return value


def _coerce_boolean(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"{raw!r} is not a boolean")


@dataclass(frozen=True)
class Parameter:
    """One declared input of a technical indicator."""
    name: str
    description: str
    default: ParameterValue
    type: ParameterType = ParameterType.NUMBER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "default": self.default,
            "type": self.type.value,
        }


@dataclass(frozen=True)
class Indicator:
    """
    Catalog entry.

    Simple indicators (e.g. PRICE) have no parameters and one implicit output.
    Technical indicators declare ordered parameters and a non-empty list of outputs.
    """
    id: str
    name: str
    kind: IndicatorKind
    params: Tuple[Parameter, ...] = field(default_factory=tuple)
    outputs: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Indicator id must not be empty")
        if self.kind is IndicatorKind.TECHNICAL:
            if not self.outputs:
                raise ValueError(f"Technical indicator {self.id} must declare at least one output")
            names = [p.name for p in self.params]
            if len(names) != len(set(names)):
                raise ValueError(f"Indicator {self.id} declares duplicate parameters")
            for param in self.params:
                # Defaults must satisfy their own declared type
                try:
                    param.type.coerce(param.default)
                except ValueError as e:
                    raise ValueError(f"Indicator {self.id} parameter {param.name}: bad default ({e})") from None
        elif self.params or self.outputs:
            raise ValueError(f"Simple indicator {self.id} cannot declare parameters or outputs")

    @property
    def is_technical(self) -> bool:
        return self.kind is IndicatorKind.TECHNICAL

    @property
    def output_names(self) -> Tuple[str, ...]:
        """Declared outputs, or the single implicit output for simple indicators."""
        return self.outputs if self.is_technical else (SIMPLE_OUTPUT,)

    def get_param(self, name: str) -> Optional[Parameter]:
        for param in self.params:
            if param.name == name:
                return param
        return None

    def default_params(self) -> Dict[str, ParameterValue]:
        return {p.name: p.default for p in self.params}

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "name": self.name, "type": self.kind.value}
        if self.is_technical:
            data["params"] = [p.to_dict() for p in self.params]
            data["outputs"] = list(self.outputs)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Indicator":
        """Build an indicator from a config/UI style definition."""
        params = tuple(
            Parameter(
                name=p["name"],
                description=p.get("description", ""),
                default=p.get("default"),
                type=ParameterType(p.get("type", "number")),
            )
            for p in data.get("params") or []
        )
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            kind=IndicatorKind(data.get("type", "technical")),
            params=params,
            outputs=tuple(data.get("outputs") or ()),
        )


class IndicatorNotFound(KeyError):
    """Raised when a rule references an indicator id missing from the catalog."""

    def __init__(self, indicator_id: str):
        super().__init__(indicator_id)
        self.indicator_id = indicator_id

    def __str__(self):
        return f"Unknown indicator: {self.indicator_id}"


class IndicatorCatalog:
    """Ordered, read-only registry of indicators keyed by id."""

    def __init__(self, indicators: Iterable[Indicator]):
        ordered: List[Indicator] = []
        by_id: Dict[str, Indicator] = {}
        for indicator in indicators:
            if indicator.id in by_id:
                raise ValueError(f"Duplicate indicator id: {indicator.id}")
            by_id[indicator.id] = indicator
            ordered.append(indicator)
        self._ordered = tuple(ordered)
        self._by_id = by_id

    def lookup(self, indicator_id: str) -> Indicator:
        """
        Resolve an indicator by id.

        Raises:
            IndicatorNotFound: id is not registered
        """
        indicator = self._by_id.get(indicator_id)
        if indicator is None:
            raise IndicatorNotFound(indicator_id)
        return indicator

    def get(self, indicator_id: str) -> Optional[Indicator]:
        return self._by_id.get(indicator_id)

    def list(self) -> Tuple[Indicator, ...]:
        return self._ordered

    def __contains__(self, indicator_id: str) -> bool:
        return indicator_id in self._by_id

    def __len__(self) -> int:
        return len(self._ordered)


def _period(default: int, description: str = "Period length") -> Parameter:
    return Parameter("period", description, default, ParameterType.NUMBER)


DEFAULT_INDICATORS: Tuple[Indicator, ...] = (
    Indicator("PRICE", "Price", IndicatorKind.SIMPLE),
    Indicator(
        "RSI", "Relative Strength Index", IndicatorKind.TECHNICAL,
        params=(_period(14),),
        outputs=("value",),
    ),
    Indicator(
        "MACD", "Moving Average Convergence Divergence", IndicatorKind.TECHNICAL,
        params=(
            Parameter("fastPeriod", "Fast period", 12),
            Parameter("slowPeriod", "Slow period", 26),
            Parameter("signalPeriod", "Signal period", 9),
        ),
        outputs=("valueMACD", "valueMACDSignal", "valueMACDHist"),
    ),
    Indicator(
        "BBANDS", "Bollinger Bands", IndicatorKind.TECHNICAL,
        params=(
            _period(20),
            Parameter("stddev", "Standard deviation", 2),
        ),
        outputs=("valueUpperBand", "valueMiddleBand", "valueLowerBand"),
    ),
    Indicator(
        "MA", "Moving Average", IndicatorKind.TECHNICAL,
        params=(_period(30),),
        outputs=("value",),
    ),
    Indicator(
        "EMA", "Exponential Moving Average", IndicatorKind.TECHNICAL,
        params=(_period(30),),
        outputs=("value",),
    ),
)


def build_catalog(extra_definitions: Optional[List[Dict[str, Any]]] = None) -> IndicatorCatalog:
    """
    Build the catalog from the built-in indicators plus config-declared ones.

    Raises:
        ValueError: malformed or duplicate definition
    """
    indicators = list(DEFAULT_INDICATORS)
    for definition in extra_definitions or []:
        try:
            indicators.append(Indicator.from_dict(definition))
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed indicator definition {definition!r}: {e}") from e

    catalog = IndicatorCatalog(indicators)
    logger.debug(f"Indicator catalog built: {[i.id for i in catalog.list()]}")
    return catalog


# Global catalog instance (built once, read-only afterwards)
_catalog_instance: Optional[IndicatorCatalog] = None


def get_catalog() -> IndicatorCatalog:
    """Get global indicator catalog (built-ins + config indicators)."""
    global _catalog_instance

    if _catalog_instance is None:
        from alertcore.config import get_indicator_definitions

        _catalog_instance = build_catalog(get_indicator_definitions())

    return _catalog_instance
