"""
Rule validator - turns a raw submission into a typed Rule.

Every violated field is collected; validation never stops at the first
problem so the form can show all of them at once. The validator is a pure
function of (submission, catalog, allowed pairs, allowed timeframes).
"""
import math
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from alertcore.indicators.catalog import (
    Indicator,
    IndicatorCatalog,
    IndicatorNotFound,
    ParameterValue,
    SIMPLE_OUTPUT,
)
from alertcore.rules.errors import ErrorCode, FieldError, ValidationResult
from alertcore.rules.rule_defs import (
    Comparison,
    DeliveryChannel,
    Rule,
    RuleSubmission,
    allowed_comparisons,
    new_rule_id,
)
from alertcore.utils.durations import DurationError, parse_duration
from alertcore.utils.timeframes import TIMEFRAMES, is_valid_timeframe


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, Mapping):
        return len(value) > 0
    return True


class _Collector:
    """Accumulates errors and warnings for one submission."""

    def __init__(self):
        self.errors: List[FieldError] = []
        self.warnings: List[FieldError] = []

    def error(self, field: str, code: ErrorCode, message: str):
        self.errors.append(FieldError(field, code, message))

    def warn(self, field: str, code: ErrorCode, message: str):
        self.warnings.append(FieldError(field, code, message))


def _check_pair(raw: Any, allowed_pairs: Optional[Iterable[str]], out: _Collector) -> Optional[str]:
    if not _present(raw) or not isinstance(raw, str):
        out.error("pair", ErrorCode.MISSING_REQUIRED_FIELD, "Pair is required")
        return None
    pair = raw.strip()
    if allowed_pairs:
        allowed = set(allowed_pairs)
        if pair not in allowed:
            out.error("pair", ErrorCode.UNSUPPORTED_PAIR, f"Pair {pair} is not supported")
            return None
    return pair


def _check_indicator(raw: Any, catalog: IndicatorCatalog, out: _Collector) -> Optional[Indicator]:
    if not _present(raw) or not isinstance(raw, str):
        out.error("indicatorId", ErrorCode.MISSING_REQUIRED_FIELD, "Indicator is required")
        return None
    try:
        return catalog.lookup(raw.strip())
    except IndicatorNotFound as e:
        out.error("indicatorId", ErrorCode.INDICATOR_NOT_FOUND, str(e))
        return None


def _check_comparison(raw: Any, indicator: Optional[Indicator], out: _Collector) -> Optional[Comparison]:
    if not _present(raw):
        out.error("comparison", ErrorCode.MISSING_REQUIRED_FIELD, "Comparison is required")
        return None

    comparison = Comparison.parse(raw)
    if comparison is None:
        out.error("comparison", ErrorCode.UNKNOWN_COMPARISON, f"Unknown comparison: {raw}")
        return None

    # Legality depends on the indicator kind; skip when the indicator is unresolved
    if indicator is None:
        return comparison

    if comparison not in allowed_comparisons(indicator.kind):
        allowed = ", ".join(c.value for c in Comparison if c in allowed_comparisons(indicator.kind))
        out.error(
            "comparison",
            ErrorCode.INVALID_COMPARISON_FOR_KIND,
            f"{comparison.value} is not valid for {indicator.kind.value} indicator {indicator.id} (allowed: {allowed})",
        )
        return None
    return comparison


def _check_target(raw: Any, out: _Collector) -> Optional[float]:
    if isinstance(raw, bool):
        out.error("target", ErrorCode.NON_FINITE_TARGET, "Target must be a number")
        return None
    if not _present(raw):
        out.error("target", ErrorCode.MISSING_REQUIRED_FIELD, "Target value is required")
        return None
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError, OverflowError):
        out.error("target", ErrorCode.NON_FINITE_TARGET, f"Target {raw!r} is not a number")
        return None
    if not math.isfinite(value):
        out.error("target", ErrorCode.NON_FINITE_TARGET, f"Target {raw!r} is not a finite number")
        return None
    return value


def _check_cooldown(raw: Any, out: _Collector) -> Optional[timedelta]:
    # Empty cooldown means a one-shot rule
    if raw is None or raw == "":
        return None
    try:
        return parse_duration(raw)
    except DurationError as e:
        out.error("cooldown", ErrorCode(e.code), str(e))
        return None


def _check_channels(raw: Iterable[Any], out: _Collector) -> frozenset:
    if isinstance(raw, str):
        raw = [raw]
    channels = set()
    for requested in raw or ():
        channel = DeliveryChannel.parse(requested)
        if channel is None:
            # Dropped, not fatal
            out.warn(
                f"deliveryChannels.{requested}",
                ErrorCode.UNKNOWN_CHANNEL,
                f"Unknown delivery channel {requested!r} ignored",
            )
            continue
        channels.add(channel)
    return frozenset(channels)


def _check_technical_fields(
    submission: RuleSubmission,
    indicator: Indicator,
    timeframes: Iterable[str],
    out: _Collector,
):
    """Timeframe, output and parameters for a technical indicator."""
    timeframe = None
    if not _present(submission.timeframe):
        out.error("timeframe", ErrorCode.MISSING_REQUIRED_FIELD, f"Timeframe is required for {indicator.id}")
    elif not is_valid_timeframe(submission.timeframe, list(timeframes)):
        out.error("timeframe", ErrorCode.UNSUPPORTED_TIMEFRAME, f"Timeframe {submission.timeframe} is not supported")
    else:
        timeframe = submission.timeframe

    output = None
    if not _present(submission.output_value):
        out.error("outputValue", ErrorCode.MISSING_REQUIRED_FIELD, f"Output value is required for {indicator.id}")
    elif submission.output_value not in indicator.outputs:
        out.error(
            "outputValue",
            ErrorCode.INVALID_OUTPUT_FOR_INDICATOR,
            f"{submission.output_value} is not an output of {indicator.id} (outputs: {', '.join(indicator.outputs)})",
        )
    else:
        output = submission.output_value

    values = _check_parameters(submission.parameters, indicator, out)
    return timeframe, output, values


def _check_parameters(raw: Optional[Mapping[str, Any]], indicator: Indicator, out: _Collector) -> Dict[str, ParameterValue]:
    submitted: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    if raw is not None and not isinstance(raw, Mapping):
        out.error("parameters", ErrorCode.PARAMETER_TYPE_MISMATCH, "Parameters must be a mapping of name to value")

    for name in submitted:
        if indicator.get_param(name) is None:
            out.error(f"parameters.{name}", ErrorCode.UNKNOWN_PARAMETER, f"{indicator.id} has no parameter {name!r}")

    values: Dict[str, ParameterValue] = {}
    for param in indicator.params:
        if param.name in submitted and submitted[param.name] is not None and submitted[param.name] != "":
            try:
                values[param.name] = param.type.coerce(submitted[param.name])
            except ValueError as e:
                out.error(
                    f"parameters.{param.name}",
                    ErrorCode.PARAMETER_TYPE_MISMATCH,
                    f"{param.name} must be a {param.type.value}: {e}",
                )
        else:
            values[param.name] = param.default
    return values


def _check_simple_fields(submission: RuleSubmission, indicator: Indicator, out: _Collector):
    """Simple indicators take no timeframe, output or parameters."""
    for field_name, value in (
        ("timeframe", submission.timeframe),
        ("outputValue", submission.output_value),
        ("parameters", submission.parameters),
    ):
        if _present(value):
            out.error(field_name, ErrorCode.UNEXPECTED_FIELD, f"{field_name} is not accepted for simple indicator {indicator.id}")


def validate(
    submission: RuleSubmission,
    catalog: IndicatorCatalog,
    allowed_pairs: Optional[Iterable[str]] = None,
    timeframes: Optional[Iterable[str]] = None,
    rule_id: Optional[str] = None,
) -> ValidationResult:
    """
    Validate a rule submission against the indicator catalog.

    Args:
        submission: Raw payload (see RuleSubmission.from_dict)
        catalog: Indicator catalog snapshot
        allowed_pairs: Accepted pairs; None or empty accepts any non-empty pair
        timeframes: Accepted timeframes for technical indicators (default TIMEFRAMES)
        rule_id: Identifier for the resulting rule (generated if omitted)

    Returns:
        ValidationResult with the Rule on success, otherwise the full error list.
        Unknown delivery channels are warnings and never block the rule.
    """
    out = _Collector()
    if timeframes is None:
        timeframes = TIMEFRAMES

    pair = _check_pair(submission.pair, allowed_pairs, out)
    indicator = _check_indicator(submission.indicator_id, catalog, out)
    comparison = _check_comparison(submission.comparison, indicator, out)

    timeframe = None
    output = SIMPLE_OUTPUT
    parameter_values: Dict[str, ParameterValue] = {}
    if indicator is not None:
        if indicator.is_technical:
            timeframe, output, parameter_values = _check_technical_fields(submission, indicator, timeframes, out)
        else:
            _check_simple_fields(submission, indicator, out)

    target = _check_target(submission.target, out)
    cooldown = _check_cooldown(submission.cooldown, out)
    channels = _check_channels(submission.delivery_channels, out)

    if out.errors:
        logger.info(f"Rule submission rejected: {[(e.field, e.code.value) for e in out.errors]}")
        return ValidationResult(rule=None, errors=out.errors, warnings=out.warnings)

    rule = Rule(
        id=rule_id or new_rule_id(),
        pair=pair,
        indicator_id=indicator.id,
        kind=indicator.kind,
        output=output,
        comparison=comparison,
        target=target,
        timeframe=timeframe,
        parameter_values=parameter_values,
        cooldown=cooldown,
        delivery_channels=channels,
    )
    if out.warnings:
        logger.warning(f"Rule {rule.id} created with dropped channels: {[w.field for w in out.warnings]}")
    return ValidationResult(rule=rule, errors=[], warnings=out.warnings)


def validate_submission(payload: Mapping[str, Any], catalog: IndicatorCatalog, **kwargs) -> ValidationResult:
    """Convenience wrapper taking a raw dict payload."""
    return validate(RuleSubmission.from_dict(payload), catalog, **kwargs)
