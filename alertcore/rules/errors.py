"""Validation error taxonomy for rule submissions."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from alertcore.rules.rule_defs import Rule


class ErrorCode(str, Enum):
    INVALID_DURATION_FORMAT = "InvalidDurationFormat"
    DURATION_OVERFLOW = "DurationOverflow"
    INDICATOR_NOT_FOUND = "IndicatorNotFound"
    UNKNOWN_PARAMETER = "UnknownParameter"
    PARAMETER_TYPE_MISMATCH = "ParameterTypeMismatch"
    UNEXPECTED_FIELD = "UnexpectedField"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_COMPARISON_FOR_KIND = "InvalidComparisonForKind"
    INVALID_OUTPUT_FOR_INDICATOR = "InvalidOutputForIndicator"
    NON_FINITE_TARGET = "NonFiniteTarget"
    UNKNOWN_CHANNEL = "UnknownChannel"
    UNKNOWN_COMPARISON = "UnknownComparison"
    UNSUPPORTED_PAIR = "UnsupportedPair"
    UNSUPPORTED_TIMEFRAME = "UnsupportedTimeframe"


@dataclass(frozen=True)
class FieldError:
    field: str
    code: ErrorCode
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code.value, "message": self.message}


def group_by_field(errors: List[FieldError]) -> Dict[str, List[Dict[str, str]]]:
    """Field-keyed error map for display next to each form input."""
    grouped: Dict[str, List[Dict[str, str]]] = {}
    for error in errors:
        grouped.setdefault(error.field, []).append(error.to_dict())
    return grouped


class RuleValidationError(ValueError):
    """Raised by ValidationResult.unwrap(); carries every violation found."""

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        summary = ", ".join(f"{e.field}: {e.code.value}" for e in self.errors)
        super().__init__(f"Invalid rule submission ({summary})")

    @property
    def codes(self) -> List[ErrorCode]:
        return [e.code for e in self.errors]

    def error_map(self) -> Dict[str, List[Dict[str, str]]]:
        return group_by_field(self.errors)


@dataclass
class ValidationResult:
    """
    Outcome of validating one submission.

    errors are fatal (no rule is produced); warnings are not (e.g. an unknown
    delivery channel is dropped and reported, the rule is still created).
    """
    rule: Optional[Rule] = None
    errors: List[FieldError] = field(default_factory=list)
    warnings: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.rule is not None and not self.errors

    @property
    def codes(self) -> List[ErrorCode]:
        return [e.code for e in self.errors]

    def errors_for(self, field_name: str) -> List[ErrorCode]:
        return [e.code for e in self.errors if e.field == field_name]

    def error_map(self) -> Dict[str, List[Dict[str, str]]]:
        return group_by_field(self.errors)

    def unwrap(self) -> Rule:
        if not self.ok:
            raise RuleValidationError(self.errors)
        return self.rule
