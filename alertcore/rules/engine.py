"""
Alert engine - entry point for the UI/API layer and the evaluation feed.

Rule intake goes catalog -> validator -> repository. Evaluation decisions
pushed by the market data collaborator go tracker -> router; delivery only
starts after the cooldown decision is final, so a slow or failing channel
can never re-open the window or cause a second firing.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from alertcore.indicators.catalog import IndicatorCatalog
from alertcore.notif.router import DeliveryReport, DeliveryRouter, FiringContext
from alertcore.notif.throttle import CooldownTracker, EvaluationOutcome
from alertcore.rules.errors import FieldError
from alertcore.rules.rule_defs import Rule, RuleSubmission
from alertcore.rules.validator import validate
from alertcore.storage.repo import RuleRepository
from alertcore.utils.durations import format_duration


class RuleNotFound(KeyError):
    def __init__(self, rule_id: str):
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self):
        return f"Unknown rule: {self.rule_id}"


@dataclass
class SubmissionResult:
    """Either rule_id is set, or errors holds every violation keyed by field."""
    rule_id: Optional[str] = None
    errors: Dict[str, List[Dict[str, str]]] = field(default_factory=dict)
    warnings: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.rule_id is not None


@dataclass
class EvaluationResult:
    rule_id: str
    outcome: EvaluationOutcome
    report: Optional[DeliveryReport] = None


class AlertEngine:
    """
    Wires catalog, validator, rule storage, cooldown tracker and delivery router.
    """

    def __init__(
        self,
        catalog: IndicatorCatalog,
        repository: RuleRepository,
        router: DeliveryRouter,
        tracker: Optional[CooldownTracker] = None,
        allowed_pairs: Optional[Iterable[str]] = None,
        timeframes: Optional[Iterable[str]] = None,
    ):
        self.catalog = catalog
        self.repository = repository
        self.router = router
        self.tracker = tracker or CooldownTracker()
        self.allowed_pairs = list(allowed_pairs) if allowed_pairs is not None else None
        self.timeframes = list(timeframes) if timeframes is not None else None

        # Rules are immutable once stored; cache them for the evaluation path
        self._rules: Dict[str, Rule] = {}
        self._rules_lock = threading.Lock()

    def list_indicators(self) -> List[Dict[str, Any]]:
        """Full catalog for the alert form."""
        return [indicator.to_dict() for indicator in self.catalog.list()]

    def submit_rule(self, payload: Mapping[str, Any]) -> SubmissionResult:
        """
        Validate and store a rule submission.

        Returns:
            SubmissionResult with the new rule id, or the field-keyed error map.
        """
        result = validate(
            RuleSubmission.from_dict(payload),
            self.catalog,
            allowed_pairs=self.allowed_pairs,
            timeframes=self.timeframes,
        )
        if not result.ok:
            return SubmissionResult(errors=result.error_map(), warnings=result.warnings)

        rule = result.rule
        self.repository.save(rule)
        with self._rules_lock:
            self._rules[rule.id] = rule
        cooldown = "one-shot" if rule.is_one_shot else f"cooldown {format_duration(rule.cooldown)}"
        logger.info(f"Rule created: {rule.id} ({rule.pair} {rule.indicator_id} {rule.comparison.value} {rule.target}, {cooldown})")
        return SubmissionResult(rule_id=rule.id, warnings=result.warnings)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        with self._rules_lock:
            rule = self._rules.get(rule_id)
        if rule is not None:
            return rule

        rule = self.repository.get(rule_id)
        if rule is not None:
            with self._rules_lock:
                self._rules[rule_id] = rule
        return rule

    def process_evaluation(
        self,
        rule_id: str,
        condition_satisfied: bool,
        timestamp: datetime,
        observed_value: Optional[float] = None,
    ) -> EvaluationResult:
        """
        Handle one (rule_id, condition_satisfied, timestamp) decision from the feed.

        Unknown or disabled rules are reported IDLE and logged.
        """
        rule = self.get_rule(rule_id)
        if rule is None:
            logger.warning(f"Evaluation for unknown or disabled rule {rule_id} ignored")
            return EvaluationResult(rule_id, EvaluationOutcome.IDLE)

        outcome = self.tracker.evaluate(rule.id, condition_satisfied, timestamp, rule.cooldown)
        if outcome is not EvaluationOutcome.FIRED:
            return EvaluationResult(rule_id, outcome)

        context = FiringContext.from_rule(rule, timestamp, observed_value)
        report = self.router.dispatch(rule, context)
        if report.all_failed:
            logger.error(f"Rule {rule_id} fired but every channel failed: {report.to_dict()['results']}")
        return EvaluationResult(rule_id, outcome, report)

    def process_feed(self, decisions: Iterable[Tuple]) -> List[EvaluationResult]:
        """Process (rule_id, condition_satisfied, timestamp[, observed_value]) tuples in order."""
        return [self.process_evaluation(*decision) for decision in decisions]

    def rearm_rule(self, rule_id: str) -> bool:
        if self.get_rule(rule_id) is None:
            raise RuleNotFound(rule_id)
        return self.tracker.rearm(rule_id)

    def disable_rule(self, rule_id: str) -> bool:
        with self._rules_lock:
            self._rules.pop(rule_id, None)
        return self.repository.set_enabled(rule_id, False)

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule and its cooldown state."""
        with self._rules_lock:
            self._rules.pop(rule_id, None)
        self.tracker.forget(rule_id)
        deleted = self.repository.delete(rule_id)
        if deleted:
            logger.info(f"Rule deleted: {rule_id}")
        return deleted

    def get_stats(self) -> Dict:
        return self.tracker.get_stats()


# Global engine instance (lazy-loaded)
_engine_instance: Optional[AlertEngine] = None


def get_alert_engine() -> AlertEngine:
    """Get global alert engine built from config (singleton pattern)."""
    global _engine_instance

    if _engine_instance is None:
        from alertcore.config import (
            get_alert_timezone,
            get_allowed_pairs,
            get_delivery_config,
            get_timeframes,
        )
        from alertcore.indicators.catalog import get_catalog
        from alertcore.notif.senders import build_router
        from alertcore.notif.throttle import get_tracker
        from alertcore.storage.db import DB_URL, make_session_factory

        repository = RuleRepository(make_session_factory(DB_URL))
        repository.init_db()

        _engine_instance = AlertEngine(
            catalog=get_catalog(),
            repository=repository,
            router=build_router(get_delivery_config(), get_alert_timezone()),
            tracker=get_tracker(),
            allowed_pairs=get_allowed_pairs(),
            timeframes=get_timeframes(),
        )

    return _engine_instance
