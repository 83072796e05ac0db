# -*- coding: utf-8 -*-
"""
Re-trigger suppression for alert rules.

Each rule gets its own CooldownState, created on first evaluation and guarded
by its own lock, so the read-decide-write in evaluate() is atomic per rule
while distinct rules never wait on each other.

One-shot rule (no cooldown):  ARMED --satisfied--> FIRED (stays until rearm)
Cooldown rule (cooldown D):   ARMED --satisfied--> COOLING --(now >= last + D)--> ARMED
Expiry is checked lazily on the next evaluation; there is no timer.
"""
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from loguru import logger


class EvaluationOutcome(str, Enum):
    FIRED = "fired"
    SUPPRESSED = "suppressed"
    IDLE = "idle"


@dataclass
class CooldownState:
    """Per-rule suppression state. Only the tracker mutates it."""
    last_fired_at: Optional[datetime] = None
    fired: bool = False  # one-shot rule already fired


class _ThreadCounters(threading.local):
    """Outcome counters written only by the owning thread, summed in get_stats()."""

    def __init__(self, shards: List[Dict[str, int]], shards_lock: threading.Lock):
        self.counts = dict.fromkeys((o.value for o in EvaluationOutcome), 0)
        with shards_lock:
            shards.append(self.counts)


class _RuleSlot:
    __slots__ = ("lock", "state")

    def __init__(self):
        self.lock = threading.Lock()
        self.state = CooldownState()


class CooldownTracker:
    """
    Decides whether a satisfied rule condition may fire.
    Thread-safe: one lock per rule id.
    """

    def __init__(self):
        self._slots: Dict[str, _RuleSlot] = {}
        # Guards slot creation/removal only, never held during a decision
        self._registry_lock = threading.Lock()
        self._shards: List[Dict[str, int]] = []
        self._shards_lock = threading.Lock()
        self._counters = _ThreadCounters(self._shards, self._shards_lock)

    def _slot(self, rule_id: str) -> _RuleSlot:
        slot = self._slots.get(rule_id)
        if slot is None:
            with self._registry_lock:
                slot = self._slots.get(rule_id)
                if slot is None:
                    slot = _RuleSlot()
                    self._slots[rule_id] = slot
        return slot

    def _count(self, outcome: EvaluationOutcome):
        self._counters.counts[outcome.value] += 1

    def evaluate(
        self,
        rule_id: str,
        condition_satisfied: bool,
        now: datetime,
        cooldown: Optional[timedelta] = None,
    ) -> EvaluationOutcome:
        """
        Decide whether the rule fires at `now`.

        Args:
            rule_id: Rule identifier
            condition_satisfied: Result computed by the market data evaluator
            now: Evaluation timestamp
            cooldown: Rule cooldown; None means one-shot

        Returns:
            FIRED when the rule may fire (state updated),
            SUPPRESSED when it is satisfied but still fired/cooling,
            IDLE when the condition is not satisfied (no state change).
        """
        if not condition_satisfied:
            self._count(EvaluationOutcome.IDLE)
            return EvaluationOutcome.IDLE

        slot = self._slot(rule_id)
        with slot.lock:
            state = slot.state
            if cooldown is None:
                if state.fired:
                    outcome = EvaluationOutcome.SUPPRESSED
                else:
                    state.fired = True
                    state.last_fired_at = now
                    outcome = EvaluationOutcome.FIRED
            else:
                if state.last_fired_at is not None and now - state.last_fired_at < cooldown:
                    outcome = EvaluationOutcome.SUPPRESSED
                else:
                    state.last_fired_at = now
                    outcome = EvaluationOutcome.FIRED

        self._count(outcome)
        if outcome is EvaluationOutcome.FIRED:
            logger.info(f"Rule {rule_id} fired at {now.isoformat()}")
        else:
            logger.debug(f"Rule {rule_id} suppressed at {now.isoformat()}")
        return outcome

    def rearm(self, rule_id: str) -> bool:
        """
        Manually re-arm a rule (one-shot FIRED -> ARMED, cooldown COOLING -> ARMED).

        Returns:
            True if the rule had state to reset
        """
        slot = self._slots.get(rule_id)
        if slot is None:
            return False
        with slot.lock:
            slot.state.fired = False
            slot.state.last_fired_at = None
        logger.info(f"Rule {rule_id} re-armed")
        return True

    def forget(self, rule_id: str) -> None:
        """Drop the state of a deleted rule."""
        with self._registry_lock:
            self._slots.pop(rule_id, None)

    def snapshot(self, rule_id: str) -> Optional[CooldownState]:
        """Copy of a rule's state, or None if it was never evaluated as satisfied."""
        slot = self._slots.get(rule_id)
        if slot is None:
            return None
        with slot.lock:
            return replace(slot.state)

    def get_stats(self) -> Dict:
        with self._shards_lock:
            shards = list(self._shards)
        stats = {o.value: sum(s[o.value] for s in shards) for o in EvaluationOutcome}
        stats["evaluations"] = sum(stats.values())
        stats["tracked_rules"] = len(self._slots)
        return stats


# Global tracker instance (singleton)
_tracker_instance: Optional[CooldownTracker] = None
_tracker_lock = threading.Lock()


def get_tracker() -> CooldownTracker:
    """Get global cooldown tracker instance."""
    global _tracker_instance

    if _tracker_instance is None:
        with _tracker_lock:
            if _tracker_instance is None:
                _tracker_instance = CooldownTracker()

    return _tracker_instance
