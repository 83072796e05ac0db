from typing import List, Optional

from loguru import logger
from sqlalchemy import select

from alertcore.rules.rule_defs import Rule
from alertcore.storage.models import AlertRuleRecord, Base


def _to_record(rule: Rule) -> AlertRuleRecord:
    data = rule.to_dict()
    return AlertRuleRecord(
        id=data["id"],
        pair=data["pair"],
        indicator_id=data["indicator_id"],
        kind=data["kind"],
        output=data["output"],
        comparison=data["comparison"],
        target=data["target"],
        timeframe=data["timeframe"],
        parameter_values=data["parameter_values"],
        cooldown_seconds=data["cooldown_seconds"],
        delivery_channels=data["delivery_channels"],
        enabled=True,
        created_at=rule.created_at,
    )


def _to_rule(record: AlertRuleRecord) -> Rule:
    return Rule.from_dict({
        "id": record.id,
        "pair": record.pair,
        "indicator_id": record.indicator_id,
        "kind": record.kind,
        "output": record.output,
        "comparison": record.comparison,
        "target": record.target,
        "timeframe": record.timeframe,
        "parameter_values": record.parameter_values,
        "cooldown_seconds": record.cooldown_seconds,
        "delivery_channels": record.delivery_channels,
        "created_at": record.created_at,
    })


class RuleRepository:
    """Stores validated rules. Rows are turned back into Rules through the same shape checks."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def init_db(self):
        with self.session_factory() as session:
            Base.metadata.create_all(bind=session.get_bind())

    def save(self, rule: Rule) -> str:
        with self.session_factory() as session:
            session.merge(_to_record(rule))
            session.commit()
        logger.debug(f"Rule saved: {rule.id}")
        return rule.id

    def get(self, rule_id: str, include_disabled: bool = False) -> Optional[Rule]:
        with self.session_factory() as session:
            record = session.get(AlertRuleRecord, rule_id)
            if record is None or (not record.enabled and not include_disabled):
                return None
            return _to_rule(record)

    def list(self, include_disabled: bool = False) -> List[Rule]:
        with self.session_factory() as session:
            stmt = select(AlertRuleRecord).order_by(AlertRuleRecord.created_at)
            if not include_disabled:
                stmt = stmt.where(AlertRuleRecord.enabled.is_(True))
            return [_to_rule(r) for r in session.scalars(stmt)]

    def set_enabled(self, rule_id: str, enabled: bool) -> bool:
        with self.session_factory() as session:
            record = session.get(AlertRuleRecord, rule_id)
            if record is None:
                return False
            record.enabled = enabled
            session.commit()
            return True

    def delete(self, rule_id: str) -> bool:
        with self.session_factory() as session:
            record = session.get(AlertRuleRecord, rule_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True
