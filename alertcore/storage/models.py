from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class AlertRuleRecord(Base):
    __tablename__ = "alert_rules"
    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    pair: Mapped[str] = mapped_column(String(20), nullable=False)               # ex: BTC/USDT
    indicator_id: Mapped[str] = mapped_column(String(32), nullable=False)       # ex: PRICE, RSI
    kind: Mapped[str] = mapped_column(String(10), nullable=False)               # simple | technical
    output: Mapped[str] = mapped_column(String(40), nullable=False)
    comparison: Mapped[str] = mapped_column(String(10), nullable=False)         # ABOVE, BELOW, PCTCHG, 24HRCHG
    target: Mapped[float] = mapped_column(Float, nullable=False)
    timeframe: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)  # technical only
    parameter_values: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    cooldown_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # NULL = one-shot
    delivery_channels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_alert_rules_pair", "pair"),
    )
