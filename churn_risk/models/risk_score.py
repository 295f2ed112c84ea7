"""
Owned tables: the persisted score set and the recompute run log.
Schema: cortex_core

churn_risk_scores is fully replaced by every successful recompute.
churn_risk_recompute_runs records each attempt, so readers can tell
the last good snapshot apart from a failed run.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase

SCHEMA = "cortex_core"


class Base(DeclarativeBase):
    pass


class ChurnRiskScoreRow(Base):
    __tablename__ = "churn_risk_scores"
    __table_args__ = {"schema": SCHEMA}

    contract_id = Column(String(100), primary_key=True)
    client_name = Column(String(255), nullable=True)
    tax_id = Column(String(32), nullable=True, index=True)

    # ── Scoring outputs ──
    score = Column(Integer, nullable=False, index=True)
    tier = Column(String(10), nullable=False, index=True)
    factors = Column(JSON, nullable=False)

    # ── Contract context ──
    mrr = Column(Numeric(14, 2), nullable=False, default=0)
    squad = Column(String(100), nullable=True, index=True)
    product = Column(String(100), nullable=True, index=True)
    success_manager = Column(String(255), nullable=True)

    computed_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<ChurnRiskScoreRow {self.contract_id} tier={self.tier} score={self.score}>"


class ChurnRecomputeRun(Base):
    __tablename__ = "churn_risk_recompute_runs"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(10), nullable=False, index=True)  # running | success | failed
    as_of = Column(Date, nullable=False)
    started_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    total = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)

    def __repr__(self):
        return f"<ChurnRecomputeRun {self.id} status={self.status} total={self.total}>"
