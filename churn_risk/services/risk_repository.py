"""
risk_repository.py
──────────────────
Reads and writes for cortex_core.churn_risk_scores and the recompute run log.

Callers own the transaction. replace_scores is meant to run inside the same
transaction that took the recompute lock, so the delete and the inserts
commit together: readers see either the previous set or the new one.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from churn_risk.models.risk_score import ChurnRecomputeRun, ChurnRiskScoreRow
from churn_risk.schemas.risk_score import (
    ChurnRiskScore,
    RecomputeRunInfo,
    RecomputeStatus,
    RiskFactor,
    RiskSummary,
    RiskTier,
    ScoreFilters,
)

logger = structlog.get_logger()

# Arbitrary but fixed key for pg_advisory_xact_lock; one writer at a time.
RECOMPUTE_LOCK_KEY = 7_347_100_001


async def acquire_recompute_lock(session: AsyncSession) -> None:
    """Blocks until no other recompute holds the lock; released on commit/rollback."""
    await session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": RECOMPUTE_LOCK_KEY})


def _to_row(score: ChurnRiskScore) -> dict:
    return {
        "contract_id": score.contract_id,
        "client_name": score.client_name,
        "tax_id": score.tax_id,
        "score": score.score,
        "tier": score.tier.value,
        "factors": [f.model_dump() for f in score.factors],
        "mrr": score.mrr,
        "squad": score.squad,
        "product": score.product,
        "success_manager": score.success_manager,
        "computed_at": score.computed_at,
    }


def _from_row(row: ChurnRiskScoreRow) -> ChurnRiskScore:
    return ChurnRiskScore(
        contract_id=row.contract_id,
        client_name=row.client_name,
        tax_id=row.tax_id,
        score=row.score,
        tier=RiskTier(row.tier),
        factors=[RiskFactor(**f) for f in (row.factors or [])],
        mrr=float(row.mrr or 0),
        squad=row.squad,
        product=row.product,
        success_manager=row.success_manager,
        computed_at=row.computed_at,
    )


async def replace_scores(
    session: AsyncSession,
    scores: list[ChurnRiskScore],
    batch_size: int = 50,
) -> int:
    """Delete the previous set and insert the new one in batches. Returns rows written."""
    await session.execute(delete(ChurnRiskScoreRow))

    rows = [_to_row(s) for s in scores]
    for start in range(0, len(rows), batch_size):
        await session.execute(insert(ChurnRiskScoreRow), rows[start:start + batch_size])

    logger.info("churn_scores_written", rows=len(rows), batch_size=batch_size)
    return len(rows)


async def list_scores(session: AsyncSession, filters: Optional[ScoreFilters] = None) -> list[ChurnRiskScore]:
    filters = filters or ScoreFilters()
    stmt = select(ChurnRiskScoreRow)

    if filters.squad:
        stmt = stmt.where(ChurnRiskScoreRow.squad == filters.squad)
    if filters.tier:
        stmt = stmt.where(ChurnRiskScoreRow.tier == filters.tier.value)
    if filters.product:
        stmt = stmt.where(ChurnRiskScoreRow.product == filters.product)

    stmt = stmt.order_by(ChurnRiskScoreRow.score.desc(), ChurnRiskScoreRow.contract_id.asc())
    if filters.limit:
        stmt = stmt.limit(filters.limit)

    result = await session.execute(stmt)
    return [_from_row(r) for r in result.scalars().all()]


async def get_score(session: AsyncSession, contract_id: str) -> Optional[ChurnRiskScore]:
    row = await session.get(ChurnRiskScoreRow, contract_id)
    return _from_row(row) if row else None


async def get_summary(session: AsyncSession) -> RiskSummary:
    t = ChurnRiskScoreRow
    at_risk = [tier.value for tier in (RiskTier.CRITICO, RiskTier.ALTO)]
    stmt = select(
        func.count().label("total"),
        func.count().filter(t.tier == RiskTier.CRITICO.value).label("critico"),
        func.count().filter(t.tier == RiskTier.ALTO.value).label("alto"),
        func.count().filter(t.tier == RiskTier.MODERADO.value).label("moderado"),
        func.count().filter(t.tier == RiskTier.BAIXO.value).label("baixo"),
        func.coalesce(func.sum(t.mrr).filter(t.tier.in_(at_risk)), 0).label("at_risk_mrr"),
        func.coalesce(func.sum(t.mrr).filter(t.tier == RiskTier.CRITICO.value), 0).label("critico_mrr"),
        func.coalesce(func.sum(t.mrr).filter(t.tier == RiskTier.ALTO.value), 0).label("alto_mrr"),
    )
    row = (await session.execute(stmt)).one()

    return RiskSummary(
        total_contracts=int(row.total or 0),
        critico=int(row.critico or 0),
        alto=int(row.alto or 0),
        moderado=int(row.moderado or 0),
        baixo=int(row.baixo or 0),
        at_risk_mrr=float(row.at_risk_mrr or 0),
        critico_mrr=float(row.critico_mrr or 0),
        alto_mrr=float(row.alto_mrr or 0),
    )


# ─── Recompute run log ────────────────────────────────────────────

def _run_info(run: ChurnRecomputeRun) -> RecomputeRunInfo:
    return RecomputeRunInfo(
        id=run.id,
        status=RecomputeStatus(run.status),
        started_at=run.started_at,
        finished_at=run.finished_at,
        total=run.total,
        error=run.error,
    )


async def start_run(session: AsyncSession, as_of: date) -> int:
    run = ChurnRecomputeRun(
        status=RecomputeStatus.RUNNING.value,
        as_of=as_of,
        started_at=datetime.now(timezone.utc),
    )
    session.add(run)
    await session.flush()
    return run.id


async def finish_run(
    session: AsyncSession,
    run_id: int,
    status: RecomputeStatus,
    total: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    await session.execute(
        update(ChurnRecomputeRun)
        .where(ChurnRecomputeRun.id == run_id)
        .values(
            status=status.value,
            finished_at=datetime.now(timezone.utc),
            total=total,
            error=error,
        )
    )


async def last_run(session: AsyncSession, status: Optional[RecomputeStatus] = None) -> Optional[RecomputeRunInfo]:
    stmt = select(ChurnRecomputeRun)
    if status is not None:
        stmt = stmt.where(ChurnRecomputeRun.status == status.value)
    stmt = stmt.order_by(ChurnRecomputeRun.started_at.desc(), ChurnRecomputeRun.id.desc()).limit(1)
    run = (await session.execute(stmt)).scalar_one_or_none()
    return _run_info(run) if run else None

