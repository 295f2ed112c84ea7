"""
ChurnRiskService: the long-lived owner of everything a recompute needs.

Created and started by the FastAPI lifespan (or by the command-line job),
stopped on shutdown. Holds the engine, the session factory, the event
publisher and, when configured, the periodic recompute task.

Recompute flow:
  1. Log a `running` row in churn_risk_recompute_runs (own transaction)
  2. In ONE transaction: take the advisory lock, run the aggregators,
     score every contract, replace the persisted set
  3. Mark the run `success` / `failed` (own transaction)
  4. Update metrics, publish the event
"""
from __future__ import annotations

import asyncio
import time
from datetime import date, datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from churn_risk.core.config import Settings
from churn_risk.models.database import build_engine, build_sessionmaker
from churn_risk.schemas.risk_score import (
    ChurnRiskScore,
    RecomputeResult,
    RecomputeStatus,
    RecomputeStatusResponse,
    RiskSummary,
    ScoreFilters,
)
from churn_risk.scoring.engine import build_summary, compute_scores
from churn_risk.services import metrics
from churn_risk.services import risk_repository as repo
from churn_risk.services.aggregators import fetch_active_contracts, load_signal_inputs
from churn_risk.services.event_publisher import EventPublisher

logger = structlog.get_logger()


class ChurnRiskService:

    def __init__(
        self,
        settings: Settings,
        sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.settings = settings
        self.sessionmaker = sessionmaker
        self.publisher = EventPublisher(settings)
        self._engine: Optional[AsyncEngine] = None
        self._schedule_task: Optional[asyncio.Task] = None

    # ── Lifecycle ──

    async def start(self) -> None:
        if self.sessionmaker is None:
            self._engine = build_engine(self.settings.database_url)
            self.sessionmaker = build_sessionmaker(self._engine)
        await self.publisher.start()

        if self.settings.recompute_interval_minutes > 0:
            self._schedule_task = asyncio.create_task(self._run_periodically())
        logger.info(
            "churn_service_started",
            recompute_interval_minutes=self.settings.recompute_interval_minutes,
        )

    async def stop(self) -> None:
        if self._schedule_task is not None:
            self._schedule_task.cancel()
            try:
                await self._schedule_task
            except asyncio.CancelledError:
                pass
            self._schedule_task = None
        await self.publisher.stop()
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        logger.info("churn_service_stopped")

    async def _run_periodically(self) -> None:
        interval = self.settings.recompute_interval_minutes * 60
        while True:
            await asyncio.sleep(interval)
            try:
                await self.recompute()
            except Exception as e:
                # Already logged and recorded as failed; the next tick retries.
                logger.error("scheduled_recompute_failed", error=str(e))

    # ── Recompute ──

    async def recompute(self, as_of: Optional[date] = None) -> RecomputeResult:
        as_of = as_of or date.today()
        t0 = time.perf_counter()

        async with self.sessionmaker() as session, session.begin():
            run_id = await repo.start_run(session, as_of)
        logger.info("churn_recompute_started", run_id=run_id, as_of=as_of.isoformat())

        computed_at = datetime.now(timezone.utc)
        try:
            async with self.sessionmaker() as session, session.begin():
                await repo.acquire_recompute_lock(session)
                contracts = await fetch_active_contracts(session, self.settings)
                inputs = await load_signal_inputs(session, self.settings, as_of)
                scores = compute_scores(contracts, inputs, computed_at)
                await repo.replace_scores(session, scores, self.settings.insert_batch_size)
        except Exception as e:
            elapsed = time.perf_counter() - t0
            logger.error("churn_recompute_failed", run_id=run_id, error=str(e))
            metrics.record_recompute("failed", elapsed)
            async with self.sessionmaker() as session, session.begin():
                await repo.finish_run(session, run_id, RecomputeStatus.FAILED, error=str(e))
            raise

        async with self.sessionmaker() as session, session.begin():
            await repo.finish_run(session, run_id, RecomputeStatus.SUCCESS, total=len(scores))

        summary = build_summary(scores)
        elapsed = time.perf_counter() - t0
        metrics.record_recompute("success", elapsed)
        metrics.record_tier_counts({
            "critico": summary.critico,
            "alto": summary.alto,
            "moderado": summary.moderado,
            "baixo": summary.baixo,
        })

        logger.info(
            "churn_recompute_complete",
            run_id=run_id,
            total=len(scores),
            critico=summary.critico,
            alto=summary.alto,
            elapsed_seconds=round(elapsed, 2),
        )

        result = RecomputeResult(
            run_id=run_id,
            total=len(scores),
            summary=summary,
            computed_at=computed_at,
        )
        await self.publisher.publish_recompute(result)
        return result

    # ── Reads ──

    async def list_scores(self, filters: Optional[ScoreFilters] = None) -> list[ChurnRiskScore]:
        async with self.sessionmaker() as session:
            return await repo.list_scores(session, filters)

    async def get_score(self, contract_id: str) -> Optional[ChurnRiskScore]:
        async with self.sessionmaker() as session:
            return await repo.get_score(session, contract_id)

    async def get_summary(self) -> RiskSummary:
        async with self.sessionmaker() as session:
            return await repo.get_summary(session)

    async def status(self) -> RecomputeStatusResponse:
        async with self.sessionmaker() as session:
            return RecomputeStatusResponse(
                last_run=await repo.last_run(session),
                last_success=await repo.last_run(session, RecomputeStatus.SUCCESS),
            )
