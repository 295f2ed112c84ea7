"""
Churn risk API — recompute trigger + read views over the persisted score set.

  POST /v1/churn-risk/recompute          → full recompute, replaces the set
  GET  /v1/churn-risk/scores             → filtered list, highest score first
  GET  /v1/churn-risk/scores/{id}        → one contract
  GET  /v1/churn-risk/summary            → tier counts + MRR at risk
  GET  /v1/churn-risk/status             → last run / last successful run
"""
from __future__ import annotations

from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from churn_risk.schemas.risk_score import (
    ChurnRiskScore,
    RecomputeResult,
    RecomputeStatusResponse,
    RiskSummary,
    RiskTier,
    ScoreFilters,
)
from churn_risk.services.risk_service import ChurnRiskService

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/churn-risk", tags=["churn-risk"])


def get_churn_service(request: Request) -> ChurnRiskService:
    return request.app.state.churn_service


@router.post(
    "/recompute",
    response_model=RecomputeResult,
    summary="Recompute every active contract's churn risk",
    description=(
        "Runs all aggregators, scores every active contract and replaces the "
        "persisted set in one transaction. Concurrent calls are serialized."
    ),
)
async def recompute(
    as_of: Optional[date] = Query(None, description="Reference day (default: today)"),
    service: ChurnRiskService = Depends(get_churn_service),
) -> RecomputeResult:
    logger.info("churn_recompute_triggered", as_of=as_of.isoformat() if as_of else None)
    try:
        return await service.recompute(as_of)
    except Exception as e:
        logger.error("churn_recompute_request_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Churn risk recompute failed: {e}")


@router.get("/scores", response_model=list[ChurnRiskScore])
async def list_scores(
    squad: Optional[str] = None,
    tier: Optional[RiskTier] = None,
    product: Optional[str] = None,
    limit: Optional[int] = Query(None, gt=0),
    service: ChurnRiskService = Depends(get_churn_service),
) -> list[ChurnRiskScore]:
    filters = ScoreFilters(squad=squad, tier=tier, product=product, limit=limit)
    try:
        return await service.list_scores(filters)
    except Exception as e:
        logger.error("churn_scores_read_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to read churn risk scores: {e}")


@router.get("/scores/{contract_id}", response_model=ChurnRiskScore)
async def get_score(
    contract_id: str,
    service: ChurnRiskService = Depends(get_churn_service),
) -> ChurnRiskScore:
    try:
        score = await service.get_score(contract_id)
    except Exception as e:
        logger.error("churn_score_read_failed", contract_id=contract_id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to read churn risk score: {e}")
    if score is None:
        raise HTTPException(status_code=404, detail=f"No churn risk score for contract {contract_id}")
    return score


@router.get("/summary", response_model=RiskSummary)
async def get_summary(service: ChurnRiskService = Depends(get_churn_service)) -> RiskSummary:
    try:
        return await service.get_summary()
    except Exception as e:
        logger.error("churn_summary_read_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to read churn risk summary: {e}")


@router.get("/status", response_model=RecomputeStatusResponse)
async def get_status(service: ChurnRiskService = Depends(get_churn_service)) -> RecomputeStatusResponse:
    try:
        return await service.status()
    except Exception as e:
        logger.error("churn_status_read_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to read recompute status: {e}")


@router.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "service": "cortex-churn-risk"}
