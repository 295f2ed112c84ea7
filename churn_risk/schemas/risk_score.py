"""
Churn risk payloads served to the dashboard.

A score row is produced by a full recompute and read back unchanged;
the summary is always derived from the persisted set.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiskTier(str, Enum):
    BAIXO = "baixo"
    MODERADO = "moderado"
    ALTO = "alto"
    CRITICO = "critico"


class RiskFactor(BaseModel):
    """One signal's contribution to the composite score."""
    signal: str
    max_weight: int
    value: int = Field(ge=0)
    description: str


class ChurnRiskScore(BaseModel):
    contract_id: str
    client_name: Optional[str] = None
    tax_id: Optional[str] = None

    score: int = Field(ge=0, le=100, description="Sum of the 7 signal sub-scores")
    tier: RiskTier
    factors: list[RiskFactor] = Field(description="Always 7 entries, fixed signal order")

    mrr: float = 0.0
    squad: Optional[str] = None
    product: Optional[str] = None
    success_manager: Optional[str] = None
    computed_at: datetime


class RiskSummary(BaseModel):
    total_contracts: int = 0
    critico: int = 0
    alto: int = 0
    moderado: int = 0
    baixo: int = 0
    at_risk_mrr: float = Field(0.0, description="MRR of critico + alto contracts")
    critico_mrr: float = 0.0
    alto_mrr: float = 0.0


class ScoreFilters(BaseModel):
    squad: Optional[str] = None
    tier: Optional[RiskTier] = None
    product: Optional[str] = None
    limit: Optional[int] = Field(None, gt=0)


class RecomputeResult(BaseModel):
    run_id: int
    total: int
    summary: RiskSummary
    computed_at: datetime


class RecomputeStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class RecomputeRunInfo(BaseModel):
    """Bookkeeping for one recompute attempt, kept apart from the score data."""
    id: int
    status: RecomputeStatus
    started_at: datetime
    finished_at: Optional[datetime] = None
    total: Optional[int] = None
    error: Optional[str] = None


class RecomputeStatusResponse(BaseModel):
    last_run: Optional[RecomputeRunInfo] = None
    last_success: Optional[RecomputeRunInfo] = Field(
        None, description="The run that produced the currently persisted set",
    )
