"""
Churn Risk Scoring Engine

Orchestrates, per active contract:
  1. Resolve the 7 signal inputs from the aggregator lookups
  2. Score each signal
  3. Composite score = sum of sub-scores, capped at 100
  4. Tier assignment

Pure: all I/O happens in the aggregators before compute_scores is called.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

import structlog

from churn_risk.schemas.risk_score import ChurnRiskScore, RiskFactor, RiskSummary, RiskTier
from churn_risk.scoring import signals
from churn_risk.services.aggregators import ContractRecord, SignalInputs

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════
# Signal weights: max sub-score per signal, in factor order.
# Must sum to 100.
# ═══════════════════════════════════════════════════════════════
SIGNAL_WEIGHTS: dict[str, int] = {
    signals.DELINQUENCY: 25,
    signals.CONTRACT_TENURE: 15,
    signals.PAUSE_HISTORY: 15,
    signals.SQUAD_CHURN: 10,
    signals.PRODUCT_CHURN: 10,
    signals.MRR_TREND: 15,
    signals.FIRST_INVOICE: 10,
}
MAX_SCORE = 100
assert sum(SIGNAL_WEIGHTS.values()) == MAX_SCORE, "Weights must sum to 100"


# ═══════════════════════════════════════════════════════════════
# Tier thresholds
#   score >= 76  → critico
#   score >= 51  → alto
#   score >= 31  → moderado
#   otherwise    → baixo
# ═══════════════════════════════════════════════════════════════
TIER_THRESHOLDS = [
    (76, RiskTier.CRITICO),
    (51, RiskTier.ALTO),
    (31, RiskTier.MODERADO),
]

AT_RISK_TIERS = (RiskTier.CRITICO, RiskTier.ALTO)


def classify_tier(score: int) -> RiskTier:
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return RiskTier.BAIXO


def score_signals(contract: ContractRecord, inputs: SignalInputs) -> list[signals.SignalResult]:
    """Evaluate the 7 signals for one contract, in factor order."""
    tax_id = contract.tax_id
    delinquency = inputs.delinquency.get(tax_id) if tax_id else None
    squad_churn = inputs.squad_churn.get(contract.squad) if contract.squad else None
    product_churn = inputs.product_churn.get(contract.product) if contract.product else None

    return [
        signals.score_delinquency(delinquency.max_days_overdue if delinquency else None),
        signals.score_contract_tenure(contract.tenure_months(inputs.as_of)),
        signals.score_pause_history(contract.pause_date is not None),
        signals.score_squad_churn(squad_churn),
        signals.score_product_churn(product_churn),
        signals.score_mrr_trend(inputs.mrr_trend.get(contract.contract_id)),
        signals.score_first_invoice(bool(tax_id) and tax_id in inputs.first_invoice_unpaid),
    ]


def score_contract(
    contract: ContractRecord,
    inputs: SignalInputs,
    computed_at: datetime,
) -> ChurnRiskScore:
    factors: list[RiskFactor] = []
    total = 0

    for result in score_signals(contract, inputs):
        weight = SIGNAL_WEIGHTS[result.signal]
        value = max(0, min(result.value, weight))
        total += value
        factors.append(RiskFactor(
            signal=result.signal,
            max_weight=weight,
            value=value,
            description=result.description,
        ))

    score = min(MAX_SCORE, total)

    return ChurnRiskScore(
        contract_id=contract.contract_id,
        client_name=contract.client_name,
        tax_id=contract.tax_id,
        score=score,
        tier=classify_tier(score),
        factors=factors,
        mrr=contract.mrr,
        squad=contract.squad,
        product=contract.product,
        success_manager=contract.success_manager,
        computed_at=computed_at,
    )


def compute_scores(
    contracts: Iterable[ContractRecord],
    inputs: SignalInputs,
    computed_at: Optional[datetime] = None,
) -> list[ChurnRiskScore]:
    """
    Main scoring entry point.
    Returns one score per contract, highest score first; ties by contract id.
    """
    computed_at = computed_at or datetime.now(timezone.utc)
    results = [score_contract(contract, inputs, computed_at) for contract in contracts]
    results.sort(key=lambda s: (-s.score, s.contract_id))

    logger.info(
        "churn_scores_computed",
        contracts=len(results),
        as_of=inputs.as_of.isoformat(),
    )
    return results


def build_summary(scores: Iterable[ChurnRiskScore]) -> RiskSummary:
    summary = RiskSummary()
    for s in scores:
        summary.total_contracts += 1
        if s.tier == RiskTier.CRITICO:
            summary.critico += 1
            summary.critico_mrr += s.mrr
        elif s.tier == RiskTier.ALTO:
            summary.alto += 1
            summary.alto_mrr += s.mrr
        elif s.tier == RiskTier.MODERADO:
            summary.moderado += 1
        else:
            summary.baixo += 1
    summary.at_risk_mrr = summary.critico_mrr + summary.alto_mrr
    return summary
