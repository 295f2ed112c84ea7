"""
Churn risk signals — 7 scorer definitions

Each signal:
  1. Takes one normalized input resolved by the aggregators
  2. Maps it to a band
  3. Returns the band's sub-score plus a description carrying the input value

Sub-scores are bounded by the signal's max weight; the weights sum to 100,
so the composite is a plain sum.

Convention: HIGHER score = HIGHER churn risk.
Missing input is never an error; every signal has a defined default band.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SignalResult:
    signal: str
    max_weight: int
    value: int
    description: str


DELINQUENCY = "Delinquency"
CONTRACT_TENURE = "Contract Tenure"
PAUSE_HISTORY = "Pause History"
SQUAD_CHURN = "Squad Churn"
PRODUCT_CHURN = "Product Churn"
MRR_TREND = "MRR Trend"
FIRST_INVOICE = "First Invoice"


# ═══════════════════════════════════════════════════════════════
# 1. DELINQUENCY  (max 25)
#    Max days overdue across the tax ID's unpaid invoices
# ═══════════════════════════════════════════════════════════════
def score_delinquency(max_days_overdue: Optional[int]) -> SignalResult:
    if not max_days_overdue or max_days_overdue <= 0:
        return SignalResult(DELINQUENCY, 25, 0, "No overdue invoices")

    days = max_days_overdue
    if days <= 15:
        return SignalResult(DELINQUENCY, 25, 5, f"{days} days overdue (mild)")
    elif days <= 30:
        return SignalResult(DELINQUENCY, 25, 10, f"{days} days overdue (moderate)")
    elif days <= 60:
        return SignalResult(DELINQUENCY, 25, 17, f"{days} days overdue (severe)")
    elif days <= 90:
        return SignalResult(DELINQUENCY, 25, 22, f"{days} days overdue (very severe)")
    else:
        return SignalResult(DELINQUENCY, 25, 25, f"{days} days overdue (critical)")


# ═══════════════════════════════════════════════════════════════
# 2. CONTRACT TENURE  (max 15)
#    Months since contract start; newer contracts churn more
# ═══════════════════════════════════════════════════════════════
def score_contract_tenure(months: Optional[float]) -> SignalResult:
    if not months or months < 0:
        months = 0.0

    if months < 2:
        return SignalResult(CONTRACT_TENURE, 15, 15, f"Very recent contract ({months:.1f} months)")
    elif months < 3:
        return SignalResult(CONTRACT_TENURE, 15, 12, f"Recent contract ({months:.1f} months)")
    elif months < 6:
        return SignalResult(CONTRACT_TENURE, 15, 8, f"{months:.1f} months under contract")
    elif months < 12:
        return SignalResult(CONTRACT_TENURE, 15, 4, f"{months:.1f} months under contract")
    else:
        return SignalResult(CONTRACT_TENURE, 15, 0, f"Mature contract ({months:.1f} months)")


# ═══════════════════════════════════════════════════════════════
# 3. PAUSE HISTORY  (max 15)
# ═══════════════════════════════════════════════════════════════
def score_pause_history(was_paused: bool) -> SignalResult:
    if was_paused:
        return SignalResult(PAUSE_HISTORY, 15, 15, "Contract has been paused before")
    return SignalResult(PAUSE_HISTORY, 15, 0, "Never paused")


# ═══════════════════════════════════════════════════════════════
# 4-5. SQUAD / PRODUCT CHURN RATE  (max 10 each)
#      Trailing-window churn % for the contract's squad or product
# ═══════════════════════════════════════════════════════════════
def _score_churn_rate(signal: str, dimension: str, churn_rate: Optional[float]) -> SignalResult:
    if not churn_rate or churn_rate <= 0:
        return SignalResult(signal, 10, 0, f"No recent churn in {dimension}")

    if churn_rate < 2:
        return SignalResult(signal, 10, 2, f"{dimension.capitalize()} churn: {churn_rate:.1f}% (low)")
    elif churn_rate < 5:
        return SignalResult(signal, 10, 5, f"{dimension.capitalize()} churn: {churn_rate:.1f}%")
    elif churn_rate < 8:
        return SignalResult(signal, 10, 8, f"{dimension.capitalize()} churn: {churn_rate:.1f}% (elevated)")
    else:
        return SignalResult(signal, 10, 10, f"{dimension.capitalize()} churn: {churn_rate:.1f}% (high)")


def score_squad_churn(churn_rate: Optional[float]) -> SignalResult:
    return _score_churn_rate(SQUAD_CHURN, "squad", churn_rate)


def score_product_churn(churn_rate: Optional[float]) -> SignalResult:
    return _score_churn_rate(PRODUCT_CHURN, "product", churn_rate)


# ═══════════════════════════════════════════════════════════════
# 6. MRR TREND  (max 15)
#    % change in MRR against the snapshot ~90 days back.
#    No comparison available scores 5, not 0: unknown is not safe.
# ═══════════════════════════════════════════════════════════════
def score_mrr_trend(change_pct: Optional[float]) -> SignalResult:
    if change_pct is None:
        return SignalResult(MRR_TREND, 15, 5, "Insufficient historical data")

    drop = abs(change_pct)
    if change_pct < -20:
        return SignalResult(MRR_TREND, 15, 15, f"MRR down {drop:.0f}% over the last 3 months")
    elif change_pct < -10:
        return SignalResult(MRR_TREND, 15, 12, f"MRR down {drop:.0f}% over the last 3 months")
    elif change_pct < -5:
        return SignalResult(MRR_TREND, 15, 8, f"MRR down {drop:.0f}%")
    elif change_pct < 0:
        return SignalResult(MRR_TREND, 15, 4, f"MRR slightly down ({drop:.0f}%)")
    elif change_pct > 0:
        return SignalResult(MRR_TREND, 15, 0, f"MRR up {change_pct:.0f}%")
    else:
        return SignalResult(MRR_TREND, 15, 0, "MRR stable (0%)")


# ═══════════════════════════════════════════════════════════════
# 7. FIRST INVOICE  (max 10)
#    Entity's chronologically first invoice left unpaid
# ═══════════════════════════════════════════════════════════════
def score_first_invoice(first_unpaid: bool) -> SignalResult:
    if first_unpaid:
        return SignalResult(FIRST_INVOICE, 10, 10, "First invoice was not paid")
    return SignalResult(FIRST_INVOICE, 10, 0, "First invoice paid normally")
