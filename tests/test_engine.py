"""
Integration tests for the churn risk engine.
Scores realistic contracts against in-memory aggregator lookups.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from churn_risk.schemas.risk_score import RiskTier
from churn_risk.scoring import engine, signals
from churn_risk.scoring.engine import SIGNAL_WEIGHTS, build_summary, classify_tier, compute_scores
from churn_risk.services.aggregators import ContractRecord, DelinquencyRecord, SignalInputs

AS_OF = date(2026, 3, 31)
COMPUTED_AT = datetime(2026, 3, 31, 6, 0, tzinfo=timezone.utc)

EXPECTED_ORDER = [
    "Delinquency", "Contract Tenure", "Pause History",
    "Squad Churn", "Product Churn", "MRR Trend", "First Invoice",
]


def _make_contract(**overrides) -> ContractRecord:
    """Baseline: mature, never paused, tax ID and squad/product set."""
    kwargs = {
        "contract_id": "CTR-001",
        "client_name": "Acme Ltda",
        "tax_id": "12.345.678/0001-90",
        "mrr": 5_000.0,
        "squad": "Growth",
        "product": "Performance",
        "success_manager": "Ana",
        "start_date": AS_OF - timedelta(days=800),
        "pause_date": None,
    }
    kwargs.update(overrides)
    return ContractRecord(**kwargs)


def _make_inputs(**overrides) -> SignalInputs:
    inputs = SignalInputs(as_of=AS_OF)
    for key, value in overrides.items():
        setattr(inputs, key, value)
    return inputs


class TestTierBoundaries:
    @pytest.mark.parametrize("score,tier", [
        (100, RiskTier.CRITICO),
        (76, RiskTier.CRITICO),
        (75, RiskTier.ALTO),
        (51, RiskTier.ALTO),
        (50, RiskTier.MODERADO),
        (31, RiskTier.MODERADO),
        (30, RiskTier.BAIXO),
        (0, RiskTier.BAIXO),
    ])
    def test_boundary(self, score, tier):
        assert classify_tier(score) == tier


class TestEngineEndToEnd:

    def test_documented_scenario_alto(self):
        """95 days overdue, 1 month old, squad 3%, product 9%, MRR -25%, first invoice paid."""
        contract = _make_contract(start_date=AS_OF - timedelta(days=30))
        inputs = _make_inputs(
            delinquency={contract.tax_id: DelinquencyRecord(max_days_overdue=95, overdue_items=3)},
            squad_churn={"Growth": 3.0},
            product_churn={"Performance": 9.0},
            mrr_trend={"CTR-001": -25.0},
        )

        [result] = compute_scores([contract], inputs, COMPUTED_AT)

        assert [f.value for f in result.factors] == [25, 15, 0, 5, 10, 15, 0]
        assert result.score == 70
        assert result.tier == RiskTier.ALTO

    def test_all_defaults_contract(self):
        """No data anywhere: 7 factors still present, MRR trend defaults to 5."""
        contract = _make_contract(tax_id=None, squad=None, product=None, start_date=None)
        [result] = compute_scores([contract], _make_inputs(), COMPUTED_AT)

        assert [f.signal for f in result.factors] == EXPECTED_ORDER
        assert [f.value for f in result.factors] == [0, 15, 0, 0, 0, 5, 0]
        assert result.score == 20
        assert result.tier == RiskTier.BAIXO

    def test_healthy_mature_contract(self):
        contract = _make_contract()
        inputs = _make_inputs(mrr_trend={"CTR-001": 4.0})
        [result] = compute_scores([contract], inputs, COMPUTED_AT)

        assert result.score == 0
        assert result.tier == RiskTier.BAIXO

    def test_everything_wrong_is_100_critico(self):
        contract = _make_contract(start_date=AS_OF, pause_date=date(2026, 3, 1))
        inputs = _make_inputs(
            delinquency={contract.tax_id: DelinquencyRecord(max_days_overdue=200, overdue_items=5)},
            squad_churn={"Growth": 12.0},
            product_churn={"Performance": 8.0},
            mrr_trend={"CTR-001": -60.0},
            first_invoice_unpaid={contract.tax_id},
        )
        [result] = compute_scores([contract], inputs, COMPUTED_AT)

        assert result.score == 100
        assert result.tier == RiskTier.CRITICO

    def test_factors_carry_weights(self):
        [result] = compute_scores([_make_contract()], _make_inputs(), COMPUTED_AT)
        assert [f.max_weight for f in result.factors] == [25, 15, 15, 10, 10, 15, 10]
        assert result.score == sum(f.value for f in result.factors)

    def test_contract_context_copied(self):
        [result] = compute_scores([_make_contract()], _make_inputs(), COMPUTED_AT)
        assert result.client_name == "Acme Ltda"
        assert result.mrr == 5_000.0
        assert result.success_manager == "Ana"
        assert result.computed_at == COMPUTED_AT

    def test_unknown_squad_scores_zero(self):
        contract = _make_contract(squad="Unknown")
        [result] = compute_scores([contract], _make_inputs(squad_churn={"Growth": 9.0}), COMPUTED_AT)
        assert result.factors[3].value == 0

    def test_mrr_trend_null_in_lookup_scores_default(self):
        [result] = compute_scores([_make_contract()], _make_inputs(mrr_trend={"CTR-001": None}), COMPUTED_AT)
        assert result.factors[5].value == 5


class TestOrdering:
    def test_sorted_desc_with_contract_id_tie_break(self):
        contracts = [
            _make_contract(contract_id="B"),
            _make_contract(contract_id="A"),
            _make_contract(contract_id="C", pause_date=date(2025, 1, 1)),
        ]
        results = compute_scores(contracts, _make_inputs(), COMPUTED_AT)
        assert [r.contract_id for r in results] == ["C", "A", "B"]

    def test_idempotent(self):
        contracts = [_make_contract(contract_id=f"CTR-{i}", pause_date=date(2025, 1, 1) if i % 2 else None)
                     for i in range(10)]
        inputs = _make_inputs(squad_churn={"Growth": 4.0})
        first = compute_scores(contracts, inputs, COMPUTED_AT)
        second = compute_scores(contracts, inputs, COMPUTED_AT)
        assert first == second


class TestClamping:
    def test_weights_sum_to_100(self):
        assert sum(SIGNAL_WEIGHTS.values()) == 100
        assert list(SIGNAL_WEIGHTS) == EXPECTED_ORDER

    def test_oversized_subscore_is_capped(self, monkeypatch):
        monkeypatch.setattr(
            engine.signals, "score_delinquency",
            lambda days: signals.SignalResult(signals.DELINQUENCY, 25, 40, "bogus"),
        )
        [result] = compute_scores([_make_contract()], _make_inputs(), COMPUTED_AT)
        assert result.factors[0].value == 25
        assert 0 <= result.score <= 100


class TestSummary:
    def test_counts_and_mrr(self):
        contracts = [
            _make_contract(contract_id="crit", tax_id="T1", squad="Hot", mrr=1_000.0,
                           start_date=AS_OF, pause_date=date(2026, 1, 1)),
            _make_contract(contract_id="alto", tax_id="T2", mrr=2_000.0,
                           start_date=AS_OF, pause_date=date(2026, 1, 1)),
            _make_contract(contract_id="low", tax_id="T3", mrr=3_000.0),
        ]
        inputs = _make_inputs(
            delinquency={"T1": DelinquencyRecord(95, 4), "T2": DelinquencyRecord(45, 1)},
            squad_churn={"Hot": 9.0},
            mrr_trend={"crit": -30.0, "alto": 2.0, "low": 0.0},
            first_invoice_unpaid={"T2"},
        )
        scores = compute_scores(contracts, inputs, COMPUTED_AT)
        by_id = {s.contract_id: s for s in scores}
        assert by_id["crit"].score == 80  # 25 + 15 + 15 + 10 + 15
        assert by_id["alto"].score == 57  # 17 + 15 + 15 + 10
        assert by_id["low"].score == 0
        assert by_id["crit"].tier == RiskTier.CRITICO
        assert by_id["alto"].tier == RiskTier.ALTO

        summary = build_summary(scores)
        assert summary.total_contracts == 3
        assert summary.critico + summary.alto + summary.moderado + summary.baixo == 3
        assert summary.critico_mrr == 1_000.0
        assert summary.alto_mrr == 2_000.0
        assert summary.at_risk_mrr == sum(s.mrr for s in scores if s.tier in engine.AT_RISK_TIERS)

    def test_empty(self):
        summary = build_summary([])
        assert summary.total_contracts == 0
        assert summary.at_risk_mrr == 0.0
