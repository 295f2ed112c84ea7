"""
Unit tests for individual churn risk signals.
"""
import pytest

from churn_risk.scoring.signals import (
    score_contract_tenure, score_delinquency, score_first_invoice, score_mrr_trend,
    score_pause_history, score_product_churn, score_squad_churn,
)


class TestDelinquency:
    def test_no_overdue(self):
        r = score_delinquency(0)
        assert r.value == 0
        assert r.description == "No overdue invoices"

    def test_missing(self):
        assert score_delinquency(None).value == 0

    def test_negative_treated_as_none(self):
        assert score_delinquency(-3).value == 0

    def test_boundary_15(self):
        assert score_delinquency(15).value == 5

    def test_boundary_16(self):
        assert score_delinquency(16).value == 10

    def test_boundary_30_and_31(self):
        assert score_delinquency(30).value == 10
        assert score_delinquency(31).value == 17

    def test_boundary_60_and_61(self):
        assert score_delinquency(60).value == 17
        assert score_delinquency(61).value == 22

    def test_boundary_90_and_91(self):
        assert score_delinquency(90).value == 22
        assert score_delinquency(91).value == 25

    def test_description_embeds_days(self):
        r = score_delinquency(47)
        assert r.description == "47 days overdue (severe)"

    def test_max_weight(self):
        assert score_delinquency(500).max_weight == 25
        assert score_delinquency(500).value == 25


class TestContractTenure:
    def test_brand_new(self):
        r = score_contract_tenure(0.5)
        assert r.value == 15
        assert "0.5 months" in r.description

    def test_missing_is_zero_months(self):
        r = score_contract_tenure(None)
        assert r.value == 15
        assert "0.0 months" in r.description

    def test_negative_is_zero_months(self):
        assert score_contract_tenure(-4.0).value == 15

    def test_boundaries(self):
        assert score_contract_tenure(1.99).value == 15
        assert score_contract_tenure(2.0).value == 12
        assert score_contract_tenure(3.0).value == 8
        assert score_contract_tenure(6.0).value == 4
        assert score_contract_tenure(11.9).value == 4
        assert score_contract_tenure(12.0).value == 0

    def test_mature(self):
        r = score_contract_tenure(30.2)
        assert r.value == 0
        assert r.description == "Mature contract (30.2 months)"


class TestPauseHistory:
    def test_paused(self):
        assert score_pause_history(True).value == 15

    def test_never_paused(self):
        r = score_pause_history(False)
        assert r.value == 0
        assert r.description == "Never paused"


class TestChurnRates:
    @pytest.mark.parametrize("scorer", [score_squad_churn, score_product_churn])
    def test_bands(self, scorer):
        assert scorer(None).value == 0
        assert scorer(0).value == 0
        assert scorer(-1.0).value == 0
        assert scorer(1.99).value == 2
        assert scorer(2.0).value == 5
        assert scorer(4.99).value == 5
        assert scorer(5.0).value == 8
        assert scorer(7.99).value == 8
        assert scorer(8.0).value == 10
        assert scorer(40.0).value == 10

    def test_squad_description(self):
        r = score_squad_churn(3.0)
        assert r.description == "Squad churn: 3.0%"
        assert r.signal == "Squad Churn"

    def test_product_description(self):
        r = score_product_churn(9.4)
        assert r.description == "Product churn: 9.4% (high)"
        assert r.signal == "Product Churn"

    def test_no_churn_description(self):
        assert score_product_churn(None).description == "No recent churn in product"


class TestMrrTrend:
    def test_missing_history_is_not_zero(self):
        r = score_mrr_trend(None)
        assert r.value == 5
        assert r.description == "Insufficient historical data"

    def test_big_drop(self):
        r = score_mrr_trend(-25.0)
        assert r.value == 15
        assert "25%" in r.description

    def test_boundary_minus_20_is_strict(self):
        assert score_mrr_trend(-20.0).value == 12
        assert score_mrr_trend(-20.01).value == 15

    def test_boundary_minus_10(self):
        assert score_mrr_trend(-10.0).value == 8
        assert score_mrr_trend(-10.5).value == 12

    def test_boundary_minus_5(self):
        assert score_mrr_trend(-5.0).value == 4
        assert score_mrr_trend(-5.5).value == 8

    def test_zero_is_stable(self):
        r = score_mrr_trend(0.0)
        assert r.value == 0
        assert r.description == "MRR stable (0%)"

    def test_growth(self):
        r = score_mrr_trend(12.0)
        assert r.value == 0
        assert r.description == "MRR up 12%"


class TestFirstInvoice:
    def test_unpaid(self):
        assert score_first_invoice(True).value == 10

    def test_paid(self):
        assert score_first_invoice(False).value == 0


class TestBounds:
    @pytest.mark.parametrize("days", [None, -1, 0, 1, 15, 16, 30, 31, 60, 61, 90, 91, 10_000])
    def test_delinquency_bounded(self, days):
        r = score_delinquency(days)
        assert 0 <= r.value <= r.max_weight == 25

    @pytest.mark.parametrize("months", [None, -1.0, 0.0, 1.9, 2.0, 2.9, 3.0, 5.9, 6.0, 11.9, 12.0, 120.0])
    def test_tenure_bounded(self, months):
        r = score_contract_tenure(months)
        assert 0 <= r.value <= r.max_weight == 15

    @pytest.mark.parametrize("pct", [None, -100.0, -20.0, -10.0, -5.0, -0.1, 0.0, 0.1, 500.0])
    def test_mrr_bounded(self, pct):
        r = score_mrr_trend(pct)
        assert 0 <= r.value <= r.max_weight == 15
