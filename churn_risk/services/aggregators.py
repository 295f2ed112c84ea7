"""
aggregators.py
──────────────
Batch reads that feed the churn risk engine.

Each aggregator issues ONE query against a source system and turns the rows
into a lookup keyed the way the engine joins it:

  active contracts      → list[ContractRecord]            (ClickUp directory)
  delinquency           → {tax_id: DelinquencyRecord}      (Conta Azul ledger)
  squad churn rate      → {squad: pct}                    (ClickUp statuses)
  product churn rate    → {product: pct}                  (ClickUp statuses)
  MRR trend             → {contract_id: pct | None}       (ClickUp snapshots)
  first invoice unpaid  → {tax_id, ...}                   (Conta Azul ledger)

The SQL only selects and groups; the arithmetic lives in the build_* helpers
so it can be exercised without a database. All dates are bound from an
explicit as_of day instead of CURRENT_DATE.

Sources are read-only: nothing here writes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional

import structlog
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from churn_risk.core.config import Settings

logger = structlog.get_logger()

DAYS_PER_MONTH = 30.44


@dataclass(frozen=True)
class ContractRecord:
    contract_id: str
    client_name: Optional[str]
    tax_id: Optional[str]
    mrr: float
    squad: Optional[str]
    product: Optional[str]
    success_manager: Optional[str]
    start_date: Optional[date]
    pause_date: Optional[date]

    def tenure_months(self, as_of: date) -> Optional[float]:
        if self.start_date is None:
            return None
        return (as_of - self.start_date).days / DAYS_PER_MONTH


@dataclass(frozen=True)
class DelinquencyRecord:
    max_days_overdue: int
    overdue_items: int


@dataclass
class SignalInputs:
    """All aggregator lookups for one recompute pass."""
    as_of: date
    delinquency: dict[str, DelinquencyRecord] = field(default_factory=dict)
    squad_churn: dict[str, float] = field(default_factory=dict)
    product_churn: dict[str, float] = field(default_factory=dict)
    mrr_trend: dict[str, Optional[float]] = field(default_factory=dict)
    first_invoice_unpaid: set[str] = field(default_factory=set)


# ─── Row → lookup builders ────────────────────────────────────────

def _normalize_tax_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    tax_id = str(value).strip()
    return tax_id or None


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def build_contracts(rows: Iterable[Mapping[str, Any]]) -> list[ContractRecord]:
    contracts = []
    for row in rows:
        contracts.append(ContractRecord(
            contract_id=str(row["contract_id"]),
            client_name=row.get("client_name"),
            tax_id=_normalize_tax_id(row.get("tax_id")),
            mrr=_to_float(row.get("mrr")) or 0.0,
            squad=row.get("squad"),
            product=row.get("product"),
            success_manager=row.get("success_manager"),
            start_date=row.get("start_date"),
            pause_date=row.get("pause_date"),
        ))
    return contracts


def build_delinquency_map(rows: Iterable[Mapping[str, Any]]) -> dict[str, DelinquencyRecord]:
    lookup: dict[str, DelinquencyRecord] = {}
    for row in rows:
        tax_id = _normalize_tax_id(row["tax_id"])
        if tax_id is None:
            continue
        lookup[tax_id] = DelinquencyRecord(
            max_days_overdue=max(int(row["max_days_overdue"] or 0), 0),
            overdue_items=int(row["overdue_items"] or 0),
        )
    return lookup


def build_churn_rate_map(rows: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    """
    churned / active * 100 per dimension value.
    Values with no active contracts are left out rather than divided by zero.
    """
    lookup: dict[str, float] = {}
    for row in rows:
        dimension = row["dimension"]
        active = int(row["active_count"] or 0)
        if dimension is None or active <= 0:
            continue
        churned = int(row["churned_count"] or 0)
        lookup[dimension] = churned / active * 100
    return lookup


def compute_mrr_change(recent_mrr: Optional[float], prior_mrr: Optional[float]) -> Optional[float]:
    if recent_mrr is None or prior_mrr is None or prior_mrr <= 0:
        return None
    return (recent_mrr - prior_mrr) / prior_mrr * 100


def build_mrr_trend_map(rows: Iterable[Mapping[str, Any]]) -> dict[str, Optional[float]]:
    return {
        str(row["contract_id"]): compute_mrr_change(
            _to_float(row["recent_mrr"]), _to_float(row["prior_mrr"]),
        )
        for row in rows
    }


def build_first_invoice_unpaid(rows: Iterable[Mapping[str, Any]]) -> set[str]:
    """
    Rows hold each tax ID's earliest invoice. Any open balance on it flags
    the tax ID, whether or not the invoice is due yet.
    """
    flagged = set()
    for row in rows:
        tax_id = _normalize_tax_id(row["tax_id"])
        if tax_id is None:
            continue
        if (_to_float(row["unpaid"]) or 0) > 0:
            flagged.add(tax_id)
    return flagged


# ─── Source queries ───────────────────────────────────────────────

ACTIVE_CONTRACTS_QUERY = text("""
SELECT
    c.id_subtask                        AS contract_id,
    cl.nome                             AS client_name,
    TRIM(cl.cnpj::text)                 AS tax_id,
    COALESCE(c.valorr::numeric, 0)      AS mrr,
    c.squad                             AS squad,
    c.produto                           AS product,
    c.cs_responsavel                    AS success_manager,
    c.data_inicio::date                 AS start_date,
    c.data_pausa::date                  AS pause_date
FROM "Clickup".cup_contratos c
LEFT JOIN "Clickup".cup_clientes cl ON c.id_task = cl.task_id
WHERE LOWER(c.status) IN :active_statuses
  AND LOWER(COALESCE(c.squad, '')) NOT IN :excluded_squads
  AND c.id_subtask IS NOT NULL
""").bindparams(
    bindparam("active_statuses", expanding=True),
    bindparam("excluded_squads", expanding=True),
)

DELINQUENCY_QUERY = text("""
SELECT
    TRIM(cli.cnpj::text)                                    AS tax_id,
    MAX(CAST(:as_of AS date) - cp.data_vencimento::date)    AS max_days_overdue,
    COUNT(*)                                                AS overdue_items
FROM "Conta Azul".caz_parcelas cp
JOIN "Conta Azul".caz_clientes cli ON cp.id_cliente::text = cli.ids::text
WHERE cp.tipo_evento = 'RECEITA'
  AND cp.data_vencimento::date < CAST(:as_of AS date)
  AND COALESCE(cp.nao_pago::numeric, 0) > 0
  AND cli.cnpj IS NOT NULL
  AND TRIM(cli.cnpj::text) != ''
GROUP BY TRIM(cli.cnpj::text)
""")

# {dimension} is one of CHURN_DIMENSIONS, never caller input.
CHURN_COUNTS_QUERY = """
WITH active AS (
    SELECT {dimension} AS dimension, COUNT(*) AS total
    FROM "Clickup".cup_contratos
    WHERE LOWER(status) IN :active_statuses
      AND {dimension} IS NOT NULL
    GROUP BY {dimension}
),
churned AS (
    SELECT {dimension} AS dimension, COUNT(*) AS total
    FROM "Clickup".cup_contratos
    WHERE LOWER(status) IN :churned_statuses
      AND data_solicitacao_encerramento::date >= CAST(:churned_since AS date)
      AND data_solicitacao_encerramento::date <= CAST(:as_of AS date)
      AND {dimension} IS NOT NULL
    GROUP BY {dimension}
)
SELECT
    a.dimension                 AS dimension,
    a.total                     AS active_count,
    COALESCE(ch.total, 0)       AS churned_count
FROM active a
LEFT JOIN churned ch ON a.dimension = ch.dimension
"""

CHURN_DIMENSIONS = {"squad": "squad", "product": "produto"}

MRR_TREND_QUERY = text("""
WITH recent AS (
    SELECT DISTINCT ON (id_subtask)
        id_subtask, COALESCE(valorr::numeric, 0) AS mrr
    FROM "Clickup".cup_data_hist
    WHERE data_snapshot::date BETWEEN CAST(:recent_from AS date) AND CAST(:as_of AS date)
      AND LOWER(status) IN :active_statuses
      AND id_subtask IS NOT NULL
    ORDER BY id_subtask, data_snapshot DESC
),
prior AS (
    SELECT DISTINCT ON (id_subtask)
        id_subtask, COALESCE(valorr::numeric, 0) AS mrr
    FROM "Clickup".cup_data_hist
    WHERE data_snapshot::date BETWEEN CAST(:prior_from AS date) AND CAST(:prior_to AS date)
      AND LOWER(status) IN :active_statuses
      AND id_subtask IS NOT NULL
    ORDER BY id_subtask, data_snapshot DESC
)
SELECT
    r.id_subtask    AS contract_id,
    r.mrr           AS recent_mrr,
    p.mrr           AS prior_mrr
FROM recent r
LEFT JOIN prior p ON r.id_subtask = p.id_subtask
""").bindparams(bindparam("active_statuses", expanding=True))

FIRST_INVOICE_QUERY = text("""
SELECT DISTINCT ON (TRIM(cli.cnpj::text))
    TRIM(cli.cnpj::text)                AS tax_id,
    cp.data_vencimento::date            AS due_date,
    COALESCE(cp.nao_pago::numeric, 0)   AS unpaid
FROM "Conta Azul".caz_parcelas cp
JOIN "Conta Azul".caz_clientes cli ON cp.id_cliente::text = cli.ids::text
WHERE cp.tipo_evento = 'RECEITA'
  AND cli.cnpj IS NOT NULL
  AND TRIM(cli.cnpj::text) != ''
ORDER BY TRIM(cli.cnpj::text), cp.data_vencimento
""")


async def _fetch(session: AsyncSession, statement, params: dict) -> list[Mapping[str, Any]]:
    result = await session.execute(statement, params)
    return list(result.mappings().all())


async def fetch_active_contracts(session: AsyncSession, settings: Settings) -> list[ContractRecord]:
    rows = await _fetch(session, ACTIVE_CONTRACTS_QUERY, {
        "active_statuses": [s.lower() for s in settings.active_statuses],
        "excluded_squads": [s.lower() for s in settings.excluded_squads],
    })
    return build_contracts(rows)


async def fetch_delinquency(session: AsyncSession, as_of: date) -> dict[str, DelinquencyRecord]:
    rows = await _fetch(session, DELINQUENCY_QUERY, {"as_of": as_of})
    return build_delinquency_map(rows)


async def fetch_churn_rates(
    session: AsyncSession,
    settings: Settings,
    dimension: str,
    as_of: date,
) -> dict[str, float]:
    column = CHURN_DIMENSIONS[dimension]
    statement = text(CHURN_COUNTS_QUERY.format(dimension=column)).bindparams(
        bindparam("active_statuses", expanding=True),
        bindparam("churned_statuses", expanding=True),
    )
    rows = await _fetch(session, statement, {
        "active_statuses": [s.lower() for s in settings.active_statuses],
        "churned_statuses": [s.lower() for s in settings.churned_statuses],
        "churned_since": as_of - timedelta(days=settings.churn_window_days),
        "as_of": as_of,
    })
    return build_churn_rate_map(rows)


def snapshot_windows(settings: Settings, as_of: date) -> dict[str, date]:
    """Bounds for the recent snapshot and the one ~lookback days back."""
    tolerance = timedelta(days=settings.snapshot_tolerance_days)
    prior_center = as_of - timedelta(days=settings.mrr_trend_lookback_days)
    return {
        "as_of": as_of,
        "recent_from": as_of - tolerance,
        "prior_from": prior_center - tolerance,
        "prior_to": prior_center + tolerance,
    }


async def fetch_mrr_trends(
    session: AsyncSession,
    settings: Settings,
    as_of: date,
) -> dict[str, Optional[float]]:
    params: dict[str, Any] = dict(snapshot_windows(settings, as_of))
    params["active_statuses"] = [s.lower() for s in settings.active_statuses]
    rows = await _fetch(session, MRR_TREND_QUERY, params)
    return build_mrr_trend_map(rows)


async def fetch_first_invoice_unpaid(session: AsyncSession) -> set[str]:
    rows = await _fetch(session, FIRST_INVOICE_QUERY, {})
    return build_first_invoice_unpaid(rows)


async def load_signal_inputs(session: AsyncSession, settings: Settings, as_of: date) -> SignalInputs:
    """
    Run every aggregator once. They share one session, so they run in
    sequence; all of them finish before any contract is scored.
    """
    inputs = SignalInputs(as_of=as_of)

    inputs.delinquency = await fetch_delinquency(session, as_of)
    logger.info("churn_aggregator_loaded", source="delinquency", keys=len(inputs.delinquency))

    inputs.squad_churn = await fetch_churn_rates(session, settings, "squad", as_of)
    logger.info("churn_aggregator_loaded", source="squad_churn", keys=len(inputs.squad_churn))

    inputs.product_churn = await fetch_churn_rates(session, settings, "product", as_of)
    logger.info("churn_aggregator_loaded", source="product_churn", keys=len(inputs.product_churn))

    inputs.mrr_trend = await fetch_mrr_trends(session, settings, as_of)
    logger.info("churn_aggregator_loaded", source="mrr_trend", keys=len(inputs.mrr_trend))

    inputs.first_invoice_unpaid = await fetch_first_invoice_unpaid(session)
    logger.info("churn_aggregator_loaded", source="first_invoice", keys=len(inputs.first_invoice_unpaid))

    return inputs
