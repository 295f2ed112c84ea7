"""
001 — Churn risk score table + recompute run log

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "cortex_core"


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    # ══════════════════════════════════════════════════════════════
    # 1. CHURN RISK SCORES: one row per active contract,
    #    fully replaced by every successful recompute
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "churn_risk_scores",
        sa.Column("contract_id", sa.String(100), primary_key=True),
        sa.Column("client_name", sa.String(255), nullable=True),
        sa.Column("tax_id", sa.String(32), nullable=True),

        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("factors", JSONB, nullable=False),          # 7 entries, fixed signal order

        sa.Column("mrr", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("squad", sa.String(100), nullable=True),
        sa.Column("product", sa.String(100), nullable=True),
        sa.Column("success_manager", sa.String(255), nullable=True),

        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("score BETWEEN 0 AND 100", name="ck_churn_risk_scores_score_range"),
        sa.CheckConstraint(
            "tier IN ('baixo', 'moderado', 'alto', 'critico')",
            name="ck_churn_risk_scores_tier",
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_churn_risk_scores_score", "churn_risk_scores", ["score"], schema=SCHEMA)
    op.create_index("ix_churn_risk_scores_tier", "churn_risk_scores", ["tier"], schema=SCHEMA)
    op.create_index("ix_churn_risk_scores_squad", "churn_risk_scores", ["squad"], schema=SCHEMA)
    op.create_index("ix_churn_risk_scores_product", "churn_risk_scores", ["product"], schema=SCHEMA)
    op.create_index("ix_churn_risk_scores_tax_id", "churn_risk_scores", ["tax_id"], schema=SCHEMA)

    # ══════════════════════════════════════════════════════════════
    # 2. RECOMPUTE RUNS: one row per attempt, success or not
    # ══════════════════════════════════════════════════════════════
    op.create_table(
        "churn_risk_recompute_runs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("status", sa.String(10), nullable=False),   # running | success | failed
        sa.Column("as_of", sa.Date, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total", sa.Integer, nullable=True),
        sa.Column("error", sa.Text, nullable=True),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_churn_risk_recompute_runs_status",
        "churn_risk_recompute_runs", ["status", "started_at"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("churn_risk_recompute_runs", schema=SCHEMA)
    op.drop_table("churn_risk_scores", schema=SCHEMA)
