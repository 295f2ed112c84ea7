"""
risk_refresh.py
───────────────
One-shot churn risk recompute for cron / Kubernetes CronJob scheduling.

Usage:
  python -m churn_risk.services.risk_refresh
  python -m churn_risk.services.risk_refresh --as-of 2026-03-31
  OR via the API: POST /v1/churn-risk/recompute

Environment variables required:
  DATABASE_URL  - database holding the source schemas and cortex_core
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date
from typing import Optional

from churn_risk.core.config import get_settings
from churn_risk.core.log_config import configure_logging
from churn_risk.schemas.risk_score import RecomputeResult
from churn_risk.services.risk_service import ChurnRiskService


async def run_refresh(as_of: Optional[date] = None) -> RecomputeResult:
    service = ChurnRiskService(get_settings())
    await service.start()
    try:
        return await service.recompute(as_of)
    finally:
        await service.stop()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute all churn risk scores.")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reference day for overdue days, windows and tenure (default: today)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(get_settings())

    try:
        result = asyncio.run(run_refresh(args.as_of))
    except Exception as e:
        print(f"✗ Churn risk recompute failed: {e}", file=sys.stderr)
        return 1

    s = result.summary
    print(f"✓ Churn risk recomputed: {result.total} contracts, "
          f"{s.critico} critico, {s.alto} alto, at-risk MRR {s.at_risk_mrr:,.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
