"""
Kafka event publisher — fire-and-forget.

Publishes one event per successful recompute for downstream consumers
(alerting, dashboards, warehouse sync).
Gracefully degrades if Kafka is unavailable.
"""
from __future__ import annotations

import json
import structlog

from churn_risk.core.config import Settings
from churn_risk.schemas.risk_score import RecomputeResult

logger = structlog.get_logger()


class EventPublisher:
    """Owns the producer; started and stopped with the service."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._producer = None

    async def start(self) -> None:
        if not self.settings.kafka_enabled:
            return
        from aiokafka import AIOKafkaProducer
        self._producer = AIOKafkaProducer(bootstrap_servers=self.settings.kafka_bootstrap)
        await self._producer.start()

    async def stop(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

    async def publish_recompute(self, result: RecomputeResult) -> None:
        if self._producer is None:
            return

        summary = result.summary
        event = {
            "event_type": "CHURN_RISK_RECOMPUTED",
            "run_id": result.run_id,
            "total": result.total,
            "critico": summary.critico,
            "alto": summary.alto,
            "moderado": summary.moderado,
            "baixo": summary.baixo,
            "at_risk_mrr": summary.at_risk_mrr,
            "computed_at": result.computed_at.isoformat(),
        }
        try:
            await self._producer.send_and_wait(
                self.settings.kafka_topic_churn_events,
                json.dumps(event).encode("utf-8"),
                key=str(result.run_id).encode("utf-8"),
            )
            logger.info("kafka_event_published", run_id=result.run_id)
        except Exception as e:
            # Fire-and-forget: log but don't fail the recompute
            logger.warning("kafka_publish_failed", error=str(e))

