"""
Cortex Churn Risk — FastAPI Application Entry Point

POST /v1/churn-risk/recompute  → full recompute
GET  /v1/churn-risk/scores     → persisted scores
GET  /v1/churn-risk/health     → health check
GET  /docs                     → OpenAPI / Swagger UI
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from churn_risk.api.risk_endpoint import router as churn_router
from churn_risk.core.config import get_settings
from churn_risk.core.log_config import configure_logging
from churn_risk.services.risk_service import ChurnRiskService

configure_logging(get_settings())
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("churn_risk_starting")
    service = ChurnRiskService(get_settings())
    await service.start()
    app.state.churn_service = service
    yield
    await service.stop()
    logger.info("churn_risk_shutting_down")


app = FastAPI(
    title="Cortex Churn Risk",
    description="Rule-based churn risk scoring over CRM and billing data",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard frontend) ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_methods=["POST", "GET"],
    allow_headers=["*"],
)

# ── Prometheus metrics ──
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ──
app.include_router(churn_router)


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "cortex-churn-risk",
        "version": "1.0.0",
        "docs": "/docs",
        "recompute": "POST /v1/churn-risk/recompute",
    }
