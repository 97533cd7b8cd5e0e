"""
main.py – FastAPI surface for the facility water-risk engine.

Start:
    cd /path/to/repo
    uvicorn water_api.main:app --reload --port 8000

Serialisation only: every number comes from waterrisk.engine.  Reporting and
UI collaborators consume these payloads for rendering and export.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from waterrisk import db
from waterrisk.config import get_config
from waterrisk.engine import run_assessment
from waterrisk.sources import PostgresWaterDataSource, WaterDataFetchError, WaterDataSource

log = logging.getLogger(__name__)

app = FastAPI(
    title="Facility Water Risk API",
    version="1.0.0",
    description="Scarcity-weighted facility water risk and organisation summaries.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_source() -> WaterDataSource:
    """Default data source: PostgreSQL at DATABASE_URL."""
    try:
        cfg = get_config(require_database=True)
    except EnvironmentError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return PostgresWaterDataSource(cfg.database_url)


def _fetch_timeout() -> float:
    return get_config().fetch_timeout_seconds


async def _assess(
    organization_id: str,
    source: WaterDataSource,
    period_start: date | None,
    period_end: date | None,
):
    if period_start and period_end and period_start > period_end:
        raise HTTPException(status_code=400, detail="period_start must be on or before period_end")
    try:
        return await run_assessment(
            organization_id,
            source,
            period_start=period_start.isoformat() if period_start else None,
            period_end=period_end.isoformat() if period_end else None,
            timeout=_fetch_timeout(),
        )
    except WaterDataFetchError as exc:
        log.error("Water risk fetch failed for %s: %s", organization_id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except Exception as exc:
        log.exception("Water risk assessment failed for %s", organization_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get(
    "/api/organizations/{organization_id}/water-risks",
    summary="Facility water risks, summary and data-quality events",
)
async def water_risks(
    organization_id: str,
    period_start: date | None = None,
    period_end: date | None = None,
    source: WaterDataSource = Depends(get_source),
):
    """
    Returns {organization_id, risks[], summary, events[]}.
    Every registered facility appears, including those with no data.
    """
    assessment = await _assess(organization_id, source, period_start, period_end)
    return assessment.to_dict()


@app.get(
    "/api/organizations/{organization_id}/water-risk-summary",
    summary="Organisation-level water risk summary",
)
async def water_risk_summary(
    organization_id: str,
    period_start: date | None = None,
    period_end: date | None = None,
    source: WaterDataSource = Depends(get_source),
):
    """Returns {high_count, medium_count, low_count, total_facilities, overall_risk_level}."""
    assessment = await _assess(organization_id, source, period_start, period_end)
    return assessment.summary.to_dict()


@app.get("/api/health")
async def health():
    cfg = get_config()
    if not cfg.database_url:
        return {"status": "ok", "database": "not_configured"}
    ok, err = await asyncio.to_thread(db.test_connection, cfg.database_url)
    if not ok:
        log.warning("Health check: database unreachable: %s", err)
    return {"status": "ok", "database": "ok" if ok else "unreachable"}
