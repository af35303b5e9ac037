from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Any, Dict, List, Tuple

import numpy as np
import pandas as pd
from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import ChartsRequest, DashboardRequest
from dashboard_core.aggregation import hourly_pattern, period_trend
from dashboard_core.cache import AggregationCache
from dashboard_core.charts import bundle_charts
from dashboard_core.filters import FilterSpec, apply_filters, filter_impact, normalize_filters, validate_filters
from dashboard_core.records import ServiceRecord, coerce_records, records_to_frame
from dashboard_core.statistics import compute_stats, performance_metrics


app = FastAPI(title="Service Records Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

# One cache per process; sync endpoints run in a thread pool, the cache locks itself.
aggregation_cache = AggregationCache()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _prepare(request: DashboardRequest) -> Tuple[List[ServiceRecord], FilterSpec, List[ServiceRecord]]:
    records = coerce_records([r.model_dump() for r in request.records])
    spec = normalize_filters(request.filters.model_dump())
    return records, spec, apply_filters(records, spec)


def _error(name: str, exc: Exception) -> JSONResponse:
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.post("/filter")
def filter_records(request: DashboardRequest):
    try:
        records, spec, filtered = _prepare(request)
        return _json(
            {
                "filters": spec.as_dict(),
                "impact": filter_impact(records, filtered),
                "records": [asdict(r) for r in filtered],
            }
        )
    except Exception as exc:
        return _error("filter_records", exc)


@app.post("/filters/validate")
def filters_validate(filters: Dict[str, Any] = Body(...)):
    try:
        return _json(asdict(validate_filters(filters)))
    except Exception as exc:
        return _error("filters_validate", exc)


@app.post("/charts")
def charts(request: ChartsRequest):
    try:
        _, spec, filtered = _prepare(request)
        bundle = aggregation_cache.aggregate(filtered, spec, refresh=request.refresh)
        return _json(
            {
                "filters": spec.as_dict(),
                "bundle": bundle.as_dict(),
                "trend": period_trend(bundle.by_period),
                "hourly_pattern": hourly_pattern(bundle.by_hour),
                "charts": bundle_charts(bundle),
            }
        )
    except Exception as exc:
        return _error("charts", exc)


@app.post("/stats")
def stats(request: DashboardRequest):
    try:
        _, spec, filtered = _prepare(request)
        return _json(
            {
                "filters": spec.as_dict(),
                "kpis": asdict(compute_stats(filtered)),
                "performance": performance_metrics(filtered),
            }
        )
    except Exception as exc:
        return _error("stats", exc)


@app.get("/cache")
def cache_stats():
    return _json(aggregation_cache.stats())


@app.delete("/cache")
def cache_clear():
    aggregation_cache.clear()
    return _json(aggregation_cache.stats())


@app.post("/export")
def export_records(request: DashboardRequest):
    _, _, filtered = _prepare(request)
    export_df = records_to_frame(filtered)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    filename = "services.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
