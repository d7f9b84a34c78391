"""
api.py - FastAPI HTTP layer for trip packing readiness.

Endpoints:
  - GET  /health
  - POST /readiness/evaluate
  - GET  /trips/{trip_id}/readiness

No readiness business logic is implemented here. The trip provider and the
readiness config are FastAPI dependencies so tests can override them.
"""

from __future__ import annotations

import os
import threading
from typing import Any, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from logging_config import get_logger, setup_logging
from models import EvaluateTripPackingReadinessInput
from readiness import evaluate_trip_packing_readiness
from readiness_config import ReadinessConfig, load_readiness_config
from trip_provider import (
    TripDataProvider,
    TripNotFoundError,
    UpstreamRetrievalError,
    provider_from_env,
)

logger = get_logger("readiness-api")

app = FastAPI(
    title="Trip Packing Readiness API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

_provider: Optional[TripDataProvider] = None
_config: Optional[ReadinessConfig] = None
_init_lock = threading.Lock()


def get_provider() -> TripDataProvider:
    """Trip data provider built once from the environment."""
    global _provider
    with _init_lock:
        if _provider is None:
            _provider = provider_from_env()
        return _provider


def get_config() -> ReadinessConfig:
    """Readiness policy loaded once (READINESS_CONFIG_FILE or defaults)."""
    global _config
    with _init_lock:
        if _config is None:
            _config = load_readiness_config()
        return _config


def _evaluate(
    request: EvaluateTripPackingReadinessInput,
    provider: TripDataProvider,
    config: ReadinessConfig,
) -> dict[str, Any]:
    try:
        response = evaluate_trip_packing_readiness(request, provider, config)
    except TripNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UpstreamRetrievalError as exc:
        logger.error(
            "api_upstream_error | trip_id=%s | status=%s | error=%s",
            request.trip_id,
            exc.status_code,
            exc,
        )
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    logger.info(
        "api_readiness_complete | trip_id=%s | rating=%s | failed=%s | warned=%s",
        request.trip_id,
        response.rating.value,
        response.summary.failed_checks,
        response.summary.warning_checks,
    )
    return response.to_wire()


@app.get("/health")
def health() -> dict[str, str]:
    """Service health check."""
    return {"status": "ok"}


@app.post("/readiness/evaluate")
def evaluate_readiness(
    request: EvaluateTripPackingReadinessInput = Body(...),
    provider: TripDataProvider = Depends(get_provider),
    config: ReadinessConfig = Depends(get_config),
) -> dict[str, Any]:
    """Evaluate packing readiness for one trip."""
    return _evaluate(request, provider, config)


@app.get("/trips/{trip_id}/readiness")
def trip_readiness(
    trip_id: int,
    shelf_life_days: Optional[int] = Query(default=None, alias="shelfLifeDays", ge=1),
    include_evidence: bool = Query(default=True, alias="includeEvidence"),
    provider: TripDataProvider = Depends(get_provider),
    config: ReadinessConfig = Depends(get_config),
) -> dict[str, Any]:
    """Query-string variant of /readiness/evaluate."""
    if trip_id < 1:
        raise HTTPException(status_code=422, detail="trip_id must be a positive integer")
    request = EvaluateTripPackingReadinessInput(
        trip_id=trip_id,
        shelf_life_days=shelf_life_days,
        include_evidence=include_evidence,
    )
    return _evaluate(request, provider, config)


if __name__ == "__main__":
    setup_logging()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("api:app", host="0.0.0.0", port=port, reload=False)
