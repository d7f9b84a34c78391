"""
readiness.py - Trip packing readiness entry points.

Two ways in:
    evaluate_trip_readiness(trip, items, ...)          pure, no I/O
    evaluate_trip_packing_readiness(request, provider)  fetch, then evaluate

Flow:
    TripDataProvider -> rules.run_rules -> aggregate.aggregate_checks
"""

from __future__ import annotations

from typing import Any, Optional, Union

from aggregate import aggregate_checks
from logging_config import get_logger
from models import (
    EvaluateTripPackingReadinessInput,
    EvaluateTripPackingReadinessResponse,
    Item,
    Trip,
)
from readiness_config import DEFAULT_CONFIG, ReadinessConfig
from rules import EvaluationContext, assess_pediatric_readiness, run_rules
from trip_provider import TripDataProvider

logger = get_logger(__name__)


def evaluate_trip_readiness(
    trip: Trip,
    items: list[Item],
    config: ReadinessConfig = DEFAULT_CONFIG,
    shelf_life_days: Optional[int] = None,
    include_evidence: bool = True,
) -> EvaluateTripPackingReadinessResponse:
    """Run every readiness rule over in-memory trip data and aggregate the verdicts."""
    days = shelf_life_days if shelf_life_days is not None else config.default_shelf_life_days
    if days < 1:
        raise ValueError(f"shelf_life_days must be a positive integer, got {days}")

    context = EvaluationContext(
        trip=trip,
        items=list(items),
        config=config,
        shelf_life_days=days,
        include_evidence=include_evidence,
    )
    logger.info(
        "readiness_start | trip_id=%s | items=%s | shelf_life_days=%s | config_version=%s",
        trip.trip_id,
        len(context.items),
        days,
        config.version,
    )

    checks = run_rules(context)
    pediatric = assess_pediatric_readiness(context)
    return aggregate_checks(
        trip,
        context.items,
        checks,
        pediatric.confidence_percent,
        formulation_rule_id=config.rules.formulation.id,
        pediatric_rule_id=config.rules.pediatric.id,
        baseline_action=config.baseline_action,
    )


def evaluate_trip_packing_readiness(
    request: Union[EvaluateTripPackingReadinessInput, dict[str, Any]],
    provider: TripDataProvider,
    config: ReadinessConfig = DEFAULT_CONFIG,
) -> EvaluateTripPackingReadinessResponse:
    """Validate the request, fetch the trip, and evaluate it.

    Raises:
        pydantic.ValidationError: If the request is malformed.
        TripNotFoundError: If the provider has no such trip.
        UpstreamRetrievalError: For any other retrieval failure.
    """
    params = (
        request
        if isinstance(request, EvaluateTripPackingReadinessInput)
        else EvaluateTripPackingReadinessInput.model_validate(request)
    )
    trip_data = provider.fetch_trip(params.trip_id)
    return evaluate_trip_readiness(
        trip_data.trip,
        trip_data.items,
        config=config,
        shelf_life_days=params.shelf_life_days,
        include_evidence=params.include_evidence,
    )
