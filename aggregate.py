"""
aggregate.py - Combine rule checks into a trip-level readiness verdict.

Rating is worst-status-wins:
    any FAIL -> RED
    any WARN -> YELLOW
    all PASS -> GREEN
"""

from __future__ import annotations

from logging_config import get_logger
from models import (
    Check,
    CheckStatus,
    EvaluateTripPackingReadinessResponse,
    Item,
    Rating,
    ReadinessSummary,
    Trip,
)
from readiness_config import BASELINE_ACTION

logger = get_logger(__name__)


def _status_of(checks: list[Check], rule_id: str) -> CheckStatus:
    for check in checks:
        if check.rule_id == rule_id:
            return check.status
    raise ValueError(f"No check produced for rule {rule_id!r}")


def rate_checks(checks: list[Check]) -> Rating:
    statuses = {check.status for check in checks}
    if CheckStatus.FAIL in statuses:
        return Rating.RED
    if CheckStatus.WARN in statuses:
        return Rating.YELLOW
    return Rating.GREEN


def collect_actions(reasons: list[Check]) -> list[str]:
    """De-duplicate non-blank recommended actions, keeping first-seen order."""
    actions: list[str] = []
    for reason in reasons:
        action = (reason.recommended_action or "").strip()
        if action and action not in actions:
            actions.append(action)
    return actions


def aggregate_checks(
    trip: Trip,
    items: list[Item],
    checks: list[Check],
    pediatric_confidence_percent: int,
    formulation_rule_id: str = "formulation_adequacy_by_context",
    pediatric_rule_id: str = "pediatric_readiness_confidence",
    baseline_action: str = BASELINE_ACTION,
) -> EvaluateTripPackingReadinessResponse:
    """Build the response for an ordered list of checks."""
    passed = sum(1 for check in checks if check.status == CheckStatus.PASS)
    warned = sum(1 for check in checks if check.status == CheckStatus.WARN)
    failed = sum(1 for check in checks if check.status == CheckStatus.FAIL)

    rating = rate_checks(checks)
    reasons = [] if rating == Rating.GREEN else [c for c in checks if c.status != CheckStatus.PASS]
    actions = collect_actions(reasons)
    if not actions and rating == Rating.GREEN:
        actions.append(baseline_action)

    summary = ReadinessSummary(
        total_checks=len(checks),
        passed_checks=passed,
        warning_checks=warned,
        failed_checks=failed,
        total_packed_items=len(items),
        formulation_adequacy_status=_status_of(checks, formulation_rule_id),
        pediatric_readiness_status=_status_of(checks, pediatric_rule_id),
        pediatric_readiness_confidence=pediatric_confidence_percent,
    )

    logger.info(
        "readiness_rating | trip_id=%s | rating=%s | passed=%s | warned=%s | failed=%s | actions=%s",
        trip.trip_id,
        rating.value,
        passed,
        warned,
        failed,
        len(actions),
    )

    return EvaluateTripPackingReadinessResponse(
        trip=trip,
        rating=rating,
        summary=summary,
        reasons=reasons,
        checks=checks,
        recommended_actions=actions,
    )
