"""
explain.py - Human-readable and JSON-ready readiness formatting.

This module converts an `EvaluateTripPackingReadinessResponse` into:
- terminal-friendly text output for CLI usage
- machine-friendly dictionary output for APIs/logging/storage
"""

from __future__ import annotations

from typing import Any

from logging_config import get_logger
from models import CheckStatus, EvaluateTripPackingReadinessResponse, Rating

logger = get_logger(__name__)

RATING_HEADERS: dict[Rating, str] = {
    Rating.GREEN: "READY - GREEN",
    Rating.YELLOW: "READY WITH WARNINGS - YELLOW",
    Rating.RED: "NOT READY - RED",
}

STATUS_MARKERS: dict[CheckStatus, str] = {
    CheckStatus.PASS: "[PASS]",
    CheckStatus.WARN: "[WARN]",
    CheckStatus.FAIL: "[FAIL]",
}

OUTPUT_WIDTH = 72
SEPARATOR = "=" * OUTPUT_WIDTH


def format_readiness_report(
    response: EvaluateTripPackingReadinessResponse | None,
    show_all_checks: bool = False,
) -> str:
    """Format a readiness response into a clean, human-readable text block."""
    if response is None:
        logger.error("explain_input_error | response_none=True | fallback=error_block")
        return "\n" + SEPARATOR + "\n  ERROR: No readiness data available\n" + SEPARATOR + "\n"

    trip = response.trip
    summary = response.summary
    lines: list[str] = [""]

    lines.append(SEPARATOR)
    lines.append(f"  {RATING_HEADERS[response.rating]}")
    lines.append(SEPARATOR)

    lines.append("")
    lines.append(f"  Trip:         #{trip.trip_id} {trip.name}".rstrip())
    lines.append(
        f"                {trip.start_date.isoformat()} to {trip.end_date.isoformat()}  |  "
        f"{trip.country_code or 'country unknown'}  |  {trip.status.value}"
    )
    lines.append(f"  Packed items: {summary.total_packed_items}")
    lines.append(
        f"  Checks:       {summary.passed_checks} passed, {summary.warning_checks} warned, "
        f"{summary.failed_checks} failed (of {summary.total_checks})"
    )
    lines.append(
        f"  Pediatric:    {summary.pediatric_readiness_confidence}% confidence "
        f"({summary.pediatric_readiness_status.value})"
    )
    lines.append(f"  Formulation:  {summary.formulation_adequacy_status.value}")

    shown = response.checks if show_all_checks else response.reasons
    lines.append("")
    lines.append("  Checks:" if show_all_checks else "  Reasons:")
    if not shown:
        lines.append("    • (all readiness rules passed)")
    for check in shown:
        lines.append(f"    {STATUS_MARKERS[check.status]} {check.rule_name}")
        lines.append(f"        {check.message}")

    lines.append("")
    lines.append("  Recommended actions:")
    for action in response.recommended_actions:
        lines.append(f"    • {action}")

    lines.append("")
    lines.append(SEPARATOR)
    lines.append("")
    return "\n".join(lines)


def format_readiness_json(response: EvaluateTripPackingReadinessResponse) -> dict[str, Any]:
    """camelCase, JSON-serializable form of a readiness response."""
    return response.to_wire()
