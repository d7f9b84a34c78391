"""
main.py - CLI orchestration for trip packing readiness.

This module is orchestration-only:
1. fetch trip data (API or local JSON)
2. evaluate readiness rules
3. explain

Exit codes:
    0  evaluation completed (any rating unless --strict)
    1  operational error (bad input, missing trip, upstream failure)
    2  RED rating with --strict
    3  YELLOW rating with --strict
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from explain import format_readiness_json, format_readiness_report
from logging_config import get_logger, level_from_env, setup_logging
from models import EvaluateTripPackingReadinessInput, EvaluateTripPackingReadinessResponse, Rating
from readiness import evaluate_trip_packing_readiness
from readiness_config import load_readiness_config
from trip_provider import (
    FileTripProvider,
    TripDataProvider,
    TripNotFoundError,
    UpstreamRetrievalError,
    provider_from_env,
)

logger = get_logger("trip-readiness")

STRICT_EXIT_CODES: dict[Rating, int] = {
    Rating.GREEN: 0,
    Rating.RED: 2,
    Rating.YELLOW: 3,
}


def _trip_id_from_file(path: str) -> int:
    """Read the trip id out of a local `{trip, items}` payload."""
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Trip file not found: {path}")
    try:
        payload = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Trip file is not valid JSON: {path}: {exc}") from exc

    trip = payload.get("trip") if isinstance(payload, dict) else None
    raw_id = trip.get("tripId", trip.get("trip_id")) if isinstance(trip, dict) else None
    if raw_id is None:
        raise ValueError(f"Trip file has no trip.tripId: {path}")
    try:
        return int(raw_id)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Trip file has a non-integer trip.tripId: {raw_id!r}") from exc


def run_evaluation(
    trip_id: int,
    provider: TripDataProvider,
    shelf_life_days: Optional[int] = None,
    include_evidence: bool = True,
    config_path: Optional[str] = None,
) -> EvaluateTripPackingReadinessResponse:
    """Fetch one trip and evaluate it, logging stage timings."""
    pipeline_start = time.time()
    logger.info("pipeline_start | trip_id=%s", trip_id)

    config = load_readiness_config(config_path)
    request = EvaluateTripPackingReadinessInput(
        trip_id=trip_id,
        shelf_life_days=shelf_life_days,
        include_evidence=include_evidence,
    )
    response = evaluate_trip_packing_readiness(request, provider, config)

    logger.info(
        "pipeline_complete | trip_id=%s | rating=%s | duration_s=%.2f",
        trip_id,
        response.rating.value,
        time.time() - pipeline_start,
    )
    return response


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trip-readiness",
        description=(
            "Trip Packing Readiness Evaluator\n"
            "Rates a relief trip's packed medication inventory GREEN/YELLOW/RED "
            "and explains why."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --trip-id 23\n"
            "  %(prog)s --trip-file test_data/trip_compliant.json\n"
            "  %(prog)s --trip-id 23 --shelf-life-days 365 --json --strict\n"
        ),
    )
    parser.add_argument("--trip-id", "-t", type=int, help="Trip id to evaluate")
    parser.add_argument(
        "--trip-file",
        "-f",
        type=str,
        help="Evaluate a local {trip, items} JSON file instead of calling the trip API",
    )
    parser.add_argument(
        "--shelf-life-days",
        type=int,
        default=None,
        help="Minimum remaining validity after trip start, in days (default 180)",
    )
    parser.add_argument(
        "--no-evidence",
        action="store_true",
        help="Omit diagnostic evidence payloads from each check",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON file overriding readiness thresholds (default: READINESS_CONFIG_FILE)",
    )
    parser.add_argument(
        "--all-checks",
        action="store_true",
        help="List every check in text output, not only the failing ones",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit 2 on RED and 3 on YELLOW",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose (DEBUG-level) logging",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON instead of formatted text",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs as JSON lines (for production/log aggregation)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for the readiness evaluator."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else level_from_env(),
        json_format=args.log_json,
    )

    if not args.trip_id and not args.trip_file:
        parser.error("Provide either --trip-id ID or --trip-file PATH")

    try:
        if args.trip_file:
            logger.info("cli_mode | mode=file | path=%s", args.trip_file)
            provider: TripDataProvider = FileTripProvider(args.trip_file)
            trip_id = args.trip_id or _trip_id_from_file(args.trip_file)
        else:
            logger.info("cli_mode | mode=provider | trip_id=%s", args.trip_id)
            provider = provider_from_env()
            trip_id = args.trip_id

        response = run_evaluation(
            trip_id,
            provider,
            shelf_life_days=args.shelf_life_days,
            include_evidence=not args.no_evidence,
            config_path=args.config,
        )
    except (TripNotFoundError, UpstreamRetrievalError) as exc:
        logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except (FileNotFoundError, ValidationError, ValueError) as exc:
        logger.error("cli_error | type=%s | error=%s", type(exc).__name__, exc)
        print(f"\nError: {exc}")
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("\nInterrupted.")
        raise SystemExit(130)
    except Exception as exc:
        logger.error(
            "cli_error | type=%s | error=%s",
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        print(f"\nUnexpected error: {exc}")
        print("Run with --verbose for full traceback.")
        raise SystemExit(1) from exc

    if args.json:
        print(json.dumps(format_readiness_json(response), indent=2))
    else:
        print(format_readiness_report(response, show_all_checks=args.all_checks))

    if args.strict:
        sys.stdout.flush()
        raise SystemExit(STRICT_EXIT_CODES[response.rating])


if __name__ == "__main__":
    main()
