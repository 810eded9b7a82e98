"""
ReviewPulse CLI
===============

Command-line interface for the review analytics and alerting engine.

Commands:
    summary  - Compute the analysis summary and health score of a business
    compare  - Compare two periods (explicit dates or the standard windows)
    trends   - Temporal patterns, historical trends and seasonality
    alerts   - Evaluate a summary against thresholds and record new alerts
    history  - Show the alert history of a business
    ack      - Acknowledge an alert
    rules    - Show the notification rules of a business

Reviews are read from a JSON export (see JsonFileReviewSource).

Usage:
    python -m src.orchestrator.cli summary --reviews reviews.json --business "Cafe Nord"
    python -m src.orchestrator.cli compare --reviews reviews.json --business "Cafe Nord" --standard
    python -m src.orchestrator.cli alerts --reviews reviews.json --business "Cafe Nord" --thresholds t.json
    python -m src.orchestrator.cli ack --business "Cafe Nord" --alert-id alert-1f2e...
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from ..alerts.alert_models import AnalysisAlert, NotificationRule
from ..alerts.thresholds import load_thresholds
from ..analytics.analysis_config import AnalysisConfig, ComparisonPeriod, TimePeriod
from ..analytics.period_comparator import (
    ComparisonMetrics,
    ComparisonWindow,
    PeriodData,
    generate_comparison_periods,
)
from ..analytics.serialization import to_json
from ..core.errors import ReviewAnalyticsError
from ..reviews.review_models import parse_timestamp
from ..reviews.review_source import JsonFileReviewSource
from .analytics_service import ReviewAnalyticsService
from .config import load_config
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}")
    return parsed


def _load_reviews(args):
    source = JsonFileReviewSource(Path(args.reviews))
    reviews = source.fetch_reviews(args.business)
    if not reviews:
        logger.warning(f"No reviews found for '{args.business}' in {args.reviews}")
    return reviews


def _analysis_config(args) -> AnalysisConfig:
    builder = (
        AnalysisConfig.builder()
        .time_period(TimePeriod(args.period))
        .comparison(ComparisonPeriod(args.comparison))
        .staff_analysis(not args.no_staff)
        .thematic_analysis(not args.no_themes)
        .action_items(not args.no_actions)
    )
    if args.start or args.end:
        builder.custom_range(args.start, args.end)
    return builder.build()


def cmd_summary(service: ReviewAnalyticsService, args) -> int:
    """Compute and print the summary of a business."""
    summary = service.compute_summary(
        _load_reviews(args), _analysis_config(args), business_name=args.business, now=args.now
    )

    if args.json:
        print(to_json(summary, indent=2))
        return 0

    print("=" * 60)
    print(f"REVIEW SUMMARY: {args.business}")
    print("=" * 60)
    print(f"Period: {summary.time_period.current.label}")
    print(f"Reviews: {summary.total_reviews}")
    print(f"Average rating: {summary.rating_analysis.average_rating}")
    print(f"Response rate: {summary.response_analytics.response_rate}%")
    print(f"Negative sentiment: {summary.sentiment_analysis.negative_percentage}%")
    health = summary.health_score
    if health is not None:
        print(f"Health score: {health.overall}/100 ({health.label.value})")
    if summary.action_items.urgent:
        print()
        print("Urgent items:")
        for item in summary.action_items.urgent:
            print(f"  - [{item.priority}] {item.description}")
    return 0


def _comparison_windows(args, reviews) -> List[ComparisonWindow]:
    if args.standard:
        return generate_comparison_periods(reviews, now=args.now)
    if not (args.current_start and args.current_end and args.previous_start and args.previous_end):
        raise ReviewAnalyticsError("Either --standard or all four period dates are required")
    return [ComparisonWindow(
        label="Custom Comparison",
        current=PeriodData.from_reviews(reviews, args.current_start, args.current_end, "Current Period"),
        previous=PeriodData.from_reviews(reviews, args.previous_start, args.previous_end, "Previous Period"),
    )]


def cmd_compare(service: ReviewAnalyticsService, args) -> int:
    """Compare periods of a business."""
    reviews = _load_reviews(args)
    results = {}
    for window in _comparison_windows(args, reviews):
        results[window.label] = service.compare_periods(window.current, window.previous)

    if args.json:
        print(to_json(results, Dict[str, ComparisonMetrics], indent=2))
        return 0

    for label, metrics in results.items():
        print("=" * 60)
        print(f"{label}: {metrics.current_label} vs {metrics.previous_label}")
        print("=" * 60)
        for name in ("review_count", "average_rating", "response_rate", "negative_sentiment"):
            m = getattr(metrics, name)
            print(f"  {name:20} {m.previous:>8} -> {m.current:<8} ({m.change_percent:+.1f}%, {m.trend.value})")
        if metrics.themes.new:
            print(f"  New themes: {', '.join(metrics.themes.new)}")
        if metrics.themes.removed:
            print(f"  Removed themes: {', '.join(metrics.themes.removed)}")
        print()
    return 0


def cmd_trends(service: ReviewAnalyticsService, args) -> int:
    """Print the trend report of a business."""
    report = service.analyze_trends(_load_reviews(args))
    print(to_json(report, indent=2))
    return 0


def cmd_alerts(service: ReviewAnalyticsService, args) -> int:
    """Evaluate alert conditions and print the alerts created."""
    reviews = _load_reviews(args)
    summary = service.compute_summary(
        reviews, _analysis_config(args), business_name=args.business, now=args.now
    )
    thresholds = load_thresholds(Path(args.thresholds)) if args.thresholds else None

    comparison = None
    if args.with_trends:
        window = generate_comparison_periods(reviews, now=args.now)[0]
        comparison = service.compare_periods(window.current, window.previous)

    alerts = service.evaluate_alerts(args.business, summary, thresholds, comparison)

    if args.json:
        print(to_json(alerts, List[AnalysisAlert], indent=2))
        return 0

    print(f"{len(alerts)} new alert(s) for {args.business}")
    for alert in alerts:
        print(f"  [{alert.severity.value.upper():8}] {alert.title} ({alert.id})")
        print(f"             {alert.message}")
    return 0


def cmd_history(service: ReviewAnalyticsService, args) -> int:
    """Print the alert history of a business."""
    history = service.get_alert_history(args.business)
    if args.open:
        history = [a for a in history if not a.acknowledged]

    if args.json:
        print(to_json(history, List[AnalysisAlert], indent=2))
        return 0

    print(f"{len(history)} alert(s) for {args.business}")
    for alert in history:
        status = "ack" if alert.acknowledged else "open"
        print(f"  {alert.triggered_at:%Y-%m-%d %H:%M} [{alert.severity.value:8}] {status:4} {alert.title} ({alert.id})")
    return 0


def cmd_ack(service: ReviewAnalyticsService, args) -> int:
    """Acknowledge an alert."""
    if service.acknowledge_alert(args.business, args.alert_id):
        print(f"Acknowledged {args.alert_id}")
        return 0
    print(f"ERROR: Unknown alert id {args.alert_id}")
    return 1


def cmd_rules(service: ReviewAnalyticsService, args) -> int:
    """Print the notification rules of a business."""
    print(to_json(service.get_notification_rules(args.business), List[NotificationRule], indent=2))
    return 0


def _add_review_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--reviews", required=True, help="JSON export of reviews")
    parser.add_argument(
        "--now",
        type=_parse_date,
        help="Anchor date of relative periods (default: current UTC time)",
    )


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--period",
        choices=[p.value for p in TimePeriod],
        default=TimePeriod.ALL.value,
        help="Analysis period (default: all)",
    )
    parser.add_argument(
        "--comparison",
        choices=[c.value for c in ComparisonPeriod],
        default=ComparisonPeriod.PREVIOUS.value,
        help="Comparison window for the rating trend (default: previous)",
    )
    parser.add_argument("--start", type=_parse_date, help="Custom period start")
    parser.add_argument("--end", type=_parse_date, help="Custom period end")
    parser.add_argument("--no-staff", action="store_true", help="Skip staff analysis")
    parser.add_argument("--no-themes", action="store_true", help="Skip thematic analysis")
    parser.add_argument("--no-actions", action="store_true", help="Skip action items")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reviewpulse",
        description="Review analytics and alerting CLI",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # every command is scoped to one business
    business = argparse.ArgumentParser(add_help=False)
    business.add_argument("--business", required=True, help="Business name")
    business.add_argument("--json", action="store_true", help="Output as JSON")

    summary_parser = subparsers.add_parser("summary", parents=[business], help="Compute the analysis summary")
    _add_review_args(summary_parser)
    _add_config_args(summary_parser)

    compare_parser = subparsers.add_parser("compare", parents=[business], help="Compare two periods")
    _add_review_args(compare_parser)
    compare_parser.add_argument(
        "--standard",
        action="store_true",
        help="Use the 30-day, 90-day and year-over-year windows",
    )
    compare_parser.add_argument("--current-start", type=_parse_date)
    compare_parser.add_argument("--current-end", type=_parse_date)
    compare_parser.add_argument("--previous-start", type=_parse_date)
    compare_parser.add_argument("--previous-end", type=_parse_date)

    trends_parser = subparsers.add_parser("trends", parents=[business], help="Analyze trends")
    _add_review_args(trends_parser)

    alerts_parser = subparsers.add_parser("alerts", parents=[business], help="Evaluate alert conditions")
    _add_review_args(alerts_parser)
    _add_config_args(alerts_parser)
    alerts_parser.add_argument("--thresholds", help="JSON thresholds file (default: built-in)")
    alerts_parser.add_argument(
        "--with-trends",
        action="store_true",
        help="Also evaluate the 30-day comparison for trend alerts",
    )

    history_parser = subparsers.add_parser("history", parents=[business], help="Show alert history")
    history_parser.add_argument("--open", action="store_true", help="Only unacknowledged alerts")

    ack_parser = subparsers.add_parser("ack", parents=[business], help="Acknowledge an alert")
    ack_parser.add_argument("--alert-id", required=True, help="Alert id")

    subparsers.add_parser("rules", parents=[business], help="Show notification rules")

    return parser


COMMANDS = {
    "summary": cmd_summary,
    "compare": cmd_compare,
    "trends": cmd_trends,
    "alerts": cmd_alerts,
    "history": cmd_history,
    "ack": cmd_ack,
    "rules": cmd_rules,
}


def main(argv: Optional[List[str]] = None, service: Optional[ReviewAnalyticsService] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config()
        setup_logging(
            level="DEBUG" if args.verbose else config.logging.level,
            json_output=config.logging.json_output,
            log_file=config.logging.log_file,
            module_levels=config.logging.module_levels,
        )
        service = service or ReviewAnalyticsService.from_config(config)
    except (ValueError, ReviewAnalyticsError) as e:
        print(f"ERROR: Invalid configuration: {e}")
        return 2

    handler = COMMANDS[args.command]
    try:
        with service:
            return handler(service, args)
    except (OSError, ReviewAnalyticsError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
