"""
ReviewPulse Orchestrator Module
===============================

Service layer wiring the analytics, alerting, cache and notification
components together.

Components:
    - ReviewAnalyticsService: Facade of the exposed operations
    - AppConfig / load_config: Environment configuration
    - setup_logging: Structured logging
    - CLI: Command-line interface (python -m src.orchestrator.cli)

Usage:
    from src.orchestrator import ReviewAnalyticsService

    with ReviewAnalyticsService.from_config() as service:
        summary = service.compute_summary(reviews, business_name="Cafe Nord")
"""

from .analytics_service import ReviewAnalyticsService
from .config import AppConfig, load_config
from .logging_config import JSONFormatter, setup_logging

__all__ = [
    "ReviewAnalyticsService",
    "AppConfig",
    "load_config",
    "JSONFormatter",
    "setup_logging",
]
