"""
Review Analytics Error Taxonomy
===============================

Exceptions raised by the analytics and alerting engine.

Propagation policy:
    - Configuration problems (ConfigError) are raised when the configuration
      is built or loaded, never while evaluating.
    - Empty or malformed review collections do not raise: the aggregator
      returns a zeroed summary. InputError is only raised when parsing a
      single review record.
    - Anything unexpected during computation is converted by the service
      facade into AnalysisUnavailableError.
"""


class ReviewAnalyticsError(Exception):
    """Base class for all engine errors."""


class ConfigError(ReviewAnalyticsError, ValueError):
    """Invalid thresholds, weights or analysis configuration."""


class InputError(ReviewAnalyticsError, ValueError):
    """A review record could not be parsed."""


class PeriodOverlapError(ReviewAnalyticsError, ValueError):
    """The two periods handed to a comparison overlap."""


class AnalysisUnavailableError(ReviewAnalyticsError):
    """Generic 'analysis unavailable' condition surfaced to the UI layer."""

    def __init__(self, message: str = "Analysis unavailable"):
        super().__init__(message)
