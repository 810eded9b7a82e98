"""
Core Definitions
================

Shared, dependency-free definitions used by every engine package.
"""

from .errors import (
    ReviewAnalyticsError,
    ConfigError,
    InputError,
    PeriodOverlapError,
    AnalysisUnavailableError,
)
