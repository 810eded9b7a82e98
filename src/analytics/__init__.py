"""
Review Analytics
================

Pure computations over review collections.

Modules:
    analysis_config    - AnalysisConfig, time periods and their resolution
    analytics_config   - Tunable weights and thresholds of the algorithms
    analysis_models    - Output data contracts (AnalysisSummaryData, ...)
    metrics_aggregator - Reviews -> summary sections
    health_scorer      - Summary -> 0-100 business health score
    period_comparator  - Period-over-period comparison
    trend_analyzer     - Temporal patterns, historical series, forecasts
    serialization      - JSON conversion of the data contracts
"""

from .analysis_config import (
    AnalysisConfig,
    AnalysisConfigBuilder,
    ComparisonPeriod,
    PeriodBounds,
    TimePeriod,
    TimePeriodConfig,
    resolve_time_periods,
)
from .analysis_models import AnalysisSummaryData, BusinessHealthScore, HealthLabel, TrendDirection
from .analytics_config import AggregatorSettings, ComparisonSettings, HealthWeights, TrendSettings
from .health_scorer import HealthScorer
from .metrics_aggregator import MetricsAggregator
from .period_comparator import (
    ComparisonMetrics,
    ComparisonWindow,
    PeriodComparator,
    PeriodData,
    generate_comparison_periods,
)
from .trend_analyzer import TrendAnalyzer, TrendReport
