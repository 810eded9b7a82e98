"""
Analysis Data Models
====================

Structured outputs of the analytics engine. Every structure is derived
and recomputed on each call; they are frozen once returned.

Percentages are expressed on a 0-100 scale and rounded to 2 decimals.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .analysis_config import TimePeriodConfig


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class SeasonalPattern(str, Enum):
    STABLE = "stable"
    SEASONAL = "seasonal"
    DECLINING = "declining"
    GROWING = "growing"


class TopicTrend(str, Enum):
    RISING = "rising"
    DECLINING = "declining"
    STABLE = "stable"


class StaffTrend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Urgency(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class HealthLabel(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    NEEDS_ATTENTION = "Needs Attention"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class CountShare:
    count: int = 0
    percentage: float = 0.0


# =============================================================================
# PERFORMANCE
# =============================================================================

@dataclass(frozen=True)
class RecentActivity:
    last_3_months: int = 0
    last_6_months: int = 0
    last_12_months: int = 0


@dataclass(frozen=True)
class PerformanceTrends:
    is_growing: bool = False
    seasonal_pattern: SeasonalPattern = SeasonalPattern.STABLE
    best_periods: List[str] = field(default_factory=list)    # "YYYY-MM"
    worst_periods: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PerformanceMetrics:
    total_reviews: int = 0
    dated_reviews: int = 0
    reviews_per_month: float = 0.0
    growth_rate: float = 0.0               # % change, recent window vs prior window
    recent_window_reviews: int = 0
    prior_window_reviews: int = 0
    peak_month: str = ""                    # month name of the busiest YYYY-MM bucket
    peak_year: str = ""
    recent_activity: RecentActivity = field(default_factory=RecentActivity)
    trends: PerformanceTrends = field(default_factory=PerformanceTrends)


# =============================================================================
# RATINGS
# =============================================================================

@dataclass(frozen=True)
class RatingTrend:
    current: float = 0.0
    previous: float = 0.0
    change: float = 0.0
    direction: TrendDirection = TrendDirection.STABLE


@dataclass(frozen=True)
class RatingBenchmarks:
    excellent: float = 0.0                  # % of reviews rated >= 4
    good: float = 0.0                       # % rated >= 3
    needs_improvement: float = 0.0          # % rated <= 2


def _empty_rating_distribution() -> Dict[int, CountShare]:
    return {star: CountShare() for star in range(1, 6)}


@dataclass(frozen=True)
class RatingAnalysis:
    average_rating: float = 0.0
    distribution: Dict[int, CountShare] = field(default_factory=_empty_rating_distribution)
    trend: RatingTrend = field(default_factory=RatingTrend)
    benchmarks: RatingBenchmarks = field(default_factory=RatingBenchmarks)


# =============================================================================
# RESPONSES
# =============================================================================

@dataclass(frozen=True)
class ResponseByRating:
    total: int = 0
    responded: int = 0
    rate: float = 0.0


@dataclass(frozen=True)
class ResponseEffectiveness:
    """
    Heuristic: compares the rating change of returning reviewers whose
    previous review got an owner response with those whose did not.
    """
    improved_subsequent_ratings: bool = False
    customer_satisfaction_impact: float = 0.0   # stars, responded delta - unresponded delta
    sample_size: int = 0


@dataclass(frozen=True)
class ResponseAnalytics:
    response_rate: float = 0.0
    responded_reviews: int = 0
    responses_by_rating: Dict[int, ResponseByRating] = field(
        default_factory=lambda: {star: ResponseByRating() for star in range(1, 6)}
    )
    effectiveness: ResponseEffectiveness = field(default_factory=ResponseEffectiveness)


# =============================================================================
# SENTIMENT
# =============================================================================

@dataclass(frozen=True)
class SentimentPeriod:
    period: str                             # "Q1 2024"
    positive: int = 0
    neutral: int = 0
    negative: int = 0
    mixed: int = 0


@dataclass(frozen=True)
class SentimentCorrelation:
    high_rating_positive: int = 0           # 4-5 stars
    high_rating_negative: int = 0
    low_rating_positive: int = 0            # 1-2 stars
    low_rating_negative: int = 0


def _empty_sentiment_distribution() -> Dict[str, CountShare]:
    return {label: CountShare() for label in ("positive", "neutral", "negative", "mixed")}


@dataclass(frozen=True)
class SentimentAnalysis:
    distribution: Dict[str, CountShare] = field(default_factory=_empty_sentiment_distribution)
    trends: List[SentimentPeriod] = field(default_factory=list)
    correlation: SentimentCorrelation = field(default_factory=SentimentCorrelation)

    @property
    def positive_percentage(self) -> float:
        return self.distribution.get("positive", CountShare()).percentage

    @property
    def negative_percentage(self) -> float:
        return self.distribution.get("negative", CountShare()).percentage


# =============================================================================
# THEMES & STAFF
# =============================================================================

@dataclass(frozen=True)
class ThemeCategory:
    theme: str
    count: int
    percentage: float                       # % of reviews mentioning the theme
    average_rating: float
    sentiment: str                          # dominant sentiment label
    negative_count: int = 0


@dataclass(frozen=True)
class TrendingTopic:
    topic: str
    count: int
    trend: TopicTrend
    recent_mentions: int
    recent_share: float = 0.0
    prior_share: float = 0.0


@dataclass(frozen=True)
class AttentionArea:
    theme: str
    negative_count: int
    total_mentions: int
    negative_ratio: float
    average_rating: float
    urgency: Urgency


@dataclass(frozen=True)
class ThematicAnalysis:
    top_categories: List[ThemeCategory] = field(default_factory=list)
    trending_topics: List[TrendingTopic] = field(default_factory=list)
    attention_areas: List[AttentionArea] = field(default_factory=list)


@dataclass(frozen=True)
class StaffMention:
    name: str
    total_mentions: int
    positive_mentions: int
    negative_mentions: int
    average_rating_in_mentions: float
    trend: StaffTrend = StaffTrend.STABLE
    examples: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StaffInsights:
    mentions: List[StaffMention] = field(default_factory=list)
    overall_staff_score: float = 0.0
    training_opportunities: List[str] = field(default_factory=list)


# =============================================================================
# OPERATIONS
# =============================================================================

@dataclass(frozen=True)
class LanguageShare:
    language: str
    count: int
    percentage: float
    average_rating: float


@dataclass(frozen=True)
class ReviewPatterns:
    peak_days: List[str] = field(default_factory=list)
    peak_months: List[str] = field(default_factory=list)
    quiet_periods: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CustomerLoyalty:
    distinct_reviewers: int = 0
    repeat_reviewers: int = 0
    loyalty_score: float = 0.0              # 0-100
    average_days_between_visits: Optional[float] = None


@dataclass(frozen=True)
class OperationalInsights:
    language_diversity: List[LanguageShare] = field(default_factory=list)
    review_patterns: ReviewPatterns = field(default_factory=ReviewPatterns)
    customer_loyalty: CustomerLoyalty = field(default_factory=CustomerLoyalty)


# =============================================================================
# ACTION ITEMS
# =============================================================================

@dataclass(frozen=True)
class UrgentItem:
    kind: str                               # unresponded_negative | trending_negative | staff_issue
    description: str
    priority: str                           # critical | high | medium
    affected_reviews: int
    suggested_action: str


@dataclass(frozen=True)
class Improvement:
    area: str
    description: str
    potential_impact: str
    effort: str
    suggested_actions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Strength:
    area: str
    description: str
    leverage_opportunities: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MonitoringTarget:
    metric: str
    description: str
    target_value: float
    current_value: float


@dataclass(frozen=True)
class ActionItems:
    urgent: List[UrgentItem] = field(default_factory=list)
    improvements: List[Improvement] = field(default_factory=list)
    strengths: List[Strength] = field(default_factory=list)
    monitoring: List[MonitoringTarget] = field(default_factory=list)


# =============================================================================
# HEALTH SCORE & SUMMARY
# =============================================================================

@dataclass(frozen=True)
class HealthBreakdown:
    rating: int = 0
    sentiment: int = 0
    response: int = 0


@dataclass(frozen=True)
class BusinessHealthScore:
    overall: int                            # clamp(round(weighted sum), 0, 100)
    label: HealthLabel
    breakdown: HealthBreakdown
    rating_trend: float = 0.0               # stars, current - previous window
    response_rate: float = 0.0
    volume_trend: float = 0.0               # growth rate %


@dataclass(frozen=True)
class DataSource:
    business_name: str
    total_reviews: int
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class AnalysisSummaryData:
    performance_metrics: PerformanceMetrics
    rating_analysis: RatingAnalysis
    response_analytics: ResponseAnalytics
    sentiment_analysis: SentimentAnalysis
    thematic_analysis: ThematicAnalysis
    staff_insights: StaffInsights
    operational_insights: OperationalInsights
    action_items: ActionItems
    time_period: TimePeriodConfig
    generated_at: datetime
    data_source: DataSource
    health_score: Optional[BusinessHealthScore] = None

    @property
    def total_reviews(self) -> int:
        return self.performance_metrics.total_reviews

    @property
    def is_empty(self) -> bool:
        return self.performance_metrics.total_reviews == 0

    def with_health_score(self, score: BusinessHealthScore) -> "AnalysisSummaryData":
        return replace(self, health_score=score)
