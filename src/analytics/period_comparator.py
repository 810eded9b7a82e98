"""
Period Comparator
=================

Compares the reviews of two disjoint periods: volume, rating, response
rate, sentiment mix, theme sets and staff mentions.

Every scalar metric gets:
    change        = current - previous
    changePercent = change / max(|previous|, eps) * 100
    trend         = stable inside the dead-band, otherwise up/down

Comparing (A, B) and (B, A) yields negated changes, swapped new/removed
theme sets and swapped improving/declining themes.

Usage:
    comparator = PeriodComparator()
    current = PeriodData.from_reviews(reviews, start, now, "Last 30 Days")
    previous = PeriodData.from_reviews(reviews, start - delta, start, "Previous 30 Days")
    metrics = comparator.compare(current, previous)
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.errors import PeriodOverlapError
from ..reviews.review_models import Review, parse_timestamp
from ..reviews.review_source import filter_reviews_by_range
from .analysis_config import AnalysisConfig, add_months
from .analysis_models import AnalysisSummaryData, TrendDirection
from .analytics_config import DEFAULT_COMPARISON_SETTINGS, ComparisonSettings
from .metrics_aggregator import MetricsAggregator, round2

logger = logging.getLogger(__name__)

SENTIMENT_KEYS = ("positive", "neutral", "negative", "mixed")


@dataclass(frozen=True)
class PeriodData:
    """A labelled window [start, end) and the reviews published inside it."""
    label: str
    start: datetime
    end: datetime
    reviews: Tuple[Review, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "start", parse_timestamp(self.start))
        object.__setattr__(self, "end", parse_timestamp(self.end))

    @classmethod
    def from_reviews(
        cls,
        reviews: Iterable[Review],
        start: datetime,
        end: datetime,
        label: str,
    ) -> "PeriodData":
        return cls(label=label, start=start, end=end, reviews=tuple(filter_reviews_by_range(reviews, start, end)))

    def overlaps(self, other: "PeriodData") -> bool:
        return not (self.end <= other.start or other.end <= self.start)


@dataclass(frozen=True)
class MetricComparison:
    current: float
    previous: float
    change: float
    change_percent: float
    trend: TrendDirection


@dataclass(frozen=True)
class SentimentComparison:
    current: Dict[str, float] = field(default_factory=dict)     # label -> %
    previous: Dict[str, float] = field(default_factory=dict)
    changes: Dict[str, float] = field(default_factory=dict)     # percentage points


@dataclass(frozen=True)
class ThemeComparison:
    new: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    improving: List[str] = field(default_factory=list)
    consistent: List[str] = field(default_factory=list)
    declining: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StaffComparison:
    current: Dict[str, int] = field(default_factory=dict)
    previous: Dict[str, int] = field(default_factory=dict)
    changes: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ComparisonMetrics:
    current_label: str
    previous_label: str
    review_count: MetricComparison
    average_rating: MetricComparison
    response_rate: MetricComparison
    negative_sentiment: MetricComparison
    sentiment: SentimentComparison
    themes: ThemeComparison
    staff_mentions: StaffComparison


@dataclass(frozen=True)
class ComparisonWindow:
    """One of the standard comparisons (30-day, 90-day, year-over-year)."""
    label: str
    current: PeriodData
    previous: PeriodData


class PeriodComparator:
    """Pure period-over-period comparison built on the metrics aggregator."""

    def __init__(
        self,
        aggregator: Optional[MetricsAggregator] = None,
        settings: Optional[ComparisonSettings] = None,
    ):
        self.aggregator = aggregator or MetricsAggregator()
        self.settings = settings or DEFAULT_COMPARISON_SETTINGS
        self._period_config = AnalysisConfig(include_action_items=False)

    def compare(self, current: PeriodData, previous: PeriodData) -> ComparisonMetrics:
        """
        Raises:
            PeriodOverlapError: the two windows share any instant
        """
        if current.overlaps(previous):
            raise PeriodOverlapError(
                f"Periods '{current.label}' and '{previous.label}' overlap; "
                f"previous must end before current starts"
            )

        cur = self._summarize(current)
        prev = self._summarize(previous)

        return ComparisonMetrics(
            current_label=current.label,
            previous_label=previous.label,
            review_count=self.compare_values(len(current.reviews), len(previous.reviews)),
            average_rating=self.compare_values(
                cur.rating_analysis.average_rating, prev.rating_analysis.average_rating
            ),
            response_rate=self.compare_values(
                cur.response_analytics.response_rate,
                prev.response_analytics.response_rate,
                points=True,
            ),
            negative_sentiment=self.compare_values(
                cur.sentiment_analysis.negative_percentage,
                prev.sentiment_analysis.negative_percentage,
                points=True,
            ),
            sentiment=self.compare_sentiment(cur, prev),
            themes=self.compare_themes(current.reviews, previous.reviews),
            staff_mentions=self.compare_staff(current.reviews, previous.reviews),
        )

    def _summarize(self, period: PeriodData) -> AnalysisSummaryData:
        return self.aggregator.summarize_period(
            period.reviews, period.start, period.end, period.label, config=self._period_config
        )

    # -------------------------------------------------------------------------
    # SCALARS
    # -------------------------------------------------------------------------

    def change_percent(self, current: float, previous: float) -> float:
        change = current - previous
        if abs(previous) < self.settings.zero_epsilon:
            if change == 0:
                return 0.0
            return 100.0 if change > 0 else -100.0
        return round2(change / abs(previous) * 100)

    def compare_values(self, current: float, previous: float, points: bool = False) -> MetricComparison:
        """
        Compare one scalar metric.

        ``points`` marks percentage metrics, whose dead-band applies to the
        absolute change in percentage points instead of changePercent.
        """
        change = current - previous
        pct = self.change_percent(current, previous)
        if points:
            stable = abs(change) < self.settings.stable_points_band
        else:
            stable = abs(pct) < self.settings.stable_percent_band

        if stable:
            trend = TrendDirection.STABLE
        else:
            trend = TrendDirection.UP if change > 0 else TrendDirection.DOWN

        return MetricComparison(
            current=current,
            previous=previous,
            change=change,
            change_percent=pct,
            trend=trend,
        )

    def compare_sentiment(self, cur: AnalysisSummaryData, prev: AnalysisSummaryData) -> SentimentComparison:
        current = {k: cur.sentiment_analysis.distribution[k].percentage for k in SENTIMENT_KEYS}
        previous = {k: prev.sentiment_analysis.distribution[k].percentage for k in SENTIMENT_KEYS}
        return SentimentComparison(
            current=current,
            previous=previous,
            changes={k: round2(current[k] - previous[k]) for k in SENTIMENT_KEYS},
        )

    # -------------------------------------------------------------------------
    # THEMES & STAFF
    # -------------------------------------------------------------------------

    @staticmethod
    def theme_stats(reviews: Iterable[Review]) -> Dict[str, Tuple[float, float]]:
        """theme -> (share of reviews mentioning it, average rating of those reviews)"""
        reviews = list(reviews)
        ratings: Dict[str, List[int]] = defaultdict(list)
        for review in reviews:
            for theme in review.theme_list:
                ratings[theme].append(review.rating)
        return {
            theme: (len(values) / len(reviews), sum(values) / len(values))
            for theme, values in ratings.items()
        }

    def compare_themes(self, current: Iterable[Review], previous: Iterable[Review]) -> ThemeComparison:
        """
        Theme set differences.

        A theme present in both periods is improving or declining when its
        average rating moved beyond the rating epsilon; otherwise its share
        of reviews decides, within the share epsilon it is consistent.
        """
        s = self.settings
        cur = self.theme_stats(current)
        prev = self.theme_stats(previous)

        improving, consistent, declining = [], [], []
        for theme in sorted(set(cur) & set(prev)):
            share_delta = cur[theme][0] - prev[theme][0]
            rating_delta = cur[theme][1] - prev[theme][1]
            if abs(rating_delta) > s.theme_rating_epsilon:
                (improving if rating_delta > 0 else declining).append(theme)
            elif abs(share_delta) > s.theme_share_epsilon:
                (improving if share_delta > 0 else declining).append(theme)
            else:
                consistent.append(theme)

        return ThemeComparison(
            new=sorted(set(cur) - set(prev)),
            removed=sorted(set(prev) - set(cur)),
            improving=improving,
            consistent=consistent,
            declining=declining,
        )

    @staticmethod
    def staff_counts(reviews: Iterable[Review]) -> Dict[str, int]:
        return dict(Counter(name for review in reviews for name in review.staff_list))

    def compare_staff(self, current: Iterable[Review], previous: Iterable[Review]) -> StaffComparison:
        cur = self.staff_counts(current)
        prev = self.staff_counts(previous)
        names = sorted(set(cur) | set(prev))
        return StaffComparison(
            current=cur,
            previous=prev,
            changes={name: cur.get(name, 0) - prev.get(name, 0) for name in names},
        )


def generate_comparison_periods(
    reviews: Iterable[Review],
    now: Optional[datetime] = None,
) -> List[ComparisonWindow]:
    """
    Standard comparisons anchored at ``now``:
        - last 30 days vs the 30 days before
        - last 90 days vs the 90 days before
        - this year to date vs the same span of last year
    """
    now = parse_timestamp(now) if now is not None else datetime.utcnow()
    reviews = list(reviews)
    windows = []

    for days in (30, 90):
        start = now - timedelta(days=days)
        windows.append(ComparisonWindow(
            label=f"{days}-Day Comparison",
            current=PeriodData.from_reviews(reviews, start, now, f"Last {days} Days"),
            previous=PeriodData.from_reviews(reviews, start - timedelta(days=days), start, f"Previous {days} Days"),
        ))

    year_start = datetime(now.year, 1, 1)
    last_year_start = datetime(now.year - 1, 1, 1)
    last_year_end = min(add_months(now, -12), year_start)
    windows.append(ComparisonWindow(
        label="Year-over-Year Comparison",
        current=PeriodData.from_reviews(reviews, year_start, now, "This Year"),
        previous=PeriodData.from_reviews(reviews, last_year_start, last_year_end, "Last Year (Same Period)"),
    ))

    logger.debug(f"Generated {len(windows)} comparison windows for {len(reviews)} reviews")
    return windows
