"""
Metrics Aggregator
==================

Reduces a review collection into the analysis structures of an
AnalysisSummaryData: performance, ratings, responses, sentiment, themes,
staff, operations and action items.

The aggregator is a pure computation. It never raises on empty or
malformed input: an empty collection yields a zeroed summary and items
that are not Review instances are skipped.

Usage:
    aggregator = MetricsAggregator()
    summary = aggregator.compute(reviews, config, business_name="Cafe Nord")
"""

import calendar
import logging
from collections import Counter, defaultdict
from datetime import datetime
from statistics import mean, pstdev
from typing import Dict, Iterable, List, Optional, Tuple

from ..reviews.review_models import Review, Sentiment, parse_timestamp
from ..reviews.review_source import filter_reviews_by_range
from .analysis_config import (
    DEFAULT_ANALYSIS_CONFIG,
    AnalysisConfig,
    ComparisonPeriod,
    PeriodBounds,
    TimePeriod,
    TimePeriodConfig,
    add_months,
    resolve_time_periods,
)
from .analysis_models import (
    ActionItems,
    AnalysisSummaryData,
    AttentionArea,
    CountShare,
    CustomerLoyalty,
    DataSource,
    Improvement,
    LanguageShare,
    MonitoringTarget,
    OperationalInsights,
    PerformanceMetrics,
    PerformanceTrends,
    RatingAnalysis,
    RatingBenchmarks,
    RatingTrend,
    RecentActivity,
    ResponseAnalytics,
    ResponseByRating,
    ResponseEffectiveness,
    ReviewPatterns,
    SeasonalPattern,
    SentimentAnalysis,
    SentimentCorrelation,
    SentimentPeriod,
    StaffInsights,
    StaffMention,
    StaffTrend,
    Strength,
    ThematicAnalysis,
    ThemeCategory,
    TopicTrend,
    TrendDirection,
    TrendingTopic,
    UrgentItem,
    Urgency,
)
from .analytics_config import DEFAULT_AGGREGATOR_SETTINGS, AggregatorSettings

logger = logging.getLogger(__name__)

STARS = (1, 2, 3, 4, 5)
SENTIMENT_ORDER = (Sentiment.POSITIVE, Sentiment.NEUTRAL, Sentiment.NEGATIVE, Sentiment.MIXED)
URGENCY_RANK = {Urgency.HIGH: 0, Urgency.MEDIUM: 1, Urgency.LOW: 2}

LANGUAGE_ENGLISH = "English"
LANGUAGE_NON_LATIN = "Non-Latin"


# =============================================================================
# HELPERS
# =============================================================================

def round2(value: float) -> float:
    return round(value, 2)


def percent(part: float, total: float) -> float:
    """part / total as a 0-100 percentage, 0 for an empty total."""
    if not total:
        return 0.0
    return round2(part / total * 100)


def distribute_percentages(counts: List[int]) -> List[float]:
    """
    Convert counts into 2-decimal percentages that sum to exactly 100.

    Largest-remainder rounding: every share is floored to a hundredth of a
    percent, then the leftover hundredths go to the largest remainders.
    """
    total = sum(counts)
    if total <= 0:
        return [0.0 for _ in counts]

    units = 10000
    raw = [count * units / total for count in counts]
    floors = [int(value) for value in raw]
    leftover = units - sum(floors)
    by_remainder = sorted(range(len(counts)), key=lambda i: (raw[i] - floors[i], counts[i]), reverse=True)
    for i in by_remainder[:leftover]:
        floors[i] += 1
    return [value / 100 for value in floors]


def average_rating(reviews: Iterable[Review]) -> float:
    ratings = [r.rating for r in reviews]
    return round2(mean(ratings)) if ratings else 0.0


def month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def monthly_counts(reviews: Iterable[Review]) -> Dict[str, int]:
    """Review counts per YYYY-MM, zero-filled between the first and last month."""
    dated = [r.published_at for r in reviews if r.published_at is not None]
    if not dated:
        return {}

    counts = Counter(month_key(d) for d in dated)
    first, last = min(dated), max(dated)
    series: Dict[str, int] = {}
    cursor = datetime(first.year, first.month, 1)
    while (cursor.year, cursor.month) <= (last.year, last.month):
        key = month_key(cursor)
        series[key] = counts.get(key, 0)
        cursor = add_months(cursor, 1)
    return series


def quarter_key(moment: datetime) -> Tuple[int, int]:
    return moment.year, (moment.month - 1) // 3 + 1


def detect_language(text: str) -> str:
    """ASCII-only text counts as English, anything else as Non-Latin."""
    if text and any(ord(ch) > 127 for ch in text):
        return LANGUAGE_NON_LATIN
    return LANGUAGE_ENGLISH


def _top_keys(counter: Counter, limit: int) -> List[str]:
    ranked = sorted(((k, v) for k, v in counter.items() if v > 0), key=lambda kv: (-kv[1], kv[0]))
    return [k for k, _ in ranked[:limit]]


# =============================================================================
# AGGREGATOR
# =============================================================================

class MetricsAggregator:
    """
    Computes every analysis section from a review collection.

    Stateless apart from its settings; safe to share between threads.
    """

    def __init__(self, settings: Optional[AggregatorSettings] = None):
        self.settings = settings or DEFAULT_AGGREGATOR_SETTINGS

    # -------------------------------------------------------------------------
    # ENTRY POINTS
    # -------------------------------------------------------------------------

    def compute(
        self,
        reviews: Iterable[Review],
        config: AnalysisConfig = DEFAULT_ANALYSIS_CONFIG,
        now: Optional[datetime] = None,
        business_name: str = "",
    ) -> AnalysisSummaryData:
        """
        Build the summary for the period selected by ``config``.

        ``now`` anchors the relative periods, the growth windows and the
        recent-activity counters (default: current UTC time).
        """
        now = parse_timestamp(now) if now is not None else datetime.utcnow()
        valid = self._sanitize(reviews)
        periods = resolve_time_periods(config, now, valid)

        if config.time_period == TimePeriod.ALL:
            current = valid
        else:
            current = filter_reviews_by_range(valid, periods.current.start, periods.current.end)

        previous: List[Review] = []
        if periods.previous is not None:
            previous = filter_reviews_by_range(valid, periods.previous.start, periods.previous.end)

        anchor = periods.current.end if config.time_period == TimePeriod.CUSTOM else now
        return self._summarize(current, previous, valid, periods, anchor, config, business_name)

    def summarize_period(
        self,
        reviews: Iterable[Review],
        start: datetime,
        end: datetime,
        label: str = "",
        business_name: str = "",
        config: AnalysisConfig = DEFAULT_ANALYSIS_CONFIG,
    ) -> AnalysisSummaryData:
        """
        Build the summary of reviews already selected for [start, end).

        Used by the period comparator; every review passed in is counted
        and growth and recent activity are anchored at the window end.
        """
        start, end = parse_timestamp(start), parse_timestamp(end)
        valid = self._sanitize(reviews)
        periods = TimePeriodConfig(
            current=PeriodBounds(start=start, end=end, label=label),
            previous=None,
            comparison=ComparisonPeriod.NONE,
        )
        return self._summarize(valid, [], valid, periods, end, config, business_name)

    def _sanitize(self, reviews: Optional[Iterable[Review]]) -> List[Review]:
        if reviews is None:
            return []
        valid = []
        skipped = 0
        for item in reviews:
            if isinstance(item, Review):
                valid.append(item)
            else:
                skipped += 1
        if skipped:
            logger.warning(f"Skipped {skipped} items that are not reviews")
        return valid

    def _summarize(
        self,
        current: List[Review],
        previous: List[Review],
        history: List[Review],
        periods: TimePeriodConfig,
        anchor: datetime,
        config: AnalysisConfig,
        business_name: str,
    ) -> AnalysisSummaryData:
        performance = self.performance_metrics(current, history, anchor)
        ratings = self.rating_analysis(current, previous)
        responses = self.response_analytics(current)
        sentiment = self.sentiment_analysis(current)

        thematic = self.thematic_analysis(current) if config.include_thematic_analysis else ThematicAnalysis()
        staff = self.staff_insights(current) if config.include_staff_analysis else StaffInsights()
        operational = self.operational_insights(current)

        if config.include_action_items:
            actions = self.action_items(current, ratings, responses, sentiment, thematic, staff)
        else:
            actions = ActionItems()

        dated = [r.published_at for r in current if r.published_at is not None]
        data_source = DataSource(
            business_name=business_name,
            total_reviews=len(current),
            start=min(dated) if dated else None,
            end=max(dated) if dated else None,
        )

        return AnalysisSummaryData(
            performance_metrics=performance,
            rating_analysis=ratings,
            response_analytics=responses,
            sentiment_analysis=sentiment,
            thematic_analysis=thematic,
            staff_insights=staff,
            operational_insights=operational,
            action_items=actions,
            time_period=periods,
            generated_at=datetime.utcnow(),
            data_source=data_source,
        )

    # -------------------------------------------------------------------------
    # PERFORMANCE
    # -------------------------------------------------------------------------

    def performance_metrics(
        self,
        reviews: List[Review],
        history: List[Review],
        anchor: datetime,
    ) -> PerformanceMetrics:
        """
        Volume metrics.

        growth_rate compares the last N months before ``anchor`` with the N
        months before that, over the whole history:
            growth = (recent - prior) / max(prior, 1) * 100
        """
        s = self.settings
        dated = [r for r in reviews if r.published_at is not None]

        window = s.growth_window_months
        recent_start = add_months(anchor, -window)
        prior_start = add_months(anchor, -2 * window)
        recent = len(filter_reviews_by_range(history, recent_start, anchor))
        prior = len(filter_reviews_by_range(history, prior_start, recent_start))
        growth_rate = round2((recent - prior) / max(prior, 1) * 100)

        series = monthly_counts(dated)
        reviews_per_month = round2(len(dated) / len(series)) if series else 0.0

        populated = [(k, v) for k, v in series.items() if v > 0]
        by_volume = sorted(populated, key=lambda kv: (-kv[1], kv[0]))
        peak_month = peak_year = ""
        if by_volume:
            year, month = by_volume[0][0].split("-")
            peak_month, peak_year = calendar.month_name[int(month)], year

        def last_months(months: int) -> int:
            return len(filter_reviews_by_range(history, add_months(anchor, -months), anchor))

        limit = s.max_peak_entries
        trends = PerformanceTrends(
            is_growing=growth_rate > s.growing_epsilon,
            seasonal_pattern=self.classify_seasonality(list(series.values())),
            best_periods=[k for k, _ in by_volume[:limit]],
            worst_periods=[k for k, _ in sorted(populated, key=lambda kv: (kv[1], kv[0]))[:limit]],
        )

        return PerformanceMetrics(
            total_reviews=len(reviews),
            dated_reviews=len(dated),
            reviews_per_month=reviews_per_month,
            growth_rate=growth_rate,
            recent_window_reviews=recent,
            prior_window_reviews=prior,
            peak_month=peak_month,
            peak_year=peak_year,
            recent_activity=RecentActivity(
                last_3_months=last_months(3),
                last_6_months=last_months(6),
                last_12_months=last_months(12),
            ),
            trends=trends,
        )

    def classify_seasonality(self, counts: List[int]) -> SeasonalPattern:
        """
        Classify a monthly volume series.

        growing/declining: mean month-over-month delta has that sign and
        most non-zero deltas agree; seasonal: otherwise, when the
        coefficient of variation is high; stable: everything else.
        """
        s = self.settings
        if len(counts) < s.min_months_for_pattern:
            return SeasonalPattern.STABLE

        deltas = [b - a for a, b in zip(counts, counts[1:])]
        moving = [d for d in deltas if d != 0]
        avg_delta = mean(deltas)
        if moving:
            ups = sum(1 for d in moving if d > 0) / len(moving)
            downs = sum(1 for d in moving if d < 0) / len(moving)
            if avg_delta > 0 and ups >= s.directional_share:
                return SeasonalPattern.GROWING
            if avg_delta < 0 and downs >= s.directional_share:
                return SeasonalPattern.DECLINING

        avg = mean(counts)
        if avg > 0 and pstdev(counts) / avg >= s.seasonal_cv:
            return SeasonalPattern.SEASONAL
        return SeasonalPattern.STABLE

    # -------------------------------------------------------------------------
    # RATINGS & RESPONSES
    # -------------------------------------------------------------------------

    def rating_analysis(self, reviews: List[Review], previous: List[Review]) -> RatingAnalysis:
        counts = Counter(r.rating for r in reviews)
        shares = distribute_percentages([counts.get(star, 0) for star in STARS])
        distribution = {
            star: CountShare(count=counts.get(star, 0), percentage=share)
            for star, share in zip(STARS, shares)
        }

        current_avg = average_rating(reviews)
        # Without reviews in the previous window there is nothing to compare against
        previous_avg = average_rating(previous) if previous else current_avg
        change = round2(current_avg - previous_avg)
        direction = TrendDirection.STABLE
        if abs(change) > self.settings.rating_stable_band:
            direction = TrendDirection.UP if change > 0 else TrendDirection.DOWN

        total = len(reviews)
        return RatingAnalysis(
            average_rating=current_avg,
            distribution=distribution,
            trend=RatingTrend(current=current_avg, previous=previous_avg, change=change, direction=direction),
            benchmarks=RatingBenchmarks(
                excellent=percent(sum(1 for r in reviews if r.rating >= 4), total),
                good=percent(sum(1 for r in reviews if r.rating >= 3), total),
                needs_improvement=percent(sum(1 for r in reviews if r.rating <= 2), total),
            ),
        )

    def response_analytics(self, reviews: List[Review]) -> ResponseAnalytics:
        responded = sum(1 for r in reviews if r.has_owner_response)

        by_rating = {}
        for star in STARS:
            group = [r for r in reviews if r.rating == star]
            group_responded = sum(1 for r in group if r.has_owner_response)
            by_rating[star] = ResponseByRating(
                total=len(group),
                responded=group_responded,
                rate=percent(group_responded, len(group)),
            )

        return ResponseAnalytics(
            response_rate=percent(responded, len(reviews)),
            responded_reviews=responded,
            responses_by_rating=by_rating,
            effectiveness=self.response_effectiveness(reviews),
        )

    def response_effectiveness(self, reviews: List[Review]) -> ResponseEffectiveness:
        """
        Heuristic response impact.

        Consecutive dated reviews by the same reviewer form a pair; the
        rating change of the pair is attributed to whether the first review
        got an owner response. Reviews without a reviewer identity are
        skipped.
        """
        by_reviewer: Dict[str, List[Review]] = defaultdict(list)
        for review in reviews:
            if review.reviewer and review.published_at is not None:
                by_reviewer[review.reviewer.strip().lower()].append(review)

        after_response: List[int] = []
        after_silence: List[int] = []
        for visits in by_reviewer.values():
            visits.sort(key=lambda r: r.published_at)
            for first, following in zip(visits, visits[1:]):
                delta = following.rating - first.rating
                (after_response if first.has_owner_response else after_silence).append(delta)

        sample_size = len(after_response) + len(after_silence)
        if not after_response or not after_silence:
            return ResponseEffectiveness(sample_size=sample_size)

        impact = round2(mean(after_response) - mean(after_silence))
        return ResponseEffectiveness(
            improved_subsequent_ratings=impact > 0,
            customer_satisfaction_impact=impact,
            sample_size=sample_size,
        )

    # -------------------------------------------------------------------------
    # SENTIMENT
    # -------------------------------------------------------------------------

    def sentiment_analysis(self, reviews: List[Review]) -> SentimentAnalysis:
        counts = Counter(r.sentiment_label for r in reviews)
        shares = distribute_percentages([counts.get(label, 0) for label in SENTIMENT_ORDER])
        distribution = {
            label.value: CountShare(count=counts.get(label, 0), percentage=share)
            for label, share in zip(SENTIMENT_ORDER, shares)
        }

        quarters: Dict[Tuple[int, int], Counter] = defaultdict(Counter)
        for review in reviews:
            if review.published_at is not None:
                quarters[quarter_key(review.published_at)][review.sentiment_label] += 1

        trends = []
        for year, quarter in sorted(quarters)[-self.settings.sentiment_quarters:]:
            tally = quarters[(year, quarter)]
            total = sum(tally.values())
            trends.append(SentimentPeriod(
                period=f"Q{quarter} {year}",
                positive=round(tally[Sentiment.POSITIVE] / total * 100),
                neutral=round(tally[Sentiment.NEUTRAL] / total * 100),
                negative=round(tally[Sentiment.NEGATIVE] / total * 100),
                mixed=round(tally[Sentiment.MIXED] / total * 100),
            ))

        high = [r for r in reviews if r.rating >= 4]
        low = [r for r in reviews if r.rating <= 2]
        correlation = SentimentCorrelation(
            high_rating_positive=sum(1 for r in high if r.sentiment_label == Sentiment.POSITIVE),
            high_rating_negative=sum(1 for r in high if r.sentiment_label == Sentiment.NEGATIVE),
            low_rating_positive=sum(1 for r in low if r.sentiment_label == Sentiment.POSITIVE),
            low_rating_negative=sum(1 for r in low if r.sentiment_label == Sentiment.NEGATIVE),
        )

        return SentimentAnalysis(distribution=distribution, trends=trends, correlation=correlation)

    # -------------------------------------------------------------------------
    # THEMES
    # -------------------------------------------------------------------------

    def thematic_analysis(self, reviews: List[Review]) -> ThematicAnalysis:
        s = self.settings
        mentions: Dict[str, List[Review]] = defaultdict(list)
        for review in reviews:
            for theme in review.theme_list:
                mentions[theme].append(review)

        if not mentions:
            return ThematicAnalysis()

        total = len(reviews)
        categories = []
        attention = []
        for theme, theme_reviews in mentions.items():
            labels = Counter(r.sentiment_label for r in theme_reviews)
            dominant = max(SENTIMENT_ORDER, key=lambda lbl: (labels.get(lbl, 0), -SENTIMENT_ORDER.index(lbl)))
            negative = labels.get(Sentiment.NEGATIVE, 0)
            avg = average_rating(theme_reviews)
            categories.append(ThemeCategory(
                theme=theme,
                count=len(theme_reviews),
                percentage=percent(len(theme_reviews), total),
                average_rating=avg,
                sentiment=dominant.value,
                negative_count=negative,
            ))

            ratio = negative / len(theme_reviews)
            if ratio > s.attention_negative_ratio:
                attention.append(AttentionArea(
                    theme=theme,
                    negative_count=negative,
                    total_mentions=len(theme_reviews),
                    negative_ratio=round2(ratio),
                    average_rating=avg,
                    urgency=self._attention_urgency(ratio, negative),
                ))

        categories.sort(key=lambda c: (-c.count, c.theme))
        attention.sort(key=lambda a: (URGENCY_RANK[a.urgency], -a.negative_count, a.theme))

        return ThematicAnalysis(
            top_categories=categories[:s.max_top_categories],
            trending_topics=self._trending_topics(reviews),
            attention_areas=attention,
        )

    def _attention_urgency(self, ratio: float, negative_count: int) -> Urgency:
        s = self.settings
        if ratio >= s.attention_high_ratio or negative_count >= s.attention_high_count:
            return Urgency.HIGH
        if ratio >= s.attention_medium_ratio or negative_count >= s.attention_medium_count:
            return Urgency.MEDIUM
        return Urgency.LOW

    def _trending_topics(self, reviews: List[Review]) -> List[TrendingTopic]:
        """
        Themes whose share of reviews moved materially between the older
        and the most recent part of the dated reviews.
        """
        s = self.settings
        dated = sorted((r for r in reviews if r.published_at is not None), key=lambda r: r.published_at)
        if len(dated) < 2:
            return []

        recent_size = min(len(dated) - 1, max(1, round(len(dated) * s.recent_share)))
        prior, recent = dated[:-recent_size], dated[-recent_size:]

        recent_counts = Counter(t for r in recent for t in r.theme_list)
        prior_counts = Counter(t for r in prior for t in r.theme_list)
        all_counts = recent_counts + prior_counts

        topics = []
        for theme, count in all_counts.items():
            recent_share = recent_counts.get(theme, 0) / len(recent)
            prior_share = prior_counts.get(theme, 0) / len(prior)
            if recent_share > prior_share * s.trending_ratio and recent_share - prior_share >= s.trending_min_delta:
                trend = TopicTrend.RISING
            elif prior_share > recent_share * s.trending_ratio and prior_share - recent_share >= s.trending_min_delta:
                trend = TopicTrend.DECLINING
            else:
                continue
            topics.append(TrendingTopic(
                topic=theme,
                count=count,
                trend=trend,
                recent_mentions=recent_counts.get(theme, 0),
                recent_share=round2(recent_share * 100),
                prior_share=round2(prior_share * 100),
            ))

        topics.sort(key=lambda t: (t.trend != TopicTrend.RISING, -abs(t.recent_share - t.prior_share), t.topic))
        return topics[:s.max_trending_topics]

    # -------------------------------------------------------------------------
    # STAFF
    # -------------------------------------------------------------------------

    def staff_insights(self, reviews: List[Review]) -> StaffInsights:
        s = self.settings
        by_name: Dict[str, List[Review]] = defaultdict(list)
        for review in reviews:
            for name in review.staff_list:
                by_name[name].append(review)

        if not by_name:
            return StaffInsights()

        mentions = []
        positive_total = negative_total = mention_total = 0
        for name, staff_reviews in by_name.items():
            positive = sum(1 for r in staff_reviews if r.sentiment_label == Sentiment.POSITIVE)
            negative = sum(1 for r in staff_reviews if r.sentiment_label == Sentiment.NEGATIVE)
            positive_total += positive
            negative_total += negative
            mention_total += len(staff_reviews)

            examples = [r.text.strip()[:s.example_length] for r in staff_reviews if r.text and r.text.strip()]
            mentions.append(StaffMention(
                name=name,
                total_mentions=len(staff_reviews),
                positive_mentions=positive,
                negative_mentions=negative,
                average_rating_in_mentions=average_rating(staff_reviews),
                trend=self._staff_trend(staff_reviews),
                examples=examples[:s.max_staff_examples],
            ))

        mentions.sort(key=lambda m: (-m.total_mentions, m.name))
        score = round2(50 + 50 * (positive_total - negative_total) / mention_total)

        return StaffInsights(
            mentions=mentions,
            overall_staff_score=score,
            training_opportunities=[m.name for m in mentions if m.negative_mentions > m.positive_mentions],
        )

    def _staff_trend(self, reviews: List[Review]) -> StaffTrend:
        """Positive-mention ratio of the newer half vs the older half."""
        dated = sorted((r for r in reviews if r.published_at is not None), key=lambda r: r.published_at)
        if len(dated) < 2:
            return StaffTrend.STABLE

        half = len(dated) // 2
        older, newer = dated[:half], dated[half:]

        def positive_ratio(group: List[Review]) -> float:
            return sum(1 for r in group if r.sentiment_label == Sentiment.POSITIVE) / len(group)

        delta = positive_ratio(newer) - positive_ratio(older)
        if delta > self.settings.staff_trend_delta:
            return StaffTrend.IMPROVING
        if delta < -self.settings.staff_trend_delta:
            return StaffTrend.DECLINING
        return StaffTrend.STABLE

    # -------------------------------------------------------------------------
    # OPERATIONS
    # -------------------------------------------------------------------------

    def operational_insights(self, reviews: List[Review]) -> OperationalInsights:
        limit = self.settings.max_peak_entries

        languages: Dict[str, List[Review]] = defaultdict(list)
        for review in reviews:
            languages[detect_language(review.text)].append(review)
        diversity = [
            LanguageShare(
                language=language,
                count=len(group),
                percentage=percent(len(group), len(reviews)),
                average_rating=average_rating(group),
            )
            for language, group in languages.items()
        ]
        diversity.sort(key=lambda share: (-share.count, share.language))

        dated = [r.published_at for r in reviews if r.published_at is not None]
        days = Counter(calendar.day_name[d.weekday()] for d in dated)
        months = Counter(calendar.month_name[d.month] for d in dated)
        peak_months = _top_keys(months, limit)
        quiet = sorted(
            ((m, c) for m, c in months.items() if m not in peak_months),
            key=lambda mc: (mc[1], mc[0]),
        )

        patterns = ReviewPatterns(
            peak_days=_top_keys(days, limit),
            peak_months=peak_months,
            quiet_periods=[m for m, _ in quiet[:limit]],
        )

        return OperationalInsights(
            language_diversity=diversity,
            review_patterns=patterns,
            customer_loyalty=self.customer_loyalty(reviews),
        )

    def customer_loyalty(self, reviews: List[Review]) -> CustomerLoyalty:
        visits: Dict[str, List[Review]] = defaultdict(list)
        for review in reviews:
            if review.reviewer and review.reviewer.strip():
                visits[review.reviewer.strip().lower()].append(review)

        if not visits:
            return CustomerLoyalty()

        repeat = {name: group for name, group in visits.items() if len(group) > 1}
        gaps = []
        for group in repeat.values():
            dates = sorted(r.published_at for r in group if r.published_at is not None)
            gaps.extend((b - a).total_seconds() / 86400 for a, b in zip(dates, dates[1:]))

        return CustomerLoyalty(
            distinct_reviewers=len(visits),
            repeat_reviewers=len(repeat),
            loyalty_score=percent(len(repeat), len(visits)),
            average_days_between_visits=round2(mean(gaps)) if gaps else None,
        )

    # -------------------------------------------------------------------------
    # ACTION ITEMS
    # -------------------------------------------------------------------------

    def action_items(
        self,
        reviews: List[Review],
        ratings: RatingAnalysis,
        responses: ResponseAnalytics,
        sentiment: SentimentAnalysis,
        thematic: ThematicAnalysis,
        staff: StaffInsights,
    ) -> ActionItems:
        s = self.settings
        urgent = []

        unanswered = [r for r in reviews if r.rating <= 2 and not r.has_owner_response]
        if unanswered:
            urgent.append(UrgentItem(
                kind="unresponded_negative",
                description=f"{len(unanswered)} negative reviews have no owner response",
                priority="critical" if len(unanswered) >= s.attention_medium_count else "high",
                affected_reviews=len(unanswered),
                suggested_action="Respond to each negative review and offer to resolve the issue",
            ))

        for area in thematic.attention_areas:
            if area.urgency == Urgency.HIGH:
                urgent.append(UrgentItem(
                    kind="trending_negative",
                    description=f"'{area.theme}' is mentioned negatively in "
                                f"{area.negative_count} of {area.total_mentions} reviews",
                    priority="high",
                    affected_reviews=area.negative_count,
                    suggested_action=f"Investigate recurring complaints about {area.theme}",
                ))

        for name in staff.training_opportunities:
            mention = next(m for m in staff.mentions if m.name == name)
            urgent.append(UrgentItem(
                kind="staff_issue",
                description=f"{name} has more negative than positive mentions",
                priority="medium",
                affected_reviews=mention.negative_mentions,
                suggested_action=f"Review recent feedback with {name} and plan coaching",
            ))

        improvements = [
            Improvement(
                area=area.theme,
                description=f"{area.negative_ratio * 100:.0f}% of mentions are negative "
                            f"(average rating {area.average_rating:.1f})",
                potential_impact=area.urgency.value,
                effort="medium",
                suggested_actions=[
                    f"Collect concrete examples of problems with {area.theme}",
                    f"Set an owner and a follow-up date for {area.theme}",
                ],
            )
            for area in thematic.attention_areas
        ]

        strengths = [
            Strength(
                area=category.theme,
                description=f"Mentioned in {category.count} reviews, mostly positively "
                            f"(average rating {category.average_rating:.1f})",
                leverage_opportunities=[f"Highlight {category.theme} in marketing and replies"],
            )
            for category in thematic.top_categories
            if category.sentiment == Sentiment.POSITIVE.value
        ][:3]

        monitoring = [
            MonitoringTarget(
                metric="average_rating",
                description="Average star rating",
                target_value=s.target_average_rating,
                current_value=ratings.average_rating,
            ),
            MonitoringTarget(
                metric="response_rate",
                description="Share of reviews with an owner response",
                target_value=s.target_response_rate,
                current_value=responses.response_rate,
            ),
            MonitoringTarget(
                metric="negative_sentiment",
                description="Share of reviews with negative sentiment",
                target_value=s.target_negative_share,
                current_value=sentiment.negative_percentage,
            ),
        ]

        return ActionItems(urgent=urgent, improvements=improvements, strengths=strengths, monitoring=monitoring)
