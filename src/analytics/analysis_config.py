"""
Analysis Configuration
======================

Per-invocation analysis options and the resolution of the requested time
period into concrete [start, end) windows.

Usage:
    config = (
        AnalysisConfig.builder()
        .time_period(TimePeriod.LAST_90_DAYS)
        .comparison(ComparisonPeriod.PREVIOUS)
        .staff_analysis(False)
        .build()
    )
    periods = resolve_time_periods(config, now=datetime.utcnow(), reviews=reviews)
"""

import calendar
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from ..core.errors import ConfigError
from ..reviews.review_models import parse_timestamp


class TimePeriod(str, Enum):
    ALL = "all"
    LAST_30_DAYS = "last30days"
    LAST_90_DAYS = "last90days"
    LAST_6_MONTHS = "last6months"
    LAST_12_MONTHS = "last12months"
    CUSTOM = "custom"


class ComparisonPeriod(str, Enum):
    PREVIOUS = "previous"
    YEAR_OVER_YEAR = "yearOverYear"
    NONE = "none"


PERIOD_LABELS = {
    TimePeriod.ALL: "All Time",
    TimePeriod.LAST_30_DAYS: "Last 30 Days",
    TimePeriod.LAST_90_DAYS: "Last 90 Days",
    TimePeriod.LAST_6_MONTHS: "Last 6 Months",
    TimePeriod.LAST_12_MONTHS: "Last 12 Months",
    TimePeriod.CUSTOM: "Custom Period",
}


def add_months(dt: datetime, months: int) -> datetime:
    """Shift a datetime by whole months, clamping the day to the target month."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


@dataclass(frozen=True)
class PeriodBounds:
    """A labelled half-open window [start, end)."""
    start: datetime
    end: datetime
    label: str

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment < self.end


@dataclass(frozen=True)
class TimePeriodConfig:
    """Resolved current and (optional) previous windows."""
    current: PeriodBounds
    previous: Optional[PeriodBounds]
    comparison: ComparisonPeriod


@dataclass(frozen=True)
class AnalysisConfig:
    """Options for one summary computation. Not persisted by the engine."""
    time_period: TimePeriod = TimePeriod.ALL
    custom_start: Optional[datetime] = None
    custom_end: Optional[datetime] = None
    include_staff_analysis: bool = True
    include_thematic_analysis: bool = True
    include_action_items: bool = True
    comparison_period: ComparisonPeriod = ComparisonPeriod.PREVIOUS

    def __post_init__(self):
        if not isinstance(self.time_period, TimePeriod):
            object.__setattr__(self, "time_period", _parse_enum(TimePeriod, self.time_period))
        if not isinstance(self.comparison_period, ComparisonPeriod):
            object.__setattr__(
                self, "comparison_period", _parse_enum(ComparisonPeriod, self.comparison_period)
            )
        # custom bounds are compared with naive UTC review timestamps
        for name in ("custom_start", "custom_end"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, parse_timestamp(value))
        if self.time_period == TimePeriod.CUSTOM:
            if self.custom_start is None or self.custom_end is None:
                raise ConfigError("Custom range required for custom time period")
            if self.custom_start >= self.custom_end:
                raise ConfigError("Custom range start must be before its end")

    @staticmethod
    def builder() -> "AnalysisConfigBuilder":
        return AnalysisConfigBuilder()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_period": self.time_period.value,
            "custom_start": self.custom_start.isoformat() if self.custom_start else None,
            "custom_end": self.custom_end.isoformat() if self.custom_end else None,
            "include_staff_analysis": self.include_staff_analysis,
            "include_thematic_analysis": self.include_thematic_analysis,
            "include_action_items": self.include_action_items,
            "comparison_period": self.comparison_period.value,
        }


def _parse_enum(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"Unknown {enum_cls.__name__} '{value}' (allowed: {allowed})")


class AnalysisConfigBuilder:
    """Typed setters for AnalysisConfig, one per field."""

    def __init__(self, base: Optional[AnalysisConfig] = None):
        self._values: Dict[str, Any] = {}
        self._base = base

    def time_period(self, period: TimePeriod) -> "AnalysisConfigBuilder":
        self._values["time_period"] = period
        return self

    def custom_range(self, start: datetime, end: datetime) -> "AnalysisConfigBuilder":
        self._values["time_period"] = TimePeriod.CUSTOM
        self._values["custom_start"] = start
        self._values["custom_end"] = end
        return self

    def staff_analysis(self, enabled: bool) -> "AnalysisConfigBuilder":
        self._values["include_staff_analysis"] = enabled
        return self

    def thematic_analysis(self, enabled: bool) -> "AnalysisConfigBuilder":
        self._values["include_thematic_analysis"] = enabled
        return self

    def action_items(self, enabled: bool) -> "AnalysisConfigBuilder":
        self._values["include_action_items"] = enabled
        return self

    def comparison(self, period: ComparisonPeriod) -> "AnalysisConfigBuilder":
        self._values["comparison_period"] = period
        return self

    def build(self) -> AnalysisConfig:
        """Raises ConfigError if the combination is invalid."""
        if self._base is not None:
            return replace(self._base, **self._values)
        return AnalysisConfig(**self._values)


DEFAULT_ANALYSIS_CONFIG = AnalysisConfig()


def resolve_time_periods(
    config: AnalysisConfig,
    now: datetime,
    reviews: Optional[Iterable[Any]] = None,
) -> TimePeriodConfig:
    """
    Resolve the configured period into concrete windows.

    The previous window always ends where the current one starts (or one
    year earlier for year-over-year), so the two never overlap. For
    ``all`` the current window spans the earliest to the latest dated
    review and there is no meaningful previous window (empty range).
    """
    now = parse_timestamp(now)
    period = config.time_period
    label = PERIOD_LABELS[period]

    if period == TimePeriod.LAST_30_DAYS:
        start, end = now - timedelta(days=30), now
    elif period == TimePeriod.LAST_90_DAYS:
        start, end = now - timedelta(days=90), now
    elif period == TimePeriod.LAST_6_MONTHS:
        start, end = add_months(now, -6), now
    elif period == TimePeriod.LAST_12_MONTHS:
        start, end = add_months(now, -12), now
    elif period == TimePeriod.CUSTOM:
        start, end = config.custom_start, config.custom_end
    else:
        dates = [r.published_at for r in (reviews or []) if getattr(r, "published_at", None)]
        if dates:
            start, end = min(dates), max(dates) + timedelta(seconds=1)
        else:
            start, end = now, now
        current = PeriodBounds(start=start, end=end, label=label)
        previous = None
        if config.comparison_period != ComparisonPeriod.NONE:
            previous = PeriodBounds(start=start, end=start, label=f"Previous {label}")
        return TimePeriodConfig(current=current, previous=previous, comparison=config.comparison_period)

    current = PeriodBounds(start=start, end=end, label=label)

    if config.comparison_period == ComparisonPeriod.NONE:
        previous = None
    elif config.comparison_period == ComparisonPeriod.YEAR_OVER_YEAR:
        previous = PeriodBounds(
            start=add_months(start, -12),
            end=min(add_months(end, -12), start),
            label=f"{label} (Previous Year)",
        )
    else:
        length = end - start
        previous = PeriodBounds(start=start - length, end=start, label=f"Previous {label}")

    return TimePeriodConfig(current=current, previous=previous, comparison=config.comparison_period)
