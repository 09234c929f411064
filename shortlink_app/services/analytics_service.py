"""
Read-only analytics over the activity log.

Everything is computed from raw Activity rows at query time (no
pre-aggregated rollups). Day buckets and thresholds are UTC.
"""

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from shortlink_app.exceptions import LinkValidationError, translate_storage_errors
from shortlink_app.models.activity import Activity
from shortlink_app.models.link import Link, utcnow
from shortlink_app.schemas.activity import ActivityFilter, ActivityPage, ActivityResponse
from shortlink_app.schemas.analytics import (
    DeviceShare,
    GlobalStats,
    LinkAnalytics,
    ReferrerShare,
    RollingTotals,
    TrendPoint,
)

UNKNOWN_DEVICE = "unknown"
DIRECT_ORIGIN = "direct"
SUMMARY_TREND_DAYS = 30


def as_utc(value: datetime) -> datetime:
    """Naive datetimes coming back from SQLite are UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def percentage(count: int, total: int) -> int:
    """Share of total as an integer percent, halves rounded up"""
    if total <= 0:
        return 0
    return (count * 200 + total) // (2 * total)


def _group(rows: Iterable[Tuple[Optional[str], int]], fallback: str) -> List[Tuple[str, int]]:
    """Fold NULL / empty keys into ``fallback``, largest group first"""
    counts: Counter = Counter()
    for key, count in rows:
        counts[key or fallback] += count
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


class ClickTrend:
    """
    Daily click counts for ``window_days`` days ending on ``end``.

    Iterating yields one TrendPoint per day in ascending order, days
    without clicks included as zero. Can be iterated any number of times.
    """

    def __init__(self, counts: Dict[date, int], end: date, window_days: int):
        self.counts = counts
        self.end = end
        self.window_days = window_days

    @property
    def start(self) -> date:
        return self.end - timedelta(days=self.window_days - 1)

    def __iter__(self) -> Iterator[TrendPoint]:
        start = self.start
        for offset in range(self.window_days):
            day = start + timedelta(days=offset)
            yield TrendPoint(date=day, clicks=self.counts.get(day, 0))

    def __len__(self) -> int:
        return self.window_days


class AnalyticsService:
    """
    Derived statistics for one link (or the whole system).

    Note: Async for interface consistency, DB queries are sync.
    """

    def __init__(self, db: Session):
        self.db = db

    def _clicks(self, link_id: str):
        return self.db.query(Activity).filter(Activity.link_id == link_id)

    @translate_storage_errors
    async def click_count(self, link_id: str) -> int:
        return self._clicks(link_id).count()

    @translate_storage_errors
    async def click_trend(
        self,
        link_id: str,
        window_days: int = 7,
        today: Optional[date] = None,
    ) -> ClickTrend:
        if window_days < 1:
            raise LinkValidationError(f"window_days must be at least 1, got {window_days}")

        end = today or utcnow().date()
        start = end - timedelta(days=window_days - 1)
        start_at = datetime.combine(start, time.min, tzinfo=timezone.utc)

        rows = (
            self.db.query(Activity.clicked_at)
            .filter(Activity.link_id == link_id, Activity.clicked_at >= start_at)
            .all()
        )

        counts: Counter = Counter()
        for (clicked_at,) in rows:
            day = as_utc(clicked_at).date()
            if start <= day <= end:
                counts[day] += 1

        return ClickTrend(dict(counts), end, window_days)

    def _grouped(self, column, link_id: str, fallback: str) -> List[Tuple[str, int]]:
        rows = (
            self.db.query(column, func.count(Activity.id))
            .filter(Activity.link_id == link_id)
            .group_by(column)
            .all()
        )
        return _group(rows, fallback)

    @translate_storage_errors
    async def device_distribution(self, link_id: str) -> List[DeviceShare]:
        """Share of clicks per device class; missing device counts as "unknown"."""
        groups = self._grouped(Activity.device, link_id, UNKNOWN_DEVICE)
        total = sum(count for _, count in groups)
        return [DeviceShare(name=name, value=percentage(count, total)) for name, count in groups]

    @translate_storage_errors
    async def referrer_distribution(self, link_id: str) -> List[ReferrerShare]:
        """Clicks per origin, most clicks first; missing origin counts as "direct"."""
        groups = self._grouped(Activity.origin, link_id, DIRECT_ORIGIN)
        total = sum(count for _, count in groups)
        return [
            ReferrerShare(source=source, clicks=count, percentage=percentage(count, total))
            for source, count in groups
        ]

    @translate_storage_errors
    async def unique_visitors(self, link_id: str) -> int:
        """Distinct fingerprints. Rows without one never count; no IP fallback."""
        count = (
            self.db.query(func.count(distinct(Activity.fingerprint)))
            .filter(
                Activity.link_id == link_id,
                Activity.fingerprint.isnot(None),
                Activity.fingerprint != "",
            )
            .scalar()
        )
        return count or 0

    @translate_storage_errors
    async def rolling_totals(self, link_id: str, now: Optional[datetime] = None) -> RollingTotals:
        now = as_utc(now) if now else utcnow()
        clicks = self._clicks(link_id)

        return RollingTotals(
            last_day=clicks.filter(Activity.clicked_at >= now - timedelta(days=1)).count(),
            last_week=clicks.filter(Activity.clicked_at >= now - timedelta(days=7)).count(),
            all_time=clicks.count(),
        )

    @translate_storage_errors
    async def global_stats(self) -> GlobalStats:
        return GlobalStats(
            links_count=self.db.query(func.count(Link.id)).scalar() or 0,
            clicks_count=self.db.query(func.count(Activity.id)).scalar() or 0,
        )

    @translate_storage_errors
    async def link_summary(self, link_id: str) -> LinkAnalytics:
        """Totals, breakdowns and the last 30 days for a link detail page"""
        trend = await self.click_trend(link_id, SUMMARY_TREND_DAYS)

        return LinkAnalytics(
            total_clicks=await self.click_count(link_id),
            unique_visitors=await self.unique_visitors(link_id),
            device_breakdown=dict(self._grouped(Activity.device, link_id, UNKNOWN_DEVICE)),
            origin_breakdown=dict(self._grouped(Activity.origin, link_id, DIRECT_ORIGIN)),
            daily_clicks=list(trend),
        )

    @translate_storage_errors
    async def find_activities(self, filters: ActivityFilter) -> ActivityPage:
        """
        Activities matching every filter that is set, newest first.

        ``total`` is the number of matches before pagination.
        """
        query = self.db.query(Activity)

        if filters.link_id:
            query = query.filter(Activity.link_id == filters.link_id)
        if filters.device:
            query = query.filter(Activity.device == filters.device)
        if filters.fingerprint:
            query = query.filter(Activity.fingerprint == filters.fingerprint)
        if filters.start:
            query = query.filter(Activity.clicked_at >= as_utc(filters.start))
        if filters.end:
            query = query.filter(Activity.clicked_at <= as_utc(filters.end))

        total = query.count()
        items = (
            query.order_by(Activity.clicked_at.desc())
            .offset(filters.offset)
            .limit(filters.limit)
            .all()
        )

        return ActivityPage(
            items=[ActivityResponse.model_validate(item) for item in items],
            total=total,
        )
