import datetime
from typing import Dict, List

from pydantic import BaseModel


class TrendPoint(BaseModel):
    date: datetime.date
    clicks: int


class DeviceShare(BaseModel):
    name: str
    value: int  # Rounded percentage of all clicks


class ReferrerShare(BaseModel):
    source: str
    clicks: int
    percentage: int


class RollingTotals(BaseModel):
    last_day: int
    last_week: int
    all_time: int


class GlobalStats(BaseModel):
    links_count: int
    clicks_count: int


class LinkAnalytics(BaseModel):
    """Everything the link detail page shows in one payload"""
    total_clicks: int
    unique_visitors: int
    device_breakdown: Dict[str, int]
    origin_breakdown: Dict[str, int]
    daily_clicks: List[TrendPoint]
