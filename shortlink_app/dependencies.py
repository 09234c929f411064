"""
FastAPI dependencies for dependency injection.

Process-wide pieces (cache, activity recorder) are created once; services
that hold a database session are built per request.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from shortlink_app.cache.factory import CacheFactory, CacheBackend
from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.config import settings
from shortlink_app.database.connection import SessionLocal, get_db
from shortlink_app.services.activity_recorder import ActivityRecorder
from shortlink_app.services.analytics_service import AnalyticsService
from shortlink_app.services.link_registry import LinkRegistry
from shortlink_app.services.redirect_resolver import RedirectResolver


@lru_cache()
def get_cache() -> CacheStrategy:
    """
    Get cache instance (singleton).

    Factory gets config from settings internally.
    """
    backend = CacheBackend(settings.cache_backend)
    return CacheFactory.create(backend)


@lru_cache()
def get_activity_recorder() -> ActivityRecorder:
    """Recorder opens its own sessions from the process-wide session factory"""
    return ActivityRecorder(session_factory=SessionLocal)


def get_link_registry(
    db: Session = Depends(get_db),
    cache: CacheStrategy = Depends(get_cache),
) -> LinkRegistry:
    return LinkRegistry(db=db, cache=cache)


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db=db)


def get_redirect_resolver(
    registry: LinkRegistry = Depends(get_link_registry),
    recorder: ActivityRecorder = Depends(get_activity_recorder),
) -> RedirectResolver:
    return RedirectResolver(registry=registry, recorder=recorder)
