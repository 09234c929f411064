"""
Turns an inbound short code into a redirect decision.

Per request:
    lookup -> NOT_FOUND                      (landing page, nothing recorded)
           -> status check -> FROZEN         (unavailable page, nothing recorded)
                           -> REDIRECT       (long link, one click recorded)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from shortlink_app.config import settings
from shortlink_app.models.activity import Activity
from shortlink_app.schemas.activity import ClickContext
from shortlink_app.schemas.link import LinkSnapshot
from shortlink_app.services.activity_recorder import ActivityRecorder
from shortlink_app.services.link_registry import LinkRegistry

logger = logging.getLogger(__name__)


class RedirectOutcome(enum.Enum):
    REDIRECT = "redirect"
    FROZEN = "frozen"
    NOT_FOUND = "not_found"


@dataclass
class RedirectDecision:
    outcome: RedirectOutcome
    location: str
    link: Optional[LinkSnapshot] = None
    activity: Optional[Activity] = None


class RedirectResolver:
    """Stateless across requests; one instance per request is fine"""

    def __init__(
        self,
        registry: LinkRegistry,
        recorder: ActivityRecorder,
        landing_path: Optional[str] = None,
        frozen_path: Optional[str] = None,
        record_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.recorder = recorder
        self.landing_path = landing_path or settings.landing_path
        self.frozen_path = frozen_path or settings.frozen_path
        self.record_timeout = record_timeout

    async def resolve(self, code: str, click: Optional[ClickContext] = None) -> RedirectDecision:
        link = await self.registry.get_redirect_target(code)

        if link is None:
            logger.debug("No link for code %s", code)
            return RedirectDecision(RedirectOutcome.NOT_FOUND, self.landing_path)

        if link.is_frozen:
            return RedirectDecision(RedirectOutcome.FROZEN, self.frozen_path, link=link)

        # Recording never fails the redirect; see ActivityRecorder.record_click
        activity = await self.recorder.record_click(
            link.id, click or ClickContext(), timeout=self.record_timeout
        )
        return RedirectDecision(RedirectOutcome.REDIRECT, link.long_link, link=link, activity=activity)
