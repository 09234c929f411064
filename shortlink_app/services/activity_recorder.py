"""
Activity recorder: appends one click event per successful redirect.

Writes use their own short-lived session from ``session_factory`` so a
recording can outlive the request that started it. The redirect path calls
``record_click``, which never raises.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from shortlink_app.config import settings
from shortlink_app.database.connection import SessionLocal
from shortlink_app.exceptions import (
    TRANSIENT_STORAGE_ERRORS,
    LinkNotFoundError,
    StorageUnavailableError,
)
from shortlink_app.models.activity import Activity
from shortlink_app.models.link import Link
from shortlink_app.schemas.activity import ClickContext

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """
    The only component that creates Activity rows.

    No deduplication, throttling or bot filtering: every call to
    ``record`` that succeeds adds exactly one row.
    """

    def __init__(self, session_factory=SessionLocal):
        """
        Args:
            session_factory: Factory for creating database sessions
        """
        self.session_factory = session_factory

    def record(
        self,
        link_id: str,
        ip: str = "unknown",
        device: Optional[str] = None,
        origin: Optional[str] = None,
        fingerprint: Optional[str] = None,
    ) -> Activity:
        """
        Insert one activity row in a single transaction.

        The link's existence is checked in the same transaction and the
        foreign key backs it up, so a click can never be stored for a link
        that does not exist.

        Raises:
            LinkNotFoundError: link_id does not reference a link
            StorageUnavailableError: the datastore could not be reached
        """
        db = self.session_factory()

        try:
            if db.get(Link, link_id) is None:
                raise LinkNotFoundError(link_id)

            activity = Activity(
                link_id=link_id,
                ip=ip or "unknown",
                fingerprint=fingerprint or None,
                device=device or None,
                origin=origin or None,
            )
            db.add(activity)
            db.commit()
            db.refresh(activity)
            return activity

        except IntegrityError as e:
            # Link deleted between the check and the insert
            db.rollback()
            raise LinkNotFoundError(link_id) from e
        except TRANSIENT_STORAGE_ERRORS as e:
            db.rollback()
            raise StorageUnavailableError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _record_logged(self, link_id: str, click: ClickContext) -> Optional[Activity]:
        try:
            return self.record(
                link_id,
                ip=click.ip,
                device=click.device,
                origin=click.origin,
                fingerprint=click.fingerprint,
            )
        except Exception:
            logger.exception("Failed to record activity for link %s", link_id)
            return None

    async def record_click(
        self,
        link_id: str,
        click: ClickContext,
        timeout: Optional[float] = None,
    ) -> Optional[Activity]:
        """
        Best-effort recording for the redirect path.

        The write runs in a worker thread. The caller waits at most
        ``timeout`` seconds; after that (or if the caller is cancelled) the
        write still runs to completion in the background. Failures are
        logged and discarded.

        Returns:
            The stored Activity, or None if it failed or is still running
        """
        if timeout is None:
            timeout = settings.activity_record_timeout

        task = asyncio.ensure_future(asyncio.to_thread(self._record_logged, link_id, click))

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Recording click on link %s still running after %.1fs, not waiting",
                link_id, timeout,
            )
            return None

    async def delete_for_link(self, link_id: str) -> int:
        """
        Bulk delete every activity row of a link.

        Returns:
            Number of rows removed
        """
        db = self.session_factory()

        try:
            deleted = (
                db.query(Activity)
                .filter(Activity.link_id == link_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            logger.info("Deleted %d activity rows for link %s", deleted, link_id)
            return deleted

        except TRANSIENT_STORAGE_ERRORS as e:
            db.rollback()
            raise StorageUnavailableError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
