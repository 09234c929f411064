"""
Domain errors raised by the service layer.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""

import functools
import logging

from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)

TRANSIENT_STORAGE_ERRORS = (OperationalError, DisconnectionError, PoolTimeoutError)


class ShortLinkError(Exception):
    """Base class for all service errors"""
    retryable = False


class LinkValidationError(ShortLinkError):
    """Required input missing or malformed (rejected before touching storage)"""


class LinkNotFoundError(ShortLinkError):
    def __init__(self, link_id: str):
        super().__init__(f"Link not found: {link_id}")
        self.link_id = link_id


class ShortCodeConflictError(ShortLinkError):
    """A caller-supplied code is already taken"""

    def __init__(self, short_link: str):
        super().__init__(f"Short link already exists: {short_link}")
        self.short_link = short_link


class CodeCapacityExhaustedError(ShortLinkError):
    """Generated codes kept colliding until the attempt budget ran out"""

    def __init__(self, attempts: int, length: int):
        super().__init__(
            f"Could not generate a unique short code after {attempts} attempts "
            f"(code length {length}). Use a longer code or retry later."
        )
        self.attempts = attempts
        self.length = length


class StorageUnavailableError(ShortLinkError):
    """Connection / timeout failure talking to the datastore"""
    retryable = True


def translate_storage_errors(method):
    """
    Wrap an async service method so transient datastore failures roll back
    the service's session and surface as StorageUnavailableError.
    """

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except TRANSIENT_STORAGE_ERRORS as e:
            self.db.rollback()
            logger.warning("Storage failure in %s: %s", method.__qualname__, e)
            raise StorageUnavailableError(str(e)) from e

    return wrapper
