import logging
from typing import List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.config import settings
from shortlink_app.exceptions import (
    CodeCapacityExhaustedError,
    LinkNotFoundError,
    LinkValidationError,
    ShortCodeConflictError,
    translate_storage_errors,
)
from shortlink_app.models.activity import Activity
from shortlink_app.models.link import Link, LinkStatus, utcnow
from shortlink_app.schemas.link import LinkSnapshot, LinkUpdate
from shortlink_app.services.short_code_strategies import (
    RandomShortCodeStrategy,
    ShortCodeStrategy,
)

logger = logging.getLogger(__name__)


class LinkRegistry:
    """
    The only component that creates, mutates or deletes Link rows.

    Database access is sync (SQLAlchemy Session); methods are async because
    cache invalidation is async I/O and to keep one calling convention
    across the service layer.
    """

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheStrategy] = None,
        code_strategy: Optional[ShortCodeStrategy] = None,
        domain: Optional[str] = None,
        path: Optional[str] = None,
        code_length: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        """
        Args:
            db: Database session
            cache: Cache strategy for redirect targets (optional)
            code_strategy: Generator used when no code is requested
            domain: Public short-link domain, defaults to settings
            path: Path segment between domain and code, defaults to settings
            code_length: Length of generated codes
            max_attempts: Generated-code attempts before giving up
        """
        self.db = db
        self.cache = cache
        self.code_strategy = code_strategy or RandomShortCodeStrategy()
        self.domain = domain or settings.short_link_domain
        self.path = (path if path is not None else settings.short_link_path).strip("/")
        self.code_length = code_length or settings.short_code_length
        self.max_attempts = max_attempts or settings.max_code_attempts

    # Short link formats

    def build_short_link(self, code: str) -> str:
        """Current format: ``<domain>/s/<code>``"""
        if not self.path:
            return f"{self.domain}/{code}"
        return f"{self.domain}/{self.path}/{code}"

    def build_legacy_short_link(self, code: str) -> str:
        """Format used before the path segment existed: ``<domain>/<code>``"""
        return f"{self.domain}/{code}"

    def code_from_short_link(self, short_link: str) -> str:
        code = short_link
        if code.startswith(self.domain + "/"):
            code = code[len(self.domain) + 1:]
        if self.path and code.startswith(self.path + "/"):
            code = code[len(self.path) + 1:]
        return code

    # Lookups

    def _find_by_short_link(self, short_link: str) -> Optional[Link]:
        return self.db.query(Link).filter(Link.short_link == short_link).first()

    def _get(self, link_id: str) -> Link:
        link = self.db.get(Link, link_id)
        if link is None:
            raise LinkNotFoundError(link_id)
        return link

    @translate_storage_errors
    async def resolve_by_code(self, code: str) -> Optional[Link]:
        """
        Find the link for a raw code (no domain, no path).

        Strategies, in order:
        1. Exact match on the current format
        2. Exact match on the legacy format, only when 1 missed

        A value that already starts with the domain is taken as a full
        short link and matched as is.
        """
        if code.startswith(self.domain + "/"):
            return self._find_by_short_link(code)

        link = self._find_by_short_link(self.build_short_link(code))
        if link is not None:
            return link

        legacy = self.build_legacy_short_link(code)
        if legacy == self.build_short_link(code):
            return None
        return self._find_by_short_link(legacy)

    @translate_storage_errors
    async def get_link(self, link_id: str) -> Link:
        return self._get(link_id)

    @translate_storage_errors
    async def list_links(
        self,
        limit: int = 100,
        offset: int = 0,
        status: Optional[Union[LinkStatus, str]] = None,
    ) -> List[Tuple[Link, int]]:
        """Newest links first, each paired with its click count"""
        query = (
            self.db.query(Link, func.count(Activity.id))
            .outerjoin(Activity, Activity.link_id == Link.id)
            .group_by(Link.id)
        )
        if status is not None:
            query = query.filter(Link.status == self._parse_status(status).value)

        rows = query.order_by(Link.created_at.desc()).offset(offset).limit(limit).all()
        return [(link, clicks) for link, clicks in rows]

    async def get_redirect_target(self, code: str) -> Optional[LinkSnapshot]:
        """
        Redirect lookup using the Cache-Aside pattern.

        Flow:
        1. Check cache first
        2. On a miss, resolve_by_code against the datastore
        3. Populate cache for next time

        Mutations invalidate the cached entry, so a frozen link is never
        served from a stale active snapshot for longer than the write.
        """
        cache_key = f"link:{code}"

        if self.cache:
            cached = await self.cache.get(cache_key)
            if cached:
                return LinkSnapshot.model_validate_json(cached)

        link = await self.resolve_by_code(code)
        if link is None:
            return None

        snapshot = LinkSnapshot.model_validate(link)
        if self.cache:
            await self.cache.set(cache_key, snapshot.model_dump_json(), ttl=settings.cache_ttl)
        return snapshot

    # Mutations

    @translate_storage_errors
    async def create_link(
        self,
        owner_id: str,
        long_link: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        requested_code: Optional[str] = None,
    ) -> Link:
        """Create a new link

        With a requested code the code is used as given and a taken code is
        a ShortCodeConflictError. Without one, codes are generated and
        checked until a free one is found or max_attempts is used up.

        Note: Always creates a new link even if the long link already has
        one, so different campaigns can be tracked separately.
        """
        self._require_owner(owner_id)
        self._require_long_link(long_link)
        if requested_code is not None and requested_code.strip():
            code = self._validate_code(requested_code)
            return await self._insert_requested(owner_id, long_link, title, description, tags, code)

        for attempt in range(1, self.max_attempts + 1):
            code = self.code_strategy.generate(self.code_length)

            if await self.resolve_by_code(code) is not None:
                logger.debug("Generated code %s is taken (attempt %d)", code, attempt)
                continue

            link = self._new_link(owner_id, long_link, title, description, tags, code)
            self.db.add(link)
            try:
                self.db.commit()
            except IntegrityError:
                # Another request claimed the same code between the lookup and the commit
                self.db.rollback()
                logger.info("Short link %s claimed concurrently, retrying", link.short_link)
                continue

            self.db.refresh(link)
            await self._invalidate(code)
            logger.info("Created link %s -> %s", link.short_link, link.long_link)
            return link

        logger.error(
            "Short code space exhausted after %d attempts (length %d)",
            self.max_attempts, self.code_length,
        )
        raise CodeCapacityExhaustedError(self.max_attempts, self.code_length)

    async def _insert_requested(self, owner_id, long_link, title, description, tags, code) -> Link:
        short_link = self.build_short_link(code)
        if self._find_by_short_link(short_link) is not None:
            raise ShortCodeConflictError(short_link)

        link = self._new_link(owner_id, long_link, title, description, tags, code)
        self.db.add(link)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ShortCodeConflictError(short_link) from e

        self.db.refresh(link)
        # A legacy link with the same code may still be cached
        await self._invalidate(code)
        logger.info("Created link %s -> %s", link.short_link, link.long_link)
        return link

    def _new_link(self, owner_id, long_link, title, description, tags, code) -> Link:
        return Link(
            user_id=owner_id,
            long_link=long_link,
            short_link=self.build_short_link(code),
            title=title or None,
            description=description or None,
            tags=list(tags) if tags else None,
            status=LinkStatus.ACTIVE.value,
        )

    @translate_storage_errors
    async def update_link(self, link_id: str, changes: LinkUpdate) -> Link:
        """
        Apply only the fields set on ``changes``.

        A new short_code is caller-supplied, so it gets the same conflict
        check as create: a code owned by another link is rejected.
        """
        data = changes.model_dump(exclude_unset=True)

        if "long_link" in data:
            self._require_long_link(data["long_link"])
        new_code = data.get("short_code")
        if new_code is not None:
            new_code = self._validate_code(new_code)

        link = self._get(link_id)
        old_code = self.code_from_short_link(link.short_link)

        if "long_link" in data:
            link.long_link = data["long_link"]
        if "title" in data:
            link.title = data["title"] or None
        if "description" in data:
            link.description = data["description"] or None
        if "tags" in data:
            link.tags = list(data["tags"]) if data["tags"] else None

        if new_code is not None:
            short_link = self.build_short_link(new_code)
            if short_link != link.short_link:
                owner = self._find_by_short_link(short_link)
                if owner is not None and owner.id != link.id:
                    self.db.rollback()
                    raise ShortCodeConflictError(short_link)
                link.short_link = short_link

        link.updated_at = utcnow()
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if new_code is None:
                raise LinkValidationError(f"Update of link {link_id} violates a constraint") from e
            raise ShortCodeConflictError(self.build_short_link(new_code)) from e

        self.db.refresh(link)
        await self._invalidate(old_code, self.code_from_short_link(link.short_link))
        return link

    @translate_storage_errors
    async def set_status(self, link_id: str, status: Union[LinkStatus, str]) -> Link:
        """Pure status write; setting the current status again is a no-op success"""
        new_status = self._parse_status(status)
        link = self._get(link_id)

        link.status = new_status.value
        link.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(link)

        await self._invalidate(self.code_from_short_link(link.short_link))
        logger.info("Link %s is now %s", link.id, link.status)
        return link

    @translate_storage_errors
    async def delete_link(self, link_id: str) -> None:
        """
        Hard delete. Activity rows go with the link (FK cascade).

        Refusing to delete a link that has clicks is the caller's policy,
        not enforced here.
        """
        link = self._get(link_id)
        code = self.code_from_short_link(link.short_link)

        self.db.delete(link)
        self.db.commit()

        await self._invalidate(code)
        logger.info("Deleted link %s", link_id)

    # Helpers

    async def _invalidate(self, *codes: str):
        if self.cache:
            await self.cache.delete(*{f"link:{code}" for code in codes})

    @staticmethod
    def _require_owner(owner_id: Optional[str]):
        if owner_id is None or not str(owner_id).strip():
            raise LinkValidationError("owner id must not be empty")

    @staticmethod
    def _require_long_link(long_link: Optional[str]):
        if long_link is None or not long_link.strip():
            raise LinkValidationError("long_link must not be empty")

    @staticmethod
    def _validate_code(code: str) -> str:
        code = code.strip()
        if not code:
            raise LinkValidationError("short code must not be empty")
        if "/" in code or any(ch.isspace() for ch in code):
            raise LinkValidationError(f"short code contains invalid characters: {code!r}")
        return code

    @staticmethod
    def _parse_status(status: Union[LinkStatus, str]) -> LinkStatus:
        try:
            return LinkStatus(status)
        except ValueError as e:
            raise LinkValidationError(f"Unknown link status: {status!r}") from e
