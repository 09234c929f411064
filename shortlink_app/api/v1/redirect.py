from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from shortlink_app.dependencies import get_redirect_resolver
from shortlink_app.schemas.activity import ClickContext
from shortlink_app.services.redirect_resolver import RedirectResolver

router = APIRouter(tags=["redirect"])

FINGERPRINT_HEADER = "x-visitor-fingerprint"
FINGERPRINT_COOKIE = "visitor_id"

TABLET_MARKERS = ("ipad", "tablet", "kindle", "silk/", "playbook")
MOBILE_MARKERS = ("mobi", "iphone", "ipod", "android", "blackberry", "opera mini", "windows phone")


def detect_device(user_agent: Optional[str]) -> str:
    """Coarse device class from a User-Agent; anything unrecognised is desktop"""
    if not user_agent:
        return "desktop"
    ua = user_agent.lower()
    if any(marker in ua for marker in TABLET_MARKERS):
        return "tablet"
    # Android tablets omit "Mobile"
    if "android" in ua and "mobile" not in ua:
        return "tablet"
    if any(marker in ua for marker in MOBILE_MARKERS):
        return "mobile"
    return "desktop"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def click_context(request: Request) -> ClickContext:
    user_agent = request.headers.get("user-agent")
    fingerprint = (
        request.headers.get(FINGERPRINT_HEADER)
        or request.cookies.get(FINGERPRINT_COOKIE)
    )
    return ClickContext(
        ip=client_ip(request),
        device=detect_device(user_agent),
        origin=request.headers.get("referer") or "direct",
        fingerprint=fingerprint or None,
        user_agent=user_agent,
    )


async def _redirect(code: str, request: Request, resolver: RedirectResolver) -> RedirectResponse:
    decision = await resolver.resolve(code, click_context(request))
    return RedirectResponse(url=decision.location, status_code=status.HTTP_302_FOUND)


@router.get("/s/{code}")
async def redirect_short_link(
    code: str,
    request: Request,
    resolver: RedirectResolver = Depends(get_redirect_resolver)
):
    """
    Redirect to the long link.

    - active link: 302 to the long link, one click recorded
    - frozen link: 302 to the "link unavailable" page, nothing recorded
    - unknown code: 302 to the landing page
    """
    return await _redirect(code, request, resolver)


@router.get("/{code}", include_in_schema=False)
async def redirect_legacy_short_link(
    code: str,
    request: Request,
    resolver: RedirectResolver = Depends(get_redirect_resolver)
):
    """Short links created before the /s/ path segment existed"""
    return await _redirect(code, request, resolver)
