"""Device details recorded with each electronic signature."""

from __future__ import annotations

import re

from dealflow.domain.models import DeviceInfo

_TABLET = re.compile(r"tablet|ipad", re.IGNORECASE)
_MOBILE = re.compile(r"mobile|android|iphone", re.IGNORECASE)
_EDGE = re.compile(r"edge|edg/", re.IGNORECASE)

# Order matters: Edge and Chrome user agents also mention Safari.
_BROWSERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", _EDGE),
    ("Chrome", re.compile(r"chrome|crios", re.IGNORECASE)),
    ("Firefox", re.compile(r"firefox|fxios", re.IGNORECASE)),
    ("Safari", re.compile(r"safari", re.IGNORECASE)),
)


def parse_device_info(user_agent: str | None) -> DeviceInfo:
    """Classify *user_agent* into a device type and browser family.

    Args:
        user_agent: Raw ``User-Agent`` header, possibly missing.

    Returns:
        A :class:`DeviceInfo`; unknown agents are ``desktop`` / ``Unknown``.
    """
    ua = (user_agent or "").strip()
    if _TABLET.search(ua):
        device_type = "tablet"
    elif _MOBILE.search(ua):
        device_type = "mobile"
    else:
        device_type = "desktop"

    browser = next((name for name, pattern in _BROWSERS if pattern.search(ua)), "Unknown")
    return DeviceInfo(device_type=device_type, browser=browser, user_agent=ua[:512])
