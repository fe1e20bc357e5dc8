"""
User-Agent Classification

Derives device type, browser and OS from a raw User-Agent header with
case-insensitive substring checks. Check order matters: Chrome's UA
also contains "safari", and iPad UAs contain "mac".
"""

from dataclasses import dataclass
from typing import Optional

from config.constants import UNKNOWN_AGENT_VALUE


@dataclass(frozen=True)
class AgentProfile:
    device_type: str
    browser: str
    os: str


def get_device_type(user_agent: Optional[str]) -> str:
    ua = (user_agent or "").lower()
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return "mobile"
    if "tablet" in ua or "ipad" in ua:
        return "tablet"
    return "desktop"


def get_browser(user_agent: Optional[str]) -> str:
    ua = (user_agent or "").lower()
    if "chrome" in ua:
        return "Chrome"
    if "firefox" in ua:
        return "Firefox"
    if "safari" in ua and "chrome" not in ua:
        return "Safari"
    if "edge" in ua:
        return "Edge"
    if "opera" in ua:
        return "Opera"
    return UNKNOWN_AGENT_VALUE


def get_os(user_agent: Optional[str]) -> str:
    ua = (user_agent or "").lower()
    if "windows" in ua:
        return "Windows"
    if "mac" in ua:
        return "macOS"
    if "linux" in ua:
        return "Linux"
    if "android" in ua:
        return "Android"
    if "ios" in ua or "iphone" in ua or "ipad" in ua:
        return "iOS"
    return UNKNOWN_AGENT_VALUE


def classify_user_agent(user_agent: Optional[str]) -> AgentProfile:
    """Classify a User-Agent header; a missing header is an unknown desktop."""
    return AgentProfile(
        device_type=get_device_type(user_agent),
        browser=get_browser(user_agent),
        os=get_os(user_agent),
    )
