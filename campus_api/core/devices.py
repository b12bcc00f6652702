"""Human-readable device descriptions derived from User-Agent strings."""

from __future__ import annotations

UNKNOWN_DEVICE = "Unknown Device"

_BROWSERS: tuple[tuple[str, str], ...] = (
    ("edg", "Edge"),
    ("opr", "Opera"),
    ("opera", "Opera"),
    ("chrome", "Chrome"),
    ("crios", "Chrome"),
    ("firefox", "Firefox"),
    ("fxios", "Firefox"),
    ("safari", "Safari"),
)

_PLATFORMS: tuple[tuple[str, str], ...] = (
    ("iphone", "iPhone"),
    ("ipad", "iPad"),
    ("android", "Android"),
    ("windows", "Windows"),
    ("macintosh", "macOS"),
    ("mac os", "macOS"),
    ("linux", "Linux"),
)


def describe_device(user_agent: str | None) -> str:
    """Summarise a User-Agent as "<browser> on <platform>".

    Falls back to whichever half is known, then to "Unknown Device".
    """
    if not user_agent:
        return UNKNOWN_DEVICE
    lowered = user_agent.lower()
    browser = next((label for needle, label in _BROWSERS if needle in lowered), None)
    platform = next((label for needle, label in _PLATFORMS if needle in lowered), None)
    if browser and platform:
        return f"{browser} on {platform}"
    if browser:
        return browser
    if platform:
        return platform
    return UNKNOWN_DEVICE
