"""Browser fingerprint generation for session identities.

Each session gets one consistent set of user agent, viewport, locale and
timezone for its whole lifetime; rotation happens by retiring sessions.
"""

import logging
import random
from typing import Any, Optional

logger = logging.getLogger(__name__)

SCREEN_RESOLUTIONS = [
    (1920, 1080),
    (1366, 768),
    (1536, 864),
    (1440, 900),
    (1600, 900),
    (2560, 1440),
]

TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Phoenix",
]


def _build_user_agents() -> list[str]:
    """Desktop Chrome/Edge on Windows and Linux, matching a Chromium engine."""
    chrome_windows = [
        f"Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version}.0.0.0 Safari/537.36"
        for version in range(120, 132)
    ]
    chrome_linux = [
        f"Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version}.0.0.0 Safari/537.36"
        for version in range(120, 132)
    ]
    edge_windows = [
        f"Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version}.0.0.0 Safari/537.36 Edg/{version}.0.0.0"
        for version in range(120, 132)
    ]
    return chrome_windows + chrome_linux + edge_windows


class FingerprintGenerator:
    """
    Produces randomized but internally consistent browser fingerprints.

    The locale is fixed to en-US so listing pages are served in the
    expected language; viewport, timezone and user agent vary.
    """

    def __init__(self, locale: str = "en-US", rng: Optional[random.Random] = None):
        self.locale = locale
        self._rng = rng or random.Random()
        self._user_agents = _build_user_agents()
        self._recent: list[str] = []
        self._recent_size = 10

    def next_user_agent(self) -> str:
        """Random user agent, avoiding the most recently issued ones."""
        candidates = [ua for ua in self._user_agents if ua not in self._recent] or self._user_agents
        user_agent = self._rng.choice(candidates)
        self._recent.append(user_agent)
        if len(self._recent) > self._recent_size:
            self._recent.pop(0)
        return user_agent

    def next_fingerprint(self) -> dict[str, Any]:
        width, height = self._rng.choice(SCREEN_RESOLUTIONS)
        return {
            "viewport": {"width": width, "height": height},
            "screen": {"width": width, "height": height},
            "timezone": self._rng.choice(TIMEZONES),
            "locale": self.locale,
            "color_scheme": self._rng.choice(["light", "dark"]),
        }

    @staticmethod
    def playwright_context_options(fingerprint: dict[str, Any], user_agent: str) -> dict[str, Any]:
        """Playwright ``new_context`` keyword arguments for a fingerprint."""
        return {
            "viewport": fingerprint["viewport"],
            "screen": fingerprint["screen"],
            "locale": fingerprint["locale"],
            "timezone_id": fingerprint["timezone"],
            "color_scheme": fingerprint["color_scheme"],
            "user_agent": user_agent,
        }
