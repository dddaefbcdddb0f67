"""Browser / OS / device classification from a user-agent string.

Each classifier walks an ordered rule tuple and returns the first match. The
order is deliberate and covered by tests: Chrome is checked before Edge and
Safari, so Chromium-based browsers report as Chrome; Linux is checked before
Android, so Android phones report as Linux.
"""

import re
from typing import NamedTuple

UNKNOWN = "Unknown"
DESKTOP = "Desktop"


class SubstringRule(NamedTuple):
    needle: str
    label: str


class PatternRule(NamedTuple):
    pattern: re.Pattern[str]
    label: str


BROWSER_RULES: tuple[SubstringRule, ...] = (
    SubstringRule("Chrome", "Chrome"),
    SubstringRule("Firefox", "Firefox"),
    SubstringRule("Safari", "Safari"),
    SubstringRule("Edge", "Edge"),
    SubstringRule("Opera", "Opera"),
)

OS_RULES: tuple[SubstringRule, ...] = (
    SubstringRule("Windows", "Windows"),
    SubstringRule("Mac", "MacOS"),
    SubstringRule("Linux", "Linux"),
    SubstringRule("Android", "Android"),
    SubstringRule("iOS", "iOS"),
)

DEVICE_RULES: tuple[PatternRule, ...] = (
    PatternRule(re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.I), "Tablet"),
    PatternRule(
        re.compile(
            r"Mobile|Android|iP(hone|od)|IEMobile|BlackBerry|Kindle|Silk-Accelerated"
            r"|(hpw|web)OS|Opera M(obi|ini)"
        ),
        "Mobile",
    ),
)


def _first_substring(user_agent: str, rules: tuple[SubstringRule, ...]) -> str:
    for rule in rules:
        if rule.needle in user_agent:
            return rule.label
    return UNKNOWN


def classify_browser(user_agent: str) -> str:
    return _first_substring(user_agent, BROWSER_RULES)


def classify_os(user_agent: str) -> str:
    return _first_substring(user_agent, OS_RULES)


def classify_device(user_agent: str) -> str:
    for rule in DEVICE_RULES:
        if rule.pattern.search(user_agent):
            return rule.label
    return DESKTOP


class UserAgentInfo(NamedTuple):
    browser: str
    os: str
    device: str


def parse_user_agent(user_agent: str) -> UserAgentInfo:
    """Classify all three dimensions at once."""
    return UserAgentInfo(
        browser=classify_browser(user_agent),
        os=classify_os(user_agent),
        device=classify_device(user_agent),
    )
