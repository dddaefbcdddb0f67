"""Referrer host extraction and marketing-channel classification.

The rule order in ``CHANNEL_RULES`` is part of the contract: a host matching
several rules gets the first one. Changing the order reclassifies ambiguous
domains (``mail.yahoo.com`` is Search, not Email) and is a breaking change.
"""

import re
from typing import NamedTuple
from urllib.parse import urlsplit

DIRECT = "Direct / None"

SOCIAL = "Social"
SEARCH = "Search"
DIRECT_CHANNEL = "Direct"
EMAIL = "Email"
OTHER = "Other"


class ChannelRule(NamedTuple):
    channel: str
    pattern: re.Pattern[str]


def _domains(*names: str) -> re.Pattern[str]:
    """Match any of ``names`` or a subdomain of them."""
    alternatives = "|".join(re.escape(n) for n in names)
    return re.compile(rf"(?:^|\.)(?:{alternatives})$")


CHANNEL_RULES: tuple[ChannelRule, ...] = (
    ChannelRule(
        SOCIAL,
        _domains(
            "facebook.com",
            "fb.com",
            "instagram.com",
            "twitter.com",
            "t.co",
            "x.com",
            "linkedin.com",
            "lnkd.in",
            "reddit.com",
            "pinterest.com",
            "tiktok.com",
            "youtube.com",
            "threads.net",
            "mastodon.social",
            "news.ycombinator.com",
        ),
    ),
    ChannelRule(
        SEARCH,
        re.compile(
            r"(?:^|\.)(?:google\.[a-z]{2,3}(?:\.[a-z]{2})?|bing\.com|duckduckgo\.com"
            r"|yahoo\.com|baidu\.com|yandex\.[a-z]{2,3}|ecosia\.org|search\.brave\.com"
            r"|startpage\.com|qwant\.com)$"
        ),
    ),
    ChannelRule(DIRECT_CHANNEL, re.compile(rf"^{re.escape(DIRECT)}$")),
    ChannelRule(
        EMAIL,
        _domains(
            "mail.google.com",
            "outlook.live.com",
            "outlook.office.com",
            "outlook.office365.com",
            "mail.yahoo.com",
            "mail.proton.me",
            "mail.aol.com",
            "mail.zoho.com",
            "fastmail.com",
        ),
    ),
    ChannelRule(OTHER, re.compile(r".*", re.DOTALL)),
)


def referrer_host(referrer: str | None) -> str:
    """Host of a referrer URL.

    Null or empty referrers map to ``DIRECT``; strings that do not parse as an
    absolute URL are returned verbatim.
    """
    if referrer is None or not referrer.strip():
        return DIRECT
    try:
        host = urlsplit(referrer.strip()).hostname
    except ValueError:
        return referrer
    return host or referrer


def classify_channel(host: str) -> str:
    """First matching channel for a referrer host; ``Other`` when nothing else matches."""
    candidate = host if host == DIRECT else host.lower()
    for rule in CHANNEL_RULES:
        if rule.pattern.search(candidate):
            return rule.channel
    return OTHER
