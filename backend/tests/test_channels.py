import pytest

from sitepulse.services.channels import (
    CHANNEL_RULES,
    DIRECT,
    classify_channel,
    referrer_host,
)


class TestReferrerHost:
    def test_extracts_hostname(self):
        assert referrer_host("https://www.google.com/search?q=x") == "www.google.com"

    @pytest.mark.parametrize("referrer", [None, "", "   "])
    def test_missing_referrer_is_direct(self, referrer):
        assert referrer_host(referrer) == DIRECT

    def test_unparseable_referrer_is_returned_verbatim(self):
        assert referrer_host("not a url") == "not a url"

    def test_broken_ipv6_literal_is_returned_verbatim(self):
        assert referrer_host("http://[::1") == "http://[::1"


class TestClassifyChannel:
    @pytest.mark.parametrize(
        "host,channel",
        [
            ("www.google.com", "Search"),
            ("google.co.uk", "Search"),
            ("duckduckgo.com", "Search"),
            ("t.co", "Social"),
            ("news.ycombinator.com", "Social"),
            ("m.facebook.com", "Social"),
            ("outlook.live.com", "Email"),
            ("unknownsite.example", "Other"),
            (DIRECT, "Direct"),
        ],
    )
    def test_known_hosts(self, host: str, channel: str):
        assert classify_channel(host) == channel

    def test_case_insensitive(self):
        assert classify_channel("WWW.GOOGLE.COM") == "Search"

    def test_rule_order_decides_ambiguous_hosts(self):
        # Both mail hosts also match a search rule listed earlier
        assert classify_channel("mail.yahoo.com") == "Search"
        assert classify_channel("mail.google.com") == "Search"

    def test_lookalike_domain_is_not_social(self):
        assert classify_channel("notfacebook.com") == "Other"

    def test_every_host_gets_exactly_one_channel(self):
        channels = [rule.channel for rule in CHANNEL_RULES]
        assert channels == ["Social", "Search", "Direct", "Email", "Other"]
        assert classify_channel("") == "Other"
