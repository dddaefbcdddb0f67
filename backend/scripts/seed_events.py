"""Generate realistic fake pageviews for development and demos.

Usage:
    # Through the public ingest endpoint (timestamps are "now"):
    python -m scripts.seed_events --site-id <SITE_ID> --api-key <SITE_API_KEY>

    # Straight into a site's store, spread over past days:
    python -m scripts.seed_events --site-id <SITE_ID> --direct \
        --store-url sqlite+aiosqlite:///./store.db --store-key unused --days 30
"""

import argparse
import asyncio
import random
import sys
import uuid
from datetime import datetime, timedelta, timezone

import httpx

from sitepulse.schemas.event import AnalyticsEventData
from sitepulse.services.credentials import StoreHandle, normalize_store_url
from sitepulse.services.event_store import open_event_store
from sitepulse.services.user_agent import parse_user_agent

PAGES = [
    "/",
    "/pricing",
    "/features",
    "/about",
    "/blog",
    "/blog/getting-started",
    "/blog/best-practices?utm_campaign=newsletter",
    "/docs",
    "/docs/api",
    "/signup?utm_campaign=launch",
]

REFERRERS = [
    "https://www.google.com/search?q=sitepulse",
    "https://duckduckgo.com/",
    "https://t.co/abc123",
    "https://news.ycombinator.com/item?id=1",
    "https://github.com/",
    "",
    "",
    "",
]

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

COUNTRIES = [("US", "New York"), ("DE", "Berlin"), ("GB", "London"), (None, None)]


def generate_pageviews(site_id: str, count: int) -> list[dict]:
    """Generate pageview payloads, grouped into plausible sessions."""
    sessions = [uuid.uuid4().hex for _ in range(max(count // 4, 1))]
    session_agents = {s: random.choice(USER_AGENTS) for s in sessions}
    events = []
    for _ in range(count):
        session = random.choice(sessions)
        country, city = random.choice(COUNTRIES)
        events.append(
            {
                "site_id": site_id,
                "event_type": "pageview",
                "page_url": f"https://example.com{random.choice(PAGES)}",
                "referrer": random.choice(REFERRERS) or None,
                "user_agent": session_agents[session],
                "session_id": session,
                "country": country,
                "city": city,
            }
        )
    return events


def send_over_http(events: list[dict], base_url: str, api_key: str) -> int:
    sent = 0
    with httpx.Client(timeout=30) as client:
        for evt in events:
            resp = client.post(
                f"{base_url}/api/v1/events/ingest",
                json=evt,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            if resp.status_code != 200:
                print(f"  Error: {resp.status_code} - {resp.text}", file=sys.stderr)
                sys.exit(1)
            sent += 1
            if sent % 100 == 0:
                print(f"  Sent {sent}/{len(events)} events")
    return sent


async def write_to_store(
    events: list[dict], site_id: str, store_url: str, store_key: str, days: int
) -> int:
    now = datetime.now(timezone.utc)
    handle = StoreHandle(tenant_id=site_id, url=normalize_store_url(store_url), secret=store_key)
    async with open_event_store(handle) as store:
        await store.ensure_schema()
        for evt in events:
            agent = parse_user_agent(evt["user_agent"])
            await store.write(
                AnalyticsEventData(
                    **evt,
                    browser=agent.browser,
                    os=agent.os,
                    device=agent.device,
                    created_at=now - timedelta(seconds=random.randint(0, days * 86400)),
                )
            )
    return len(events)


def main():
    parser = argparse.ArgumentParser(description="Seed pageview events")
    parser.add_argument("--site-id", required=True, help="Site id")
    parser.add_argument("--api-key", help="Site API key (HTTP mode)")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--count", type=int, default=500, help="Number of pageviews")
    parser.add_argument("--direct", action="store_true", help="Write into the store directly")
    parser.add_argument("--store-url", help="Store URL (direct mode)")
    parser.add_argument("--store-key", default="", help="Store secret (direct mode)")
    parser.add_argument("--days", type=int, default=7, help="Days of history (direct mode)")
    args = parser.parse_args()

    print(f"Generating {args.count} pageviews...")
    events = generate_pageviews(args.site_id, args.count)

    if args.direct:
        if not args.store_url:
            parser.error("--direct requires --store-url")
        total = asyncio.run(
            write_to_store(events, args.site_id, args.store_url, args.store_key, args.days)
        )
    else:
        if not args.api_key:
            parser.error("--api-key is required unless --direct is given")
        print(f"Sending to {args.url}...")
        total = send_over_http(events, args.url, args.api_key)

    print(f"Done! Seeded {total} events.")


if __name__ == "__main__":
    main()
