#!/usr/bin/env python3
"""Aggregate watch news from RSS feeds into data/news.json."""

from __future__ import annotations

import argparse
import re
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import feedparser
import requests
from dateutil import parser as dtparser

from scripts.records import DEFAULT_CATEGORY, Article, write_json

UTC = timezone.utc
ROOT = Path(__file__).resolve().parent.parent
DEFAULT_OUTPUT = ROOT / "data" / "news.json"
MAX_ARTICLES = 40
REQUEST_TIMEOUT = 15
USER_AGENT = "watch-site-builder/1.0 (+feed aggregator)"
ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.5"
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
# North American zone names allowed in RFC 822 dates, as UTC offsets in seconds.
RFC822_ZONES = {
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}
IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.I)


class FeedError(RuntimeError):
    """A feed responded but yielded nothing parseable."""


@dataclass(frozen=True)
class FeedSource:
    url: str
    source: str


FEEDS: tuple[FeedSource, ...] = (
    FeedSource("https://www.hodinkee.com/articles/rss.xml", "Hodinkee"),
    FeedSource("https://www.fratellowatches.com/feed/", "Fratello"),
    FeedSource("https://monochrome-watches.com/feed/", "Monochrome"),
    FeedSource("https://watchesbysjx.com/feed", "SJX"),
    FeedSource("https://revolution.watch/feed/", "Revolution"),
    FeedSource("https://wornandwound.com/feed/", "Worn & Wound"),
    FeedSource("https://timeandtidewatches.com/feed/", "Time+Tide"),
    FeedSource("https://www.ablogtowatch.com/feed/", "aBlogtoWatch"),
)

# Order matters: the first brand with a matching pattern wins.
BRAND_RULES: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = (
    ("rolex", (re.compile(r"\brolex\b", re.I),)),
    ("omega", (re.compile(r"\bomega\b", re.I),)),
    ("patek", (re.compile(r"\bpatek\b", re.I), re.compile(r"\bpatek\s*philippe\b", re.I))),
    (
        "ap",
        (
            re.compile(r"\baudemars\s*piguet\b", re.I),
            re.compile(r"\broyal\s*oak\b", re.I),
            # upper case only, "ap" is too common otherwise
            re.compile(r"\bAP\b"),
        ),
    ),
    (
        "jlc",
        (
            re.compile(r"\bjaeger[\s-]*lecoultre\b", re.I),
            re.compile(r"\bjlc\b", re.I),
            re.compile(r"\breverso\b", re.I),
        ),
    ),
    ("cartier", (re.compile(r"\bcartier\b", re.I),)),
    ("tudor", (re.compile(r"\btudor\b", re.I),)),
    ("iwc", (re.compile(r"\biwc\b", re.I),)),
)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def first_non_empty(*values: Any) -> str:
    for value in values:
        if value is None:
            continue
        s = str(value).strip()
        if s:
            return s
    return ""


def parse_date(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        dt = dtparser.parse(str(value), tzinfos=RFC822_ZONES)
        if not dt.tzinfo:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)
    except Exception:
        return None


def parse_published(entry: dict[str, Any]) -> datetime | None:
    return parse_date(entry.get("published")) or parse_date(entry.get("updated"))


def format_date(dt: datetime) -> str:
    return f"{MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def _first_url(items: Any, *keys: str) -> str:
    if not isinstance(items, list):
        return ""
    for item in items:
        if not isinstance(item, dict):
            continue
        url = first_non_empty(*(item.get(k) for k in keys))
        if url:
            return url
    return ""


def extract_image(entry: dict[str, Any]) -> str | None:
    """Pick the entry's image: media content, thumbnail, image enclosure, then inline <img>."""
    url = _first_url(entry.get("media_content"), "url")
    if url:
        return url
    url = _first_url(entry.get("media_thumbnail"), "url")
    if url:
        return url
    for enclosure in entry.get("enclosures") or []:
        if isinstance(enclosure, dict) and "image" in str(enclosure.get("type") or "").lower():
            url = first_non_empty(enclosure.get("href"), enclosure.get("url"))
            if url:
                return url

    contents = [c.get("value") for c in entry.get("content") or [] if isinstance(c, dict)]
    html = first_non_empty(*contents, entry.get("summary"), entry.get("description"))
    match = IMG_SRC_RE.search(html)
    if match:
        return match.group(1)
    return None


def entry_tags(entry: dict[str, Any]) -> list[str]:
    out = []
    for tag in entry.get("tags") or []:
        term = first_non_empty(tag.get("term"), tag.get("label")) if isinstance(tag, dict) else ""
        if term:
            out.append(term)
    return out


def extract_category(entry: dict[str, Any], default: str = DEFAULT_CATEGORY) -> str:
    tags = entry_tags(entry)
    return tags[0] if tags else default


def detect_brand(
    title: str,
    tags: Iterable[str] = (),
    rules: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = BRAND_RULES,
) -> str:
    text = f"{title} {' '.join(tags)}"
    for brand, patterns in rules:
        if any(p.search(text) for p in patterns):
            return brand
    return "other"


def entry_to_article(entry: dict[str, Any], source: str) -> tuple[datetime, Article] | None:
    published = parse_published(entry)
    if published is None:
        return None
    title = first_non_empty(entry.get("title"))
    link = first_non_empty(entry.get("link"))
    if not link:
        return None
    tags = entry_tags(entry)
    article = Article(
        title=title,
        link=link,
        source=source,
        date=format_date(published),
        image=extract_image(entry),
        category=extract_category(entry),
        brand=detect_brand(title, tags),
    )
    return published, article


def select_top(dated: Iterable[tuple[datetime, Article]], limit: int = MAX_ARTICLES) -> list[Article]:
    seen: set[str] = set()
    unique: list[tuple[datetime, Article]] = []
    for published, article in dated:
        if article.link in seen:
            continue
        seen.add(article.link)
        unique.append((published, article))
    unique.sort(key=lambda x: x[0], reverse=True)
    return [article for _, article in unique[:limit]]


def create_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT, "Accept": ACCEPT})
    return session


def fetch_feed(session: requests.Session, feed: FeedSource, timeout: float = REQUEST_TIMEOUT) -> list[Any]:
    resp = session.get(feed.url, timeout=timeout)
    resp.raise_for_status()
    parsed = feedparser.parse(resp.content)
    if parsed.bozo and not parsed.entries:
        raise FeedError(f"unparseable feed: {parsed.get('bozo_exception')}")
    return list(parsed.entries)


def collect_all(
    session: requests.Session,
    feeds: Iterable[FeedSource] = FEEDS,
    timeout: float = REQUEST_TIMEOUT,
) -> tuple[list[tuple[datetime, Article]], list[dict[str, Any]]]:
    dated: list[tuple[datetime, Article]] = []
    statuses: list[dict[str, Any]] = []

    for feed in feeds:
        start = time.perf_counter()
        error = None
        count = 0
        print(f"Fetching {feed.source}...")
        try:
            entries = fetch_feed(session, feed, timeout)
            for entry in entries:
                try:
                    item = entry_to_article(entry, feed.source)
                except Exception as exc:
                    print(f"  !! Skipping an item from {feed.source}: {exc}", file=sys.stderr)
                    continue
                if item is None:
                    continue
                dated.append(item)
                count += 1
            print(f"  -> {len(entries)} articles from {feed.source}")
        except Exception as exc:
            error = str(exc)
            print(f"  !! Failed to fetch {feed.source}: {exc}", file=sys.stderr)
        statuses.append(
            {
                "source": feed.source,
                "url": feed.url,
                "ok": error is None,
                "item_count": count,
                "duration_ms": int((time.perf_counter() - start) * 1000),
                "error": error,
            }
        )

    return dated, statuses


def run(args: argparse.Namespace) -> int:
    session = create_session()
    dated, statuses = collect_all(session, FEEDS, timeout=args.timeout)
    articles = select_top(dated, limit=max(0, args.limit))

    output_path = Path(args.output)
    write_json(output_path, [a.to_dict() for a in articles])
    print(f"\nWrote: {output_path} ({len(articles)} articles)")

    if args.status_output:
        status_path = Path(args.status_output)
        write_json(
            status_path,
            {
                "generated_at": utc_now().isoformat().replace("+00:00", "Z"),
                "feeds": statuses,
                "failed_feeds": [s["source"] for s in statuses if not s["ok"]],
                "fetched_items": len(dated),
                "written_items": len(articles),
            },
        )
        print(f"Wrote: {status_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Aggregate watch news RSS feeds into a JSON cache")
    parser.add_argument("--output", default=str(DEFAULT_OUTPUT), help="Path of the news JSON file")
    parser.add_argument("--limit", type=int, default=MAX_ARTICLES, help="Number of newest articles to keep")
    parser.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT, help="Per-feed request timeout in seconds")
    parser.add_argument("--status-output", default="", help="Optional path for a per-feed status report")
    args = parser.parse_args(argv)

    try:
        return run(args)
    except Exception as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
