#!/usr/bin/env python3
"""Fill missing glossary images in data/dictionary.json from Unsplash search."""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import Any, Callable, TypeVar

import requests

from scripts.records import FALLBACK_IMAGE, DictionaryEntry, RecordError, load_json_array, write_json

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_DICTIONARY = ROOT / "data" / "dictionary.json"
SEARCH_URL = "https://api.unsplash.com/search/photos"
QUERY_SUFFIX = "watch"
# Unsplash demo keys allow 50 requests per hour.
DELAY_SECONDS = 1.5
REQUEST_TIMEOUT = 15

T = TypeVar("T")


class RateLimiter:
    """Runs tasks one at a time, at least ``interval`` seconds after the previous one finished."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    def acquire(self) -> None:
        if self._last is not None:
            wait = self._last + self.interval - self._clock()
            if wait > 0:
                self._sleep(wait)

    def release(self) -> None:
        self._last = self._clock()

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self.acquire()
        try:
            return fn(*args, **kwargs)
        finally:
            self.release()


def search_image(
    session: requests.Session,
    access_key: str,
    term: str,
    timeout: float = REQUEST_TIMEOUT,
) -> str | None:
    try:
        resp = session.get(
            SEARCH_URL,
            params={"query": f"{term} {QUERY_SUFFIX}", "per_page": 1, "orientation": "landscape"},
            headers={"Authorization": f"Client-ID {access_key}"},
            timeout=timeout,
        )
        if not resp.ok:
            print(f"  !! Unsplash API error for {term!r}: {resp.status_code}", file=sys.stderr)
            return None
        results = resp.json().get("results") or []
        if not results:
            return None
        return results[0]["urls"]["small"] or None
    except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as exc:
        print(f"  !! Unsplash request failed for {term!r}: {exc}", file=sys.stderr)
        return None


def enrich_entries(
    raw_entries: list[Any],
    search: Callable[[str], str | None],
    limiter: RateLimiter,
) -> tuple[list[Any], dict[str, int]]:
    stats = {"fetched": 0, "fallback": 0, "skipped": 0, "invalid": 0}
    out: list[Any] = []

    for raw in raw_entries:
        try:
            entry = DictionaryEntry.from_dict(raw)
        except RecordError as exc:
            print(f"  !! Leaving malformed entry untouched: {exc}", file=sys.stderr)
            stats["invalid"] += 1
            out.append(raw)
            continue

        if entry.image:
            stats["skipped"] += 1
            out.append(raw)
            continue

        print(f'Fetching image for "{entry.term}"...')
        image_url = limiter.call(search, entry.term)
        if image_url:
            stats["fetched"] += 1
            print("  -> OK")
        else:
            image_url = FALLBACK_IMAGE
            stats["fallback"] += 1
            print("  -> No result, using fallback")

        updated = dict(raw)
        updated["image"] = image_url
        out.append(updated)

    return out, stats


def run(args: argparse.Namespace, access_key: str) -> int:
    dictionary_path = Path(args.dictionary)
    raw_entries = load_json_array(dictionary_path)

    session = requests.Session()
    limiter = RateLimiter(max(0.0, args.delay))

    def search(term: str) -> str | None:
        return search_image(session, access_key, term, timeout=args.timeout)

    entries, stats = enrich_entries(raw_entries, search, limiter)
    write_json(dictionary_path, entries)
    print(
        f"\nDone. Fetched: {stats['fetched']}, Fallback: {stats['fallback']}, "
        f"Skipped (cached): {stats['skipped']}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fetch Unsplash images for glossary terms without one")
    parser.add_argument("--dictionary", default=str(DEFAULT_DICTIONARY), help="Path of the dictionary JSON file")
    parser.add_argument("--delay", type=float, default=DELAY_SECONDS, help="Seconds between API requests")
    parser.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT, help="Per-request timeout in seconds")
    args = parser.parse_args(argv)

    access_key = os.getenv("UNSPLASH_ACCESS_KEY", "").strip()
    if not access_key:
        print("No UNSPLASH_ACCESS_KEY set, skipping image fetch.")
        print("Set it via: export UNSPLASH_ACCESS_KEY=your_key")
        return 0

    try:
        return run(args, access_key)
    except Exception as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
