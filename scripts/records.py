"""Record types and JSON helpers shared by the fetch and build scripts."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

FALLBACK_IMAGE = "https://images.unsplash.com/photo-1614164185128-e4ec99c436d7?w=400&q=80"
DEFAULT_CATEGORY = "Watch News"

T = TypeVar("T")


class RecordError(ValueError):
    """Raised for a record or data file that cannot be used."""


def _text(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value).strip()


def _optional_text(data: dict[str, Any], key: str) -> str | None:
    return _text(data, key) or None


@dataclass
class Article:
    title: str
    link: str
    source: str
    date: str
    image: str | None = None
    category: str = DEFAULT_CATEGORY
    brand: str = "other"

    @classmethod
    def from_dict(cls, data: Any) -> "Article":
        if not isinstance(data, dict):
            raise RecordError(f"article must be an object, got {type(data).__name__}")
        title = _text(data, "title")
        link = _text(data, "link")
        date = _text(data, "date")
        if not link:
            raise RecordError("article needs a link")
        if not date:
            raise RecordError(f"article has no date: {link}")
        return cls(
            title=title,
            link=link,
            source=_text(data, "source"),
            date=date,
            image=_optional_text(data, "image"),
            category=_text(data, "category") or DEFAULT_CATEGORY,
            brand=_text(data, "brand") or "other",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "source": self.source,
            "date": self.date,
            "image": self.image,
            "category": self.category,
            "brand": self.brand,
        }


@dataclass
class DictionaryEntry:
    term: str
    letter: str
    definition: str = ""
    image: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "DictionaryEntry":
        if not isinstance(data, dict):
            raise RecordError(f"dictionary entry must be an object, got {type(data).__name__}")
        term = _text(data, "term")
        if not term:
            raise RecordError("dictionary entry needs a term")
        letter = (_text(data, "letter") or term)[:1].upper()
        return cls(
            term=term,
            letter=letter,
            definition=_text(data, "definition"),
            image=_optional_text(data, "image"),
        )


def load_json_array(path: Path) -> list[Any]:
    """Return the JSON array stored at ``path``; a missing file is an empty list."""
    if not path.exists():
        return []
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise RecordError(f"{path} must hold a JSON array, got {type(payload).__name__}")
    return payload


def load_records(path: Path, factory: Callable[[Any], T]) -> list[T]:
    out: list[T] = []
    for index, raw in enumerate(load_json_array(path)):
        try:
            out.append(factory(raw))
        except RecordError as exc:
            print(f"  !! Skipping record {index} in {path.name}: {exc}", file=sys.stderr)
    return out


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
