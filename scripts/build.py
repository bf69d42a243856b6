#!/usr/bin/env python3
"""Render index.html from template.html, data/news.json and data/dictionary.json."""

from __future__ import annotations

import argparse
import re
import string
import sys
from pathlib import Path
from typing import Any, Iterable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from scripts.records import FALLBACK_IMAGE, Article, DictionaryEntry, load_records

ROOT = Path(__file__).resolve().parent.parent
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_TEMPLATE = ROOT / "template.html"
DEFAULT_NEWS = ROOT / "data" / "news.json"
DEFAULT_DICTIONARY = ROOT / "data" / "dictionary.json"
DEFAULT_OUTPUT = ROOT / "index.html"

FEATURED_PLACEHOLDER = "{{FEATURED_ARTICLE}}"
NEWS_CARDS_PLACEHOLDER = "{{NEWS_CARDS}}"
LETTER_NAV_PLACEHOLDER = "{{LETTER_NAV}}"
DICTIONARY_PLACEHOLDER = "{{DICTIONARY_TERMS}}"


def create_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.globals["fallback_image"] = FALLBACK_IMAGE
    return env


def select_featured(articles: list[Article]) -> Article | None:
    for article in articles:
        if article.image:
            return article
    return articles[0] if articles else None


def grid_articles(articles: list[Article], featured: Article | None) -> list[Article]:
    # Identity, not equality: an equal copy of the featured article stays in the grid.
    return [a for a in articles if a is not featured]


def render_featured(article: Article | None, env: Environment | None = None) -> str:
    if article is None:
        return ""
    env = env or create_env()
    return env.get_template("featured.html").render(article=article)


def render_news_cards(articles: list[Article], env: Environment | None = None) -> str:
    if not articles:
        return ""
    env = env or create_env()
    return env.get_template("news_cards.html").render(articles=articles)


def render_letter_nav(entries: Iterable[DictionaryEntry], env: Environment | None = None) -> str:
    env = env or create_env()
    with_terms = {e.letter for e in entries}
    first = next((letter for letter in string.ascii_uppercase if letter in with_terms), None)
    buttons = [
        {"letter": letter, "enabled": letter in with_terms, "active": letter == first}
        for letter in string.ascii_uppercase
    ]
    return env.get_template("letter_nav.html").render(buttons=buttons)


def group_entries(entries: Iterable[DictionaryEntry]) -> list[tuple[str, list[DictionaryEntry]]]:
    groups: dict[str, list[DictionaryEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.letter, []).append(entry)
    return sorted(groups.items(), key=lambda x: x[0])


def render_dictionary_terms(entries: Iterable[DictionaryEntry], env: Environment | None = None) -> str:
    groups = group_entries(entries)
    if not groups:
        return ""
    env = env or create_env()
    return env.get_template("dictionary_terms.html").render(groups=groups)


def fill_template(template: str, fragments: dict[str, str]) -> str:
    """Replace the first occurrence of each placeholder in a single pass.

    Fragments are never rescanned, so text inside them that happens to look
    like a placeholder is left alone.
    """
    missing = [key for key in fragments if key not in template]
    for key in missing:
        print(f"  !! Template has no {key} placeholder", file=sys.stderr)

    pattern = re.compile("|".join(re.escape(key) for key in fragments))
    done: set[str] = set()

    def substitute(match: re.Match[str]) -> str:
        key = match.group(0)
        if key in done:
            return key
        done.add(key)
        return fragments[key]

    return pattern.sub(substitute, template)


def build(
    template_path: Path = DEFAULT_TEMPLATE,
    news_path: Path = DEFAULT_NEWS,
    dictionary_path: Path = DEFAULT_DICTIONARY,
    output_path: Path = DEFAULT_OUTPUT,
) -> dict[str, Any]:
    template = template_path.read_text(encoding="utf-8")
    news = load_records(news_path, Article.from_dict)
    dictionary = load_records(dictionary_path, DictionaryEntry.from_dict)

    env = create_env()
    featured = select_featured(news)
    html = fill_template(
        template,
        {
            FEATURED_PLACEHOLDER: render_featured(featured, env),
            NEWS_CARDS_PLACEHOLDER: render_news_cards(grid_articles(news, featured), env),
            LETTER_NAV_PLACEHOLDER: render_letter_nav(dictionary, env),
            DICTIONARY_PLACEHOLDER: render_dictionary_terms(dictionary, env),
        },
    )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")
    return {"articles": len(news), "terms": len(dictionary), "output": str(output_path)}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Build the static watch site page")
    parser.add_argument("--template", default=str(DEFAULT_TEMPLATE), help="HTML template with placeholders")
    parser.add_argument("--news", default=str(DEFAULT_NEWS), help="News JSON file")
    parser.add_argument("--dictionary", default=str(DEFAULT_DICTIONARY), help="Dictionary JSON file")
    parser.add_argument("--output", default=str(DEFAULT_OUTPUT), help="Where to write the built page")
    args = parser.parse_args(argv)

    try:
        summary = build(Path(args.template), Path(args.news), Path(args.dictionary), Path(args.output))
    except Exception as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1

    print(
        f"Built {summary['output']} with {summary['articles']} articles "
        f"and {summary['terms']} dictionary terms"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
