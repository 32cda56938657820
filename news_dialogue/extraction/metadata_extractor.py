"""Structured metadata extraction (JSON-LD, OpenGraph, Twitter cards)."""

import json
import logging
from typing import Any, Dict, Iterator, Optional

from bs4 import BeautifulSoup

from ..models import StructuredData
from .document import PageDocument


logger = logging.getLogger(__name__)

ARTICLE_TYPES = ('NewsArticle', 'Article')


def _is_article_type(item_type: Any) -> bool:
    if isinstance(item_type, list):
        return any(t in ARTICLE_TYPES for t in item_type)
    return item_type in ARTICLE_TYPES


def iter_json_ld_items(soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
    """Yield every JSON-LD object on the page; blocks that fail to parse are skipped."""
    for script in soup.find_all('script', type='application/ld+json'):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            logger.debug(f"Skipping malformed JSON-LD block: {e}")
            continue

        # Handle both single objects and arrays
        items = data if isinstance(data, list) else [data]

        # Process nested graph structures
        if isinstance(data, dict) and isinstance(data.get('@graph'), list):
            items = data['@graph']

        for item in items:
            if isinstance(item, dict):
                yield item


def find_json_ld_article(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    """First JSON-LD entry typed ``NewsArticle`` or ``Article``."""
    for item in iter_json_ld_items(soup):
        if _is_article_type(item.get('@type')):
            return item
    return None


def author_name(value: Any) -> Optional[str]:
    """Normalize a schema.org author value (string, Person object or list of them)."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return author_name(value.get('name'))
    if isinstance(value, list):
        names = [name for name in (author_name(v) for v in value) if name]
        return ', '.join(names) or None
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class StructuredDataReader:
    """Scrape article metadata with JSON-LD > OpenGraph > Twitter priority."""

    OPEN_GRAPH_TAGS = {
        'og:title': 'title',
        'og:description': 'description',
        'og:article:author': 'author',
        'og:article:published_time': 'published_time',
    }

    TWITTER_TAGS = {
        'twitter:title': 'title',
        'twitter:description': 'description',
    }

    def extract(self, doc: PageDocument) -> Optional[StructuredData]:
        """Return the metadata found on the page, or ``None`` if nothing was found."""
        data: Dict[str, str] = {}

        try:
            article = find_json_ld_article(doc.soup)
            if article:
                self._set_if_missing(data, 'title', _text(article.get('headline')) or _text(article.get('name')))
                self._set_if_missing(data, 'author', author_name(article.get('author')))
                self._set_if_missing(data, 'published_time',
                                     _text(article.get('datePublished')) or _text(article.get('dateCreated')))
                self._set_if_missing(data, 'description', _text(article.get('description')))
        except Exception as e:
            logger.debug(f"JSON-LD extraction failed: {e}")

        try:
            for prop, key in self.OPEN_GRAPH_TAGS.items():
                tag = doc.soup.find('meta', attrs={'property': prop})
                if tag is not None:
                    self._set_if_missing(data, key, _text(tag.get('content')))
        except Exception as e:
            logger.debug(f"OpenGraph extraction failed: {e}")

        try:
            for name, key in self.TWITTER_TAGS.items():
                tag = doc.soup.find('meta', attrs={'name': name})
                if tag is not None:
                    self._set_if_missing(data, key, _text(tag.get('content')))
        except Exception as e:
            logger.debug(f"Twitter card extraction failed: {e}")

        if not data:
            return None

        logger.debug("Structured data found: title=%s author=%s",
                     (data.get('title') or 'None')[:30], data.get('author') or 'None')
        return StructuredData(**data)

    @staticmethod
    def _set_if_missing(data: Dict[str, str], key: str, value: Optional[str]) -> None:
        if value and key not in data:
            data[key] = value
