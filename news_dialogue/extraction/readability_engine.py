"""Readability engine capability and its readability-lxml implementation."""

import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from bs4 import BeautifulSoup, Tag
from readability.readability import Document

from ..core.exceptions import ReadabilityParseError
from ..models import ReadabilityResult
from ..services.extraction_constants import (
    READABILITY_CHAR_THRESHOLD,
    READABILITY_MAX_ELEMS_TO_PARSE,
    READABILITY_NB_TOP_CANDIDATES,
    READERABLE_MIN_CONTENT_LENGTH,
    READERABLE_MIN_SCORE,
)
from .document import PageDocument
from .metadata_extractor import author_name, find_json_ld_article


logger = logging.getLogger(__name__)

UNLIKELY_CANDIDATES_RE = re.compile(
    r'-ad-|ai2html|banner|breadcrumbs|combx|comment|community|cover-wrap|disqus|extra|footer|gdpr|'
    r'header|legends|menu|related|remark|replies|rss|shoutbox|sidebar|skyscraper|social|sponsor|'
    r'supplemental|ad-break|agegate|pagination|pager|popup|yom-remote',
    re.IGNORECASE,
)
MAYBE_CANDIDATE_RE = re.compile(r'and|article|body|column|content|main|mathjax|shadow', re.IGNORECASE)

BYLINE_SELECTORS = (
    '[rel="author"]',
    '[itemprop="author"]',
    '.byline',
    '.author',
    '.author-name',
)

# readability-lxml always ranks this many top candidates
ENGINE_TOP_CANDIDATES = 5


@dataclass(frozen=True)
class ReadabilityOptions:
    """Parameters handed to the readability engine."""
    max_elems_to_parse: int = READABILITY_MAX_ELEMS_TO_PARSE
    nb_top_candidates: int = READABILITY_NB_TOP_CANDIDATES
    char_threshold: int = READABILITY_CHAR_THRESHOLD
    keep_classes: bool = False
    classes_to_preserve: Tuple[str, ...] = ()
    disable_json_ld: bool = False


class ReadabilityEngine(ABC):
    """Capability interface for a readability implementation."""

    @abstractmethod
    def is_suitable(self, doc: PageDocument,
                    min_content_length: int = READERABLE_MIN_CONTENT_LENGTH,
                    min_score: int = READERABLE_MIN_SCORE) -> bool:
        """Quick advisory check whether the page looks like an article."""
        pass

    @abstractmethod
    def parse(self, doc: PageDocument, options: Optional[ReadabilityOptions] = None) -> Optional[ReadabilityResult]:
        """Extract the main article from ``doc``. May modify ``doc``; callers pass a clone."""
        pass


def _is_node_visible(node: Tag) -> bool:
    style = (node.get('style') or '').replace(' ', '').lower()
    if 'display:none' in style or 'visibility:hidden' in style:
        return False
    if node.has_attr('hidden'):
        return False
    if node.get('aria-hidden') == 'true':
        classes = node.get('class') or []
        return 'fallback-image' in classes
    return True


def _candidate_nodes(soup: BeautifulSoup) -> Iterable[Tag]:
    seen = set()
    nodes = list(soup.select('p, pre, article'))
    nodes.extend(br.parent for br in soup.select('div > br') if br.parent is not None)
    for node in nodes:
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node


def is_probably_readerable(soup: BeautifulSoup,
                           min_content_length: int = READERABLE_MIN_CONTENT_LENGTH,
                           min_score: int = READERABLE_MIN_SCORE) -> bool:
    """Score visible text blocks; the page is readerable once the score exceeds ``min_score``."""
    score = 0.0

    for node in _candidate_nodes(soup):
        if not _is_node_visible(node):
            continue

        classes = node.get('class') or []
        match_string = ' '.join(classes) + ' ' + (node.get('id') or '')
        if UNLIKELY_CANDIDATES_RE.search(match_string) and not MAYBE_CANDIDATE_RE.search(match_string):
            continue

        if node.name == 'p' and node.find_parent('li') is not None:
            continue

        text_length = len(node.get_text().strip())
        if text_length < min_content_length:
            continue

        score += math.sqrt(text_length - min_content_length)
        if score > min_score:
            return True

    return False


class LxmlReadabilityEngine(ReadabilityEngine):
    """Readability on top of ``readability-lxml`` with BeautifulSoup metadata scraping."""

    def is_suitable(self, doc: PageDocument,
                    min_content_length: int = READERABLE_MIN_CONTENT_LENGTH,
                    min_score: int = READERABLE_MIN_SCORE) -> bool:
        return is_probably_readerable(doc.soup, min_content_length, min_score)

    def parse(self, doc: PageDocument, options: Optional[ReadabilityOptions] = None) -> Optional[ReadabilityResult]:
        options = options or ReadabilityOptions()

        if options.max_elems_to_parse > 0:
            element_count = len(doc.soup.find_all(True))
            if element_count > options.max_elems_to_parse:
                raise ReadabilityParseError(f"Aborting parsing document; {element_count} elements found")

        if options.nb_top_candidates != ENGINE_TOP_CANDIDATES:
            logger.debug(f"readability-lxml ranks {ENGINE_TOP_CANDIDATES} candidates; "
                         f"requested {options.nb_top_candidates}")

        try:
            readable = Document(doc.to_html(), url=doc.href or None, retry_length=options.char_threshold)
            summary_html = readable.summary(html_partial=True)
        except Exception as e:
            raise ReadabilityParseError(f"Readability extraction failed: {e}") from e

        if not summary_html:
            return None

        summary_soup = BeautifulSoup(summary_html, 'html.parser')
        if not options.keep_classes:
            self._strip_classes(summary_soup, options.classes_to_preserve)

        text_content = summary_soup.get_text(separator=' ', strip=True)
        if not text_content:
            return None

        metadata = self._read_metadata(doc.soup, use_json_ld=not options.disable_json_ld)
        html_tag = doc.soup.find('html')

        return ReadabilityResult(
            title=metadata.get('title') or self._engine_title(readable),
            content=str(summary_soup),
            text_content=text_content,
            length=len(text_content),
            excerpt=metadata.get('excerpt') or self._first_paragraph(summary_soup),
            byline=metadata.get('byline') or self._find_byline(doc.soup),
            dir=html_tag.get('dir') if html_tag is not None else None,
            site_name=metadata.get('site_name'),
            lang=html_tag.get('lang') if html_tag is not None else None,
            published_time=metadata.get('published_time'),
        )

    @staticmethod
    def _engine_title(readable: Document) -> Optional[str]:
        title = (readable.short_title() or '').strip()
        if not title or title == '[no-title]':
            return None
        return title

    @staticmethod
    def _strip_classes(soup: BeautifulSoup, preserve: Tuple[str, ...]) -> None:
        for tag in soup.find_all(True):
            classes = tag.get('class')
            if not classes:
                continue
            kept = [c for c in classes if c in preserve]
            if kept:
                tag['class'] = kept
            else:
                del tag['class']

    @staticmethod
    def _first_paragraph(soup: BeautifulSoup) -> Optional[str]:
        for paragraph in soup.find_all('p'):
            text = paragraph.get_text(separator=' ', strip=True)
            if text:
                return text
        return None

    @staticmethod
    def _find_byline(soup: BeautifulSoup) -> Optional[str]:
        for selector in BYLINE_SELECTORS:
            for element in soup.select(selector):
                author_text = element.get_text(separator=' ', strip=True)
                if author_text and len(author_text) < 100:  # Reasonable author name length
                    return author_text
        return None

    @staticmethod
    def _read_metadata(soup: BeautifulSoup, use_json_ld: bool) -> Dict[str, str]:
        metadata: Dict[str, str] = {}

        def put(key: str, value) -> None:
            if isinstance(value, str) and value.strip() and key not in metadata:
                metadata[key] = value.strip()

        if use_json_ld:
            article = find_json_ld_article(soup)
            if article:
                put('title', article.get('headline') or article.get('name'))
                put('byline', author_name(article.get('author')))
                put('excerpt', article.get('description'))
                put('site_name', author_name(article.get('publisher')))
                put('published_time', article.get('datePublished'))

        def meta_content(*keys: str) -> Optional[str]:
            for key in keys:
                tag = soup.find('meta', attrs={'property': key}) or soup.find('meta', attrs={'name': key})
                if tag is not None and (tag.get('content') or '').strip():
                    return tag['content'].strip()
            return None

        put('title', meta_content('og:title', 'twitter:title', 'dc:title'))
        author = meta_content('author', 'dc:creator', 'article:author')
        if author and not author.startswith(('http://', 'https://')):
            put('byline', author)
        put('excerpt', meta_content('description', 'og:description', 'twitter:description'))
        put('site_name', meta_content('og:site_name'))
        put('published_time', meta_content('article:published_time', 'parsely-pub-date'))

        return metadata


def load_default_engine() -> ReadabilityEngine:
    """Engine loader used when the host does not inject one."""
    return LxmlReadabilityEngine()
