"""Utility functions for content extraction."""

import copy
import re
from typing import Optional

from bs4 import Tag

from ..services.extraction_constants import DEFAULT_TITLE, MAX_CONTENT_LENGTH
from .document import PageDocument


_DOMAIN_PREFIX_RE = re.compile(r'^(www\.|m\.)')
_WHITESPACE_RE = re.compile(r'\s+')


class ExtractionUtils:
    """Utility functions for content extraction and processing."""

    def __init__(self, max_content_length: int = MAX_CONTENT_LENGTH):
        self.max_content_length = max_content_length

    def normalize_domain(self, hostname: Optional[str]) -> str:
        """Strip a leading ``www.`` or ``m.`` from a hostname."""
        if not hostname:
            return ''
        return _DOMAIN_PREFIX_RE.sub('', hostname.lower())

    def extract_text_from_element(self, element: Optional[Tag]) -> str:
        """Text of an element with scripts, styles and noscript blocks removed."""
        if element is None:
            return ''

        # Work on a copy so the live document is never modified
        element_copy = copy.copy(element)
        for unwanted in element_copy.find_all(['script', 'style', 'noscript']):
            unwanted.decompose()

        text = element_copy.get_text(separator=' ', strip=True)
        return _WHITESPACE_RE.sub(' ', text).strip()

    def clean_text(self, text: Optional[str]) -> str:
        """Collapse whitespace and cap the length of extracted text."""
        if not text:
            return ''

        text = _WHITESPACE_RE.sub(' ', text).strip()
        return self.smart_truncate(text, self.max_content_length)

    def smart_truncate(self, text: str, max_length: int) -> str:
        """Truncate at a sentence boundary, else a word boundary; never exceeds max_length."""
        if len(text) <= max_length:
            return text

        truncated = text[:max_length]

        last_sentence_end = -1
        for ending in ('. ', '! ', '? '):
            pos = truncated.rfind(ending)
            if pos > last_sentence_end:
                last_sentence_end = pos

        if last_sentence_end > max_length // 2:  # good break point
            return truncated[:last_sentence_end + 1].rstrip()

        last_space = truncated.rfind(' ')
        if last_space > max_length // 2:
            return truncated[:last_space].rstrip()

        return truncated

    def extract_page_title(self, doc: PageDocument) -> str:
        """Generic title heuristic: first ``<h1>``, else the document title up to ``|`` or ``-``."""
        h1 = doc.select_one('h1')
        if h1 is not None:
            h1_text = h1.get_text().strip()
            if h1_text:
                return _WHITESPACE_RE.sub(' ', h1_text)

        title = doc.title or ''
        title = title.split('|')[0].split('-')[0].strip()
        return title or DEFAULT_TITLE
