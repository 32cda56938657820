"""DOM-like page document backed by BeautifulSoup."""

import copy
from typing import List, Optional, Union
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag


class PageDocument:
    """A parsed page plus the location it was loaded from.

    Mirrors the small slice of the browser DOM the extractors need:
    CSS selection, deep cloning, ``location.hostname``/``location.href``
    and ``document.title``.
    """

    def __init__(self, html: Union[str, BeautifulSoup], url: str = ''):
        if isinstance(html, BeautifulSoup):
            self.soup = html
        else:
            self.soup = BeautifulSoup(html or '', 'html.parser')
        self.url = url or ''

    @property
    def href(self) -> str:
        return self.url

    @property
    def hostname(self) -> str:
        try:
            return (urlparse(self.url).hostname or '').lower()
        except ValueError:
            return ''

    @property
    def title(self) -> str:
        title_tag = self.soup.find('title')
        if title_tag is None:
            return ''
        return title_tag.get_text().strip()

    def select(self, selector: str) -> List[Tag]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def clone(self) -> 'PageDocument':
        """Deep copy; mutating the clone never touches this document."""
        return PageDocument(copy.copy(self.soup), self.url)

    def to_html(self) -> str:
        return str(self.soup)

    def __repr__(self) -> str:
        return f"PageDocument(url={self.url!r})"
