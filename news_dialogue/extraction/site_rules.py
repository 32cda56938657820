"""Per-site CSS selector rules and the generic selector fallback."""

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from ..core.exceptions import ConfigurationError
from ..models import (
    ArticleRecord,
    Confidence,
    SOURCE_BASIC,
    SiteRule,
    StructuredData,
    custom_rule_source,
)
from ..services.extraction_constants import (
    MAX_TITLE_LENGTH,
    MIN_BASIC_TEXT_LENGTH,
    MIN_RULE_TEXT_LENGTH,
    MIN_TITLE_LENGTH,
)
from .document import PageDocument
from .extraction_utils import ExtractionUtils


logger = logging.getLogger(__name__)

# Site rule table, keyed by normalized domain
DEFAULT_SITE_RULES: Dict[str, Dict[str, str]] = {
    'cnyes.com': {
        'content': '.news-content, .article-content, .content',
        'title': 'h1, .news-title',
    },
    'yahoo.com': {
        'content': '.atoms, article, .content',
        'title': 'h1, .title',
    },
}

GENERIC_CONTENT_SELECTORS = ('article', 'main', '.content', '.article-content', '.post-content')


def build_rule_table(config: Mapping[str, Mapping[str, str]]) -> Dict[str, SiteRule]:
    """Turn ``{domain: {"content": ..., "title": ...}}`` into ``{domain: SiteRule}``."""
    return {domain.lower(): SiteRule.from_config(dict(rule)) for domain, rule in config.items()}


def load_site_rules(path: Optional[str] = None) -> Dict[str, SiteRule]:
    """Built-in rules, overridden/extended by an optional JSON file."""
    config: Dict[str, Dict[str, str]] = dict(DEFAULT_SITE_RULES)

    if path:
        try:
            user_config = json.loads(Path(path).read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read site rules from {path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Site rules file {path} must contain a JSON object")

        for domain, rule in user_config.items():
            if not isinstance(rule, dict) or not rule.get('content'):
                raise ConfigurationError(f"Site rule for {domain!r} needs a 'content' selector list")
            config[domain] = rule

    return build_rule_table(config)


class SiteRuleMatcher:
    """Apply the per-domain rule for a page, then the generic selector fallback."""

    def __init__(self, rule_table: Optional[Mapping[str, SiteRule]] = None,
                 utils: Optional[ExtractionUtils] = None):
        self.rule_table = dict(rule_table) if rule_table is not None else build_rule_table(DEFAULT_SITE_RULES)
        self.utils = utils or ExtractionUtils()

    def match(self, doc: PageDocument, structured_data: Optional[StructuredData] = None) -> Optional[ArticleRecord]:
        domain = self.utils.normalize_domain(doc.hostname)
        rule = self.rule_table.get(domain)

        if rule is not None:
            logger.debug(f"🎯 Applying site rule for {domain}")
            result = self.extract_with_rule(doc, domain, rule, structured_data)
            if result is not None:
                return result
            logger.debug(f"Site rule for {domain} matched no content, trying generic selectors")

        return self.basic_text_extraction(doc, structured_data)

    def extract_with_rule(self, doc: PageDocument, domain: str, rule: SiteRule,
                          structured_data: Optional[StructuredData] = None) -> Optional[ArticleRecord]:
        for selector in rule.content_selectors:
            element = self._select_one(doc, selector)
            if element is None:
                continue

            text = self.utils.extract_text_from_element(element)
            if len(text) > MIN_RULE_TEXT_LENGTH:
                title = (
                    self.extract_title_with_rule(doc, rule.title_selectors)
                    or (structured_data.title if structured_data else None)
                    or self.utils.extract_page_title(doc)
                )
                content = self.utils.clean_text(text)
                return ArticleRecord(
                    title=title,
                    content=content,
                    source=custom_rule_source(domain),
                    confidence=Confidence.MEDIUM,
                    url=doc.href,
                    length=len(content),
                    author=structured_data.author if structured_data else None,
                    published_time=structured_data.published_time if structured_data else None,
                    excerpt=structured_data.description if structured_data else None,
                )
        return None

    def extract_title_with_rule(self, doc: PageDocument, title_selectors: Sequence[str]) -> Optional[str]:
        for selector in title_selectors:
            element = self._select_one(doc, selector)
            if element is None:
                continue
            title = element.get_text(separator=' ', strip=True)
            if MIN_TITLE_LENGTH < len(title) < MAX_TITLE_LENGTH:
                return title
        return None

    def basic_text_extraction(self, doc: PageDocument,
                              structured_data: Optional[StructuredData] = None) -> Optional[ArticleRecord]:
        """Last resort: common content containers, low confidence."""
        logger.debug("🔄 Using basic text extraction")

        for selector in GENERIC_CONTENT_SELECTORS:
            element = self._select_one(doc, selector)
            if element is None:
                continue

            text = self.utils.extract_text_from_element(element)
            if len(text) > MIN_BASIC_TEXT_LENGTH:
                content = self.utils.clean_text(text)
                return ArticleRecord(
                    title=(structured_data.title if structured_data else None) or self.utils.extract_page_title(doc),
                    content=content,
                    source=SOURCE_BASIC,
                    confidence=Confidence.LOW,
                    url=doc.href,
                    length=len(content),
                    author=structured_data.author if structured_data else None,
                    published_time=structured_data.published_time if structured_data else None,
                    excerpt=structured_data.description if structured_data else None,
                )
        return None

    @staticmethod
    def _select_one(doc: PageDocument, selector: str):
        try:
            return doc.select_one(selector)
        except Exception as e:
            logger.debug(f"Selector {selector!r} failed: {e}")
            return None
