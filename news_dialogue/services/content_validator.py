"""Post-extraction validation: flags cookie banners, privacy policies and paywalls.

Extraction can succeed on text that is not an article at all. The validator
inspects the extracted plain text with keyword heuristics and returns a
typed ``ContentIssue`` the caller must act on before using the record.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from ..models import ArticleRecord, ContentIssue, ContentIssueType


logger = logging.getLogger(__name__)


MESSAGE_KEYS = {
    ContentIssueType.COOKIE_NOTICE: 'cookieNoticeDetected',
    ContentIssueType.PRIVACY_POLICY: 'privacyPolicyDetected',
    ContentIssueType.PAYWALL: 'paywallDetected',
    ContentIssueType.NO_CONTENT: 'insufficientContent',
}
DEFAULT_MESSAGE_KEY = 'errorContentExtraction'


class ContentValidator:
    """Detects extracted text that is a consent banner, policy page or paywall."""

    def __init__(self):
        # Phrases a consent banner opens with
        self.cookie_strong_indicators: List[str] = [
            'this cookie notice',
            'cookie policy',
            'we use cookies',
            'this website uses cookies',
            'by continuing to use this site',
            'nbcuniversal and its affiliates',
        ]

        # Any of these means the text reads like a news story
        self.news_structure_markers: List[re.Pattern] = [
            re.compile(r'published', re.IGNORECASE),
            re.compile(r'updated', re.IGNORECASE),
            re.compile(r'reported', re.IGNORECASE),
            re.compile(r'\bby [A-Z][a-z]+ [A-Z][a-z]+'),
        ]

        self.paywall_indicators: List[str] = [
            'subscribe to continue reading',
            'become a member to read',
            'this article is for subscribers only',
            'sign in to continue reading',
        ]

        self.cookie_scan_length = 500
        self.cookie_min_occurrences = 5
        self.privacy_scan_length = 200

    def has_news_structure(self, content: str) -> bool:
        return any(pattern.search(content) for pattern in self.news_structure_markers)

    def is_cookie_notice(self, content: Optional[str]) -> bool:
        """Consent-banner opening phrase, >= 5 mentions of "cookie" and no news markers."""
        if not content or not isinstance(content, str):
            return False

        content_start = content[:self.cookie_scan_length].lower()
        if not any(indicator in content_start for indicator in self.cookie_strong_indicators):
            return False

        cookie_keyword_count = content.lower().count('cookie')
        has_news_structure = self.has_news_structure(content)

        if cookie_keyword_count >= self.cookie_min_occurrences and not has_news_structure:
            logger.info(f"🍪 Cookie notice detected: {cookie_keyword_count} cookie mentions, "
                        f"starts with {content[:100]!r}")
            return True

        return False

    def is_privacy_policy(self, content: str) -> bool:
        lower_content = content.lower()
        return ('privacy policy' in lower_content
                and 'personal information' in lower_content
                and 'privacy' in lower_content[:self.privacy_scan_length])

    def is_paywall(self, content: str) -> bool:
        lower_content = content.lower()
        return any(indicator in lower_content for indicator in self.paywall_indicators)

    def detect_content_issues(self, record: Optional[ArticleRecord]) -> Optional[ContentIssue]:
        """Return the first issue found in an extraction result, or ``None`` if it looks like an article."""
        if record is None or not record.content:
            return ContentIssue(ContentIssueType.NO_CONTENT, 'Article data or content is missing')

        content = record.content

        if self.is_cookie_notice(content):
            hostname = self._hostname(record.url)
            if 'cnbc.com' in hostname:
                details = 'CNBC requires cookie consent before showing article content'
            else:
                details = 'Page shows cookie consent instead of article content'
            return ContentIssue(ContentIssueType.COOKIE_NOTICE, details, site=hostname)

        if self.is_privacy_policy(content):
            return ContentIssue(ContentIssueType.PRIVACY_POLICY, 'Content appears to be a privacy policy page')

        if self.is_paywall(content):
            return ContentIssue(ContentIssueType.PAYWALL, 'Content is behind a paywall')

        return None

    @staticmethod
    def get_message_key(issue_type) -> str:
        """Stable message identifier for an issue type (enum member or its string value)."""
        try:
            issue_type = ContentIssueType(issue_type)
        except ValueError:
            return DEFAULT_MESSAGE_KEY
        return MESSAGE_KEYS.get(issue_type, DEFAULT_MESSAGE_KEY)

    @staticmethod
    def _hostname(url: Optional[str]) -> str:
        if not url:
            return ''
        try:
            return urlparse(url).hostname or ''
        except ValueError:
            return ''
