"""Data types shared by the extraction pipeline and the dialogue stream parser."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple


SOURCE_READABILITY = 'Readability+Structured'
SOURCE_BASIC = 'Basic extraction'
CUSTOM_RULE_SOURCE_PREFIX = 'Custom rule: '


def custom_rule_source(domain: str) -> str:
    """Source tag for a result produced by a per-domain rule."""
    return f"{CUSTOM_RULE_SOURCE_PREFIX}{domain}"


class Confidence(str, Enum):
    """Heuristic quality label attached to an extraction result."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContentIssueType(str, Enum):
    """False-positive content classes detected after extraction."""
    COOKIE_NOTICE = "COOKIE_NOTICE"
    PRIVACY_POLICY = "PRIVACY_POLICY"
    PAYWALL = "PAYWALL"
    NO_CONTENT = "NO_CONTENT"


@dataclass(frozen=True)
class StructuredData:
    """Metadata scraped from JSON-LD / OpenGraph / Twitter cards.

    A field left as ``None`` means the value was not found.
    """
    title: Optional[str] = None
    author: Optional[str] = None
    published_time: Optional[str] = None
    description: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.title, self.author, self.published_time, self.description))


@dataclass
class ReadabilityResult:
    """Output of a readability engine run."""
    title: Optional[str]
    content: str  # HTML of the article body
    text_content: str
    length: int
    excerpt: Optional[str] = None
    byline: Optional[str] = None
    dir: Optional[str] = None
    site_name: Optional[str] = None
    lang: Optional[str] = None
    published_time: Optional[str] = None


@dataclass(frozen=True)
class SiteRule:
    """Per-domain CSS selectors, tried in declared order."""
    content_selectors: Tuple[str, ...]
    title_selectors: Tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: Dict[str, str]) -> 'SiteRule':
        """Build a rule from ``{"content": "a, b", "title": "h1, .title"}``."""
        return cls(
            content_selectors=_split_selectors(config.get('content', '')),
            title_selectors=_split_selectors(config.get('title', '')),
        )


def _split_selectors(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in (value or '').split(',') if part.strip())


@dataclass
class ArticleRecord:
    """Best-effort article extracted from a page."""
    title: str
    content: str
    source: str
    confidence: Confidence
    url: str
    length: int
    html_content: Optional[str] = None
    author: Optional[str] = None
    published_time: Optional[str] = None
    excerpt: Optional[str] = None
    site_name: Optional[str] = None
    lang: Optional[str] = None
    dir: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['confidence'] = self.confidence.value
        return data


@dataclass(frozen=True)
class ContentIssue:
    """A detected false-positive extraction."""
    type: ContentIssueType
    details: str
    site: Optional[str] = None


@dataclass(frozen=True)
class StreamMessage:
    """One line of generated dialogue."""
    speaker: str
    content: str


@dataclass
class StreamResult:
    """What survives a parsed stream: counts, the summary and the emitted messages."""
    message_count: int = 0
    parse_failure_count: int = 0
    summary: Optional[str] = None
    aborted: bool = False
    messages: List[StreamMessage] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Diagnostic only: share of parsed objects that became messages (0..100)."""
        total = self.message_count + self.parse_failure_count
        if self.message_count == 0 or total == 0:
            return 0.0
        return round(self.message_count / total * 100, 1)
