import pytest

from news_dialogue.extraction.core_extractor import UnifiedExtractor
from news_dialogue.extraction.document import PageDocument
from news_dialogue.extraction.readability_adapter import ReadabilityAdapter
from news_dialogue.models import ArticleRecord, Confidence, ContentIssueType
from news_dialogue.services.content_validator import ContentValidator

from conftest import ARTICLE_TEXT, FakeReadabilityEngine, article_html


COOKIE_TEXT = (
    "This cookie notice explains how NBCUniversal and its affiliates use cookies. "
    "Cookies are small files stored on your device. We use cookies to remember preferences. "
    "You can manage cookie settings at any time. By continuing to use this site you accept "
    "our cookie policy and the use of cookie identifiers for analytics."
)


def _record(content: str, url: str = 'https://news.example.com/a') -> ArticleRecord:
    return ArticleRecord(title='Title', content=content, source='Basic extraction',
                         confidence=Confidence.LOW, url=url, length=len(content))


@pytest.fixture
def validator():
    return ContentValidator()


def test_cookie_notice_detected(validator):
    assert validator.is_cookie_notice(COOKIE_TEXT)


def test_cookie_notice_needs_five_mentions(validator):
    text = "We use cookies. A cookie here. Another cookie there. That is all."
    assert text.lower().count('cookie') == 4
    assert not validator.is_cookie_notice(text)


def test_cookie_notice_needs_opening_phrase(validator):
    text = ("Cookie cookie cookie cookie cookie. " * 2)
    assert not validator.is_cookie_notice(text)

    late = 'x' * 500 + COOKIE_TEXT
    assert not validator.is_cookie_notice(late)


@pytest.mark.parametrize("marker", [
    "Published May 1, 2024.",
    "UPDATED at noon.",
    "As reported earlier,",
    "Story by Jane Doe for the desk.",
])
def test_news_markers_prevent_cookie_flag(validator, marker):
    assert not validator.is_cookie_notice(COOKIE_TEXT + " " + marker)


def test_continuing_phrase_is_not_a_byline(validator):
    assert 'By continuing to use this site' in COOKIE_TEXT
    assert not validator.has_news_structure(COOKIE_TEXT)


def test_detect_issues(validator):
    cookie = validator.detect_content_issues(_record(COOKIE_TEXT, 'https://www.cnbc.com/2024/story'))
    assert cookie.type is ContentIssueType.COOKIE_NOTICE
    assert cookie.site == 'www.cnbc.com'
    assert 'CNBC' in cookie.details

    generic = validator.detect_content_issues(_record(COOKIE_TEXT))
    assert generic.details == 'Page shows cookie consent instead of article content'

    privacy = validator.detect_content_issues(_record(
        "Our privacy commitment. This privacy policy describes how we collect personal information."))
    assert privacy.type is ContentIssueType.PRIVACY_POLICY

    paywall = validator.detect_content_issues(_record(ARTICLE_TEXT + " Subscribe to continue reading."))
    assert paywall.type is ContentIssueType.PAYWALL

    assert validator.detect_content_issues(_record(ARTICLE_TEXT)) is None


def test_missing_content(validator):
    assert validator.detect_content_issues(None).type is ContentIssueType.NO_CONTENT
    assert validator.detect_content_issues(_record('')).type is ContentIssueType.NO_CONTENT


def test_privacy_must_be_mentioned_early(validator):
    text = 'x' * 200 + " privacy policy and personal information"
    assert validator.detect_content_issues(_record(text)) is None


def test_message_keys(validator):
    assert validator.get_message_key(ContentIssueType.COOKIE_NOTICE) == 'cookieNoticeDetected'
    assert validator.get_message_key('PRIVACY_POLICY') == 'privacyPolicyDetected'
    assert validator.get_message_key(ContentIssueType.PAYWALL) == 'paywallDetected'
    assert validator.get_message_key(ContentIssueType.NO_CONTENT) == 'insufficientContent'
    assert validator.get_message_key('SOMETHING_ELSE') == 'errorContentExtraction'


@pytest.mark.asyncio
async def test_cookie_page_flagged_whichever_tier_produced_it(validator):
    # An unlabelled consent wall survives cookie-banner stripping and reaches the generic fallback
    doc = PageDocument(article_html(f'<main><p>{COOKIE_TEXT}</p></main>'), 'https://www.cnbc.com/x')
    extractor = UnifiedExtractor(readability_adapter=ReadabilityAdapter(engine=FakeReadabilityEngine(None)))

    record = await extractor.extract(doc)

    assert record.source == 'Basic extraction'
    assert validator.detect_content_issues(record).type is ContentIssueType.COOKIE_NOTICE
