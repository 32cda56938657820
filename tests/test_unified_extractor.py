import json

import pytest

from news_dialogue.extraction import get_content_extractor
from news_dialogue.extraction.core_extractor import (
    UnifiedExtractor,
    calculate_confidence,
    confidence_score,
    merge_results,
)
from news_dialogue.extraction.document import PageDocument
from news_dialogue.extraction.extraction_logger import ExtractionLogger
from news_dialogue.extraction.metadata_extractor import StructuredDataReader
from news_dialogue.extraction.readability_adapter import ReadabilityAdapter
from news_dialogue.extraction.readability_engine import LxmlReadabilityEngine
from news_dialogue.models import Confidence, StructuredData

from conftest import (
    ARTICLE_TEXT,
    PARAGRAPHS,
    FakeReadabilityEngine,
    article_body,
    article_html,
    make_readability_result,
)


JSON_LD = json.dumps({
    "@type": "NewsArticle",
    "headline": "Structured headline",
    "author": {"name": "Structured Author"},
    "datePublished": "2024-05-01",
    "description": "Structured description",
})
JSON_LD_HEAD = f'<script type="application/ld+json">{JSON_LD}</script>'


def _extractor(engine) -> UnifiedExtractor:
    return UnifiedExtractor(readability_adapter=ReadabilityAdapter(engine=engine))


# ---------------------------------------------------------------------------
# confidence rubric
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("length,points", [(500, 1), (501, 2), (1000, 2), (1001, 3)])
def test_length_points(length, points):
    result = make_readability_result(length=length, title=None, byline=None)
    assert confidence_score(result, None) == points


def test_structured_and_metadata_bonus():
    result = make_readability_result(length=400, title='T', byline='B')
    assert confidence_score(result, None) == 2
    assert confidence_score(result, StructuredData(title='x')) == 4
    assert confidence_score(make_readability_result(length=400, title='T', byline=None), None) == 1


@pytest.mark.parametrize("length,structured,byline,expected", [
    (1001, StructuredData(title='x'), None, Confidence.HIGH),        # 3 + 2
    (1000, StructuredData(title='x'), None, Confidence.MEDIUM),      # 2 + 2
    (501, None, 'Jane Doe', Confidence.MEDIUM),                      # 2 + 1
    (500, None, 'Jane Doe', Confidence.LOW),                         # 1 + 1
    (500, StructuredData(title='x'), None, Confidence.MEDIUM),       # 1 + 2
    (1001, None, 'Jane Doe', Confidence.MEDIUM),                     # 3 + 1
    (1001, StructuredData(title='x'), 'Jane Doe', Confidence.HIGH),  # 3 + 2 + 1
])
def test_confidence_thresholds(length, structured, byline, expected):
    result = make_readability_result(length=length, title='Title', byline=byline)
    assert calculate_confidence(result, structured) is expected


def test_confidence_is_monotonic_in_length():
    shorter = make_readability_result(length=800)
    longer = make_readability_result(length=1200)
    for structured in (None, StructuredData(title='x')):
        assert confidence_score(longer, structured) >= confidence_score(shorter, structured)


# ---------------------------------------------------------------------------
# merge
# ---------------------------------------------------------------------------

def test_merge_prefers_readability_fields(article_doc):
    result = make_readability_result(title='Readability Title', byline='Reader Byline',
                                     excerpt='Reader excerpt', published_time='2024-06-01',
                                     site_name='City News', lang='en')
    structured = StructuredData(title='Structured', author='Author', published_time='2024-01-01',
                                description='Description')

    record = merge_results(article_doc, result, structured)

    assert record.title == 'Readability Title'
    assert record.author == 'Reader Byline'
    assert record.excerpt == 'Reader excerpt'
    assert record.published_time == '2024-06-01'
    assert record.site_name == 'City News'
    assert record.html_content == result.content
    assert record.source == 'Readability+Structured'
    assert record.url == article_doc.href


def test_merge_falls_back_to_structured_then_page_title(article_doc):
    result = make_readability_result(title=None, byline=None)

    with_structured = merge_results(article_doc, result, StructuredData(title='Structured', author='Author',
                                                                        description='Description'))
    without = merge_results(article_doc, result, None)

    assert with_structured.title == 'Structured'
    assert with_structured.author == 'Author'
    assert with_structured.excerpt == 'Description'
    assert without.title == 'Council approves transit plan'
    assert without.author is None


def test_merge_truncates_content(article_doc):
    long_text = ' '.join(PARAGRAPHS * 10)
    result = make_readability_result(length=len(long_text), text=long_text)

    record = merge_results(article_doc, result, None)

    assert 0 < len(record.content) <= 2500
    assert record.length == len(long_text)


# ---------------------------------------------------------------------------
# tier order
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_readability_success_short_circuits_site_rules(mocker):
    html = article_html(f'<div class="news-content"><p>{ARTICLE_TEXT}</p></div>', head=JSON_LD_HEAD)
    doc = PageDocument(html, 'https://www.cnyes.com/news/1')
    extractor = _extractor(FakeReadabilityEngine(make_readability_result(length=1200, title=None, byline=None)))
    match_spy = mocker.spy(extractor.site_rule_matcher, 'match')

    record = await extractor.extract(doc)

    assert match_spy.call_count == 0
    assert record.source == 'Readability+Structured'
    assert record.title == 'Structured headline'
    assert record.author == 'Structured Author'
    assert record.confidence is Confidence.HIGH


@pytest.mark.asyncio
async def test_falls_back_to_site_rule_with_structured_enrichment():
    html = article_html(f'<div class="news-content"><p>{ARTICLE_TEXT}</p></div>', head=JSON_LD_HEAD)
    doc = PageDocument(html, 'https://www.cnyes.com/news/1')

    record = await _extractor(FakeReadabilityEngine(None)).extract(doc)

    assert record.source == 'Custom rule: cnyes.com'
    assert record.confidence is Confidence.MEDIUM
    assert record.title == 'Structured headline'
    assert record.author == 'Structured Author'


@pytest.mark.asyncio
async def test_readability_runs_without_structured_data(article_doc):
    engine = FakeReadabilityEngine(make_readability_result(length=300))

    record = await _extractor(engine).extract(article_doc)

    assert len(engine.parsed_docs) == 1
    assert record.source == 'Readability+Structured'
    assert record.confidence is Confidence.LOW


@pytest.mark.asyncio
async def test_all_tiers_fail_returns_none():
    doc = PageDocument(article_html('<div>Nothing to see here.</div>'), 'https://blog.example.org/')
    assert await _extractor(FakeReadabilityEngine(None)).extract(doc) is None


@pytest.mark.asyncio
async def test_unexpected_errors_are_absorbed(article_doc, mocker):
    reader = StructuredDataReader()
    mocker.patch.object(reader, 'extract', side_effect=RuntimeError('unexpected'))
    extractor = UnifiedExtractor(structured_reader=reader,
                                 readability_adapter=ReadabilityAdapter(engine=FakeReadabilityEngine(None)))

    assert await extractor.extract(article_doc) is None


@pytest.mark.asyncio
async def test_engine_unavailable_falls_through(mocker):
    html = article_html(f'<article><p>{ARTICLE_TEXT}</p></article>')
    doc = PageDocument(html, 'https://blog.example.org/post')
    loader = mocker.Mock(side_effect=RuntimeError('no engine'))
    extractor = UnifiedExtractor(readability_adapter=ReadabilityAdapter(engine_loader=loader))

    record = await extractor.extract(doc)

    assert record.source == 'Basic extraction'
    assert record.confidence is Confidence.LOW


@pytest.mark.asyncio
async def test_blank_readability_text_falls_through_to_site_rules():
    html = article_html(f'<article><p>{ARTICLE_TEXT}</p></article>')
    doc = PageDocument(html, 'https://blog.example.org/post')
    engine = FakeReadabilityEngine(make_readability_result(length=150, text=' ' * 150))

    record = await _extractor(engine).extract(doc)

    assert record.source == 'Basic extraction'
    assert record.content.strip()


@pytest.mark.asyncio
async def test_empty_merged_content_is_not_returned(mocker):
    html = article_html(f'<article><p>{ARTICLE_TEXT}</p></article>')
    doc = PageDocument(html, 'https://blog.example.org/post')
    extractor = _extractor(FakeReadabilityEngine(None))
    mocker.patch.object(extractor.readability_adapter, 'extract',
                        return_value=make_readability_result(length=150, text='\n' * 150))

    record = await extractor.extract(doc)

    assert record.source == 'Basic extraction'
    assert record.content


@pytest.mark.asyncio
async def test_telemetry_records_tiers(article_doc):
    extraction_logger = ExtractionLogger()
    extractor = UnifiedExtractor(readability_adapter=ReadabilityAdapter(engine=FakeReadabilityEngine(None)),
                                 extraction_logger=extraction_logger)

    await extractor.extract(article_doc)
    telemetry = extraction_logger.get_telemetry()

    assert telemetry['total_extractions'] == 1
    assert telemetry['successful_extractions'] == 1
    assert telemetry['tier_performance']['readability'] == {'attempts': 1, 'successes': 0, 'success_rate': 0}
    assert telemetry['tier_performance']['site_rules']['successes'] == 1
    assert telemetry['active_extractions'] == 0


def test_interleaved_extractions_keep_separate_metrics():
    extraction_logger = ExtractionLogger()
    first = extraction_logger.start_extraction('https://a.example.com/1', 'a.example.com')
    second = extraction_logger.start_extraction('https://b.example.com/2', 'b.example.com')

    extraction_logger.log_tier_attempt(first, 'readability', True, 5)
    extraction_logger.log_tier_attempt(second, 'readability', False, 3, 'no usable readability result')
    extraction_logger.log_tier_attempt(second, 'site_rules', False, 1, 'no selector matched')
    assert extraction_logger.get_telemetry()['active_extractions'] == 2

    extraction_logger.complete_extraction(first, True, 'readability', 1200, 'high')
    extraction_logger.complete_extraction(second, False)
    extraction_logger.complete_extraction(second, False)

    assert [t['tier'] for t in first.tiers_tried] == ['readability']
    assert [t['tier'] for t in second.tiers_tried] == ['readability', 'site_rules']
    assert first.successful_tier == 'readability' and second.successful_tier is None
    assert len(second.errors) == 2

    telemetry = extraction_logger.get_telemetry()
    assert telemetry['total_extractions'] == 2
    assert telemetry['success_rate'] == 50.0
    assert telemetry['top_failing_domains'] == {'b.example.com': 1}
    assert telemetry['active_extractions'] == 0


# ---------------------------------------------------------------------------
# end to end with readability-lxml
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_real_engine_prefers_readability_over_site_rule():
    body = f'<div class="news-content">{article_body()}</div>'
    doc = PageDocument(article_html(body, head=JSON_LD_HEAD), 'https://www.cnyes.com/news/1')
    extractor = UnifiedExtractor(readability_adapter=ReadabilityAdapter(engine=LxmlReadabilityEngine()))

    record = await extractor.extract(doc)

    assert record.source == 'Readability+Structured'
    assert 0 < len(record.content) <= 2500


@pytest.mark.asyncio
async def test_real_engine_extraction_is_idempotent():
    long_body = "".join(f"<p>{p}</p>" for p in PARAGRAPHS * 4)
    doc = PageDocument(article_html(f"<article><h1>Council approves transit plan</h1>{long_body}</article>"),
                       'https://news.example.com/a')
    extractor = get_content_extractor()

    first = await extractor.extract(doc)
    second = await extractor.extract(doc)

    assert first is not None
    assert 0 < len(first.content) <= 2500
    assert (first.title, first.content, first.confidence) == (second.title, second.content, second.confidence)
