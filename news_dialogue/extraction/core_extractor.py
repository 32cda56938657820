"""Unified extractor - runs the extraction tiers in fixed order and merges their results."""

import logging
import time
from typing import Optional

from ..models import (
    ArticleRecord,
    Confidence,
    ReadabilityResult,
    SOURCE_READABILITY,
    StructuredData,
)
from ..services.extraction_constants import (
    CONFIDENCE_HIGH_SCORE,
    CONFIDENCE_LONG_CONTENT,
    CONFIDENCE_MEDIUM_CONTENT,
    CONFIDENCE_MEDIUM_SCORE,
    CONFIDENCE_METADATA_BONUS,
    CONFIDENCE_STRUCTURED_BONUS,
)
from .document import PageDocument
from .extraction_logger import (
    ExtractionLogger,
    ExtractionMetrics,
    TIER_READABILITY,
    TIER_SITE_RULES,
    TIER_STRUCTURED,
)
from .extraction_utils import ExtractionUtils
from .metadata_extractor import StructuredDataReader
from .readability_adapter import ReadabilityAdapter
from .site_rules import SiteRuleMatcher


logger = logging.getLogger(__name__)


def confidence_score(readability: ReadabilityResult, structured_data: Optional[StructuredData]) -> int:
    """Points for the confidence rubric.

    ============================================  ======
    signal                                        points
    ============================================  ======
    readability length > 1000                     +3
    readability length > 500                      +2
    otherwise                                     +1
    any structured data                           +2
    readability title AND byline                  +1
    ============================================  ======
    """
    score = 0

    if readability.length > CONFIDENCE_LONG_CONTENT:
        score += 3
    elif readability.length > CONFIDENCE_MEDIUM_CONTENT:
        score += 2
    else:
        score += 1

    if structured_data is not None and not structured_data.is_empty():
        score += CONFIDENCE_STRUCTURED_BONUS

    if readability.title and readability.byline:
        score += CONFIDENCE_METADATA_BONUS

    return score


def calculate_confidence(readability: ReadabilityResult, structured_data: Optional[StructuredData]) -> Confidence:
    """Total >= 5 is high, >= 3 medium, anything less low."""
    score = confidence_score(readability, structured_data)
    if score >= CONFIDENCE_HIGH_SCORE:
        return Confidence.HIGH
    if score >= CONFIDENCE_MEDIUM_SCORE:
        return Confidence.MEDIUM
    return Confidence.LOW


def merge_results(doc: PageDocument, readability: ReadabilityResult,
                  structured_data: Optional[StructuredData],
                  utils: Optional[ExtractionUtils] = None) -> ArticleRecord:
    """Combine a readability result with the structured metadata of the page."""
    utils = utils or ExtractionUtils()
    structured = structured_data or StructuredData()

    return ArticleRecord(
        title=readability.title or structured.title or utils.extract_page_title(doc),
        content=utils.clean_text(readability.text_content),
        html_content=readability.content,
        author=readability.byline or structured.author,
        published_time=readability.published_time or structured.published_time,
        excerpt=readability.excerpt or structured.description,
        length=readability.length,
        site_name=readability.site_name,
        lang=readability.lang,
        dir=readability.dir,
        source=SOURCE_READABILITY,
        confidence=calculate_confidence(readability, structured_data),
        url=doc.href,
    )


class UnifiedExtractor:
    """Structured data, then readability, then site rules. First success wins."""

    def __init__(self,
                 structured_reader: Optional[StructuredDataReader] = None,
                 readability_adapter: Optional[ReadabilityAdapter] = None,
                 site_rule_matcher: Optional[SiteRuleMatcher] = None,
                 utils: Optional[ExtractionUtils] = None,
                 extraction_logger: Optional[ExtractionLogger] = None):
        self.utils = utils or ExtractionUtils()
        self.structured_reader = structured_reader or StructuredDataReader()
        self.readability_adapter = readability_adapter or ReadabilityAdapter()
        self.site_rule_matcher = site_rule_matcher or SiteRuleMatcher(utils=self.utils)
        self.extraction_logger = extraction_logger or ExtractionLogger()

    async def extract(self, doc: PageDocument) -> Optional[ArticleRecord]:
        """Return the best article record for ``doc``, or ``None``. Never raises."""
        domain = self.utils.normalize_domain(doc.hostname)
        metrics = self.extraction_logger.start_extraction(doc.href, domain)

        try:
            structured_data = self._run_structured_tier(doc, metrics)

            readability = await self._run_readability_tier(doc, metrics)
            if readability is not None:
                record = merge_results(doc, readability, structured_data, self.utils)
                if record.content:
                    self._complete(metrics, record, TIER_READABILITY)
                    return record
                logger.debug("Readability content empty after cleanup, trying site rules")

            record = self._run_site_rule_tier(doc, structured_data, metrics)
            self._complete(metrics, record, TIER_SITE_RULES if record else None)
            return record

        except Exception as e:
            self.extraction_logger.log_error(metrics, str(e))
            self._complete(metrics, None, None)
            return None

    def _run_structured_tier(self, doc: PageDocument, metrics: ExtractionMetrics) -> Optional[StructuredData]:
        start = time.monotonic()
        structured_data = self.structured_reader.extract(doc)
        self.extraction_logger.log_tier_attempt(
            metrics, TIER_STRUCTURED, structured_data is not None, self._elapsed_ms(start))
        return structured_data

    async def _run_readability_tier(self, doc: PageDocument,
                                    metrics: ExtractionMetrics) -> Optional[ReadabilityResult]:
        start = time.monotonic()
        result = await self.readability_adapter.extract(doc)
        self.extraction_logger.log_tier_attempt(
            metrics, TIER_READABILITY, result is not None, self._elapsed_ms(start),
            None if result is not None else 'no usable readability result')
        return result

    def _run_site_rule_tier(self, doc: PageDocument, structured_data: Optional[StructuredData],
                            metrics: ExtractionMetrics) -> Optional[ArticleRecord]:
        start = time.monotonic()
        record = self.site_rule_matcher.match(doc, structured_data)
        self.extraction_logger.log_tier_attempt(
            metrics, TIER_SITE_RULES, record is not None, self._elapsed_ms(start),
            None if record is not None else 'no selector matched')
        return record

    def _complete(self, metrics: ExtractionMetrics, record: Optional[ArticleRecord], tier: Optional[str]) -> None:
        if record is None:
            self.extraction_logger.complete_extraction(metrics, False)
            return
        self.extraction_logger.complete_extraction(
            metrics, True, tier, len(record.content), record.confidence.value)
        logger.debug(f"Extracted {record.title[:50]!r} via {record.source}")

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
