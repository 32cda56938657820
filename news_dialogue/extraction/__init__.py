"""Content extraction components for News Dialogue."""

from typing import Optional

from ..config import Settings, get_settings
from .core_extractor import UnifiedExtractor, calculate_confidence, confidence_score, merge_results
from .document import PageDocument
from .extraction_logger import ExtractionLogger, ExtractionMetrics
from .extraction_utils import ExtractionUtils
from .metadata_extractor import StructuredDataReader
from .readability_adapter import ReadabilityAdapter, remove_cookie_notice_elements
from .readability_engine import (
    LxmlReadabilityEngine,
    ReadabilityEngine,
    ReadabilityOptions,
    is_probably_readerable,
    load_default_engine,
)
from .site_rules import DEFAULT_SITE_RULES, SiteRuleMatcher, load_site_rules


def get_content_extractor(settings: Optional[Settings] = None,
                          engine: Optional[ReadabilityEngine] = None) -> UnifiedExtractor:
    """Build a UnifiedExtractor wired from settings.

    The readability engine is resolved once here; pass ``engine`` to inject
    a different implementation.
    """
    settings = settings or get_settings()
    utils = ExtractionUtils(max_content_length=settings.max_content_length)

    return UnifiedExtractor(
        structured_reader=StructuredDataReader(),
        readability_adapter=ReadabilityAdapter(engine=engine or load_default_engine()),
        site_rule_matcher=SiteRuleMatcher(load_site_rules(settings.site_rules_file), utils=utils),
        utils=utils,
    )


__all__ = [
    'UnifiedExtractor',
    'get_content_extractor',
    'merge_results',
    'confidence_score',
    'calculate_confidence',
    'PageDocument',
    'ExtractionLogger',
    'ExtractionMetrics',
    'ExtractionUtils',
    'StructuredDataReader',
    'ReadabilityAdapter',
    'remove_cookie_notice_elements',
    'ReadabilityEngine',
    'ReadabilityOptions',
    'LxmlReadabilityEngine',
    'is_probably_readerable',
    'load_default_engine',
    'DEFAULT_SITE_RULES',
    'SiteRuleMatcher',
    'load_site_rules',
]
