"""Pre/post-processing around the readability engine."""

import logging
from typing import Callable, Optional

from ..core.exceptions import EngineUnavailableError
from ..models import ReadabilityResult
from ..services.extraction_constants import (
    MIN_READABILITY_TEXT_LENGTH,
    READERABLE_MIN_CONTENT_LENGTH,
    READERABLE_MIN_SCORE,
)
from .document import PageDocument
from .readability_engine import ReadabilityEngine, ReadabilityOptions, load_default_engine


logger = logging.getLogger(__name__)

# Consent banners can outscore the article in readability's content scoring,
# so they are removed from the clone before parsing.
COOKIE_NOTICE_SELECTORS = (
    '#onetrust-consent-sdk',
    '#ot-pc-sdk',
    '#ot-sdk-cookie-policy',
    '[id*="onetrust"]',
    '[class*="onetrust"]',
    '[id*="cookie-notice"]',
    '[class*="cookie-notice"]',
    '[id*="cookie-banner"]',
    '[class*="cookie-banner"]',
    '[id*="cookie-consent"]',
    '[class*="cookie-consent"]',
    '[id*="gdpr-banner"]',
    '[class*="gdpr-banner"]',
    '[aria-label*="cookie" i]',
)


def remove_cookie_notice_elements(doc: PageDocument) -> int:
    """Remove cookie/GDPR consent subtrees in place. Returns the number removed."""
    removed_count = 0

    for selector in COOKIE_NOTICE_SELECTORS:
        try:
            elements = doc.select(selector)
        except Exception as e:
            logger.debug(f"Cookie selector {selector!r} failed: {e}")
            continue

        for element in elements:
            # Nested matches go away with their ancestor
            if element.decomposed:
                continue
            element.decompose()
            removed_count += 1

    if removed_count > 0:
        logger.debug(f"🛡️ Removed {removed_count} cookie notice elements")

    return removed_count


class ReadabilityAdapter:
    """Run the readability engine on a cleaned clone and validate what comes back."""

    def __init__(self,
                 engine: Optional[ReadabilityEngine] = None,
                 engine_loader: Optional[Callable[[], ReadabilityEngine]] = load_default_engine,
                 options: Optional[ReadabilityOptions] = None,
                 min_text_length: int = MIN_READABILITY_TEXT_LENGTH):
        self.engine = engine
        self.engine_loader = engine_loader
        self.options = options or ReadabilityOptions()
        self.min_text_length = min_text_length

    def ensure_engine(self) -> bool:
        """Make sure an engine is bound, loading it lazily if needed."""
        if self.engine is not None:
            return True

        if self.engine_loader is None:
            logger.warning("⚠️ No readability engine configured, skipping readability tier")
            return False

        logger.debug("Readability engine not loaded, initializing...")
        try:
            self.engine = self._load_engine()
        except EngineUnavailableError as e:
            logger.warning(f"⚠️ {e}")
            return False

        return True

    def _load_engine(self) -> ReadabilityEngine:
        try:
            engine = self.engine_loader()
        except Exception as e:
            raise EngineUnavailableError(f"Readability engine initialization failed: {e}") from e

        if engine is None:
            raise EngineUnavailableError("Readability engine loader returned no engine")
        return engine

    async def extract(self, doc: PageDocument) -> Optional[ReadabilityResult]:
        """Return a readability result with more than ``min_text_length`` non-blank characters, else ``None``."""
        try:
            if not self.ensure_engine():
                return None

            # Advisory only: an unsuitable page still gets a parse attempt
            if not self.engine.is_suitable(doc, READERABLE_MIN_CONTENT_LENGTH, READERABLE_MIN_SCORE):
                logger.debug("Page may not be suitable for readability parsing")

            document_clone = doc.clone()
            remove_cookie_notice_elements(document_clone)

            result = self.engine.parse(document_clone, self.options)
            if result is None:
                logger.debug("Readability could not parse any content")
                return None

            # Measured the way the merged record will store it
            text_length = len(' '.join((result.text_content or '').split()))
            logger.debug(f"Readability result: title={(result.title or 'None')[:30]!r} length={text_length}")

            if text_length <= self.min_text_length:
                logger.debug("Readability content too short, discarding")
                return None

            return result

        except Exception as e:
            logger.warning(f"❌ Readability parsing failed: {e}")
            return None
