"""Tier-level telemetry for the extraction pipeline."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger('extraction')

TIER_STRUCTURED = 'structured_data'
TIER_READABILITY = 'readability'
TIER_SITE_RULES = 'site_rules'


@dataclass
class ExtractionMetrics:
    """What happened during one ``UnifiedExtractor.extract`` call."""
    domain: str
    url: str
    start_time: float = field(default_factory=time.monotonic)
    end_time: Optional[float] = None

    tiers_tried: List[Dict[str, Any]] = field(default_factory=list)
    successful_tier: Optional[str] = None

    total_duration_ms: Optional[int] = None
    content_length: Optional[int] = None
    confidence: Optional[str] = None

    errors: List[str] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    def add_tier_attempt(self, tier: str, success: bool,
                         duration_ms: int, error: Optional[str] = None):
        self.tiers_tried.append({
            'tier': tier,
            'success': success,
            'duration_ms': duration_ms,
            'error': error,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })
        if error:
            self.errors.append(f"{tier}: {error}")

    def finish(self, success: bool, tier: Optional[str] = None,
               content_length: int = 0, confidence: Optional[str] = None):
        self.end_time = time.monotonic()
        self.total_duration_ms = int((self.end_time - self.start_time) * 1000)
        self.successful_tier = tier if success else None
        self.content_length = content_length
        self.confidence = confidence

    def summary(self) -> Dict[str, Any]:
        return {
            'domain': self.domain or 'unknown',
            'duration_ms': self.total_duration_ms,
            'tiers': ','.join(attempt['tier'] for attempt in self.tiers_tried),
            'tier': self.successful_tier,
            'chars': self.content_length,
            'confidence': self.confidence,
            'errors': len(self.errors)
        }


class ExtractionLogger:
    """Logs each tier attempt and keeps aggregate success counters.

    Every ``start_extraction`` hands back its own ``ExtractionMetrics``;
    callers pass it to the other methods, so overlapping extractions on
    one extractor do not mix their records.
    """

    def __init__(self):
        self._active: Dict[int, ExtractionMetrics] = {}

        self._total_extractions = 0
        self._successful_extractions = 0
        self._tier_stats: Dict[str, Dict[str, int]] = {}
        self._domain_failures: Dict[str, int] = {}

    def start_extraction(self, url: str, domain: str) -> ExtractionMetrics:
        metrics = ExtractionMetrics(domain=domain, url=url)
        self._active[id(metrics)] = metrics
        logger.debug(f"🔍 Starting extraction: {domain or 'unknown'}",
                     extra={'context': {'url': url[:80]}})
        return metrics

    def log_tier_attempt(self, metrics: ExtractionMetrics, tier: str, success: bool,
                         duration_ms: int, error: Optional[str] = None):
        metrics.add_tier_attempt(tier, success, duration_ms, error)

        stats = self._tier_stats.setdefault(tier, {'attempts': 0, 'successes': 0})
        stats['attempts'] += 1
        if success:
            stats['successes'] += 1

        logger.debug(f"Tier {tier}: {'success' if success else 'no result'} ({duration_ms}ms)",
                     extra={'context': {'domain': metrics.domain, 'error': error} if error else {}})

    def complete_extraction(self, metrics: ExtractionMetrics, success: bool, tier: Optional[str] = None,
                            content_length: int = 0, confidence: Optional[str] = None) -> ExtractionMetrics:
        if metrics.finished:
            return metrics
        self._active.pop(id(metrics), None)
        metrics.finish(success, tier, content_length, confidence)

        self._total_extractions += 1
        if success:
            self._successful_extractions += 1
            logger.info(f"✅ Extraction completed via {tier}", extra={'context': metrics.summary()})
        else:
            domain = metrics.domain or 'unknown'
            self._domain_failures[domain] = self._domain_failures.get(domain, 0) + 1
            logger.warning(f"❌ No extractable content for {domain}", extra={'context': metrics.summary()})

        return metrics

    def log_error(self, metrics: ExtractionMetrics, error: str, tier: Optional[str] = None):
        metrics.errors.append(f"{tier or 'pipeline'}: {error}")
        logger.error(f"Extraction error: {error}", extra={'context': {
            'url': metrics.url[:80],
            'tier': tier,
        }})

    def get_telemetry(self) -> Dict[str, Any]:
        success_rate = (
            self._successful_extractions / self._total_extractions * 100
            if self._total_extractions > 0 else 0
        )

        tier_performance = {}
        for tier, stats in self._tier_stats.items():
            rate = stats['successes'] / stats['attempts'] * 100 if stats['attempts'] > 0 else 0
            tier_performance[tier] = {
                'attempts': stats['attempts'],
                'successes': stats['successes'],
                'success_rate': round(rate, 1)
            }

        top_failing_domains = sorted(
            self._domain_failures.items(),
            key=lambda x: x[1],
            reverse=True
        )[:10]

        return {
            'total_extractions': self._total_extractions,
            'successful_extractions': self._successful_extractions,
            'success_rate': round(success_rate, 1),
            'tier_performance': tier_performance,
            'top_failing_domains': dict(top_failing_domains),
            'active_extractions': len(self._active),
        }

    def reset_telemetry(self):
        self._total_extractions = 0
        self._successful_extractions = 0
        self._tier_stats.clear()
        self._domain_failures.clear()
