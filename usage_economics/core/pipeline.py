"""
Economics pipeline.

Fetches both ledgers for a granularity, aligns their period keys, merges,
enriches and summarizes them. Each run is synchronous and keeps no state
between invocations:
1. Fetch spend (an unavailable source degrades to savings-only data)
2. Fetch savings
3. Normalize spend and savings keys (malformed keys are skipped, not fatal)
4. Merge, compute dual metrics, summarize
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

from .economics import (
    PeriodEconomics,
    SavingsPeriod,
    SkippedRecord,
    SpendPeriod,
    enrich_periods,
    merge_periods,
    normalize_savings,
    normalize_spend
)
from .errors import PipelineStageError, SourceUnavailableError
from .periods import Granularity
from .summary import EconomicsSummary, summarize

logger = logging.getLogger(__name__)


class SpendProvider(Protocol):
    """Source of spend records. Returns None when the source is unavailable."""

    def fetch_spend(self, granularity: Granularity) -> Optional[List[SpendPeriod]]:
        ...


class SavingsProvider(Protocol):
    """Source of savings records in their native calendar."""

    def fetch_savings(self, granularity: Granularity) -> List[SavingsPeriod]:
        ...


@dataclass(frozen=True)
class EconomicsReport:
    """Result of one pipeline run for a single granularity."""
    granularity: Granularity
    records: List[PeriodEconomics]
    summary: EconomicsSummary
    spend_available: bool
    skipped: List[SkippedRecord] = field(default_factory=list)


def _fetch_spend(
    provider: SpendProvider,
    granularity: Granularity
) -> Optional[List[SpendPeriod]]:
    try:
        spend = provider.fetch_spend(granularity)
    except SourceUnavailableError as e:
        logger.warning("Spend source unavailable for %s report: %s", granularity.value, e)
        return None
    except (ValueError, TypeError) as e:
        raise PipelineStageError("fetch_spend", e) from e
    return None if spend is None else list(spend)


def build_economics(
    granularity: Granularity,
    spend_provider: SpendProvider,
    savings_provider: SavingsProvider
) -> EconomicsReport:
    """Build the merged economics report for one granularity.

    Args:
        granularity: Bucket size to report on
        spend_provider: External spend source
        savings_provider: Internal savings store

    Returns:
        EconomicsReport with sorted, enriched records and their summary

    Raises:
        PipelineStageError: If a stage fails in a way that cannot be degraded
    """
    spend = _fetch_spend(spend_provider, granularity)

    try:
        savings = list(savings_provider.fetch_savings(granularity))
    except (sqlite3.Error, ValueError, TypeError) as e:
        raise PipelineStageError("fetch_savings", e) from e

    skipped: List[SkippedRecord] = []
    if spend is not None:
        spend, skipped = normalize_spend(spend, granularity)
    normalized, savings_skipped = normalize_savings(savings, granularity)
    skipped.extend(savings_skipped)

    try:
        records = enrich_periods(merge_periods(spend, normalized))
    except (ValueError, TypeError) as e:
        raise PipelineStageError("merge", e) from e

    logger.debug(
        "Built %s report: %d periods (%d spend, %d savings, %d skipped)",
        granularity.value, len(records), len(spend or []), len(normalized), len(skipped)
    )

    return EconomicsReport(
        granularity=granularity,
        records=records,
        summary=summarize(records),
        spend_available=spend is not None,
        skipped=skipped
    )


def build_reports(
    granularities: Iterable[Granularity],
    spend_provider: SpendProvider,
    savings_provider: SavingsProvider
) -> Dict[Granularity, EconomicsReport]:
    """Build one independent report per requested granularity."""
    return {
        granularity: build_economics(granularity, spend_provider, savings_provider)
        for granularity in granularities
    }
