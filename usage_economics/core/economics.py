"""
Per-period economics: data model, metric merger and dual-metric calculator.

Spend and savings records are joined by canonical period key. Any field a
source did not report stays ``None`` so that "no data" is never confused
with "spent nothing".
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import DateParseError
from .periods import CalendarConvention, Granularity, normalize_period_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpendPeriod:
    """Spend ledger entry for one period, keyed in the source's native calendar."""
    period: str
    total_cost: float
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int
    total_tokens: int
    convention: CalendarConvention = CalendarConvention.ISO

    def __post_init__(self):
        """Validate counters are not negative."""
        if self.total_cost < 0:
            raise ValueError("total_cost cannot be negative")
        for name in ("input_tokens", "output_tokens", "cache_creation_tokens",
                     "cache_read_tokens", "total_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def active_tokens(self) -> int:
        """Tokens billed as context (input + output)."""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class SavingsPeriod:
    """Savings ledger entry for one period, keyed in the source's native calendar."""
    period: str
    commands: int
    saved_tokens: int
    convention: CalendarConvention = CalendarConvention.LEGACY

    def __post_init__(self):
        """Validate counters are not negative."""
        if self.commands < 0:
            raise ValueError("commands cannot be negative")
        if self.saved_tokens < 0:
            raise ValueError("saved_tokens cannot be negative")


@dataclass(frozen=True)
class SkippedRecord:
    """Record dropped because its period key could not be normalized."""
    period: str
    reason: str


@dataclass
class PeriodEconomics:
    """Merged view of one canonical period.

    Created by the merger, enriched once by ``compute_dual_metrics`` and
    read-only afterwards.
    """
    period: str
    spend: Optional[SpendPeriod] = None
    savings: Optional[SavingsPeriod] = None
    active_cost_per_token: Optional[float] = None
    blended_cost_per_token: Optional[float] = None
    estimated_savings_active: Optional[float] = None
    estimated_savings_blended: Optional[float] = None

    def __post_init__(self):
        """A record must carry data from at least one source."""
        if self.spend is None and self.savings is None:
            raise ValueError(f"Period {self.period} has neither spend nor savings data")

    @property
    def cost(self) -> Optional[float]:
        return self.spend.total_cost if self.spend else None

    @property
    def active_tokens(self) -> Optional[int]:
        return self.spend.active_tokens if self.spend else None

    @property
    def blended_tokens(self) -> Optional[int]:
        return self.spend.total_tokens if self.spend else None

    @property
    def commands(self) -> Optional[int]:
        return self.savings.commands if self.savings else None

    @property
    def saved_tokens(self) -> Optional[int]:
        return self.savings.saved_tokens if self.savings else None


def normalize_savings(
    savings: Iterable[SavingsPeriod],
    granularity: Granularity
) -> Tuple[List[SavingsPeriod], List[SkippedRecord]]:
    """Rewrite savings records onto canonical period keys.

    A malformed key skips that record only; the rest of the batch is kept.

    Args:
        savings: Savings records in their native calendar
        granularity: Bucket size of the records

    Returns:
        Tuple of (normalized records, skipped records)
    """
    return _normalize_records(savings, granularity, "savings")


def normalize_spend(
    spend: Iterable[SpendPeriod],
    granularity: Granularity
) -> Tuple[List[SpendPeriod], List[SkippedRecord]]:
    """Rewrite spend records onto canonical period keys.

    Week keys that do not start on a Monday are moved to the ISO week
    they fall in, so they join the savings for the same week.
    """
    return _normalize_records(spend, granularity, "spend")


def _normalize_records(records, granularity: Granularity, source: str):
    normalized = []
    skipped = []
    for record in records:
        try:
            key = normalize_period_key(record.period, granularity, record.convention)
        except DateParseError as e:
            logger.warning("Skipping %s record: %s", source, e)
            skipped.append(SkippedRecord(period=str(record.period), reason=str(e)))
            continue
        normalized.append(replace(record, period=key))
    return normalized, skipped


def merge_periods(
    spend: Optional[Iterable[SpendPeriod]],
    savings: Iterable[SavingsPeriod]
) -> List[PeriodEconomics]:
    """Join spend and savings records by canonical period key.

    Args:
        spend: Spend records, or None when the spend source is unavailable
        savings: Savings records already normalized to canonical keys

    Returns:
        One PeriodEconomics per distinct key, sorted ascending by key
    """
    merged: Dict[str, PeriodEconomics] = {}

    for record in spend or ():
        if record.period in merged:
            logger.warning("Duplicate spend period %s; keeping the later entry", record.period)
        merged[record.period] = PeriodEconomics(period=record.period, spend=record)

    for record in savings:
        existing = merged.get(record.period)
        if existing is None:
            merged[record.period] = PeriodEconomics(period=record.period, savings=record)
        elif existing.savings is None:
            existing.savings = record
        else:
            # Two native keys landed on the same canonical period
            existing.savings = replace(
                existing.savings,
                commands=existing.savings.commands + record.commands,
                saved_tokens=existing.savings.saved_tokens + record.saved_tokens
            )

    return [merged[key] for key in sorted(merged)]


def _ratio(numerator: float, denominator: int) -> Optional[float]:
    """Divide, or return None when the denominator is zero."""
    if denominator == 0:
        return None
    return numerator / denominator


def compute_dual_metrics(record: PeriodEconomics) -> PeriodEconomics:
    """Compute both cost-per-token ratios and savings estimates in place.

    Active cost-per-token divides cost by input + output tokens. Blended
    cost-per-token divides by all tokens including cache reads, which makes
    it far smaller in cache-heavy workloads. Each ratio is None when its
    denominator is zero; each estimate is None unless both the ratio and
    the saved tokens are present.
    """
    if record.spend is not None:
        record.active_cost_per_token = _ratio(record.spend.total_cost, record.spend.active_tokens)
        record.blended_cost_per_token = _ratio(record.spend.total_cost, record.spend.total_tokens)

    saved = record.saved_tokens
    if saved is not None:
        if record.active_cost_per_token is not None:
            record.estimated_savings_active = record.active_cost_per_token * saved
        if record.blended_cost_per_token is not None:
            record.estimated_savings_blended = record.blended_cost_per_token * saved

    return record


def enrich_periods(records: Iterable[PeriodEconomics]) -> List[PeriodEconomics]:
    """Apply the dual-metric calculator to every record."""
    return [compute_dual_metrics(record) for record in records]
