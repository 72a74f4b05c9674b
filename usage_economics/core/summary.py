"""
Aggregation of per-period economics into a single summary.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .economics import PeriodEconomics


@dataclass(frozen=True)
class EconomicsSummary:
    """Totals and overall ratios across a collection of periods."""
    period_count: int
    total_cost: float
    total_active_tokens: int
    total_blended_tokens: int
    total_commands: int
    total_saved_tokens: int
    active_cost_per_token: Optional[float] = None
    blended_cost_per_token: Optional[float] = None
    estimated_savings_active: Optional[float] = None
    estimated_savings_blended: Optional[float] = None
    savings_active_pct: Optional[float] = None
    savings_blended_pct: Optional[float] = None


def _percent_of_spend(savings: Optional[float], total_cost: float) -> Optional[float]:
    if savings is None or total_cost == 0:
        return None
    return savings / total_cost * 100


def summarize(records: Iterable[PeriodEconomics]) -> EconomicsSummary:
    """Reduce per-period records into one summary.

    Absent fields count as zero here, and only here: the question is how
    much in total, not whether each period reported data. Ratios are
    recomputed from the summed cost and tokens rather than averaged over
    periods, so periods with tiny denominators do not skew the result.

    Args:
        records: Merged and enriched period records

    Returns:
        EconomicsSummary with totals and overall ratios
    """
    period_count = 0
    total_cost = 0.0
    total_active = 0
    total_blended = 0
    total_commands = 0
    total_saved = 0

    for record in records:
        period_count += 1
        total_cost += record.cost or 0.0
        total_active += record.active_tokens or 0
        total_blended += record.blended_tokens or 0
        total_commands += record.commands or 0
        total_saved += record.saved_tokens or 0

    active_cpt = total_cost / total_active if total_active else None
    blended_cpt = total_cost / total_blended if total_blended else None
    savings_active = active_cpt * total_saved if active_cpt is not None else None
    savings_blended = blended_cpt * total_saved if blended_cpt is not None else None

    return EconomicsSummary(
        period_count=period_count,
        total_cost=total_cost,
        total_active_tokens=total_active,
        total_blended_tokens=total_blended,
        total_commands=total_commands,
        total_saved_tokens=total_saved,
        active_cost_per_token=active_cpt,
        blended_cost_per_token=blended_cpt,
        estimated_savings_active=savings_active,
        estimated_savings_blended=savings_blended,
        savings_active_pct=_percent_of_spend(savings_active, total_cost),
        savings_blended_pct=_percent_of_spend(savings_blended, total_cost)
    )
