"""
Unit tests for economics aggregation.

Tests totals, aggregate ratios and percentage-of-spend figures.
"""

import pytest

from usage_economics.core.economics import (
    PeriodEconomics,
    SavingsPeriod,
    SpendPeriod,
    enrich_periods,
    merge_periods
)
from usage_economics.core.periods import CalendarConvention
from usage_economics.core.summary import summarize


def spend(period: str, cost: float, active: int, cache_read: int = 0) -> SpendPeriod:
    """Create a spend period with tokens split evenly between input and output."""
    return SpendPeriod(
        period=period,
        total_cost=cost,
        input_tokens=active // 2,
        output_tokens=active - active // 2,
        cache_creation_tokens=0,
        cache_read_tokens=cache_read,
        total_tokens=active + cache_read
    )


def savings(period: str, commands: int, saved: int) -> SavingsPeriod:
    """Create an ISO-keyed savings period."""
    return SavingsPeriod(period=period, commands=commands, saved_tokens=saved,
                         convention=CalendarConvention.ISO)


class TestSummarize:
    """Test aggregation across periods."""

    def test_empty_collection(self):
        """Verify empty input sums to zero with undefined ratios."""
        summary = summarize([])

        assert summary.period_count == 0
        assert summary.total_cost == 0
        assert summary.total_active_tokens == 0
        assert summary.total_saved_tokens == 0
        assert summary.active_cost_per_token is None
        assert summary.blended_cost_per_token is None
        assert summary.estimated_savings_active is None
        assert summary.estimated_savings_blended is None
        assert summary.savings_active_pct is None
        assert summary.savings_blended_pct is None

    def test_total_cost_equals_sum_of_periods(self):
        """Verify aggregated cost is the sum of per-period costs with absent as zero."""
        records = enrich_periods(merge_periods(
            [spend("2025-10", 12.5, 1000), spend("2025-12", 7.25, 500)],
            [savings("2025-11", 4, 300), savings("2025-12", 2, 100)]
        ))

        summary = summarize(records)

        assert summary.period_count == 3
        assert summary.total_cost == pytest.approx(sum(r.cost or 0 for r in records))
        assert summary.total_cost == pytest.approx(19.75)
        assert summary.total_commands == 6
        assert summary.total_saved_tokens == 400

    def test_ratios_recomputed_from_totals(self):
        """Verify overall ratios use summed cost and tokens, not averaged ratios."""
        skewed = enrich_periods(merge_periods(
            [spend("2025-11", 5.0, 10), spend("2025-12", 95.0, 990)],
            []
        ))
        summary = summarize(skewed)
        assert summary.active_cost_per_token == pytest.approx(100.0 / 1000)
        assert summary.active_cost_per_token != pytest.approx(
            sum(r.active_cost_per_token for r in skewed) / 2
        )

    def test_savings_estimates_and_percentages(self):
        """Verify aggregate savings and percent of spend."""
        records = enrich_periods(merge_periods(
            [spend("2025-12", 100.0, 1000, cache_read=9000)],
            [savings("2025-12", 5, 200)]
        ))

        summary = summarize(records)

        assert summary.active_cost_per_token == pytest.approx(0.1)
        assert summary.blended_cost_per_token == pytest.approx(0.01)
        assert summary.estimated_savings_active == pytest.approx(20.0)
        assert summary.estimated_savings_blended == pytest.approx(2.0)
        assert summary.savings_active_pct == pytest.approx(20.0)
        assert summary.savings_blended_pct == pytest.approx(2.0)

    def test_savings_only_collection(self):
        """Verify savings without spend keeps ratios and percentages undefined."""
        records = enrich_periods(merge_periods(None, [savings("2026-01", 3, 50)]))

        summary = summarize(records)

        assert summary.total_cost == 0
        assert summary.total_commands == 3
        assert summary.total_saved_tokens == 50
        assert summary.active_cost_per_token is None
        assert summary.estimated_savings_active is None
        assert summary.savings_active_pct is None

    def test_zero_cost_with_tokens_has_no_percentage(self):
        """Verify percent of spend is undefined when spend total is zero."""
        records = enrich_periods(merge_periods(
            [spend("2025-12", 0.0, 1000)],
            [savings("2025-12", 1, 100)]
        ))

        summary = summarize(records)

        assert summary.active_cost_per_token == 0.0
        assert summary.estimated_savings_active == 0.0
        assert summary.savings_active_pct is None

    def test_accepts_records_without_enrichment(self):
        """Verify the summary depends only on source fields."""
        record = PeriodEconomics(period="2025-12", spend=spend("2025-12", 10.0, 100))
        summary = summarize([record])
        assert summary.active_cost_per_token == pytest.approx(0.1)
