"""
Spend source backed by the ``ccusage`` command-line tool.

Reports spend without failing the pipeline: anything that prevents
reading the tool's output is logged and reported as unavailable.
"""

import json
import logging
import shutil
import subprocess
from typing import Any, Dict, List, Optional, Sequence

from ..core.economics import SpendPeriod
from ..core.errors import SourceUnavailableError
from ..core.periods import CalendarConvention, Granularity

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60

# ccusage subcommand, payload array key and period field per granularity
_REPORT_LAYOUT = {
    Granularity.DAY: ("daily", "daily", "date"),
    Granularity.WEEK: ("weekly", "weekly", "week"),
    Granularity.MONTH: ("monthly", "monthly", "month"),
}

_TOKEN_FIELDS = ("inputTokens", "outputTokens", "cacheCreationTokens", "cacheReadTokens")

# Weekly reports are requested on ISO weeks so their keys are Mondays
WEEK_START_ARGS = ["--start-of-week", "monday"]


def default_command() -> List[str]:
    """Use an installed ccusage binary, falling back to npx."""
    if shutil.which("ccusage"):
        return ["ccusage"]
    return ["npx", "--yes", "ccusage"]


def parse_ccusage_output(payload: Dict[str, Any], granularity: Granularity) -> List[SpendPeriod]:
    """Convert a ccusage JSON report into spend periods.

    Entries with missing or invalid fields are skipped with a warning.

    Args:
        payload: Decoded JSON object produced by ``ccusage <report> --json``
        granularity: Granularity the report was requested for

    Returns:
        Spend periods in report order

    Raises:
        ValueError: If the payload does not contain the expected report array
    """
    _, array_key, period_field = _REPORT_LAYOUT[granularity]
    if not isinstance(payload, dict) or not isinstance(payload.get(array_key), list):
        raise ValueError(f"ccusage output missing '{array_key}' array")

    periods = []
    for index, entry in enumerate(payload[array_key]):
        try:
            periods.append(_parse_entry(entry, period_field))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping ccusage %s entry %d: %s", array_key, index, e)
    return periods


def _parse_entry(entry: Dict[str, Any], period_field: str) -> SpendPeriod:
    period = entry[period_field]
    if not isinstance(period, str):
        raise ValueError(f"'{period_field}' must be a string")

    counts = {name: _token_count(entry, name) for name in _TOKEN_FIELDS}
    if entry.get("totalTokens") is None:
        total_tokens = sum(counts.values())
    else:
        total_tokens = _token_count(entry, "totalTokens")

    return SpendPeriod(
        period=period,
        total_cost=float(entry["totalCost"]),
        input_tokens=counts["inputTokens"],
        output_tokens=counts["outputTokens"],
        cache_creation_tokens=counts["cacheCreationTokens"],
        cache_read_tokens=counts["cacheReadTokens"],
        total_tokens=total_tokens,
        convention=CalendarConvention.ISO
    )


def _token_count(entry: Dict[str, Any], name: str) -> int:
    value = entry.get(name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{name}' must be an integer, got {value!r}")
    return value


class CcusageClient:
    """Fetches spend periods by running ccusage in a subprocess."""

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    ):
        """Initialize the client.

        Args:
            command: Command prefix used to invoke ccusage (auto-detected if omitted)
            timeout_seconds: Maximum time to wait for ccusage

        Raises:
            ValueError: If timeout_seconds is not positive
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.command = list(command) if command else default_command()
        self.timeout_seconds = timeout_seconds

    def run_report(self, granularity: Granularity) -> Dict[str, Any]:
        """Run ccusage and return its decoded JSON output.

        Raises:
            SourceUnavailableError: If ccusage cannot be run or its output is unreadable
        """
        subcommand, _, _ = _REPORT_LAYOUT[granularity]
        args = self.command + [subcommand, "--json"]
        if granularity == Granularity.WEEK:
            args += WEEK_START_ARGS
        logger.debug("Running %s", " ".join(args))

        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False
            )
        except FileNotFoundError as e:
            raise SourceUnavailableError(f"ccusage not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise SourceUnavailableError(
                f"ccusage timed out after {self.timeout_seconds}s"
            ) from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            raise SourceUnavailableError(
                f"ccusage exited with code {completed.returncode}: {stderr}"
            )

        try:
            return json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise SourceUnavailableError(f"ccusage returned invalid JSON: {e}") from e

    def fetch_spend(self, granularity: Granularity) -> Optional[List[SpendPeriod]]:
        """Fetch spend periods, or None when ccusage is unavailable."""
        try:
            payload = self.run_report(granularity)
            return parse_ccusage_output(payload, granularity)
        except (SourceUnavailableError, ValueError) as e:
            logger.warning("Spend data unavailable: %s", e)
            return None
