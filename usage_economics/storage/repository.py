"""
Repository pattern for the savings store.

Handles schema creation, append-only inserts and per-period savings queries.
"""

import logging
import sqlite3
from typing import List

from .db import DEFAULT_DB_PATH, get_connection
from .models import CommandRecord
from ..core.economics import SavingsPeriod
from ..core.periods import CalendarConvention, Granularity

logger = logging.getLogger(__name__)

# Native period key expressions. Week keys are the date of the week's first day.
_PERIOD_EXPRESSIONS = {
    Granularity.DAY: "DATE(timestamp)",
    Granularity.MONTH: "strftime('%Y-%m', timestamp)",
}
_WEEK_EXPRESSIONS = {
    CalendarConvention.LEGACY: "DATE(timestamp, '-6 days', 'weekday 6')",  # Saturday
    CalendarConvention.SUNDAY: "DATE(timestamp, '-6 days', 'weekday 0')",  # Sunday
    CalendarConvention.ISO: "DATE(timestamp, '-6 days', 'weekday 1')",     # Monday
}


class SavingsRepository:
    """Read access to per-period savings from the command ledger."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        convention: CalendarConvention = CalendarConvention.LEGACY
    ):
        """Initialize the repository.

        Args:
            db_path: Path to SQLite database file
            convention: Week convention used to bucket weekly savings
        """
        self.db_path = db_path
        self.convention = convention

    def fetch_savings(self, granularity: Granularity) -> List[SavingsPeriod]:
        """Get command counts and tokens saved grouped by native period.

        Args:
            granularity: Bucket size for grouping

        Returns:
            Savings periods ordered by period key; empty if the store
            has not been initialized
        """
        if granularity == Granularity.WEEK:
            period_expr = _WEEK_EXPRESSIONS[self.convention]
        else:
            period_expr = _PERIOD_EXPRESSIONS[granularity]
        conn = get_connection(self.db_path)
        try:
            query = f"""
                SELECT {period_expr} AS period,
                       COUNT(*) AS commands,
                       SUM(saved_tokens) AS saved_tokens
                FROM command_record
                GROUP BY period
                ORDER BY period
            """
            try:
                cursor = conn.execute(query)
            except sqlite3.OperationalError as e:
                if "no such table" in str(e).lower():
                    logger.warning("Savings store at %s is not initialized", self.db_path)
                    return []
                raise

            return [
                SavingsPeriod(
                    period=row[0],
                    commands=row[1],
                    saved_tokens=row[2] or 0,
                    convention=self.convention
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def count_records(self) -> int:
        """Return the number of command records in the store."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT COUNT(*) FROM command_record").fetchone()
            return row[0]
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the command_record table if it doesn't exist.

    The table is an append-only ledger; rows are never updated or deleted.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS command_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                command TEXT NOT NULL,
                input_tokens INTEGER NOT NULL,
                output_tokens INTEGER NOT NULL,
                saved_tokens INTEGER NOT NULL,
                exec_time_ms INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_command_record_timestamp "
            "ON command_record(timestamp)"
        )
        conn.commit()
    finally:
        conn.close()


_INSERT_SQL = """
    INSERT INTO command_record
    (timestamp, command, input_tokens, output_tokens, saved_tokens, exec_time_ms)
    VALUES (?, ?, ?, ?, ?, ?)
"""


def _to_row(record: CommandRecord) -> tuple:
    return (
        record.timestamp.isoformat(),
        record.command,
        record.input_tokens,
        record.output_tokens,
        record.saved_tokens,
        record.exec_time_ms
    )


def insert_command_record(record: CommandRecord, db_path: str = DEFAULT_DB_PATH) -> None:
    """Append a single command record to the ledger.

    Args:
        record: The command record to store
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute(_INSERT_SQL, _to_row(record))
        conn.commit()
    finally:
        conn.close()


def insert_command_records(records: List[CommandRecord], db_path: str = DEFAULT_DB_PATH) -> None:
    """Append multiple command records atomically.

    All records are inserted in a single transaction; on failure none are kept.

    Args:
        records: Command records to store
        db_path: Path to SQLite database file
    """
    if not records:
        return

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        for record in records:
            conn.execute(_INSERT_SQL, _to_row(record))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
