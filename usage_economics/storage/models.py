"""
Data models for storage layer.

Defines the rows recorded in the savings store.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CommandRecord:
    """Immutable record of one filtered command execution.
    
    ``input_tokens`` is the size of the raw command output and
    ``output_tokens`` the size after filtering; the difference is what
    never reached the model context.
    """
    timestamp: datetime
    command: str
    input_tokens: int
    output_tokens: int
    saved_tokens: int
    exec_time_ms: int = 0

    def __post_init__(self):
        """Validate token counts."""
        if not self.command or not self.command.strip():
            raise ValueError("command is required and cannot be empty")
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise ValueError("token counts cannot be negative")
        if self.saved_tokens < 0:
            raise ValueError("saved_tokens cannot be negative")
