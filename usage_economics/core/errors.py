"""
Error taxonomy for the economics pipeline.

Per-record failures are skipped, an unavailable spend source is degraded
to savings-only data, and only unrecoverable conditions surface as a
typed stage failure.
"""


class EconomicsError(Exception):
    """Base class for all usage economics errors."""


class DateParseError(EconomicsError):
    """Raised when a period key is not a well-formed date for its granularity."""

    def __init__(self, key, granularity, message: str = ""):
        self.key = key
        self.granularity = granularity
        super().__init__(
            message or f"Invalid {granularity.value} period key: {key!r}"
        )


class SourceUnavailableError(EconomicsError):
    """Raised by a spend source that could not be reached."""


class PipelineStageError(EconomicsError):
    """Unrecoverable failure in one stage of the pipeline."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")
