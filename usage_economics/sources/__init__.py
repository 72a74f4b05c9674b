"""
Spend sources for Usage Economics.

Provides access to the external spend ledger.
"""

from .ccusage import CcusageClient

__all__ = ["CcusageClient"]
