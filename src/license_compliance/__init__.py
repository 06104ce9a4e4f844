"""Rule evaluation and finding reconciliation for tracked software licenses."""

__version__ = "0.1.0"
