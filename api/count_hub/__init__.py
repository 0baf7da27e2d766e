"""Count Hub - invoice vs. physical count reconciliation."""

__version__ = "1.0.0"
