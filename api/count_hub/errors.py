# count_hub/errors.py
"""
Rejections raised at the boundary of the core.

All of them are ValueError subclasses carrying a human readable ``reason``;
the HTTP layer turns them into 4xx responses.
"""
from __future__ import annotations


class Rejected(ValueError):
    """Input refused, nothing was changed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ScanRejected(Rejected):
    """Scan not appended: empty barcode or non-positive quantity."""


class EditRejected(Rejected):
    """Invoice item edit refused; the previous value is kept."""

    def __init__(self, reason: str, forbidden: bool = False):
        super().__init__(reason)
        self.forbidden = forbidden


class ExpressionError(Rejected):
    """Quantity expression could not be evaluated."""


class ImportFailed(Rejected):
    """Source document could not be parsed."""
