"""Data and helpers for the Compass Caging donation processing service."""

__version__ = "0.1.0"

from .base import (
    ConflictError,
    PayloadTooLargeError,
    RecordNotFoundError,
    amount_from_cents,
    cents_from_amount,
    format_currency,
)
from .people import donor_display_name
from .sensitive_scan import SensitiveDataScanner
from .store import CagingStore

__all__ = [
    "CagingStore",
    "ConflictError",
    "PayloadTooLargeError",
    "RecordNotFoundError",
    "SensitiveDataScanner",
    "amount_from_cents",
    "cents_from_amount",
    "donor_display_name",
    "format_currency",
]
