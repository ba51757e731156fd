"""Reusable type definitions for ledger synchronization."""

from .base import CamelModel, StrictBaseModel
from .exceptions import (
    BackingStoreError,
    ConversionError,
    DependencyMissingError,
    InvalidRangeError,
    LedgerSyncError,
    NotFoundError,
    TransientError,
)

__all__ = [
    # Models
    "CamelModel",
    "StrictBaseModel",
    # Exceptions
    "LedgerSyncError",
    "NotFoundError",
    "BackingStoreError",
    "DependencyMissingError",
    "TransientError",
    "ConversionError",
    "InvalidRangeError",
]
