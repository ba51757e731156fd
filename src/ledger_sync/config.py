"""
Global configuration for ledger-sync.

This module contains environment-specific settings that apply across all packages.
"""

import os

_SUPPORTED_LEDGER_ENVS: list[str] = ["prod", "test"]

LEDGER_ENV = os.environ.get("LEDGER_ENV", "prod").lower()
"""The environment flag ('prod' or 'test'). Defaults to 'prod'."""

if LEDGER_ENV not in _SUPPORTED_LEDGER_ENVS:
    raise ValueError(
        f"Invalid LEDGER_ENV environment variable: '{LEDGER_ENV}'. "
        f"Supported values: {_SUPPORTED_LEDGER_ENVS}"
    )
