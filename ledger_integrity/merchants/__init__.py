"""Merchant name resolution package."""

from ledger_integrity.merchants.resolver import (
    UNKNOWN_MERCHANT,
    choose_display_name,
    resolve_display_name,
    resolve_display_names,
)

__all__ = [
    "UNKNOWN_MERCHANT",
    "choose_display_name",
    "resolve_display_name",
    "resolve_display_names",
]
