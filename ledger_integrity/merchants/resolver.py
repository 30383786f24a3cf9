"""
Merchant display-name resolution.

Precedence, first match wins:
1. The transaction's own override, if non-blank
2. The managed name registered in the merchant directory for the raw merchant
3. The raw parsed merchant, unless blank or the "Unknown" placeholder
4. "Unknown"

The directory is an external store. If it can't be reached we log it
and fall through to tiers 3/4 instead of failing the read.
"""

from typing import Iterable, Optional

import structlog

from ledger_integrity.models.transaction import Transaction
from ledger_integrity.services.storage import MerchantDirectoryInterface

UNKNOWN_MERCHANT = "Unknown"

logger = structlog.get_logger()


def choose_display_name(
    transaction: Transaction,
    managed_name: Optional[str],
) -> str:
    """Apply the precedence rule given an already-fetched directory name."""
    override = transaction.merchant_override
    if override is not None and override.strip():
        return override
    if managed_name is not None:
        return managed_name
    merchant = transaction.merchant
    if merchant.strip() and merchant != UNKNOWN_MERCHANT:
        return merchant
    return UNKNOWN_MERCHANT


async def resolve_display_name(
    transaction: Transaction,
    directory: MerchantDirectoryInterface,
) -> str:
    """Resolve the display name for one transaction."""
    override = transaction.merchant_override
    if override is not None and override.strip():
        return override

    try:
        managed_name = await directory.lookup(transaction.merchant)
    except Exception as e:
        logger.warning(
            "merchant_directory_unavailable",
            error=str(e),
            transaction_id=transaction.id,
        )
        managed_name = None

    return choose_display_name(transaction, managed_name)


async def resolve_display_names(
    transactions: Iterable[Transaction],
    directory: MerchantDirectoryInterface,
) -> list[str]:
    """
    Resolve display names for many transactions from one directory snapshot.

    Returns one name per transaction, in input order. Same result as
    calling resolve_display_name per transaction, with a single directory
    read.
    """
    try:
        snapshot = {
            alias.original_name: alias.display_name
            for alias in await directory.list_all()
        }
    except Exception as e:
        logger.warning("merchant_directory_unavailable", error=str(e))
        snapshot = {}

    return [
        choose_display_name(transaction, snapshot.get(transaction.merchant))
        for transaction in transactions
    ]
