"""Fixed assets: register, depreciation entries and disposal posting."""

from ledger_modules.assets.orm import (
    AssetDepreciationEntryModel,
    AssetModel,
    AssetStatus,
    DepreciationMethod,
)
from ledger_modules.assets.service import AssetPostingService

__all__ = [
    "AssetDepreciationEntryModel",
    "AssetModel",
    "AssetPostingService",
    "AssetStatus",
    "DepreciationMethod",
]
