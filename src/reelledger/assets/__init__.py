"""Assets domain — versioned content assets grouped into lineages.

ContentAsset is the persisted record, LineageStore the JSON-backed
system of record, and VersionService the single writer that keeps
exactly one latest member per lineage.
"""

from reelledger.assets.models import ContentAsset, ContentType, Lineage, VersionComparison
from reelledger.assets.services import VersionService, default_label, group_lineages
from reelledger.assets.store import LineageStore

__all__ = [
    "ContentAsset",
    "ContentType",
    "Lineage",
    "LineageStore",
    "VersionComparison",
    "VersionService",
    "default_label",
    "group_lineages",
]
