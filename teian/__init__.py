# Teian: suggestion and tag alias store
#
# Usage:
#   from teian import open_store, SuggestionRepository
#   with open_store() as store:
#       SuggestionRepository(store).create("alice", "Please add a dark theme")

from .db import Store, open_store
from .errors import (
    CorruptRecordError,
    NotFoundError,
    OverQuotaError,
    StorageUnavailableError,
    TeianError,
    TransactionError,
)
from .models import Alias, AliasPatch, AliasStatus, Suggestion
from .query import SortOrder, filter_records, search_records, sort_records
from .repositories import AliasRepository, QuotaLedger, SuggestionRepository

__version__ = "0.1.0"

__all__ = [
    "Alias",
    "AliasPatch",
    "AliasRepository",
    "AliasStatus",
    "CorruptRecordError",
    "NotFoundError",
    "OverQuotaError",
    "QuotaLedger",
    "SortOrder",
    "StorageUnavailableError",
    "Store",
    "Suggestion",
    "SuggestionRepository",
    "TeianError",
    "TransactionError",
    "filter_records",
    "open_store",
    "search_records",
    "sort_records",
]
