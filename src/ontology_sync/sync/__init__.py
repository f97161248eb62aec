"""Source synchronization: fetch, checksum gating, state tracking."""

from .differ import ContentDiffer, TemplateContentDiffer
from .engine import (
    SyncEngine,
    count_only_apply_step,
    importer_apply_step,
    store_local_content,
)
from .fetcher import (
    ContentFetcher,
    FileContentFetcher,
    HttpContentFetcher,
    SourceContentFetcher,
)
from .models import (
    FetchedContent,
    SourceType,
    SyncHistoryEntry,
    SyncPreview,
    SyncResult,
    SyncSource,
    SyncState,
    SyncStrategy,
)
from .state import (
    InMemorySyncStateStorage,
    JsonFileSyncStateStorage,
    SyncStateStorage,
    SyncStateStore,
)

__all__ = [
    "ContentDiffer",
    "ContentFetcher",
    "FetchedContent",
    "FileContentFetcher",
    "HttpContentFetcher",
    "InMemorySyncStateStorage",
    "JsonFileSyncStateStorage",
    "SourceContentFetcher",
    "SourceType",
    "SyncEngine",
    "SyncHistoryEntry",
    "SyncPreview",
    "SyncResult",
    "SyncSource",
    "SyncState",
    "SyncStateStorage",
    "SyncStateStore",
    "SyncStrategy",
    "TemplateContentDiffer",
    "count_only_apply_step",
    "importer_apply_step",
    "store_local_content",
]
