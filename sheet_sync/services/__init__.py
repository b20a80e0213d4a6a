from .column_mapper import MappingEditor, auto_map, greedy_auto_map, rank_sources, suggest
from .ndjson import MalformedLine, NdjsonDecoder, iter_ndjson
from .orchestrator import (
    IllegalTransitionError,
    StreamProtocolError,
    SyncOrchestrator,
    SyncState,
)
from .progress import ProgressPresenter, RowProgressBar, learned_ms_per_row
from .schema_inspector import RetryPolicy, SchemaFetchError, SchemaInspector, SchemaLookup
from .state_store import MappingStore, ResolvedMapping, StateStore, StateStoreError
from .summary import render_summary_line
from .sync_engine import SyncEngine, SyncEngineError
from .sync_log import SyncLog
from .transform import convert_data_types, optimal_batch_size, transform_row

__all__ = [
    "MappingEditor",
    "auto_map",
    "greedy_auto_map",
    "rank_sources",
    "suggest",
    "MalformedLine",
    "NdjsonDecoder",
    "iter_ndjson",
    "IllegalTransitionError",
    "StreamProtocolError",
    "SyncOrchestrator",
    "SyncState",
    "ProgressPresenter",
    "RowProgressBar",
    "learned_ms_per_row",
    "RetryPolicy",
    "SchemaFetchError",
    "SchemaInspector",
    "SchemaLookup",
    "MappingStore",
    "ResolvedMapping",
    "StateStore",
    "StateStoreError",
    "render_summary_line",
    "SyncEngine",
    "SyncEngineError",
    "SyncLog",
    "convert_data_types",
    "optimal_batch_size",
    "transform_row",
]
