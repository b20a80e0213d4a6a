from .batch_upsert import BatchMetrics, BatchUpsertError, UpsertResult, quote_ident
from .fallback_columns import FALLBACK_TABLES, FallbackColumns
from .schema import db_schema_fetcher, introspect_columns

__all__ = [
    "BatchMetrics",
    "BatchUpsertError",
    "UpsertResult",
    "quote_ident",
    "FALLBACK_TABLES",
    "FallbackColumns",
    "db_schema_fetcher",
    "introspect_columns",
]
