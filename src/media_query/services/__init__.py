"""Service modules: unified query, builder, runner, transformer and view session."""

from media_query.services.query_builder import UnifiedQueryBuilder
from media_query.services.query_runner import UnifiedQueryRunner
from media_query.services.query_transformer import UnifiedQueryTransformer
from media_query.services.unified_query import UnifiedQuery
from media_query.services.view_session import ViewSession

__all__ = [
    "UnifiedQuery",
    "UnifiedQueryBuilder",
    "UnifiedQueryRunner",
    "UnifiedQueryTransformer",
    "ViewSession",
]
