"""Reviewed-filter helpers used by the query builder and the view session."""

from media_query.models import ViewItem, ViewMedia
from media_query.services.unified_query import UnifiedQuery


def get_reviewed_query_filter_from_query(
    query: UnifiedQuery | None, item: ViewItem | None = None
) -> bool | None:
    """
    The reviewed filter that produced item, if it is unambiguous.

    Used to decide whether toggling an item's reviewed status should drop it
    from the current results. Returns True (reviewed only), False (unreviewed
    only) or None when the query has zero or several media nodes for the
    item's camera.
    """
    if query is None or item is None or not isinstance(item, ViewMedia):
        return None
    if not item.camera_id:
        return None
    nodes = query.get_media_queries(camera_id=item.camera_id)
    return nodes[0].reviewed if len(nodes) == 1 else None


def get_reviewed_query_filter_from_config(reviewed: str | None) -> bool | None:
    """Map cameras[].media.reviewed to a filter: reviewed -> True, all -> None,
    anything else (unreviewed, unset) -> False."""
    if reviewed == "reviewed":
        return True
    if reviewed == "all":
        return None
    return False
