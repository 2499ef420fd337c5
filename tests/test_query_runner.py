"""Tests for UnifiedQueryRunner: dispatch routing, result ordering, freshness
and extension of media nodes."""

import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from media_query.managers.camera_manager import MediaQueriesExtension
from media_query.models import (
    EventQuery,
    FolderConfig,
    FolderPathComponent,
    FolderQuery,
    RecordingQuery,
    ViewFolder,
    ViewMedia,
    ViewMediaType,
)
from media_query.services.query_runner import UnifiedQueryRunner
from media_query.services.unified_query import UnifiedQuery

FOLDER = FolderConfig(id="photos", root="/srv/photos")
FOLDER_NODE = FolderQuery(folder=FOLDER, path=(FolderPathComponent(id="."),))
EVENT_NODE = EventQuery(camera_ids={"cam1"}, has_clip=True)
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _media(item_id: str, hour: int = 12) -> ViewMedia:
    return ViewMedia(
        media_type=ViewMediaType.CLIP,
        id=item_id,
        camera_id="cam1",
        start_time=datetime(2024, 5, 1, hour, 0, tzinfo=timezone.utc),
    )


def _folder_item(item_id: str) -> ViewFolder:
    return ViewFolder(folder=FOLDER, path=FOLDER_NODE.path, id=item_id, title=item_id)


def _runner(condition_state=None):
    camera_manager = MagicMock()
    camera_manager.execute_media_queries = AsyncMock(return_value=[])
    camera_manager.extend_media_queries = AsyncMock(return_value=None)
    camera_manager.are_media_queries_results_fresh.return_value = True
    folders_manager = MagicMock()
    folders_manager.expand_folder = AsyncMock(return_value=[])
    folders_manager.are_results_fresh.return_value = True
    get_state = (lambda: condition_state) if condition_state is not None else None
    return UnifiedQueryRunner(camera_manager, folders_manager, get_state), camera_manager, folders_manager


class TestExecute(unittest.IsolatedAsyncioTestCase):

    async def test_media_nodes_dispatched_in_one_call(self):
        runner, cameras, folders = _runner()
        recording = RecordingQuery(camera_ids={"cam2"})
        await runner.execute(UnifiedQuery([EVENT_NODE, recording]))
        cameras.execute_media_queries.assert_awaited_once_with(
            [EVENT_NODE, recording], use_cache=True
        )
        folders.expand_folder.assert_not_awaited()

    async def test_camera_results_before_folder_results(self):
        runner, cameras, folders = _runner()
        cameras.execute_media_queries.return_value = [_media("e1")]
        folders.expand_folder.return_value = [_folder_item("2024")]
        results = await runner.execute(UnifiedQuery([FOLDER_NODE, EVENT_NODE]))
        self.assertEqual([r.id for r in results], ["e1", "2024"])

    async def test_null_dispatcher_results_are_empty(self):
        runner, cameras, folders = _runner()
        cameras.execute_media_queries.return_value = None
        folders.expand_folder.return_value = None
        self.assertEqual(await runner.execute(UnifiedQuery([EVENT_NODE, FOLDER_NODE])), [])

    async def test_empty_query_touches_nothing(self):
        runner, cameras, folders = _runner()
        self.assertEqual(await runner.execute(UnifiedQuery()), [])
        cameras.execute_media_queries.assert_not_awaited()
        folders.expand_folder.assert_not_awaited()

    async def test_condition_state_and_cache_flag_forwarded(self):
        state = {"mode": "night"}
        runner, _, folders = _runner(condition_state=state)
        await runner.execute(UnifiedQuery([FOLDER_NODE]), use_cache=False)
        folders.expand_folder.assert_awaited_once_with(FOLDER_NODE, state, use_cache=False)

    async def test_dispatcher_errors_propagate(self):
        runner, cameras, _ = _runner()
        cameras.execute_media_queries.side_effect = RuntimeError("backend down")
        with self.assertRaises(RuntimeError):
            await runner.execute(UnifiedQuery([EVENT_NODE]))


class TestFreshness(unittest.TestCase):

    def test_fresh_when_all_dispatchers_fresh(self):
        runner, cameras, folders = _runner()
        self.assertTrue(runner.are_results_fresh(NOW, UnifiedQuery([EVENT_NODE, FOLDER_NODE])))
        cameras.are_media_queries_results_fresh.assert_called_once_with(NOW, [EVENT_NODE])
        folders.are_results_fresh.assert_called_once_with(NOW, FOLDER_NODE)

    def test_stale_camera_results(self):
        runner, cameras, _ = _runner()
        cameras.are_media_queries_results_fresh.return_value = False
        self.assertFalse(runner.are_results_fresh(NOW, UnifiedQuery([EVENT_NODE])))

    def test_stale_folder_results(self):
        runner, _, folders = _runner()
        folders.are_results_fresh.return_value = False
        self.assertFalse(runner.are_results_fresh(NOW, UnifiedQuery([FOLDER_NODE])))

    def test_empty_query_is_fresh(self):
        runner, cameras, _ = _runner()
        self.assertTrue(runner.are_results_fresh(NOW, UnifiedQuery()))
        cameras.are_media_queries_results_fresh.assert_not_called()


class TestExtend(unittest.IsolatedAsyncioTestCase):

    async def test_extend_replaces_media_nodes_and_keeps_folder_nodes(self):
        runner, cameras, _ = _runner()
        replacement = EventQuery(camera_ids={"cam1"}, has_clip=True, end=NOW)
        existing = [_media("e1", 12)]
        merged = [_media("e2", 13), _media("e1", 12)]
        cameras.extend_media_queries.return_value = MediaQueriesExtension(
            queries=[replacement], results=merged
        )

        extension = await runner.extend(UnifiedQuery([EVENT_NODE, FOLDER_NODE]), existing, "later")

        cameras.extend_media_queries.assert_awaited_once_with(
            [EVENT_NODE], existing, "later", use_cache=True
        )
        self.assertEqual(extension.query.get_nodes(), [replacement, FOLDER_NODE])
        self.assertEqual(extension.results, merged)

    async def test_no_media_nodes_returns_none_without_dispatch(self):
        runner, cameras, _ = _runner()
        self.assertIsNone(await runner.extend(UnifiedQuery([FOLDER_NODE]), [], "earlier"))
        cameras.extend_media_queries.assert_not_awaited()

    async def test_dispatcher_cannot_extend(self):
        runner, cameras, _ = _runner()
        cameras.extend_media_queries.return_value = None
        self.assertIsNone(await runner.extend(UnifiedQuery([EVENT_NODE]), [_media("e1")], "earlier"))


if __name__ == "__main__":
    unittest.main()
