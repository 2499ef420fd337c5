"""Tests for UnifiedQueryBuilder: simple builders, filter queries, default
camera resolution and capability-aware camera media queries."""

import unittest
from datetime import datetime, timezone

from media_query.managers.camera_manager import CameraManager
from media_query.managers.camera_store import CameraConfig, CameraStore
from media_query.managers.folders import FoldersManager
from media_query.engines.local_folder import LocalFoldersEngine
from media_query.models import (
    EventQuery,
    FolderConfig,
    FolderPathComponent,
    FolderQuery,
    MediaQueryOptions,
    QueryType,
    RecordingQuery,
    ReviewQuery,
    Severity,
)
from media_query.services.query_builder import UnifiedQueryBuilder


def _camera(camera_id, capabilities=(), **extra) -> CameraConfig:
    return CameraConfig.from_dict({"id": camera_id, "capabilities": list(capabilities), **extra})


def _builder(*cameras, folders=()) -> UnifiedQueryBuilder:
    manager = CameraManager(CameraStore(cameras), {})
    folders_manager = FoldersManager({"local": LocalFoldersEngine()})
    folders_manager.add_folders(folders)
    return UnifiedQueryBuilder(manager, folders_manager)


ALL_MEDIA = ("clips", "snapshots", "recordings", "reviews")


class TestSimpleBuilders(unittest.TestCase):

    def test_clips_query_single_flagged_node(self):
        builder = _builder(_camera("camera1", ("clips",)))
        query = builder.build_clips_query({"camera1"})
        nodes = query.get_nodes()
        self.assertEqual(len(nodes), 1)
        node = nodes[0]
        self.assertIsInstance(node, EventQuery)
        self.assertEqual(node.camera_ids, frozenset({"camera1"}))
        self.assertTrue(node.has_clip)
        self.assertIsNone(node.has_snapshot)

    def test_snapshots_events_recordings_reviews(self):
        builder = _builder(_camera("camera1", ALL_MEDIA))
        snapshots = builder.build_snapshots_query(["camera1"]).get_nodes()[0]
        self.assertTrue(snapshots.has_snapshot)
        self.assertIsNone(snapshots.has_clip)

        events = builder.build_events_query(["camera1"]).get_nodes()[0]
        self.assertIsNone(events.has_clip)
        self.assertIsNone(events.has_snapshot)

        self.assertIsInstance(builder.build_recordings_query(["camera1"]).get_nodes()[0], RecordingQuery)
        self.assertIsInstance(builder.build_reviews_query(["camera1"]).get_nodes()[0], ReviewQuery)

    def test_empty_camera_set_returns_none(self):
        builder = _builder(_camera("camera1", ("clips",)))
        self.assertIsNone(builder.build_clips_query(set()))
        self.assertIsNone(builder.build_recordings_query([]))

    def test_options_are_applied(self):
        builder = _builder(_camera("camera1", ("clips",)))
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        options = MediaQueryOptions(
            start=start, limit=10, favorite=True, what=frozenset({"person"}),
            severity=frozenset({Severity.HIGH}),
        )
        node = builder.build_clips_query({"camera1"}, options).get_nodes()[0]
        self.assertEqual(node.start, start)
        self.assertIsNone(node.end)
        self.assertEqual(node.limit, 10)
        self.assertTrue(node.favorite)
        self.assertEqual(node.what, frozenset({"person"}))

    def test_severity_only_on_review_nodes(self):
        builder = _builder(_camera("camera1", ALL_MEDIA))
        options = MediaQueryOptions(severity=frozenset({Severity.HIGH}))
        review = builder.build_reviews_query({"camera1"}, options).get_nodes()[0]
        self.assertEqual(review.severity, frozenset({Severity.HIGH}))

    def test_camera_defaults_are_unioned(self):
        builder = _builder(
            _camera("cam1", ("clips",), defaults={"what": ["person"], "where": ["yard"]}),
            _camera("cam2", ("clips",), defaults={"what": ["car"]}),
        )
        node = builder.build_clips_query({"cam1", "cam2"}).get_nodes()[0]
        self.assertEqual(node.what, frozenset({"person", "car"}))
        self.assertEqual(node.where, frozenset({"yard"}))

    def test_explicit_options_override_defaults(self):
        builder = _builder(_camera("cam1", ("clips",), defaults={"what": ["person"]}))
        options = MediaQueryOptions(what=frozenset({"dog"}))
        node = builder.build_clips_query({"cam1"}, options).get_nodes()[0]
        self.assertEqual(node.what, frozenset({"dog"}))


class TestFilterQuery(unittest.TestCase):

    def test_no_cameras_no_types_uses_everything(self):
        builder = _builder(_camera("camera1", ("clips",)), _camera("nomedia"))
        query = builder.build_filter_query(None, None)
        nodes = query.get_nodes()
        self.assertEqual(len(nodes), 4)
        for node in nodes:
            self.assertEqual(node.camera_ids, frozenset({"camera1"}))
        self.assertTrue(nodes[0].has_clip)
        self.assertTrue(nodes[1].has_snapshot)
        self.assertIs(nodes[2].type, QueryType.RECORDING)
        self.assertIs(nodes[3].type, QueryType.REVIEW)

    def test_selected_types_share_filters(self):
        builder = _builder(_camera("cam1", ALL_MEDIA), _camera("cam2", ALL_MEDIA))
        options = MediaQueryOptions(tags=frozenset({"alice"}), favorite=True)
        query = builder.build_filter_query({"cam1", "cam2"}, {"recordings", "clips", "bogus"}, options)
        nodes = query.get_nodes()
        self.assertEqual(len(nodes), 2)
        self.assertTrue(nodes[0].has_clip)
        self.assertIsInstance(nodes[1], RecordingQuery)
        for node in nodes:
            self.assertEqual(node.camera_ids, frozenset({"cam1", "cam2"}))
            self.assertEqual(node.tags, frozenset({"alice"}))
            self.assertTrue(node.favorite)

    def test_only_unknown_types_returns_none(self):
        builder = _builder(_camera("cam1", ALL_MEDIA))
        self.assertIsNone(builder.build_filter_query({"cam1"}, {"bogus"}))

    def test_no_media_capable_cameras_returns_none(self):
        builder = _builder(_camera("cam1"))
        self.assertIsNone(builder.build_filter_query())

    def test_node_count_union_law(self):
        builder = _builder(_camera("cam1", ALL_MEDIA))
        clips = builder.build_clips_query({"cam1"})
        recordings = builder.build_recordings_query({"cam1"})
        combined = builder.build_filter_query({"cam1"}, {"clips", "recordings"})
        self.assertEqual(
            combined.get_node_count(), clips.get_node_count() + recordings.get_node_count()
        )
        self.assertEqual(combined.get_nodes(), clips.get_nodes() + recordings.get_nodes())


class TestDefaultCameraQuery(unittest.TestCase):

    def test_reviews_capable_auto_camera_gets_review_node(self):
        builder = _builder(_camera("cam1", ALL_MEDIA))
        query = builder.build_default_camera_query()
        nodes = query.get_nodes()
        self.assertEqual(len(nodes), 1)
        self.assertIsInstance(nodes[0], ReviewQuery)
        self.assertEqual(nodes[0].camera_ids, frozenset({"cam1"}))
        # Default reviewed policy is "unreviewed".
        self.assertIs(nodes[0].reviewed, False)

    def test_reviewed_policy_from_config(self):
        builder = _builder(_camera("cam1", ("reviews",), media={"reviewed": "all"}))
        node = builder.build_default_camera_query().get_nodes()[0]
        self.assertIsNone(node.reviewed)

    def test_auto_both_event_capabilities_is_unflagged(self):
        builder = _builder(_camera("cam1", ("clips", "snapshots", "recordings")))
        node = builder.build_default_camera_query().get_nodes()[0]
        self.assertIsInstance(node, EventQuery)
        self.assertIsNone(node.has_clip)
        self.assertIsNone(node.has_snapshot)

    def test_auto_snapshot_only_camera(self):
        builder = _builder(_camera("cam1", ("snapshots",)))
        node = builder.build_default_camera_query().get_nodes()[0]
        self.assertTrue(node.has_snapshot)
        self.assertIsNone(node.has_clip)

    def test_events_type_policy_picks_subtype(self):
        builder = _builder(_camera("cam1", ("clips", "snapshots"), media={"events_type": "clips"}))
        node = builder.build_default_camera_query().get_nodes()[0]
        self.assertTrue(node.has_clip)

    def test_auto_falls_back_to_recordings(self):
        builder = _builder(_camera("cam1", ("recordings",)))
        node = builder.build_default_camera_query().get_nodes()[0]
        self.assertIsInstance(node, RecordingQuery)

    def test_explicit_preference_without_capability_is_none(self):
        builder = _builder(_camera("cam1", ("clips",), media={"type": "recordings"}))
        self.assertIsNone(builder.build_default_camera_query("cam1"))

    def test_no_capabilities_is_none(self):
        builder = _builder(_camera("cam1"))
        self.assertIsNone(builder.build_default_camera_query("cam1"))

    def test_dependencies_get_their_own_nodes(self):
        builder = _builder(
            _camera("cam1", ("reviews",), dependencies={"cameras": ["cam2"]}),
            _camera("cam2", ("recordings",)),
        )
        nodes = builder.build_default_camera_query("cam1").get_nodes()
        self.assertEqual([type(n) for n in nodes], [ReviewQuery, RecordingQuery])
        self.assertEqual(nodes[1].camera_ids, frozenset({"cam2"}))

    def test_limit_is_applied(self):
        builder = _builder(_camera("cam1", ("recordings",)))
        node = builder.build_default_camera_query("cam1", limit=25).get_nodes()[0]
        self.assertEqual(node.limit, 25)

    def test_folder_media_type_uses_camera_folders(self):
        folder = FolderConfig(id="archive", root="/srv/archive")
        builder = _builder(
            _camera("cam1", media={"type": "folder", "folders": ["archive"]}),
            folders=[folder],
        )
        nodes = builder.build_default_camera_query("cam1").get_nodes()
        self.assertEqual(len(nodes), 1)
        self.assertIsInstance(nodes[0], FolderQuery)
        self.assertEqual(nodes[0].folder.id, "archive")

    def test_shared_folder_is_not_duplicated(self):
        folder = FolderConfig(id="archive", root="/srv/archive")
        builder = _builder(
            _camera("cam1", media={"type": "folder", "folders": ["archive"]}),
            _camera("cam2", media={"type": "folder", "folders": ["archive"]}),
            folders=[folder],
        )
        self.assertEqual(builder.build_default_camera_query().get_node_count(), 1)


class TestCameraMediaQuery(unittest.TestCase):

    def test_only_capable_cameras_included(self):
        builder = _builder(
            _camera("cam1", ("recordings",)),
            _camera("cam2", ("clips",)),
        )
        query = builder.build_camera_media_query("recordings")
        self.assertEqual(query.get_all_camera_ids(), {"cam1"})

    def test_one_node_per_camera(self):
        builder = _builder(_camera("cam1", ("clips",)), _camera("cam2", ("clips",)))
        query = builder.build_camera_media_query("events", events_subtype="clips")
        nodes = query.get_nodes()
        self.assertEqual(len(nodes), 2)
        for node in nodes:
            self.assertTrue(node.has_clip)
            self.assertEqual(len(node.camera_ids), 1)

    def test_events_with_dependencies(self):
        builder = _builder(
            _camera("cam1", ("snapshots",), dependencies={"cameras": ["cam2", "cam3"]}),
            _camera("cam2", ("clips",)),
            _camera("cam3", ("recordings",)),
        )
        query = builder.build_camera_media_query("events", camera_id="cam1")
        self.assertEqual(query.get_all_camera_ids(), {"cam1", "cam2"})

    def test_unsupported_media_type_is_none(self):
        builder = _builder(_camera("cam1", ALL_MEDIA))
        self.assertIsNone(builder.build_camera_media_query("bogus"))
        self.assertIsNone(builder.build_camera_media_query("folder"))

    def test_no_capable_cameras_is_none(self):
        builder = _builder(_camera("cam1", ("clips",)))
        self.assertIsNone(builder.build_camera_media_query("reviews"))


class TestFolderQueries(unittest.TestCase):

    def test_default_folder_query(self):
        folder = FolderConfig(id="photos", title="Photos", root="/srv/photos")
        builder = _builder(folders=[folder])
        node = builder.build_default_folder_query(limit=5).get_nodes()[0]
        self.assertEqual(node.folder, folder)
        self.assertEqual(node.path, (FolderPathComponent(id=".", title="Photos"),))
        self.assertEqual(node.limit, 5)

    def test_unknown_folder_is_none(self):
        builder = _builder(folders=[FolderConfig(id="photos", root="/srv/photos")])
        self.assertIsNone(builder.build_default_folder_query("missing"))

    def test_folder_without_root_is_none(self):
        builder = _builder(folders=[FolderConfig(id="photos")])
        self.assertIsNone(builder.build_default_folder_query("photos"))

    def test_build_folder_query_requires_path(self):
        folder = FolderConfig(id="photos", root="/srv/photos")
        builder = _builder(folders=[folder])
        self.assertIsNone(builder.build_folder_query(folder, []))
        query = builder.build_folder_query(folder, [FolderPathComponent(id="2024")])
        self.assertEqual(query.get_folder_queries()[0].path[0].id, "2024")


if __name__ == "__main__":
    unittest.main()
