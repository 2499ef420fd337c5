"""Tests for LocalFoldersEngine against a temporary directory tree."""

import os
import shutil
import tempfile
import unittest

from media_query.engines.local_folder import (
    LocalFoldersEngine,
    component_matches,
    parse_start_date,
)
from media_query.models import (
    FolderConfig,
    FolderPathComponent,
    FolderQuery,
    ViewFolder,
    ViewMedia,
    ViewMediaType,
    utc_from_timestamp,
)


class TestHelpers(unittest.TestCase):

    def test_parse_start_date_timestamp_and_iso(self):
        self.assertEqual(
            parse_start_date("clip_1700000000.mp4", r"clip_(\d+)"),
            utc_from_timestamp(1700000000),
        )
        parsed = parse_start_date("2024-05-01T10:00:00.jpg", r"^(.+)\.jpg$")
        self.assertEqual(parsed.isoformat(), "2024-05-01T10:00:00+00:00")

    def test_parse_start_date_no_match(self):
        self.assertIsNone(parse_start_date("photo.jpg", None))
        self.assertIsNone(parse_start_date("photo.jpg", r"clip_(\d+)"))
        self.assertIsNone(parse_start_date("photo.jpg", r"photo"))
        self.assertIsNone(parse_start_date("x_notadate.jpg", r"x_(\w+)"))
        self.assertIsNone(parse_start_date("photo.jpg", r"(unclosed"))

    def test_component_matches(self):
        self.assertTrue(component_matches(FolderPathComponent(), "anything"))
        self.assertTrue(component_matches(FolderPathComponent(title="2024"), "2024"))
        self.assertFalse(component_matches(FolderPathComponent(title="2024"), "2023"))
        self.assertTrue(component_matches(FolderPathComponent(title_re=r"\d{4}"), "2024"))
        self.assertFalse(component_matches(FolderPathComponent(title_re=r"\d{4}"), "2024-05"))
        self.assertFalse(component_matches(FolderPathComponent(title_re="("), "x"))


class TestLocalFoldersEngine(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.outside = tempfile.mkdtemp()
        self.addCleanup(lambda: shutil.rmtree(self.root, ignore_errors=True))
        self.addCleanup(lambda: shutil.rmtree(self.outside, ignore_errors=True))
        self.folder = FolderConfig(id="media", title="Media", icon="mdi:folder", root=self.root)
        self.engine = LocalFoldersEngine()

        for rel in ("2024/05", "2024/06", "2023/12", ".hidden"):
            os.makedirs(os.path.join(self.root, rel))
        self._touch("2024/05/clip_1714600000.mp4", 1714600000)
        self._touch("2024/05/snap_1714500000.jpg", 1714500000)
        self._touch("2024/05/notes.txt", 1714400000)
        self._touch("2024/06/clip_1717200000.mp4", 1717200000)
        self._touch("top.png", 1700000000)

    def _touch(self, rel, mtime):
        path = os.path.join(self.root, rel)
        open(path, "w").close()
        os.utime(path, (mtime, mtime))

    def _query(self, *path, limit=None):
        return FolderQuery(folder=self.folder, path=path, limit=limit)

    async def test_default_query_lists_root(self):
        query = self.engine.generate_default_folder_query(self.folder)
        self.assertEqual(query.path, (FolderPathComponent(id=".", title="Media"),))

        items = await self.engine.expand_folder(query)
        self.assertEqual([i.title for i in items], ["2023", "2024", "top.png"])
        folder_2024 = items[1]
        self.assertIsInstance(folder_2024, ViewFolder)
        self.assertEqual(folder_2024.id, "2024")
        self.assertEqual(folder_2024.icon, "mdi:folder")
        self.assertEqual(folder_2024.path[-1], FolderPathComponent(id="2024", title="2024"))
        top = items[2]
        self.assertIs(top.media_type, ViewMediaType.SNAPSHOT)
        self.assertEqual(top.thumbnail, "top.png")

    def test_default_query_requires_root(self):
        self.assertIsNone(self.engine.generate_default_folder_query(FolderConfig(id="x")))

    async def test_child_path_lists_media(self):
        items = await self.engine.expand_folder(
            self._query(FolderPathComponent(id="."), FolderPathComponent(id=os.path.join("2024", "05")))
        )
        self.assertEqual(len(items), 2)
        clip, snap = items
        self.assertIsInstance(clip, ViewMedia)
        self.assertIs(clip.media_type, ViewMediaType.CLIP)
        self.assertEqual(clip.id, os.path.join("2024", "05", "clip_1714600000.mp4"))
        self.assertEqual(clip.folder, self.folder)
        self.assertEqual(clip.start_time, utc_from_timestamp(1714600000))
        self.assertIs(snap.media_type, ViewMediaType.SNAPSHOT)

    async def test_matchers_narrow_directories(self):
        items = await self.engine.expand_folder(self._query(
            FolderPathComponent(id="."),
            FolderPathComponent(title="2024"),
            FolderPathComponent(title_re=r"0[56]", start_date_re=r"_(\d+)\."),
        ))
        self.assertEqual(
            [i.title for i in items],
            ["clip_1717200000.mp4", "clip_1714600000.mp4", "snap_1714500000.jpg"],
        )

    async def test_matcher_with_no_match_is_empty(self):
        items = await self.engine.expand_folder(
            self._query(FolderPathComponent(id="."), FolderPathComponent(title="1999"))
        )
        self.assertEqual(items, [])

    async def test_start_date_re_overrides_mtime(self):
        self._touch("2023/12/event_1600000000.mp4", 1700000000)
        items = await self.engine.expand_folder(self._query(
            FolderPathComponent(id="2023/12", start_date_re=r"event_(\d+)"),
        ))
        self.assertEqual(items[0].start_time, utc_from_timestamp(1600000000))

    async def test_limit(self):
        items = await self.engine.expand_folder(self._query(FolderPathComponent(id="."), limit=1))
        self.assertEqual(len(items), 1)

    async def test_missing_or_escaping_path_returns_none(self):
        self.assertIsNone(await self.engine.expand_folder(self._query(FolderPathComponent(id="nope"))))
        self.assertIsNone(await self.engine.expand_folder(self._query(FolderPathComponent(id="../.."))))
        missing_root = FolderConfig(id="gone", root=os.path.join(self.root, "gone"))
        self.assertIsNone(await self.engine.expand_folder(
            FolderQuery(folder=missing_root, path=(FolderPathComponent(id="."),))
        ))

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not supported")
    async def test_symlink_outside_root_is_skipped(self):
        open(os.path.join(self.outside, "secret.jpg"), "w").close()
        os.symlink(os.path.join(self.outside, "secret.jpg"), os.path.join(self.root, "link.jpg"))
        items = await self.engine.expand_folder(self._query(FolderPathComponent(id=".")))
        self.assertNotIn("link.jpg", [i.title for i in items])


if __name__ == "__main__":
    unittest.main()
