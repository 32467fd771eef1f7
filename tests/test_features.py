"""
Tests for compiling a profile into a feature store.

Run: pytest tests/test_features.py -v
"""

from datetime import datetime, timedelta

import cv2
import numpy as np
import pytest

from conftest import solid
from vascore.errors import AmbiguousAliasError, ProfileError, UnsupportedWatcherError
from vascore.features import build_store
from vascore.preprocess import prepare_region
from vascore.profile import (ColorSpace, GameProfile, Geometry, Screen, WatchImage, WatchZone, Watcher,
                             WatcherType)
from vascore.registry import AMBIGUOUS

NOW = datetime(2024, 1, 1, 12, 0, 0)


class TestConcreteScenario:

    def test_single_feature_profile(self, simple_profile):
        store = build_store(simple_profile)
        assert store.feature_count == 1
        assert store.pixel_count == 400 * 300
        assert not store.has_dupe_check
        assert store.feature(0).image.shape[:2] == (300, 400)
        aliases = ["Zone", "Zone/Watcher", "Watcher", "Zone/Watcher/image.png",
                   "Zone/image.png", "Watcher/image.png", "image.png"]
        assert dict(store.index_names) == {a: 0 for a in aliases}
        assert store.zones[0].rect == (0, 0, 400, 300)
        assert store.warnings == []

    def test_fresh_feature_not_paused(self, simple_profile):
        store = build_store(simple_profile)
        assert not store.is_feature_paused(0, NOW)
        assert not store.is_all_paused(NOW)


class TestIndexing:

    def test_feature_count_and_traversal_order(self, make_profile):
        profile = make_profile({
            "A": {"w1": ["a.png", "b.png"], "w2": ["c.png"]},
            "B": {"w3": ["d.png"]},
        })
        store = build_store(profile)
        assert store.feature_count == profile.image_count == 4
        assert [f.index for f in store.images()] == [0, 1, 2, 3]
        assert [f.file_name for f in store.images()] == ["a.png", "b.png", "c.png", "d.png"]
        assert len(store.ledger) == 4

    def test_stable_across_compiles(self, make_profile):
        layout = {"A": {"w1": ["a.png", "b.png"]}, "B": {"w2": ["c.png"]}}
        first = build_store(make_profile(layout))
        second = build_store(make_profile(layout))
        assert [(f.index, f.file_name) for f in first.images()] == \
               [(f.index, f.file_name) for f in second.images()]
        assert dict(first.index_names) == dict(second.index_names)

    def test_colliding_names(self, make_profile):
        store = build_store(make_profile({"Castle": {"split": ["boss"]}, "Tower": {"end": ["boss"]}}))
        assert store.index_names["boss"] == AMBIGUOUS
        with pytest.raises(AmbiguousAliasError):
            store.resolve("boss")
        assert store.resolve("Castle/split/boss") == 0
        assert store.resolve("Tower/end/boss") == 1

    def test_unreachable_feature_is_a_warning(self, make_profile):
        store = build_store(make_profile({"Z": {"W": ["same.png", "same.png"]}}))
        assert store.feature_count == 2
        assert len(store.warnings) == 2


class TestWatcherTypes:

    def test_duplicate_frame_not_implemented(self, make_profile):
        profile = make_profile({"Z": {"W": ["a.png"]}}, watcher_type=WatcherType.DUPLICATE_FRAME)
        with pytest.raises(UnsupportedWatcherError) as exc:
            build_store(profile)
        assert isinstance(exc.value, NotImplementedError)

    def test_standard_only_store_has_no_dupe_check(self, simple_profile):
        store = build_store(simple_profile)
        assert store.has_dupe_check is False

    def test_unset_type_is_profile_error(self, make_profile):
        profile = make_profile({"Z": {"W": ["a.png"]}}, watcher_type=WatcherType.UNSET)
        with pytest.raises(ProfileError) as exc:
            build_store(profile)
        assert not isinstance(exc.value, UnsupportedWatcherError)

    def test_bad_channel_aborts(self, make_profile):
        with pytest.raises(IndexError):
            build_store(make_profile({"Z": {"W": ["a.png"]}}, channel=5))


class TestImages:

    def test_preprocessing_applied(self, make_profile):
        profile = make_profile({"Z": {"W": ["a.png"]}}, color_space=ColorSpace.GRAY)
        store = build_store(profile)
        assert store.feature(0).image.shape == (300, 400)

    def test_alpha_metadata(self, screen):
        img = np.zeros((10, 10, 4), dtype=np.uint8)
        w = Watcher("W", watch_images=[WatchImage("a", "a.png", image=img)])
        profile = GameProfile("P", [screen], [WatchZone("Z", screen, Geometry(0, 0, 800, 600), watchers=[w])])
        f = build_store(profile).feature(0)
        assert f.has_alpha
        assert f.transparency_rate == pytest.approx(1.0)

    def test_image_loaded_from_path(self, screen, tmp_path):
        path = tmp_path / "a.png"
        cv2.imwrite(str(path), solid(20, 20, 90))
        w = Watcher("W", watch_images=[WatchImage("a", "a.png", path=str(path))])
        profile = GameProfile("P", [screen], [WatchZone("Z", screen, Geometry(0, 0, 800, 600), watchers=[w])])
        assert build_store(profile).feature(0).image.shape == (300, 400, 3)

    def test_off_frame_zone_matches_live_region(self):
        full = Geometry(0, 0, 800, 600)
        scr = Screen("Main", full, game_geometry=full, crop_geometry=full)
        w = Watcher("W", watch_images=[WatchImage("a", "a.png", image=solid(50, 100, 70))])
        zone = WatchZone("Z", scr, Geometry(-20, 0, 100, 50), watchers=[w])
        store = build_store(GameProfile("P", [scr], [zone]))
        rect = store.zones[0].rect
        assert rect == (-20, 0, 100, 50)
        live = prepare_region(solid(600, 800, 10), rect, w)
        assert live.shape == store.feature(0).image.shape == (50, 100, 3)

    def test_unreadable_path(self, screen, tmp_path):
        w = Watcher("W", watch_images=[WatchImage("a", "a.png", path=str(tmp_path / "missing.png"))])
        profile = GameProfile("P", [screen], [WatchZone("Z", screen, Geometry(0, 0, 800, 600), watchers=[w])])
        with pytest.raises(ProfileError):
            build_store(profile)


class TestDerivedPause:

    def test_zone_paused_only_when_every_feature_is(self, make_profile):
        store = build_store(make_profile({"A": {"w1": ["a.png", "b.png"]}, "B": {"w2": ["c.png"]}}))
        until = NOW + timedelta(minutes=1)
        store.ledger.pause(0, until)
        assert not store.is_zone_paused("A", NOW)
        store.ledger.pause(1, until)
        assert store.is_zone_paused("A", NOW)
        assert store.is_watcher_paused("w1", NOW)
        assert not store.is_all_paused(NOW)
        store.ledger.pause(2, until)
        assert store.is_all_paused(NOW)
        assert not store.is_all_paused(until)

    def test_empty_zone_counts_as_paused(self, screen):
        profile = GameProfile("P", [screen], [WatchZone("Empty", screen, Geometry(0, 0, 800, 600))])
        store = build_store(profile)
        assert store.feature_count == 0
        assert store.is_zone_paused("Empty", NOW)


class TestStoreLifecycle:

    def test_close_releases_buffers(self, simple_profile):
        store = build_store(simple_profile)
        store.close()
        assert store.closed
        assert store.feature(0).image is None
        store.close()

    def test_context_manager(self, simple_profile):
        with build_store(simple_profile) as store:
            assert store.feature(0).image is not None
        assert store.closed

    def test_tables(self, make_profile):
        store = build_store(make_profile({"Z": {"W": ["a.png", "b.png"]}}))
        rows = store.feature_table()
        assert [r["index"] for r in rows] == [0, 1]
        assert rows[0]["width"] == 400 and rows[0]["height"] == 300 and rows[0]["channels"] == 3
        aliases = store.alias_table()
        assert {"alias": "Z/W/b.png", "index": 1} in aliases
