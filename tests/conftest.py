import sys
from pathlib import Path

import numpy as np
import pytest

# Add repository root to sys.path so 'vascore' can be imported in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vascore.profile import (GameProfile, Geometry, Screen, WatchImage, WatchZone,  # noqa: E402
                             Watcher, WatcherType)


def solid(h, w, value=128, channels=3):
    shape = (h, w) if channels == 1 else (h, w, channels)
    return np.full(shape, value, dtype=np.uint8)


@pytest.fixture
def screen():
    return Screen("Main", Geometry(0, 0, 1920, 1080),
                  game_geometry=Geometry(0, 0, 800, 600),
                  crop_geometry=Geometry(0, 0, 400, 300))


@pytest.fixture
def make_profile(screen):
    """Build a profile from {zone: {watcher: [file names]}}; every zone covers the full game area."""
    def _make(layout, watcher_type=WatcherType.STANDARD, **watcher_kwargs):
        zones = []
        for zname, watchers in layout.items():
            ws = []
            for wname, files in watchers.items():
                images = [WatchImage(name=f.rsplit(".", 1)[0], file_name=f, image=solid(60, 80, 40 + i))
                          for i, f in enumerate(files)]
                ws.append(Watcher(wname, watcher_type=watcher_type, watch_images=images, **watcher_kwargs))
            zones.append(WatchZone(zname, screen, Geometry(0, 0, 800, 600), watchers=ws))
        return GameProfile("Test", screens=[screen], watch_zones=zones)
    return _make


@pytest.fixture
def simple_profile(make_profile):
    return make_profile({"Zone": {"Watcher": ["image.png"]}})
