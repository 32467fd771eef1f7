from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Union
import json
import logging

from .errors import ProfileError
from .profile import (Anchor, ColorSpace, ErrorMetric, GameProfile, Geometry, ScaleType,
                      Screen, WatchImage, WatchZone, Watcher, WatcherType)
from .settings import parse_setting

logger = logging.getLogger(__name__)

def parse_geometry(raw: Any) -> Geometry:
    if raw is None:
        return Geometry()
    if isinstance(raw, (list, tuple)):
        if len(raw) != 4:
            raise ProfileError(f"Geometry needs [x, y, width, height], got {raw!r}")
        x, y, w, h = (float(v) for v in raw)
        return Geometry(x, y, w, h)
    try:
        anchor = Anchor[str(raw.get("anchor", "top_left")).upper()]
    except KeyError:
        raise ProfileError(f"Unknown anchor: {raw.get('anchor')!r}") from None
    return Geometry(float(raw.get("x", 0)), float(raw.get("y", 0)),
                    float(raw.get("width", 0)), float(raw.get("height", 0)), anchor)

def _enum(cls, value, default):
    if value is None:
        return default
    try:
        return cls(str(value).lower())
    except ValueError:
        raise ProfileError(f"Unknown {cls.__name__}: {value!r}") from None

def _watcher(raw: Dict[str, Any], base: Path) -> Watcher:
    images = [WatchImage(name=i.get("name") or Path(i["file"]).stem, file_name=i["file"],
                         path=str(base / i["file"]))
              for i in raw.get("images", [])]
    return Watcher(
        name=raw["name"],
        watcher_type=_enum(WatcherType, raw.get("type"), WatcherType.UNSET),
        color_space=_enum(ColorSpace, raw.get("color_space"), ColorSpace.BGR),
        channel=int(raw.get("channel", -1)),
        equalize=bool(raw.get("equalize", False)),
        error_metric=_enum(ErrorMetric, raw.get("error_metric"), ErrorMetric.MEAN_SQUARED),
        watch_images=images,
    )

def profile_from_dict(data: Dict[str, Any], base_dir: Union[str, Path] = ".") -> GameProfile:
    base = Path(base_dir)
    screens = {}
    for s in data.get("screens", []):
        screens[s["name"]] = Screen(
            name=s["name"],
            geometry=parse_geometry(s.get("geometry")),
            game_geometry=parse_geometry(s.get("game_geometry")),
            crop_geometry=parse_geometry(s.get("crop_geometry")),
        )

    zones = []
    for z in data.get("watch_zones", []):
        screen = screens.get(z.get("screen"))
        if screen is None:
            raise ProfileError(f"Watch zone '{z.get('name')}' references unknown screen {z.get('screen')!r}")
        zones.append(WatchZone(
            name=z["name"],
            screen=screen,
            geometry=parse_geometry(z.get("geometry")),
            scale=_enum(ScaleType, z.get("scale"), ScaleType.NONE),
            watchers=[_watcher(w, base) for w in z.get("watchers", [])],
        ))

    settings = {key: parse_setting(s["type"], str(s["value"]))
                for key, s in data.get("settings", {}).items()}

    return GameProfile(name=data.get("name", ""), screens=list(screens.values()),
                       watch_zones=zones, settings=settings)

def load_profile(path: Union[str, Path]) -> GameProfile:
    p = Path(path)
    logger.info("Loading game profile: %s", p)
    with open(p, "r", encoding="utf-8") as f:
        data = json.load(f)
    profile = profile_from_dict(data, p.parent)
    if not profile.name:
        profile.name = p.stem
    return profile
