from __future__ import annotations
from dataclasses import replace
from typing import Iterable, Tuple
import logging

import numpy as np
import cv2

from .errors import ProfileError
from .profile import Anchor, Geometry, ScaleType, Screen, WatchZone

logger = logging.getLogger(__name__)

Rect = Tuple[int, int, int, int]

def game_geometry_of(screen: Screen) -> Geometry:
    return screen.game_geometry if screen.game_geometry.has_size else screen.geometry

def without_scale(geo: Geometry, scale: ScaleType, game: Geometry) -> Geometry:
    if scale is ScaleType.SCALE:
        return replace(geo, x=geo.x * game.width, y=geo.y * game.height,
                       width=geo.width * game.width, height=geo.height * game.height)
    return geo

def _unanchor(offset: float, size: float, extent: float, start: bool, end: bool) -> float:
    if start:
        return offset
    if end:
        return extent + offset - size
    return extent / 2.0 + offset - size / 2.0

def remove_anchor(geo: Geometry, game: Geometry) -> Geometry:
    """Convert an anchor-relative offset into absolute game-space coordinates."""
    a = geo.anchor
    x = _unanchor(geo.x, geo.width, game.width, bool(a & Anchor.LEFT), bool(a & Anchor.RIGHT))
    y = _unanchor(geo.y, geo.height, game.height, bool(a & Anchor.TOP), bool(a & Anchor.BOTTOM))
    return replace(geo, x=x, y=y, anchor=Anchor.TOP_LEFT)

def resize_to(geo: Geometry, new: Geometry, old: Geometry) -> Geometry:
    fx = new.width / old.width
    fy = new.height / old.height
    return replace(geo, x=geo.x * fx, y=geo.y * fy, width=geo.width * fx, height=geo.height * fy)

def translate(geo: Geometry, dx: float, dy: float) -> Geometry:
    return replace(geo, x=geo.x + dx, y=geo.y + dy)

def resolve_zone_geometry(zone: WatchZone) -> Geometry:
    """Crop-space rectangle of a watch zone.

    Order matters: scale is stripped against the game geometry, the anchor is
    removed, the absolute rectangle is rescaled into crop space and finally
    moved by the crop origin.
    """
    screen = zone.screen
    game = game_geometry_of(screen)
    if not game.has_size:
        raise ProfileError(f"Screen '{screen.name}' of zone '{zone.name}' has no geometry")
    crop = screen.crop_geometry if screen.crop_geometry.has_size else game
    geo = without_scale(zone.geometry, zone.scale, game)
    geo = remove_anchor(geo, game)
    geo = resize_to(geo, crop, game)
    return translate(geo, crop.x, crop.y)

def to_cv_rect(geo: Geometry) -> Rect:
    x = int(round(geo.x)); y = int(round(geo.y))
    w = int(round(geo.width)); h = int(round(geo.height))
    if w < 1 or h < 1:
        logger.warning("Zone geometry %r has no area; using a %dx%d rectangle", geo, max(1, w), max(1, h))
    return (x, y, max(1, w), max(1, h))

def clamp_rect(rect: Rect, frame_shape) -> Rect:
    fh, fw = frame_shape[:2]
    x, y, w, h = rect
    x0 = min(fw, max(0, x))
    y0 = min(fh, max(0, y))
    x1 = max(x0, min(fw, x + w))
    y1 = max(y0, min(fh, y + h))
    return (x0, y0, x1 - x0, y1 - y0)

def crop_region(frame: np.ndarray, rect: Rect) -> np.ndarray:
    """Frame pixels under ``rect``, zero-padded to exactly ``(h, w)`` where it leaves the frame."""
    x, y, w, h = rect
    cx, cy, cw, ch = clamp_rect(rect, frame.shape)
    if cw == 0 or ch == 0:
        return np.zeros((h, w) + frame.shape[2:], dtype=frame.dtype)
    region = frame[cy:cy+ch, cx:cx+cw]
    if (cw, ch) == (w, h):
        return region
    top, left = cy - y, cx - x
    return cv2.copyMakeBorder(region, top, h - ch - top, left, w - cw - left,
                              cv2.BORDER_CONSTANT, value=0)

def draw_zones(frame_bgr: np.ndarray, zones: Iterable) -> np.ndarray:
    out = frame_bgr.copy()
    for z in zones:
        x, y, w, h = z.rect
        cv2.rectangle(out, (x, y), (x+w, y+h), (0, 255, 255), 2)
        cv2.putText(out, z.name, (x, max(20, y-10)), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 255), 2, cv2.LINE_AA)
    return out
