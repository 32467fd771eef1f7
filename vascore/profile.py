from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Dict, List, Optional

import cv2
import numpy as np

from .errors import ProfileError


class Anchor(IntFlag):
    CENTER = 0
    TOP = 1
    BOTTOM = 2
    LEFT = 4
    RIGHT = 8
    TOP_LEFT = TOP | LEFT
    TOP_RIGHT = TOP | RIGHT
    BOTTOM_LEFT = BOTTOM | LEFT
    BOTTOM_RIGHT = BOTTOM | RIGHT


class ScaleType(Enum):
    NONE = "none"
    SCALE = "scale"


class WatcherType(Enum):
    UNSET = "unset"
    STANDARD = "standard"
    DUPLICATE_FRAME = "duplicate_frame"


class ColorSpace(Enum):
    BGR = "bgr"
    RGB = "rgb"
    GRAY = "gray"
    HSV = "hsv"
    HLS = "hls"
    LAB = "lab"
    YCRCB = "ycrcb"


class ErrorMetric(Enum):
    ABSOLUTE = "absolute"
    MEAN_ABSOLUTE = "mean_absolute"
    MEAN_SQUARED = "mean_squared"
    ROOT_MEAN_SQUARED = "root_mean_squared"
    PEAK_SIGNAL_TO_NOISE = "peak_signal_to_noise"
    NORMALIZED_CROSS_CORRELATION = "normalized_cross_correlation"


@dataclass(frozen=True)
class Geometry:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    anchor: Anchor = Anchor.TOP_LEFT

    @property
    def has_size(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass
class WatchImage:
    name: str
    file_name: str
    image: Optional[np.ndarray] = None
    path: Optional[str] = None

    def load(self) -> np.ndarray:
        """Return the raw 8-bit pixels, reading ``path`` when no buffer is attached."""
        img = self.image
        if img is None:
            if self.path is None:
                raise ProfileError(f"Watch image '{self.name}' has neither pixels nor a path")
            img = cv2.imread(self.path, cv2.IMREAD_UNCHANGED)
            if img is None:
                raise ProfileError(f"Cannot read watch image: {self.path}")
        if img.dtype == np.uint16:
            img = (img >> 8).astype(np.uint8)
        elif img.dtype != np.uint8:
            raise ProfileError(f"Watch image '{self.name}' has unsupported dtype {img.dtype}")
        return img


@dataclass
class Watcher:
    name: str
    watcher_type: WatcherType = WatcherType.STANDARD
    color_space: ColorSpace = ColorSpace.BGR
    channel: int = -1
    equalize: bool = False
    error_metric: ErrorMetric = ErrorMetric.MEAN_SQUARED
    watch_images: List[WatchImage] = field(default_factory=list)


@dataclass
class Screen:
    name: str
    geometry: Geometry
    game_geometry: Geometry = field(default_factory=Geometry)
    crop_geometry: Geometry = field(default_factory=Geometry)


@dataclass
class WatchZone:
    name: str
    screen: Screen
    geometry: Geometry
    scale: ScaleType = ScaleType.NONE
    watchers: List[Watcher] = field(default_factory=list)


@dataclass
class GameProfile:
    name: str
    screens: List[Screen] = field(default_factory=list)
    watch_zones: List[WatchZone] = field(default_factory=list)
    settings: Dict[str, object] = field(default_factory=dict)

    @property
    def image_count(self) -> int:
        return sum(len(w.watch_images) for z in self.watch_zones for w in z.watchers)
