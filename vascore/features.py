from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple
import logging

import numpy as np
from tqdm import tqdm

from .config import EngineConfig
from .errors import AliasError, ProfileError, UnsupportedWatcherError
from .geometry import Rect, resolve_zone_geometry, to_cv_rect
from .pause import PauseLedger, TimeLike, to_ticks
from .preprocess import PixelBudget, has_alpha, preprocess_image, transparency_rate
from .profile import ColorSpace, ErrorMetric, GameProfile, Geometry, Watcher, WatcherType
from .registry import NameRegistry, alias_names

logger = logging.getLogger(__name__)

@dataclass
class CWatchImage:
    name: str
    file_name: str
    index: int
    image: Optional[np.ndarray]
    has_alpha: bool = False
    transparency_rate: float = 0.0

    @classmethod
    def from_pixels(cls, name: str, file_name: str, index: int, image: np.ndarray) -> "CWatchImage":
        return cls(name, file_name, index, image, has_alpha(image), transparency_rate(image))

    def is_paused(self, ledger: PauseLedger, at: TimeLike) -> bool:
        return ledger.is_paused(self.index, at)

    def release(self) -> None:
        self.image = None

@dataclass
class CWatcher:
    name: str
    watcher_type: WatcherType
    color_space: ColorSpace
    channel: int
    equalize: bool
    error_metric: ErrorMetric
    images: Tuple[CWatchImage, ...] = ()

    @classmethod
    def from_watcher(cls, watcher: Watcher, images: List[CWatchImage]) -> "CWatcher":
        return cls(watcher.name, watcher.watcher_type, watcher.color_space, watcher.channel,
                   watcher.equalize, watcher.error_metric, tuple(images))

    @property
    def is_standard(self) -> bool:
        return self.watcher_type is WatcherType.STANDARD

    @property
    def is_duplicate_frame(self) -> bool:
        return self.watcher_type is WatcherType.DUPLICATE_FRAME

    def is_paused(self, ledger: PauseLedger, at: TimeLike) -> bool:
        now = to_ticks(at)
        return all(img.is_paused(ledger, now) for img in self.images)

    def release(self) -> None:
        for img in self.images:
            img.release()

@dataclass
class CWatchZone:
    name: str
    geometry: Geometry
    rect: Rect
    watchers: Tuple[CWatcher, ...] = ()

    def is_paused(self, ledger: PauseLedger, at: TimeLike) -> bool:
        now = to_ticks(at)
        return all(w.is_paused(ledger, now) for w in self.watchers)

    def release(self) -> None:
        for w in self.watchers:
            w.release()

@dataclass
class CompiledFeatureStore:
    """Published snapshot of every compiled zone, watcher and image.

    The store owns the image buffers and the pause ledger for its index space.
    ``close()`` drops the buffers; a closed store must not be scanned.
    ``has_dupe_check`` is reserved: duplicate-frame watchers are rejected by
    :func:`build_store`, so a built store always reports ``False``.
    """
    zones: Tuple[CWatchZone, ...]
    registry: NameRegistry
    ledger: PauseLedger
    pixel_count: int = 0
    pixel_limit: int = 0
    has_dupe_check: bool = False
    warnings: List[str] = field(default_factory=list)
    closed: bool = False

    def __post_init__(self):
        self._images = tuple(img for z in self.zones for w in z.watchers for img in w.images)

    @property
    def feature_count(self) -> int:
        return len(self._images)

    @property
    def index_names(self):
        return self.registry.as_dict()

    def images(self) -> Iterator[CWatchImage]:
        return iter(self._images)

    def watchers(self) -> Iterator[Tuple[CWatchZone, CWatcher]]:
        for z in self.zones:
            for w in z.watchers:
                yield z, w

    def feature(self, index: int) -> CWatchImage:
        if not 0 <= index < len(self._images):
            raise IndexError(f"Feature index {index} out of range [0, {len(self._images)})")
        return self._images[index]

    def resolve(self, name: str) -> int:
        return self.registry.resolve(name)

    def is_feature_paused(self, index: int, at: TimeLike) -> bool:
        return self.ledger.is_paused(index, at)

    def is_zone_paused(self, name: str, at: TimeLike) -> bool:
        zones = [z for z in self.zones if z.name == name]
        if not zones:
            raise AliasError(name)
        now = to_ticks(at)
        return all(z.is_paused(self.ledger, now) for z in zones)

    def is_watcher_paused(self, name: str, at: TimeLike) -> bool:
        watchers = [w for _, w in self.watchers() if w.name == name]
        if not watchers:
            raise AliasError(name)
        now = to_ticks(at)
        return all(w.is_paused(self.ledger, now) for w in watchers)

    def is_all_paused(self, at: TimeLike) -> bool:
        now = to_ticks(at)
        return all(z.is_paused(self.ledger, now) for z in self.zones)

    def feature_table(self) -> List[dict]:
        rows = []
        for z in self.zones:
            for w in z.watchers:
                for img in w.images:
                    shape = img.image.shape if img.image is not None else (0, 0)
                    rows.append({
                        "index": img.index, "zone": z.name, "watcher": w.name,
                        "image": img.name, "file_name": img.file_name,
                        "width": int(shape[1]), "height": int(shape[0]),
                        "channels": 1 if len(shape) == 2 else int(shape[2]),
                        "color_space": w.color_space.value, "error_metric": w.error_metric.value,
                        "has_alpha": img.has_alpha,
                        "transparency_rate": round(img.transparency_rate, 4),
                    })
        return rows

    def alias_table(self) -> List[dict]:
        return [{"alias": k, "index": v} for k, v in sorted(self.index_names.items())]

    def close(self) -> None:
        if self.closed:
            return
        for z in self.zones:
            z.release()
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

def build_store(profile: GameProfile, pixel_limit: Optional[int] = None,
                config: Optional[EngineConfig] = None) -> CompiledFeatureStore:
    """Compile ``profile`` into a new store without touching any published one.

    Indices follow profile traversal order (zone, watcher, image). On failure the
    buffers built so far are released and the error propagates.
    """
    config = config or EngineConfig()
    budget = PixelBudget(limit=config.pixel_limit if pixel_limit is None else pixel_limit)
    registry = NameRegistry()
    built: List[CWatchImage] = []
    zones: List[CWatchZone] = []

    pbar = tqdm(total=profile.image_count, desc="Compiling", unit="image", disable=not config.progress)
    try:
        for watch_zone in profile.watch_zones:
            geo = resolve_zone_geometry(watch_zone)
            rect = to_cv_rect(geo)
            watchers: List[CWatcher] = []

            for watcher in watch_zone.watchers:
                if watcher.watcher_type is WatcherType.STANDARD:
                    images: List[CWatchImage] = []
                    for wi in watcher.watch_images:
                        index = len(built)
                        pixels = preprocess_image(wi.load(), rect, watcher, budget, config.interpolation)
                        cwi = CWatchImage.from_pixels(wi.name, wi.file_name, index, pixels)
                        built.append(cwi)
                        images.append(cwi)
                        registry.register(index, alias_names(watch_zone.name, watcher.name, wi.file_name))
                        pbar.update(1)
                    watchers.append(CWatcher.from_watcher(watcher, images))
                elif watcher.watcher_type is WatcherType.DUPLICATE_FRAME:
                    raise UnsupportedWatcherError(
                        f"Watcher '{watcher.name}' in zone '{watch_zone.name}': "
                        f"duplicate-frame watchers are not implemented")
                else:
                    raise ProfileError(
                        f"Watcher '{watcher.name}' in zone '{watch_zone.name}' has no valid type: "
                        f"{watcher.watcher_type!r}")

            zones.append(CWatchZone(watch_zone.name, geo, rect, tuple(watchers)))
    except BaseException:
        for cwi in built:
            cwi.release()
        raise
    finally:
        pbar.close()

    zones = budget.enforce(zones)
    feature_count = len(built)
    warnings = registry.validate(feature_count)
    store = CompiledFeatureStore(
        zones=tuple(zones), registry=registry, ledger=PauseLedger(feature_count),
        pixel_count=budget.count, pixel_limit=budget.limit, warnings=warnings,
    )
    logger.info("Compiled %d features in %d zones (%d pixels)", feature_count, len(zones), budget.count)
    return store
