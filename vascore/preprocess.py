from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import numpy as np
import cv2

from .config import INIT_PIXEL_LIMIT
from .geometry import Rect, crop_region
from .profile import ColorSpace, Watcher

logger = logging.getLogger(__name__)

_FROM_BGR = {
    ColorSpace.RGB: cv2.COLOR_BGR2RGB,
    ColorSpace.GRAY: cv2.COLOR_BGR2GRAY,
    ColorSpace.HSV: cv2.COLOR_BGR2HSV,
    ColorSpace.HLS: cv2.COLOR_BGR2HLS,
    ColorSpace.LAB: cv2.COLOR_BGR2LAB,
    ColorSpace.YCRCB: cv2.COLOR_BGR2YCrCb,
}

def has_alpha(img: np.ndarray) -> bool:
    return img.ndim == 3 and img.shape[2] in (2, 4)

def _split_alpha(img: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    if not has_alpha(img):
        return img, None
    color = img[..., :-1]
    if color.shape[2] == 1:
        color = color[..., 0]
    return np.ascontiguousarray(color), np.ascontiguousarray(img[..., -1])

def _join_alpha(color: np.ndarray, alpha: Optional[np.ndarray]) -> np.ndarray:
    return color if alpha is None else np.dstack((color, alpha))

def convert_color_space(img: np.ndarray, color_space: ColorSpace) -> np.ndarray:
    """Convert a BGR (or grayscale) buffer, keeping any alpha channel last."""
    color, alpha = _split_alpha(img)
    if color_space is ColorSpace.GRAY:
        if color.ndim == 3:
            color = cv2.cvtColor(color, cv2.COLOR_BGR2GRAY)
        return _join_alpha(color, alpha)
    if color.ndim == 2:
        color = cv2.cvtColor(color, cv2.COLOR_GRAY2BGR)
    if color_space is not ColorSpace.BGR:
        color = cv2.cvtColor(color, _FROM_BGR[color_space])
    return _join_alpha(color, alpha)

def extract_channel(img: np.ndarray, channel: int) -> np.ndarray:
    if channel < 0:
        return img
    channels = cv2.split(img) if img.ndim == 3 else (img,)
    if channel >= len(channels):
        raise IndexError(f"Channel {channel} out of range for a {len(channels)}-channel image")
    return channels[channel]

def standard_resize(img: np.ndarray, rect: Rect, interpolation: int = cv2.INTER_AREA) -> np.ndarray:
    # aspect ratio ignored, output is exactly w x h
    _, _, w, h = rect
    return cv2.resize(img, (w, h), interpolation=interpolation)

def equalize(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.equalizeHist(img)
    color, alpha = _split_alpha(img)
    if color.ndim == 2:
        color = cv2.equalizeHist(color)
    else:
        color = cv2.merge([cv2.equalizeHist(c) for c in cv2.split(color)])
    return _join_alpha(color, alpha)

def transparency_rate(img: np.ndarray) -> float:
    if not has_alpha(img):
        return 0.0
    return 1.0 - float(np.mean(img[..., -1])) / 255.0

@dataclass
class PixelBudget:
    limit: int = INIT_PIXEL_LIMIT
    count: int = 0

    def add(self, img: np.ndarray) -> int:
        self.count += int(img.shape[0]) * int(img.shape[1])
        return self.count

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit

    def enforce(self, zones):
        """Downscale hook for stores over budget. Reference images are kept as-is for now."""
        if self.exceeded:
            logger.info("Compiled pixel count %d exceeds limit %d; images kept at full size",
                        self.count, self.limit)
        return zones

def preprocess_image(image: np.ndarray, rect: Rect, watcher: Watcher,
                     budget: Optional[PixelBudget] = None,
                     interpolation: int = cv2.INTER_AREA) -> np.ndarray:
    img = convert_color_space(image, watcher.color_space)
    img = extract_channel(img, watcher.channel)
    img = standard_resize(img, rect, interpolation)
    if watcher.equalize:
        img = equalize(img)
    if budget is not None:
        budget.add(img)
    return img

def prepare_region(frame_bgr: np.ndarray, rect: Rect, watcher: Watcher) -> np.ndarray:
    """Bring a live frame crop into the same representation as the compiled reference."""
    img = crop_region(frame_bgr, rect)
    img = convert_color_space(img, watcher.color_space)
    img = extract_channel(img, watcher.channel)
    if watcher.equalize:
        img = equalize(img)
    return img
