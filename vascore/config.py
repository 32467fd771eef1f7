from dataclasses import dataclass

import cv2

INIT_PIXEL_LIMIT = 16777216

@dataclass
class EngineConfig:
    pixel_limit: int = INIT_PIXEL_LIMIT
    drain_timeout: float = 5.0  # seconds
    progress: bool = False
    interpolation: int = cv2.INTER_AREA
