from __future__ import annotations
import argparse
import logging
from pathlib import Path

import cv2
import pandas as pd

from .config import EngineConfig, INIT_PIXEL_LIMIT
from .engine import FeatureEngine
from .geometry import draw_zones
from .profile_io import load_profile

def write_debug_images(engine: FeatureEngine, out_dir: Path) -> int:
    debug = out_dir / "debug"
    debug.mkdir(parents=True, exist_ok=True)
    written = 0
    for f in engine.features():
        if f.image is None:
            continue
        cv2.imwrite(str(debug / f"feature_{f.index:03d}.png"), f.image)
        written += 1
    return written

def main(argv=None):
    ap = argparse.ArgumentParser(description="Compile a video auto splitter profile into comparison-ready features.")
    ap.add_argument("--profile", required=True)
    ap.add_argument("--out", default="out")
    ap.add_argument("--pixel-limit", type=int, default=INIT_PIXEL_LIMIT)
    ap.add_argument("--frame", default=None, help="Sample capture frame to draw the resolved zones on")
    ap.add_argument("--progress", action="store_true")
    ap.add_argument("--verbose", "-v", action="store_true")

    args = ap.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    out_dir = Path(args.out); out_dir.mkdir(parents=True, exist_ok=True)

    profile = load_profile(args.profile)
    cfg = EngineConfig(pixel_limit=args.pixel_limit, progress=args.progress)

    with FeatureEngine(cfg) as engine:
        result = engine.compile(profile)

        pd.DataFrame(engine.store.feature_table()).to_csv(out_dir / "features.csv", index=False)
        pd.DataFrame(engine.store.alias_table()).to_csv(out_dir / "aliases.csv", index=False)
        written = write_debug_images(engine, out_dir)

        if args.frame:
            frame = cv2.imread(args.frame)
            if frame is None:
                raise RuntimeError(f"Cannot read frame: {args.frame}")
            cv2.imwrite(str(out_dir / "debug" / "zones.png"), draw_zones(frame, engine.zones()))

        print("\n=== DONE ===")
        print(f"Profile: {profile.name}")
        print(f"Features: {result.feature_count}  Pixels: {result.pixel_count}/{args.pixel_limit}")
        print(f"Zones: {len(engine.zones())}  Aliases: {len(result.index_names)}")
        print(f"Warnings: {len(result.warnings)}")
        print(f"Debug images: {written}")
        print(f"Outputs written to: {out_dir.resolve()}")
    return 0

if __name__ == "__main__":
    main()
