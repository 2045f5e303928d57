#!/usr/bin/env python3
"""Render the dispersion test scene.

A dispersive glass prism splits the light of a spherical lamp into colored
fringes on the floor behind it.

Usage:
    python -m examples.render_prism [--size SIZE] [--samples N] [--output PATH]

Example:
    python -m examples.render_prism --size 160 --samples 128 --output prism.png
"""

from __future__ import annotations

import argparse
import sys
import time
from dataclasses import replace

from src.prismtrace.core.config import RenderConfig, init_taichi


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Render the dispersion test scene.")
    parser.add_argument("--size", type=int, default=200, help="Image width and height (default: 200)")
    parser.add_argument("--samples", type=int, default=128, help="Samples per pixel (default: 128)")
    parser.add_argument("--output", type=str, default="prism.ppm", help="Output path (default: prism.ppm)")
    parser.add_argument("--flush-every", type=int, default=16, help="Samples between output updates")
    parser.add_argument("--arch", type=str, default="cpu", help="Taichi backend (default: cpu)")
    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()

    try:
        config = RenderConfig(
            width=args.size,
            height=args.size,
            sample_end=args.samples,
            flush_every=args.flush_every,
            arch=args.arch,
        )
        init_taichi(config)

        from src.prismtrace.core.progressive import ProgressiveRenderer
        from src.prismtrace.preview.export import writer_for_path
        from src.prismtrace.scene.prism import create_prism_scene

        scene, camera = create_prism_scene(image_size=args.size)
        renderer = ProgressiveRenderer(
            scene,
            replace(config, camera=camera),
            writer=writer_for_path(args.output),
        )

        start_time = time.time()
        for current, target in renderer.render_progressive(config.num_samples, batch_size=args.flush_every):
            print(f"  {current}/{target} samples ({time.time() - start_time:.1f}s)")
        print(f"Saved to: {args.output}")
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
