#!/usr/bin/env python3
"""Render the Cornell box scene.

Builds the Cornell box, renders it progressively and rewrites the output
image every few samples, so the file can be watched while it converges.

Usage:
    python -m examples.render_cornell_box [options]

Options:
    --size SIZE         Image width and height in pixels (default: 256)
    --samples SAMPLES   Number of samples per pixel (default: 64)
    --output OUTPUT     Output file path, .ppm or .png (default: cornell_box.ppm)
    --flush-every N     Samples between output updates (default: 8)
    --max-depth DEPTH   Recursion budget (default: 8)
    --preview           Use quick point-light shading on the walls
    --arch ARCH         Taichi backend: cpu, gpu, cuda, vulkan (default: cpu)
    --quiet             Suppress progress output

Example:
    python -m examples.render_cornell_box --size 128 --samples 32 --output box.png
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from src.prismtrace.core.config import DEFAULT_MAX_DEPTH, RenderConfig, init_taichi


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the Cornell box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--size", type=int, default=256, help="Image width and height (default: 256)")
    parser.add_argument("--samples", type=int, default=64, help="Samples per pixel (default: 64)")
    parser.add_argument(
        "--output",
        type=str,
        default="cornell_box.ppm",
        help="Output file path, .ppm or .png (default: cornell_box.ppm)",
    )
    parser.add_argument("--flush-every", type=int, default=8, help="Samples between output updates (default: 8)")
    parser.add_argument(
        "--max-depth",
        type=int,
        default=DEFAULT_MAX_DEPTH,
        help=f"Recursion budget (default: {DEFAULT_MAX_DEPTH})",
    )
    parser.add_argument("--preview", action="store_true", help="Quick point-light shading on the walls")
    parser.add_argument("--arch", type=str, default="cpu", help="Taichi backend (default: cpu)")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_cornell_box(
    config: RenderConfig,
    output_path: str = "cornell_box.ppm",
    preview: bool = False,
    quiet: bool = False,
) -> Path:
    """Render the Cornell box scene and save to file.

    Args:
        config: Render configuration; its camera is replaced by the scene's.
        output_path: Output file path (.ppm or .png).
        preview: Shade the walls with quick-reflect materials.
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from dataclasses import replace

    from src.prismtrace.core.progressive import ProgressiveRenderer
    from src.prismtrace.preview.export import writer_for_path
    from src.prismtrace.scene.cornell_box import CornellBoxParams, create_cornell_box_scene

    if not quiet:
        print(f"Creating Cornell box scene ({config.width}x{config.height})...")

    scene, camera = create_cornell_box_scene(
        params=CornellBoxParams(quick_preview=preview),
        image_size=config.width,
    )
    config = replace(config, camera=camera)

    output_file = Path(output_path)
    renderer = ProgressiveRenderer(scene, config, writer=writer_for_path(output_file))

    if not quiet:
        print(f"Rendering {config.num_samples} samples per pixel...")

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            done = current - config.sample_start
            samples_per_sec = done / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples - {samples_per_sec:.2f} spp/s",
                end="",
                flush=True,
            )

    renderer.run(callback=progress_callback)

    if not quiet:
        print()
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    try:
        config = RenderConfig(
            width=args.size,
            height=args.size,
            sample_end=args.samples,
            max_depth=args.max_depth,
            flush_every=args.flush_every,
            arch=args.arch,
        )
        init_taichi(config)
        render_cornell_box(config, output_path=args.output, preview=args.preview, quiet=args.quiet)
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
