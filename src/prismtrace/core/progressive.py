"""Progressive renderer for iterative sample accumulation.

Each sample is one kernel launch that traces a jittered primary ray per
pixel and blends the result into the running average, so after n samples
every pixel holds the mean of its n raw samples. Every `flush_every`
samples (and once at the end) a snapshot of the average is copied out of
the accumulation buffer, quantised to 8 bits and handed to the writer on a
single background thread, so file output never blocks the next sample.

The scene is frozen for the duration of a render; `stop()` ends a render
between two samples.

Example:
    >>> from src.prismtrace.core.config import RenderConfig, init_taichi
    >>> config = RenderConfig(width=128, height=128, sample_end=32, flush_every=8)
    >>> init_taichi(config)
    >>> from src.prismtrace.core.progressive import ProgressiveRenderer
    >>> from src.prismtrace.preview.export import PPMWriter
    >>> from src.prismtrace.scene.cornell_box import create_cornell_box_scene
    >>> scene, camera = create_cornell_box_scene()
    >>> renderer = ProgressiveRenderer(scene, config, writer=PPMWriter("box.ppm"))
    >>> renderer.run()
"""

import logging
import threading
import time
from collections.abc import Callable, Generator
from concurrent.futures import Future, ThreadPoolExecutor

import numpy as np
import numpy.typing as npt

from src.prismtrace.camera.screen import setup_camera
from src.prismtrace.core.config import RenderConfig
from src.prismtrace.core.integrator import (
    clear_render_target,
    configure_tracer,
    get_image_numpy,
    get_last_sample_numpy,
    load_image_numpy,
    render_sample,
    setup_render_target,
)
from src.prismtrace.preview.export import ImageWriter, image_to_uint8, writer_for_path
from src.prismtrace.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# Callback receives (current_samples, target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Renders a frozen scene into a running per-pixel average.

    Attributes:
        scene: The scene being rendered.
        config: Image size, sample range, tracer settings and camera.
        writer: Receives 8-bit snapshots on every flush, or None.
        gamma: Gamma applied when snapshots are quantised.
    """

    def __init__(
        self,
        scene: SceneManager,
        config: RenderConfig | None = None,
        writer: ImageWriter | None = None,
        gamma: float = 1.0,
    ) -> None:
        """Initialize the renderer and its render target.

        Raises:
            ValueError: If the scene has no primitives, the camera basis is
                degenerate or gamma is not positive.
        """
        if gamma <= 0.0:
            raise ValueError(f"gamma must be positive, got {gamma}")
        self.scene = scene
        self.config = config or RenderConfig()
        self.writer = writer
        self.gamma = gamma

        self.scene.validate()
        self._apply_settings()
        setup_render_target(self.config.width, self.config.height)

        # A nonzero sample_start continues an accumulation of that many samples
        self._sample_count = self.config.sample_start
        self._flush_count = 0
        self._stop_event = threading.Event()

    def _apply_settings(self) -> None:
        setup_camera(self.config.camera)
        configure_tracer(self.config.max_depth, self.config.epsilon)

    @property
    def width(self) -> int:
        """Get the image width."""
        return self.config.width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self.config.height

    @property
    def sample_count(self) -> int:
        """Get the current number of accumulated samples per pixel."""
        return self._sample_count

    @property
    def flush_count(self) -> int:
        """Number of snapshots handed to the writer so far."""
        return self._flush_count

    def reset(self) -> None:
        """Clear the accumulation buffers and restart at sample 0."""
        clear_render_target()
        self._sample_count = 0

    def resume(self, image: npt.NDArray[np.floating], sample_count: int) -> None:
        """Continue from a previous average of sample_count samples.

        Raises:
            ValueError: If the image does not match the render target.
        """
        load_image_numpy(image, sample_count)
        self._sample_count = sample_count

    def stop(self) -> None:
        """Ask a running render to stop before its next sample.

        Safe to call from another thread or from a progress callback.
        """
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        """Whether the last render was ended by stop()."""
        return self._stop_event.is_set()

    # =========================================================================
    # Rendering
    # =========================================================================

    def run(self, callback: ProgressCallback | None = None) -> None:
        """Render the remaining samples of the configured range."""
        self.render_range(self._sample_count, max(self._sample_count, self.config.sample_end), callback)

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add num_samples samples to the current accumulation.

        Args:
            num_samples: Number of samples to add.
            batch_size: Number of samples between callback invocations.
            callback: Optional callback called after each batch with
                (current_total_samples, target_total_samples).
        """
        if num_samples <= 0:
            return
        start = self._sample_count
        self.render_range(start, start + num_samples, callback, batch_size=batch_size)

    def render_range(
        self,
        sample_start: int,
        sample_end: int,
        callback: ProgressCallback | None = None,
        batch_size: int = 1,
    ) -> None:
        """Render the samples with indices in [sample_start, sample_end).

        Raises:
            ValueError: If the range does not continue the current
                accumulation, is reversed, or batch_size is below 1.
            RuntimeError: If the scene is modified from the callback.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        loop = self._render_loop(sample_start, sample_end)
        try:
            for current in loop:
                if callback is not None and (
                    (current - sample_start) % batch_size == 0 or current == sample_end
                ):
                    callback(current, sample_end)
        finally:
            loop.close()

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Render samples progressively, yielding progress after each batch.

        Yields:
            Tuple of (current_total_samples, target_total_samples).

        Example:
            >>> for current, target in renderer.render_progressive(100, batch_size=10):
            ...     print(f"Progress: {current}/{target} samples")
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if num_samples <= 0:
            return
        start = self._sample_count
        target = start + num_samples
        loop = self._render_loop(start, target)
        try:
            for current in loop:
                if (current - start) % batch_size == 0 or current == target:
                    yield (current, target)
        finally:
            loop.close()

    def _render_loop(self, sample_start: int, sample_end: int) -> Generator[int, None, None]:
        if sample_start != self._sample_count:
            raise ValueError(
                f"Sample range must continue the accumulation at {self._sample_count}, "
                f"got start {sample_start}"
            )
        if sample_end < sample_start:
            raise ValueError(f"Invalid sample range [{sample_start}, {sample_end})")

        self.scene.freeze()
        self._apply_settings()
        self._stop_event.clear()
        logger.info(
            "Rendering samples [%d, %d) at %dx%d",
            sample_start,
            sample_end,
            self.config.width,
            self.config.height,
        )

        render_start = time.perf_counter()
        pending: list[Future[None]] = []
        last_flushed = self._sample_count
        try:
            with ThreadPoolExecutor(max_workers=1, thread_name_prefix="prismtrace-writer") as executor:
                for sample_index in range(sample_start, sample_end):
                    if self._stop_event.is_set():
                        logger.info("Render stopped after %d samples", self._sample_count)
                        break

                    sample_time = time.perf_counter()
                    render_sample(sample_index)
                    self._sample_count = sample_index + 1
                    logger.debug(
                        "Sample %d took %.3f s", sample_index, time.perf_counter() - sample_time
                    )

                    if (self._sample_count - sample_start) % self.config.flush_every == 0:
                        self._submit_flush(executor, pending)
                        last_flushed = self._sample_count

                    yield self._sample_count

                if last_flushed != self._sample_count:
                    self._submit_flush(executor, pending)

                # Re-raise any writer error on the calling thread
                for future in pending:
                    future.result()
        finally:
            self.scene.unfreeze()

        logger.info(
            "Rendered %d samples in %.2f s",
            self._sample_count - sample_start,
            time.perf_counter() - render_start,
        )

    def _submit_flush(self, executor: ThreadPoolExecutor, pending: list[Future[None]]) -> None:
        if self.writer is None:
            return
        # The snapshot is a copy, so the next sample can overwrite the buffer
        snapshot = get_image_numpy()
        pending.append(executor.submit(self._write_snapshot, snapshot))
        self._flush_count += 1

    def _write_snapshot(self, snapshot: npt.NDArray[np.float64]) -> None:
        assert self.writer is not None
        self.writer(image_to_uint8(snapshot, gamma=self.gamma))

    # =========================================================================
    # Output
    # =========================================================================

    def get_image_numpy(self) -> npt.NDArray[np.float64]:
        """Get the running average as a linear (height, width, 3) array."""
        return get_image_numpy()

    def get_last_sample_numpy(self) -> npt.NDArray[np.float64]:
        """Get the latest raw sample as a linear (height, width, 3) array."""
        return get_last_sample_numpy()

    def get_image_uint8(self, gamma: float | None = None) -> npt.NDArray[np.uint8]:
        """Get the running average quantised to 8 bits per channel."""
        return image_to_uint8(get_image_numpy(), gamma=self.gamma if gamma is None else gamma)

    def save_image(self, filepath: str, gamma: float | None = None) -> None:
        """Save the running average as a .ppm or .png file.

        Raises:
            ValueError: If the file extension is not supported.
        """
        writer = writer_for_path(filepath)
        writer(self.get_image_uint8(gamma=gamma))

    def __repr__(self) -> str:
        """Return a string representation of the renderer state."""
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
