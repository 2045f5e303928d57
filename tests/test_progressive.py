"""Tests for the progressive renderer.

This module tests the ProgressiveRenderer class including:
- The running average matching the mean of raw samples
- Sample ranges, callbacks and generators
- Flushing snapshots to a writer
- Stopping, freezing and resuming
- Image output in various formats

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

import numpy as np
import pytest

from src.prismtrace.camera.basis import Camera
from src.prismtrace.core.config import RenderConfig

WIDTH = 8
HEIGHT = 6

# Looks along +Z at a half-silvered wall, with a light behind the screen
CAMERA = Camera(eye=(0.0, 0.0, -1.0), center=(0.0, 0.0, 0.0), pixel_size=0.01)


@pytest.fixture
def scene():
    """A scene where each sample of a pixel is either black or white."""
    from src.prismtrace.materials.material import Material, light
    from src.prismtrace.scene.manager import SceneManager

    manager = SceneManager()
    wall = manager.add_material(Material(reflect=0.5, refract_rate=(1.0, 1.0, 1.0)))
    lamp = manager.add_material(light())
    manager.add_quad((-10, -10, 5), (20, 0, 0), (0, 20, 0), wall)
    manager.add_sphere((0, 0, -20), 15.0, lamp)
    yield manager
    manager.clear()


def _config(**kwargs) -> RenderConfig:
    kwargs.setdefault("sample_end", 8)
    return RenderConfig(width=WIDTH, height=HEIGHT, camera=CAMERA, **kwargs)


class RecordingWriter:
    """Keeps a copy of every snapshot it receives."""

    def __init__(self):
        self.images = []

    def __call__(self, pixels):
        self.images.append(pixels.copy())


class TestInitialization:
    """Tests for renderer construction."""

    def test_init_sets_up_render_target(self, scene):
        """The render target matches the configured size."""
        from src.prismtrace.core.integrator import get_image_dimensions
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        assert (renderer.width, renderer.height) == (WIDTH, HEIGHT)
        assert get_image_dimensions() == (WIDTH, HEIGHT)
        assert renderer.sample_count == 0
        assert renderer.get_image_numpy().shape == (HEIGHT, WIDTH, 3)
        assert "samples=0" in repr(renderer)

    def test_empty_scene_rejected(self):
        """A scene without primitives cannot be rendered."""
        from src.prismtrace.core.progressive import ProgressiveRenderer
        from src.prismtrace.scene.manager import SceneManager

        with pytest.raises(ValueError, match="no primitives"):
            ProgressiveRenderer(SceneManager(), _config())

    def test_invalid_gamma_rejected(self, scene):
        """Gamma must be positive."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        with pytest.raises(ValueError, match="gamma"):
            ProgressiveRenderer(scene, _config(), gamma=0.0)


class TestAccumulation:
    """Tests for the running average."""

    def test_average_is_mean_of_samples(self, scene):
        """After n samples every pixel holds the mean of its n raw samples."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config(sample_end=12))
        raw = []
        renderer.run(lambda current, target: raw.append(renderer.get_last_sample_numpy()))

        assert len(raw) == 12
        expected = np.mean(raw, axis=0)
        np.testing.assert_allclose(renderer.get_image_numpy(), expected, atol=1e-12)
        # The wall reflects to the light half of the time
        assert set(np.unique(raw)) <= {0.0, 1.0}
        assert 0.3 < expected.mean() < 0.7

    def test_average_settles(self):
        """Successive averages of a diffuse scene change less as samples accumulate."""
        from src.prismtrace.core.progressive import ProgressiveRenderer
        from src.prismtrace.materials.material import diffuse, light
        from src.prismtrace.scene.manager import SceneManager

        manager = SceneManager()
        manager.add_sphere_with_material((0, 0, 3), 2.0, diffuse((0.8, 0.6, 0.4)))
        manager.add_sphere_with_material((0, 30, 3), 20.0, light())

        renderer = ProgressiveRenderer(manager, _config(sample_end=40))
        images = []
        renderer.run(lambda current, target: images.append(renderer.get_image_numpy()))
        manager.clear()

        assert len(images) == 40
        changes = [np.abs(b - a).mean() for a, b in zip(images, images[1:])]
        assert np.mean(changes[-8:]) < 0.5 * np.mean(changes[:8])

    def test_render_adds_samples(self, scene):
        """render() continues the current accumulation."""
        from src.prismtrace.core.integrator import get_total_samples
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        renderer.render(3)
        renderer.render(2)
        assert renderer.sample_count == 5
        assert get_total_samples() == 5
        renderer.render(0)
        assert renderer.sample_count == 5

    def test_callback_batches(self, scene):
        """Callbacks fire after every batch and at the end of the range."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        calls = []
        renderer.render(num_samples=7, batch_size=3, callback=lambda c, t: calls.append((c, t)))
        assert calls == [(3, 7), (6, 7), (7, 7)]

    def test_render_progressive_yields(self, scene):
        """The generator reports progress after each batch."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        progress = list(renderer.render_progressive(4, batch_size=2))
        assert progress == [(2, 4), (4, 4)]
        assert list(renderer.render_progressive(2)) == [(5, 6), (6, 6)]

    def test_invalid_batch_size(self, scene):
        """batch_size below 1 is rejected."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        with pytest.raises(ValueError, match="batch_size"):
            renderer.render(4, batch_size=0)

    def test_range_must_continue_accumulation(self, scene):
        """A range that skips or repeats samples is rejected."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        renderer.render_range(0, 2)
        with pytest.raises(ValueError, match="continue the accumulation"):
            renderer.render_range(5, 8)
        with pytest.raises(ValueError, match="continue the accumulation"):
            renderer.render_range(0, 2)
        assert not scene.frozen

    def test_sample_start_continues_count(self, scene):
        """A configured sample_start is treated as already accumulated."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config(sample_start=4, sample_end=6))
        calls = []
        renderer.run(lambda c, t: calls.append((c, t)))
        assert calls == [(5, 6), (6, 6)]
        assert renderer.sample_count == 6

    def test_reset(self, scene):
        """reset clears the image and the sample count."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        renderer.render(4)
        renderer.reset()
        assert renderer.sample_count == 0
        np.testing.assert_array_equal(renderer.get_image_numpy(), 0.0)

    def test_resume(self, scene):
        """A resumed render weights the previous average by its count."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        previous = np.full((HEIGHT, WIDTH, 3), 0.25)
        renderer.resume(previous, 3)
        assert renderer.sample_count == 3

        renderer.render(1)
        last = renderer.get_last_sample_numpy()
        np.testing.assert_allclose(renderer.get_image_numpy(), (3 * previous + last) / 4, atol=1e-12)


class TestFlushing:
    """Tests for snapshots handed to the writer."""

    def test_flush_every(self, scene):
        """The writer gets a snapshot every flush_every samples and at the end."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        writer = RecordingWriter()
        renderer = ProgressiveRenderer(scene, _config(sample_end=7, flush_every=3), writer=writer)
        renderer.run()

        assert renderer.flush_count == 3
        assert len(writer.images) == 3
        for image in writer.images:
            assert image.shape == (HEIGHT, WIDTH, 3)
            assert image.dtype == np.uint8
        np.testing.assert_array_equal(writer.images[-1], renderer.get_image_uint8())

    def test_no_extra_flush_when_aligned(self, scene):
        """The last periodic flush already covers the final sample."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        writer = RecordingWriter()
        renderer = ProgressiveRenderer(scene, _config(sample_end=6, flush_every=3), writer=writer)
        renderer.run()
        assert len(writer.images) == 2

    def test_writer_errors_propagate(self, scene):
        """An exception in the writer thread surfaces in the caller."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        def failing_writer(pixels):
            raise OSError("disk full")

        renderer = ProgressiveRenderer(scene, _config(sample_end=2), writer=failing_writer)
        with pytest.raises(OSError, match="disk full"):
            renderer.run()
        assert not scene.frozen

    def test_gamma_applied_to_snapshots(self, scene):
        """Snapshots are gamma corrected before quantisation."""
        from src.prismtrace.core.progressive import ProgressiveRenderer
        from src.prismtrace.preview.export import image_to_uint8

        writer = RecordingWriter()
        renderer = ProgressiveRenderer(scene, _config(sample_end=3), writer=writer, gamma=2.2)
        renderer.run()
        expected = image_to_uint8(renderer.get_image_numpy(), gamma=2.2)
        np.testing.assert_array_equal(writer.images[-1], expected)


class TestControl:
    """Tests for stopping and scene freezing."""

    def test_stop_from_callback(self, scene):
        """stop() ends the render before the next sample."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        writer = RecordingWriter()
        renderer = ProgressiveRenderer(scene, _config(sample_end=10, flush_every=100), writer=writer)

        def callback(current, target):
            if current == 3:
                renderer.stop()

        renderer.run(callback)
        assert renderer.stopped
        assert renderer.sample_count == 3
        # The partial result is still flushed
        assert len(writer.images) == 1

        # A later run continues where the stopped one ended
        renderer.run()
        assert renderer.sample_count == 10
        assert not renderer.stopped

    def test_scene_frozen_during_render(self, scene):
        """Modifying the scene from a callback fails and the scene is released."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        frozen_states = []

        def callback(current, target):
            frozen_states.append(scene.frozen)
            scene.add_point_light((0, 0, 0))

        with pytest.raises(RuntimeError, match="frozen"):
            renderer.run(callback)
        assert frozen_states == [True]
        assert not scene.frozen
        assert scene.get_point_light_count() == 0


class TestOutput:
    """Tests for saving results."""

    def test_save_ppm_and_png(self, scene, tmp_path):
        """save_image picks the format from the extension."""
        from src.prismtrace.core.progressive import ProgressiveRenderer
        from src.prismtrace.preview.export import read_image

        renderer = ProgressiveRenderer(scene, _config())
        renderer.render(4)
        expected = renderer.get_image_uint8()

        for name in ("result.ppm", "result.png"):
            path = tmp_path / name
            renderer.save_image(str(path))
            np.testing.assert_array_equal(read_image(path), expected)

    def test_save_unsupported_format(self, scene, tmp_path):
        """Unknown extensions raise ValueError."""
        from src.prismtrace.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(scene, _config())
        with pytest.raises(ValueError, match="Unsupported image format"):
            renderer.save_image(str(tmp_path / "result.bmp"))
