"""Unit tests for image quantisation and the file writers."""

import numpy as np
import pytest

from src.prismtrace.preview.export import (
    PNGWriter,
    PPMWriter,
    compute_rmse,
    image_to_uint8,
    read_image,
    save_png_from_array,
    write_ppm,
    writer_for_path,
)


def _gradient(height=4, width=6) -> np.ndarray:
    """A uint8 image where every pixel is distinct."""
    rows = np.arange(height, dtype=np.uint8)[:, None] * 40
    cols = np.arange(width, dtype=np.uint8)[None, :] * 10
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[..., 0] = rows
    image[..., 1] = cols
    image[..., 2] = 200
    return image


class TestQuantisation:
    """Tests for image_to_uint8."""

    def test_channel_rules(self):
        """Values are clipped at 0, scaled by 255, floored and capped at 255."""
        image = np.array([[[-0.5, 0.0, 0.5], [1.0, 1.7, np.nan]]])
        pixels = image_to_uint8(image)
        assert pixels.dtype == np.uint8
        assert pixels.tolist() == [[[0, 0, 127], [255, 255, 0]]]

    def test_infinities(self):
        """Infinite values saturate."""
        pixels = image_to_uint8(np.array([[[np.inf, -np.inf, 0.1]]]))
        assert pixels.tolist() == [[[255, 0, 25]]]

    def test_gamma(self):
        """Gamma brightens midtones and keeps the end points."""
        image = np.array([[[0.0, 0.25, 1.0]]])
        pixels = image_to_uint8(image, gamma=2.0)
        assert pixels.tolist() == [[[0, 127, 255]]]

    @pytest.mark.parametrize("shape", [(4, 4), (4, 4, 4), (3,)])
    def test_bad_shape(self, shape):
        """Only (H, W, 3) images are accepted."""
        with pytest.raises(ValueError, match="shape"):
            image_to_uint8(np.zeros(shape))

    def test_bad_gamma(self):
        """Gamma must be positive."""
        with pytest.raises(ValueError, match="gamma"):
            image_to_uint8(np.zeros((2, 2, 3)), gamma=-1.0)


class TestWriters:
    """Tests for PPM and PNG output."""

    def test_ppm_layout(self, tmp_path):
        """The P6 header is followed by rows from top to bottom."""
        pixels = _gradient()
        path = tmp_path / "out.ppm"
        write_ppm(path, pixels)

        data = path.read_bytes()
        header = b"P6\n6 4\n255\n"
        assert data.startswith(header)
        body = data[len(header):]
        assert len(body) == 4 * 6 * 3
        # Second pixel of the first row
        assert body[3:6] == bytes([0, 10, 200])
        # First pixel of the last row
        assert body[3 * 6 * 3:3 * 6 * 3 + 3] == bytes([120, 0, 200])

    def test_ppm_read_back(self, tmp_path):
        """A PPM file reads back as the same pixels."""
        pixels = _gradient()
        path = tmp_path / "out.ppm"
        write_ppm(path, pixels)
        np.testing.assert_array_equal(read_image(path), pixels)

    def test_png_read_back(self, tmp_path):
        """A PNG file reads back as the same pixels."""
        image = np.linspace(0.0, 1.0, 4 * 6 * 3).reshape(4, 6, 3)
        path = tmp_path / "out.png"
        save_png_from_array(image, path)
        np.testing.assert_array_equal(read_image(path), image_to_uint8(image))

    def test_rejects_float_pixels(self, tmp_path):
        """Writers take quantised images only."""
        with pytest.raises(ValueError, match="uint8"):
            write_ppm(tmp_path / "out.ppm", np.zeros((2, 2, 3)))

    def test_writer_counts_flushes(self, tmp_path):
        """Each call overwrites the file and counts a flush."""
        writer = PPMWriter(tmp_path / "out.ppm")
        writer(np.zeros((2, 3, 3), dtype=np.uint8))
        writer(np.full((2, 3, 3), 255, dtype=np.uint8))
        assert writer.flush_count == 2
        assert read_image(writer.filepath).min() == 255

    def test_writer_for_path(self, tmp_path):
        """The writer follows the file extension."""
        assert isinstance(writer_for_path(tmp_path / "a.ppm"), PPMWriter)
        assert isinstance(writer_for_path(tmp_path / "a.PNG"), PNGWriter)
        with pytest.raises(ValueError, match="Unsupported image format"):
            writer_for_path(tmp_path / "a.jpg")


class TestRmse:
    """Tests for compute_rmse."""

    def test_rmse(self):
        """RMSE of a constant offset is the offset."""
        a = np.zeros((3, 3, 3))
        assert compute_rmse(a, a) == 0.0
        assert compute_rmse(a, a + 0.5) == pytest.approx(0.5)

    def test_shape_mismatch(self):
        """Images of different shapes cannot be compared."""
        with pytest.raises(ValueError, match="shapes must match"):
            compute_rmse(np.zeros((2, 2, 3)), np.zeros((2, 3, 3)))
