"""Image writers for rendered snapshots.

Snapshots arrive as linear (height, width, 3) float arrays with the first
row at the top of the picture. image_to_uint8 quantises them per channel
with min(int(c * 255), 255) after clipping negatives; a writer then receives
the (height, width, 3) uint8 array and stores it, either as a binary PPM
(P6) or as a PNG through Pillow.

Example:
    >>> import numpy as np
    >>> from src.prismtrace.preview.export import PPMWriter, image_to_uint8
    >>> writer = PPMWriter("out.ppm")
    >>> writer(image_to_uint8(np.zeros((48, 64, 3))))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

# Receives an 8-bit image shaped (height, width, 3)
ImageWriter = Callable[[npt.NDArray[np.uint8]], None]


def image_to_uint8(image: npt.NDArray[np.floating], gamma: float = 1.0) -> npt.NDArray[np.uint8]:
    """Convert a linear float image to 8-bit channels.

    Args:
        image: Linear image of shape (H, W, 3).
        gamma: Gamma correction value. 1.0 keeps the values linear.

    Returns:
        Array of shape (H, W, 3) with dtype uint8.

    Raises:
        ValueError: If the image is not (H, W, 3) or gamma is not positive.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {image.shape}")
    if gamma <= 0.0:
        raise ValueError(f"gamma must be positive, got {gamma}")

    values = np.nan_to_num(image.astype(np.float64), nan=0.0, posinf=1.0, neginf=0.0)
    values = np.maximum(values, 0.0)
    if gamma != 1.0:
        values = np.power(values, 1.0 / gamma)
    return np.minimum(np.floor(values * 255.0), 255.0).astype(np.uint8)


def _check_pixels(pixels: npt.NDArray[np.uint8]) -> None:
    if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(
            f"Expected a uint8 image of shape (H, W, 3), got {pixels.dtype} {pixels.shape}"
        )


def write_ppm(filepath: str | Path, pixels: npt.NDArray[np.uint8]) -> None:
    """Write an 8-bit image as a binary PPM (P6) file.

    Raises:
        ValueError: If pixels is not a (H, W, 3) uint8 array.
    """
    _check_pixels(pixels)
    height, width, _ = pixels.shape
    with open(filepath, "wb") as f:
        f.write(f"P6\n{width} {height}\n255\n".encode("ascii"))
        f.write(np.ascontiguousarray(pixels).tobytes())


def write_png(filepath: str | Path, pixels: npt.NDArray[np.uint8]) -> None:
    """Write an 8-bit image as a PNG file via Pillow.

    Raises:
        ValueError: If pixels is not a (H, W, 3) uint8 array.
    """
    _check_pixels(pixels)
    PILImage.fromarray(np.ascontiguousarray(pixels)).save(filepath)


def save_png_from_array(
    image: npt.NDArray[np.floating],
    filepath: str | Path,
    *,
    gamma: float = 1.0,
) -> None:
    """Quantise a linear image and save it as a PNG file."""
    write_png(filepath, image_to_uint8(image, gamma=gamma))


def read_image(filepath: str | Path) -> npt.NDArray[np.uint8]:
    """Read a PPM or PNG file back as a (H, W, 3) uint8 array."""
    with PILImage.open(filepath) as img:
        return np.asarray(img.convert("RGB"), dtype=np.uint8)


class PPMWriter:
    """Writer that overwrites one PPM file on every flush.

    Attributes:
        filepath: Destination file.
        flush_count: Number of flushes written so far.
    """

    def __init__(self, filepath: str | Path) -> None:
        self.filepath = Path(filepath)
        self.flush_count = 0

    def __call__(self, pixels: npt.NDArray[np.uint8]) -> None:
        write_ppm(self.filepath, pixels)
        self.flush_count += 1
        logger.debug("Wrote %s (flush %d)", self.filepath, self.flush_count)


class PNGWriter:
    """Writer that overwrites one PNG file on every flush.

    Attributes:
        filepath: Destination file.
        flush_count: Number of flushes written so far.
    """

    def __init__(self, filepath: str | Path) -> None:
        self.filepath = Path(filepath)
        self.flush_count = 0

    def __call__(self, pixels: npt.NDArray[np.uint8]) -> None:
        write_png(self.filepath, pixels)
        self.flush_count += 1
        logger.debug("Wrote %s (flush %d)", self.filepath, self.flush_count)


def writer_for_path(filepath: str | Path) -> PPMWriter | PNGWriter:
    """Pick a writer from the file extension (.ppm or .png).

    Raises:
        ValueError: If the extension is not supported.
    """
    suffix = Path(filepath).suffix.lower()
    if suffix == ".ppm":
        return PPMWriter(filepath)
    if suffix == ".png":
        return PNGWriter(filepath)
    raise ValueError(f"Unsupported image format: {suffix or filepath}")


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
