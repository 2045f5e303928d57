"""Image output for rendered snapshots (PPM and PNG writers)."""

from .export import (
    ImageWriter,
    PNGWriter,
    PPMWriter,
    compute_rmse,
    image_to_uint8,
    read_image,
    save_png_from_array,
    write_png,
    write_ppm,
    writer_for_path,
)

__all__ = [
    "ImageWriter",
    "PNGWriter",
    "PPMWriter",
    "compute_rmse",
    "image_to_uint8",
    "read_image",
    "save_png_from_array",
    "write_png",
    "write_ppm",
    "writer_for_path",
]
