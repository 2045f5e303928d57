"""Screen camera: primary ray generation on the GPU side.

Pixel (x, y) of a W x H image is offset from the screen center by

    P = (x + jitter - W // 2 - 0.5) * s * X + (y + jitter - H // 2 - 0.5) * s * Y

with jitter uniform in [0, 1) (anti-aliasing), pixel size s and the screen
axes X, Y from camera.basis. The primary ray starts on the screen at
center + P and points along normalize(V + P), i.e. away from the eye through
that screen point.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.camera.basis import Camera
    >>> from src.prismtrace.camera.screen import setup_camera
    >>> setup_camera(Camera(eye=(0.0, 0.0, 0.0), center=(0.0, 0.0, 1.0)))
"""

import taichi as ti
import taichi.math as tm

from src.prismtrace.camera.basis import Camera, compute_screen_basis
from src.prismtrace.core.ray import Ray, make_ray

# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_screen_center = ti.Vector.field(3, dtype=ti.f64, shape=())
_screen_vec = ti.Vector.field(3, dtype=ti.f64, shape=())
_screen_x = ti.Vector.field(3, dtype=ti.f64, shape=())
_screen_y = ti.Vector.field(3, dtype=ti.f64, shape=())
_pixel_size = ti.field(dtype=ti.f64, shape=())
_camera_initialized = ti.field(dtype=ti.i32, shape=())


def setup_camera(camera: Camera) -> None:
    """Compute the screen basis and store it for the render kernels.

    Raises:
        ValueError: If the camera basis is degenerate.
    """
    screen_vec, x_axis, y_axis = compute_screen_basis(camera)
    _screen_center[None] = list(camera.center)
    _screen_vec[None] = screen_vec.tolist()
    _screen_x[None] = x_axis.tolist()
    _screen_y[None] = y_axis.tolist()
    _pixel_size[None] = camera.pixel_size
    _camera_initialized[None] = 1


def is_camera_initialized() -> bool:
    """Whether setup_camera has been called."""
    return bool(_camera_initialized[None])


@ti.func
def get_ray(offset_x: ti.f64, offset_y: ti.f64) -> Ray:
    """Generate the primary ray through a screen offset.

    Args:
        offset_x: Offset along the horizontal axis, in pixels from the
            screen center.
        offset_y: Offset along the vertical axis, in pixels.

    Returns:
        A Ray starting on the screen and pointing away from the eye.
    """
    pixel_vec = _pixel_size[None] * (offset_x * _screen_x[None] + offset_y * _screen_y[None])
    origin = _screen_center[None] + pixel_vec
    direction = tm.normalize(_screen_vec[None] + pixel_vec)
    return make_ray(origin, direction)


@ti.func
def get_ray_jittered(pixel_x: ti.i32, pixel_y: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a jittered primary ray for anti-aliasing.

    The offset is uniform within +-0.5 pixel of the pixel's position
    relative to the image center.
    """
    offset_x = ti.cast(pixel_x, ti.f64) + ti.random(ti.f64) - ti.cast(width // 2, ti.f64) - 0.5
    offset_y = ti.cast(pixel_y, ti.f64) + ti.random(ti.f64) - ti.cast(height // 2, ti.f64) - 0.5
    return get_ray(offset_x, offset_y)


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging."""
    center = _screen_center[None]
    screen_vec = _screen_vec[None]
    x_axis = _screen_x[None]
    y_axis = _screen_y[None]
    return {
        "center": (float(center[0]), float(center[1]), float(center[2])),
        "screen_vec": (float(screen_vec[0]), float(screen_vec[1]), float(screen_vec[2])),
        "x_axis": (float(x_axis[0]), float(x_axis[1]), float(x_axis[2])),
        "y_axis": (float(y_axis[0]), float(y_axis[1]), float(y_axis[2])),
    }
