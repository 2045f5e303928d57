"""Camera configuration and screen basis computation (Python-side).

The camera is defined by the eye position and the center of the virtual
screen. The screen basis is derived once per render:

    V = center - eye                         (screen axis, eye -> screen)
    Y = normalize(-V.y / V.x, 1, 0)          (vertical axis, no z component;
                                              (0, 1, 0) when V.x == 0)
    X = normalize(V x Y)                     (horizontal axis)

This module holds no Taichi state and can be imported before ti.init.
"""

from dataclasses import dataclass

import numpy as np

# Smallest accepted length of the view vector and of V x Y
DEGENERATE_EPSILON = 1e-12


@dataclass(frozen=True)
class Camera:
    """Configuration for the screen camera.

    Attributes:
        eye: Eye position in world space (x, y, z).
        center: Center of the virtual screen in world space (x, y, z).
        pixel_size: World-space size of one pixel on the screen.
    """

    eye: tuple[float, float, float] = (0.0, 0.0, 0.0)
    center: tuple[float, float, float] = (0.0, 0.0, 1.0)
    pixel_size: float = 1.0

    def __post_init__(self) -> None:
        if self.pixel_size <= 0.0:
            raise ValueError(f"pixel_size must be positive, got {self.pixel_size}")


def compute_screen_basis(camera: Camera) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Compute the screen axis and the two in-screen axes.

    Args:
        camera: The camera configuration.

    Returns:
        Tuple (screen_vec, x_axis, y_axis) of float64 arrays. screen_vec is
        the unnormalized eye -> center vector; the axes are unit length.

    Raises:
        ValueError: If the eye coincides with the screen center or the view
            direction is parallel to the vertical axis.
    """
    eye = np.asarray(camera.eye, dtype=np.float64)
    center = np.asarray(camera.center, dtype=np.float64)
    screen_vec = center - eye
    if np.linalg.norm(screen_vec) < DEGENERATE_EPSILON:
        raise ValueError("Camera eye and screen center coincide")

    y_axis = np.array(
        [0.0 if screen_vec[0] == 0 else -screen_vec[1] / screen_vec[0], 1.0, 0.0],
        dtype=np.float64,
    )
    y_axis /= np.linalg.norm(y_axis)

    x_axis = np.cross(screen_vec, y_axis)
    x_norm = np.linalg.norm(x_axis)
    if x_norm < DEGENERATE_EPSILON:
        raise ValueError(
            "Degenerate camera basis: view direction is parallel to the vertical axis"
        )
    x_axis /= x_norm

    return screen_vec, x_axis, y_axis
