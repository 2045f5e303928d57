"""Geometry module for primitive shapes and intersection algorithms.

Components:
    sphere: Ray-sphere intersection with a numerically stable quadratic
    triangle: Moller-Trumbore ray-triangle intersection

Each shape exposes a Taichi function returning the hit distance, or a
non-positive value (NO_HIT) on a miss.
"""

from .sphere import NO_HIT, ray_sphere, sphere_normal
from .triangle import (
    PARALLEL_EPSILON,
    ray_triangle,
    ray_triangle_barycentric,
    triangle_area,
    triangle_normal,
)

__all__ = [
    "NO_HIT",
    "ray_sphere",
    "sphere_normal",
    "PARALLEL_EPSILON",
    "ray_triangle",
    "ray_triangle_barycentric",
    "triangle_area",
    "triangle_normal",
]
