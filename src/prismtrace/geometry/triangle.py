"""Triangle primitive with Moller-Trumbore ray-triangle intersection.

A point on the ray P = O + t*D lies on the triangle (V0, V1, V2) when

    O + t*D = (1 - u - v)*V0 + u*V1 + v*V2

With T = O - V0, E1 = V1 - V0 and E2 = V2 - V0 this is the linear system
[-D  E1  E2] [t u v]' = T, which Cramer's rule and the scalar triple
product |a b c| = (a x b) . c solve as

    t = (T x E1) . E2 / a
    u = (D x E2) . T  / a
    v = (T x E1) . D  / a,      a = (D x E2) . E1

The ray is parallel to the triangle plane when |a| vanishes.
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from src.prismtrace.core.ray import vec3
from src.prismtrace.geometry.sphere import NO_HIT

# Determinant magnitude below which the ray counts as parallel to the plane
PARALLEL_EPSILON = 1e-4


@ti.func
def ray_triangle_barycentric(
    ray_origin: vec3,
    ray_direction: vec3,
    p0: vec3,
    p1: vec3,
    p2: vec3,
):
    """Solve the Moller-Trumbore system for a ray and a triangle.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        p0, p1, p2: The triangle vertices.

    Returns:
        A tuple (hit, t, u, v). hit is 1 when the ray's line crosses the
        triangle (u >= 0, v >= 0, u + v <= 1); t may still be negative
        when the triangle is behind the origin. u and v are only meaningful
        when the determinant is not degenerate.
    """
    edge1 = p1 - p0
    edge2 = p2 - p0
    p = tm.cross(ray_direction, edge2)
    a = tm.dot(p, edge1)

    hit = 0
    t = NO_HIT
    u = -1.0
    v = -1.0
    if ti.abs(a) >= PARALLEL_EPSILON:
        tvec = ray_origin - p0
        q = tm.cross(tvec, edge1)
        u = tm.dot(p, tvec) / a
        v = tm.dot(q, ray_direction) / a
        if u >= 0.0 and u <= 1.0 and v >= 0.0 and u + v <= 1.0:
            hit = 1
            t = tm.dot(q, edge2) / a
    return hit, t, u, v


@ti.func
def ray_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    p0: vec3,
    p1: vec3,
    p2: vec3,
) -> ti.f64:
    """Distance along a ray to a triangle.

    Returns:
        The ray parameter t of the crossing point, or NO_HIT when the ray is
        parallel to the triangle plane or passes outside the triangle.
    """
    hit, t, u, v = ray_triangle_barycentric(ray_origin, ray_direction, p0, p1, p2)
    return t


@ti.func
def triangle_normal(p0: vec3, p1: vec3, p2: vec3) -> vec3:
    """Unit normal (E1 x E2) of a triangle; its side is not resolved."""
    return tm.normalize(tm.cross(p1 - p0, p2 - p0))


def triangle_area(
    p0: tuple[float, float, float],
    p1: tuple[float, float, float],
    p2: tuple[float, float, float],
) -> float:
    """Compute the area of a triangle (Python-side).

    Used to reject zero-area triangles at scene construction.
    """
    e1 = np.subtract(p1, p0)
    e2 = np.subtract(p2, p0)
    return 0.5 * float(np.linalg.norm(np.cross(e1, e2)))
