"""Sphere primitive with robust ray-sphere intersection.

The ray-sphere distance is found by solving:
    |origin + t * direction - center|^2 = radius^2

which expands to the quadratic A*t^2 + B*t + C = 0 with:
    A = dot(direction, direction)
    B = 2 * dot(direction, origin - center)
    C = |origin - center|^2 - radius^2

The roots are computed with the cancellation-free form
    q = -(B + sign(B) * sqrt(B^2 - 4AC)) / 2,  t0 = q / A,  t1 = C / q

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.geometry.sphere import ray_sphere, vec3
    >>> # Use ray_sphere within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.prismtrace.core.ray import vec3

# Distance reported when a ray misses a primitive. Any value <= 0 is
# rejected by the scene scan, so the sentinel only needs to be negative.
NO_HIT = -1.0e30


@ti.func
def _solve_quadratic_robust(a: ti.f64, b: ti.f64, c: ti.f64, sqrt_d: ti.f64):
    """Solve a*t^2 + b*t + c = 0 given sqrt of the discriminant.

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    sign_b = ti.select(b < 0.0, -1.0, 1.0)
    q = -0.5 * (b + sign_b * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-300:
        # b == 0 and tangent: both roots are -b / 2a
        t0 = -0.5 * b / a
        t1 = t0
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def ray_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    center: vec3,
    radius: ti.f64,
    t_min: ti.f64,
) -> ti.f64:
    """Distance along a ray to a sphere.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray (need not be normalized;
            the distance is in units of its length).
        center: The sphere center.
        radius: The sphere radius.
        t_min: Smallest accepted distance. A ray leaving the inside of the
            sphere from its surface has a near root of about 0, which is
            skipped in favour of the far root.

    Returns:
        The smaller root when it exceeds t_min, else the larger root (which
        may itself be below t_min when the sphere is behind the ray).
        NO_HIT when the ray's line misses the sphere.
    """
    oc = ray_origin - center
    a = tm.dot(ray_direction, ray_direction)
    b = 2.0 * tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - radius * radius
    discriminant = b * b - 4.0 * a * c

    distance = NO_HIT
    if discriminant >= 0.0:
        t0, t1 = _solve_quadratic_robust(a, b, c, ti.sqrt(discriminant))
        distance = t1
        if t0 > t_min:
            distance = t0
    return distance


@ti.func
def sphere_normal(center: vec3, point: vec3) -> vec3:
    """Outward unit normal of a sphere at a surface point."""
    return tm.normalize(point - center)

