"""Scene-level primitive storage and intersection testing.

Primitives are stored Structure-of-Arrays in Taichi fields as an explicit
tagged variant: `primitive_kinds[i]` says whether primitive i is a triangle
(vertices p0, p1, p2) or a sphere (center p0, `primitive_radii[i]`). The tag
is resolved once, in intersect_primitive, before any shape-specific math.

Point lights used by quick-reflect materials live here as well.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.scene.intersection import (
    ...     add_sphere, add_triangle, clear_scene, intersect_scene
    ... )
    >>> clear_scene()
    >>> add_sphere((0, 0, 5), 1.0, material_id=0)
    >>> # Use intersect_scene within a Taichi kernel
"""

from enum import IntEnum

import taichi as ti

from src.prismtrace.core.ray import vec3
from src.prismtrace.geometry.sphere import NO_HIT, ray_sphere, sphere_normal
from src.prismtrace.geometry.triangle import ray_triangle, triangle_normal


class PrimitiveKind(IntEnum):
    """Tag of the primitive variant."""

    TRIANGLE = 0
    SPHERE = 1


# Maximum number of primitives and point lights supported in the scene
MAX_PRIMITIVES = 4096
MAX_POINT_LIGHTS = 64

primitive_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_p0 = ti.Vector.field(3, dtype=ti.f64, shape=MAX_PRIMITIVES)
primitive_p1 = ti.Vector.field(3, dtype=ti.f64, shape=MAX_PRIMITIVES)
primitive_p2 = ti.Vector.field(3, dtype=ti.f64, shape=MAX_PRIMITIVES)
primitive_radii = ti.field(dtype=ti.f64, shape=MAX_PRIMITIVES)
primitive_material_ids = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

point_lights = ti.Vector.field(3, dtype=ti.f64, shape=MAX_POINT_LIGHTS)
num_point_lights = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives and point lights from the scene."""
    num_primitives[None] = 0
    num_point_lights[None] = 0


def _next_primitive_index() -> int:
    idx = num_primitives[None]
    if idx >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    return idx


def add_triangle(
    p0: tuple[float, float, float],
    p1: tuple[float, float, float],
    p2: tuple[float, float, float],
    material_id: int = 0,
) -> int:
    """Add a triangle to the scene.

    Returns:
        The index of the added primitive.

    Raises:
        RuntimeError: If the maximum number of primitives is exceeded.
    """
    idx = _next_primitive_index()
    primitive_kinds[idx] = int(PrimitiveKind.TRIANGLE)
    primitive_p0[idx] = list(p0)
    primitive_p1[idx] = list(p1)
    primitive_p2[idx] = list(p2)
    primitive_radii[idx] = 0.0
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    return idx


def add_sphere(center: tuple[float, float, float], radius: float, material_id: int = 0) -> int:
    """Add a sphere to the scene.

    Returns:
        The index of the added primitive.

    Raises:
        RuntimeError: If the maximum number of primitives is exceeded.
    """
    idx = _next_primitive_index()
    primitive_kinds[idx] = int(PrimitiveKind.SPHERE)
    primitive_p0[idx] = list(center)
    primitive_p1[idx] = [0.0, 0.0, 0.0]
    primitive_p2[idx] = [0.0, 0.0, 0.0]
    primitive_radii[idx] = radius
    primitive_material_ids[idx] = material_id
    num_primitives[None] = idx + 1
    return idx


def add_point_light(position: tuple[float, float, float]) -> int:
    """Add a point light used by quick-reflect shading.

    Returns:
        The index of the added light.

    Raises:
        RuntimeError: If the maximum number of point lights is exceeded.
    """
    idx = num_point_lights[None]
    if idx >= MAX_POINT_LIGHTS:
        raise RuntimeError(f"Maximum number of point lights ({MAX_POINT_LIGHTS}) exceeded")
    point_lights[idx] = list(position)
    num_point_lights[None] = idx + 1
    return idx


def get_primitive_count() -> int:
    """Get the number of primitives in the scene."""
    return int(num_primitives[None])


def get_point_light_count() -> int:
    """Get the number of point lights in the scene."""
    return int(num_point_lights[None])


@ti.func
def intersect_primitive(index: ti.i32, ray_origin: vec3, ray_direction: vec3, epsilon: ti.f64) -> ti.f64:
    """Distance along a ray to one primitive, dispatched on its kind.

    Returns:
        The nearest ray distance beyond epsilon, or a value <= epsilon
        (NO_HIT on a clean miss) when there is none.
    """
    distance = NO_HIT
    if primitive_kinds[index] == int(PrimitiveKind.SPHERE):
        distance = ray_sphere(ray_origin, ray_direction, primitive_p0[index], primitive_radii[index], epsilon)
    else:
        distance = ray_triangle(
            ray_origin,
            ray_direction,
            primitive_p0[index],
            primitive_p1[index],
            primitive_p2[index],
        )
    return distance


@ti.func
def intersect_scene(ray_origin: vec3, ray_direction: vec3, epsilon: ti.f64):
    """Find the nearest primitive along a ray by scanning every primitive.

    Hits closer than epsilon are ignored so that a ray leaving a surface
    does not immediately hit that surface again.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray (normalized).
        epsilon: Minimum accepted distance.

    Returns:
        A tuple (index, distance). index is -1 when nothing was hit.
    """
    closest_index = -1
    closest_distance = 0.0
    for i in range(num_primitives[None]):
        distance = intersect_primitive(i, ray_origin, ray_direction, epsilon)
        if distance > epsilon and (closest_index < 0 or distance < closest_distance):
            closest_index = i
            closest_distance = distance
    return closest_index, closest_distance


@ti.func
def primitive_face_normal(index: ti.i32, point: vec3) -> vec3:
    """Unit face normal of a primitive at a surface point.

    Sphere normals point outward; triangle normals follow the winding
    (E1 x E2) and are oriented by the shading code when needed.
    """
    normal = vec3(0.0, 0.0, 0.0)
    if primitive_kinds[index] == int(PrimitiveKind.SPHERE):
        normal = sphere_normal(primitive_p0[index], point)
    else:
        normal = triangle_normal(primitive_p0[index], primitive_p1[index], primitive_p2[index])
    return normal


@ti.func
def get_primitive_material(index: ti.i32) -> ti.i32:
    """Get the material id of a primitive."""
    return primitive_material_ids[index]
