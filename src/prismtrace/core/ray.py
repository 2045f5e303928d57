"""Ray data structure and vector utilities for the path tracer.

This module provides the Ray dataclass, the small vector helpers used by the
intersection and tracing code, and the three bounce laws of geometrical
optics used by the tracer:

    - reflect: angle of incidence equals angle of reflection
    - refract: Snell's law, n1 * sin(theta1) = n2 * sin(theta2)
    - diffuse_reflect: cosine-weighted scattering over the hemisphere

All functions are Taichi functions (@ti.func) and must be called from within
a Taichi kernel. Vectors are double precision; see core.config.init_taichi.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.core.ray import reflect, vec3
    >>> @ti.kernel
    ... def bounce() -> vec3:
    ...     return reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))
"""

import taichi as ti
import taichi.math as tm

# Double precision 3-vector used throughout the package
vec3 = ti.types.vector(3, ti.f64)


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction of the ray (vec3). Normalized by every
            function in this package that creates rays.
    """

    origin: vec3
    direction: vec3


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def orient_against(normal: vec3, direction: vec3) -> vec3:
    """Flip a normal so that it faces against the given direction.

    Args:
        normal: The surface normal.
        direction: The incoming ray direction.

    Returns:
        normal if dot(normal, direction) <= 0, otherwise -normal.
    """
    result = normal
    if tm.dot(normal, direction) > 0.0:
        result = -normal
    return result


@ti.func
def component(v: vec3, index: ti.i32) -> ti.f64:
    """Read one component of a vector selected by a runtime index.

    Args:
        v: The vector.
        index: Component index in {0, 1, 2}.

    Returns:
        v[index].
    """
    result = v[0]
    for c in ti.static(range(1, 3)):
        if index == c:
            result = v[c]
    return result


@ti.func
def isolate_component(v: vec3, index: ti.i32, scale: ti.f64) -> vec3:
    """Zero every component except one, which is multiplied by scale."""
    result = vec3(0.0, 0.0, 0.0)
    for c in ti.static(range(3)):
        if index == c:
            result[c] = v[c] * scale
    return result


# =============================================================================
# Bounce Laws
# =============================================================================


@ti.func
def reflect(incident: vec3, face_normal: vec3) -> vec3:
    """Reflect an incident direction about a surface normal.

    Law of reflection with face normal F and incident direction L:
        Lo = L - F * 2 * cos<L, F>

    The normal may face either side of the surface.

    Args:
        incident: The incoming direction (normalized).
        face_normal: The surface normal (normalized).

    Returns:
        The reflected direction, normalized.
    """
    return tm.normalize(incident - 2.0 * tm.dot(face_normal, incident) * face_normal)


@ti.func
def refract(
    incident: vec3,
    face_normal: vec3,
    rate_incident: ti.f64,
    rate_outgoing: ti.f64,
) -> vec3:
    """Refract an incident direction through a surface (Snell's law).

    With k = n_incident / n_outgoing and cos_i = F . L:
        cos_o^2 = 1 - k^2 * (1 - cos_i^2)
        Lo = L + F * (-cos_i -/+ sqrt(cos_o^2) / k)

    The sign in front of the square root follows the side the normal faces,
    so the face normal does not need to be oriented by the caller. When
    cos_o^2 < 0 the ray undergoes total internal reflection and the result
    is the reflected direction.

    Args:
        incident: The incoming direction (normalized).
        face_normal: The surface normal (normalized, either orientation).
        rate_incident: Index of refraction of the medium being left.
        rate_outgoing: Index of refraction of the medium being entered.

    Returns:
        The refracted (or totally internally reflected) direction, normalized.
    """
    k = rate_incident / rate_outgoing
    cos_i = tm.dot(face_normal, incident)
    cos_o_sq = 1.0 - k * k * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if cos_o_sq < 0.0:
        result = reflect(incident, face_normal)
    else:
        side = 1.0
        if cos_i > 0.0:
            side = -1.0
        result = tm.normalize(incident + (-cos_i - side * ti.sqrt(cos_o_sq) / k) * face_normal)
    return result


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis (u, v, normal) around a unit normal.

    The helper axis is the y-axis when the normal has a significant
    x-component, and the x-axis otherwise.

    Returns:
        A tuple (u, v, normal) forming a right-handed orthonormal basis.
    """
    helper = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.1:
        helper = vec3(0.0, 1.0, 0.0)
    u = tm.normalize(tm.cross(helper, normal))
    v = tm.cross(normal, u)
    return u, v, normal


@ti.func
def diffuse_reflect(incident: vec3, face_normal: vec3) -> vec3:
    """Scatter a ray diffusely with a cosine-weighted distribution.

    The normal is first flipped to face against the incident ray. With two
    uniform random numbers r1 in [0, 2*pi) and r2 in [0, 1):
        out = u * cos(r1) * sqrt(r2) + v * sin(r1) * sqrt(r2) + n * sqrt(1 - r2)

    This samples the Lambertian BRDF with pdf cos(theta) / pi.

    Args:
        incident: The incoming direction.
        face_normal: The surface normal (normalized, either orientation).

    Returns:
        A random direction in the hemisphere facing the incident ray,
        normalized.
    """
    r1 = 2.0 * tm.pi * ti.random(ti.f64)
    r2 = ti.random(ti.f64)
    n = orient_against(face_normal, incident)
    u, v, n = build_onb_from_normal(n)
    sqrt_r2 = ti.sqrt(r2)
    out = ti.cos(r1) * sqrt_r2 * u + ti.sin(r1) * sqrt_r2 * v + ti.sqrt(1.0 - r2) * n
    return tm.normalize(out)
