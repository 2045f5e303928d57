"""Recursive Monte Carlo tracer and per-pixel sample accumulation.

trace_path follows one light path from a ray through the scene. At every
hit the material selects a bounce strategy:

    1. no hit                     -> background (black), path ends
    2. emissive material          -> material color, path ends at any depth
    3. level > max depth          -> black, path ends
    4. quick-reflect material     -> max over point lights of cos, path ends
    5. diffuse material           -> cosine-weighted bounce, x reflect loss
    6. mixture material           -> with probability `reflect` a mirror
                                     bounce (x reflect loss), otherwise a
                                     refraction (x refract loss)

and every non-emissive level tints the returned color by its material color.
Each level has at most one child, so the recursion is unrolled into a loop
that multiplies the per-level attenuations into a throughput; the result
equals the recursive evaluation.

Dispersion samples a single wavelength per path: at the top level a random
RGB channel is drawn, every refraction uses that channel's index of
refraction, and if the path crossed a dispersive material the final color
keeps only that channel, scaled by DISPERSION_SCALE.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.core.integrator import configure_tracer, trace_ray
    >>> configure_tracer(max_depth=8, epsilon=1e-4)
    >>> color = trace_ray((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.prismtrace.camera.screen import get_ray_jittered
from src.prismtrace.core.config import (
    DEFAULT_EPSILON,
    DEFAULT_MAX_DEPTH,
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
)
from src.prismtrace.core.ray import (
    component,
    diffuse_reflect,
    isolate_component,
    orient_against,
    reflect,
    refract,
    vec3,
)
from src.prismtrace.materials.material import (
    ShadingKind,
    get_material_color,
    get_refract_rates,
    get_shading_kind,
    material_dispersive,
    material_reflect,
    material_reflect_loss,
    material_refract_loss,
)
from src.prismtrace.scene.intersection import (
    get_primitive_material,
    intersect_scene,
    num_point_lights,
    point_lights,
    primitive_face_normal,
)

# Brightness compensation when a dispersive path keeps a single channel
DISPERSION_SCALE = 3.0

# =============================================================================
# Tracer Settings
# =============================================================================

_max_depth = ti.field(dtype=ti.i32, shape=())
_epsilon = ti.field(dtype=ti.f64, shape=())


def configure_tracer(max_depth: int = DEFAULT_MAX_DEPTH, epsilon: float = DEFAULT_EPSILON) -> None:
    """Set the recursion budget and the self-intersection epsilon.

    Raises:
        ValueError: If max_depth is negative or epsilon is not positive.
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {max_depth}")
    if epsilon <= 0.0:
        raise ValueError(f"epsilon must be positive, got {epsilon}")
    _max_depth[None] = max_depth
    _epsilon[None] = epsilon


def get_tracer_settings() -> tuple[int, float]:
    """Get (max_depth, epsilon)."""
    return int(_max_depth[None]), float(_epsilon[None])


configure_tracer()


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def _point_light_intensity(hit_point: vec3, normal: vec3) -> ti.f64:
    """Largest cosine between the normal and the directions to the lights."""
    intensity = 0.0
    for i in range(num_point_lights[None]):
        cos_light = tm.dot(normal, tm.normalize(point_lights[i] - hit_point))
        intensity = ti.max(intensity, cos_light)
    return intensity


@ti.func
def trace_path(ray_origin: vec3, ray_direction: vec3, depth: ti.i32):
    """Trace one light path starting at the given recursion level.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray (normalized).
        depth: Recursion level of the first hit. Dispersion collapses the
            color only for paths started at level 0.

    Returns:
        A tuple (color, calls) where color is the RGB estimate and calls is
        the number of levels the path visited (scene queries made).
    """
    origin = ray_origin
    direction = ray_direction
    level = depth
    calls = 0
    throughput = vec3(1.0, 1.0, 1.0)
    terminal = vec3(0.0, 0.0, 0.0)

    # Path state, fixed for the whole path
    channel = ti.min(ti.cast(ti.random(ti.f64) * 3.0, ti.i32), 2)
    medium_rate = 1.0
    dispersive = 0

    epsilon = _epsilon[None]
    max_depth = _max_depth[None]

    active = 1
    while active == 1:
        calls += 1
        hit_index, distance = intersect_scene(origin, direction, epsilon)

        if hit_index < 0:
            active = 0
        else:
            material_id = get_primitive_material(hit_index)
            kind = get_shading_kind(material_id)

            if kind == int(ShadingKind.EMISSIVE):
                terminal = get_material_color(material_id)
                active = 0
            elif level > max_depth:
                active = 0
            else:
                tint = get_material_color(material_id)
                hit_point = origin + distance * direction
                normal = primitive_face_normal(hit_index, hit_point)

                if kind == int(ShadingKind.QUICK):
                    intensity = _point_light_intensity(hit_point, orient_against(normal, direction))
                    terminal = vec3(intensity, intensity, intensity)
                    throughput *= tint
                    active = 0
                elif kind == int(ShadingKind.DIFFUSE):
                    direction = diffuse_reflect(direction, normal)
                    origin = hit_point
                    throughput *= material_reflect_loss[material_id] * tint
                elif ti.random(ti.f64) < material_reflect[material_id]:
                    direction = reflect(direction, normal)
                    origin = hit_point
                    throughput *= material_reflect_loss[material_id] * tint
                else:
                    if material_dispersive[material_id] == 1:
                        dispersive = 1
                    # Alternate between entering the material and leaving it
                    rate = component(get_refract_rates(material_id), channel)
                    incident_rate = medium_rate
                    medium_rate = rate
                    if incident_rate == rate:
                        medium_rate = 1.0
                    direction = refract(direction, normal, incident_rate, medium_rate)
                    origin = hit_point + epsilon * direction
                    throughput *= material_refract_loss[material_id] * tint

                level += 1

    color = throughput * terminal
    if depth == 0 and dispersive == 1:
        color = isolate_component(color, channel, DISPERSION_SCALE)
    return color, calls


# =============================================================================
# Single Ray Probe
# =============================================================================

_probe_color = ti.Vector.field(3, dtype=ti.f64, shape=())
_probe_calls = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _trace_single(origin: vec3, direction: vec3, depth: ti.i32):
    for _ in range(1):
        color, calls = trace_path(origin, tm.normalize(direction), depth)
        _probe_color[None] = color
        _probe_calls[None] = calls


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int = 0,
) -> tuple[float, float, float]:
    """Trace a single ray from Python.

    Args:
        origin: The ray origin.
        direction: The ray direction (normalized here).
        depth: Recursion level of the first hit.

    Returns:
        The (R, G, B) color of one sampled path.
    """
    _trace_single(vec3(*origin), vec3(*direction), depth)
    color = _probe_color[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def trace_ray_bounces(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int = 0,
) -> int:
    """Trace a single ray and report how many levels its path visited."""
    _trace_single(vec3(*origin), vec3(*direction), depth)
    return int(_probe_calls[None])


# =============================================================================
# Render Target (Screen Accumulation Buffer)
# =============================================================================

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Running per-pixel average, and the raw sample of the latest pass
_screen = ti.Vector.field(3, dtype=ti.f64, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_last_sample = ti.Vector.field(3, dtype=ti.f64, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_sample_total = ti.field(dtype=ti.i32, shape=())
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image dimensions and clear the buffers.

    Raises:
        ValueError: If dimensions are outside the supported range.
    """
    if not (0 < width <= MAX_IMAGE_WIDTH and 0 < height <= MAX_IMAGE_HEIGHT):
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )
    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Clear the accumulation buffers and the sample count."""
    _screen.fill(0.0)
    _last_sample.fill(0.0)
    _sample_total[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_total_samples() -> int:
    """Get the number of samples accumulated per pixel.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return int(_sample_total[None])


@ti.kernel
def _render_one_sample(width: ti.i32, height: ti.i32, rate: ti.f64):
    """Trace one sample per pixel and blend it into the running average.

    avg <- avg * (1 - rate) + sample * rate, with rate = 1 / (s + 1) for
    sample index s.
    """
    for x, y in ti.ndrange(width, height):
        ray = get_ray_jittered(x, y, width, height)
        color, _ = trace_path(ray.origin, ray.direction, 0)

        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0

        _last_sample[x, y] = color
        _screen[x, y] = _screen[x, y] * (1.0 - rate) + color * rate


def render_sample(sample_index: int) -> None:
    """Render the sample with the given index into the accumulation buffer.

    The buffer must already hold the average of sample_index samples.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    _render_one_sample(width, height, 1.0 / (sample_index + 1))
    _sample_total[None] = sample_index + 1


def render_samples(sample_start: int, sample_end: int) -> None:
    """Render samples [sample_start, sample_end) without flushing."""
    for sample_index in range(sample_start, sample_end):
        render_sample(sample_index)


def _active_region(field: "ti.MatrixField") -> npt.NDArray[np.float64]:
    width, height = get_image_dimensions()
    image = field.to_numpy()[:width, :height, :]
    # (width, height, 3) -> (height, width, 3), first row at the top
    return np.flipud(np.transpose(image, (1, 0, 2))).copy()


def get_image_numpy() -> npt.NDArray[np.float64]:
    """Snapshot of the running average as a (height, width, 3) array.

    Values are linear and unclamped.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return _active_region(_screen)


def get_last_sample_numpy() -> npt.NDArray[np.float64]:
    """Snapshot of the most recent raw sample as a (height, width, 3) array.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return _active_region(_last_sample)


def get_pixel(x: int, y: int) -> tuple[float, float, float]:
    """Running average of one pixel, in screen coordinates (y up)."""
    _check_render_target_initialized()
    color = _screen[x, y]
    return (float(color[0]), float(color[1]), float(color[2]))


def load_image_numpy(image: npt.NDArray[np.floating], sample_count: int) -> None:
    """Seed the running average with a previous (height, width, 3) result.

    Rendering then continues at sample index sample_count.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If the image shape does not match the render target or
            sample_count is negative.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    if image.shape != (height, width, 3):
        raise ValueError(f"Expected an image of shape {(height, width, 3)}, got {image.shape}")
    if sample_count < 0:
        raise ValueError(f"sample_count must be non-negative, got {sample_count}")
    buffer = _screen.to_numpy()
    buffer[:width, :height, :] = np.transpose(np.flipud(image), (1, 0, 2))
    _screen.from_numpy(buffer)
    _sample_total[None] = sample_count
