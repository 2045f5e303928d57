"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities (reflect, refract,
        diffuse scattering)
    config: Render configuration and Taichi initialisation
    integrator: Path tracer and per-pixel sample accumulation
    progressive: Progressive render loop with periodic output

All compute-intensive operations use Taichi kernels in double precision.
"""

from .config import (
    DEFAULT_EPSILON,
    DEFAULT_MAX_DEPTH,
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
    RenderConfig,
    init_taichi,
)
from .ray import (
    Ray,
    build_onb_from_normal,
    diffuse_reflect,
    make_ray,
    reflect,
    refract,
    vec3,
)

# Note: integrator and progressive declare Taichi fields and are NOT imported
# here, so that init_taichi can run first. Import them directly:
#   from src.prismtrace.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "make_ray",
    "vec3",
    "reflect",
    "refract",
    "diffuse_reflect",
    "build_onb_from_normal",
    "RenderConfig",
    "init_taichi",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_EPSILON",
    "MAX_IMAGE_WIDTH",
    "MAX_IMAGE_HEIGHT",
]
