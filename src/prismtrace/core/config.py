"""Render configuration and Taichi runtime initialisation.

RenderConfig gathers every input fixed at render start: image size, sample
range, recursion budget, self-intersection epsilon, flush stride and the
camera. It is validated on construction and not modified during a render.

Example:
    >>> from src.prismtrace.core.config import RenderConfig, init_taichi
    >>> config = RenderConfig(width=64, height=48, sample_end=16)
    >>> init_taichi(config)
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any

import taichi as ti

from src.prismtrace.camera.basis import Camera

# Default recursion budget (levels beyond which a path returns black)
DEFAULT_MAX_DEPTH = 8

# Minimum hit distance, and the push past a surface on refraction
DEFAULT_EPSILON = 1e-4

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_ARCHES = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
    "cuda": ti.cuda,
    "vulkan": ti.vulkan,
}


@dataclass(frozen=True)
class RenderConfig:
    """Inputs of one progressive render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        sample_start: Index of the first sample to render. A nonzero value
            continues an accumulation that already holds sample_start samples.
        sample_end: One past the index of the last sample to render.
        max_depth: Recursion budget; hits at a deeper level return black.
        epsilon: Self-intersection guard distance.
        flush_every: Number of samples between flushes to the writer.
        camera: Eye, screen center and pixel size.
        arch: Taichi backend name ("cpu", "gpu", "cuda", "vulkan").
        random_seed: Seed for Taichi's random number generator.
    """

    width: int = 256
    height: int = 256
    sample_start: int = 0
    sample_end: int = 64
    max_depth: int = DEFAULT_MAX_DEPTH
    epsilon: float = DEFAULT_EPSILON
    flush_every: int = 1
    camera: Camera = field(default_factory=Camera)
    arch: str = "cpu"
    random_seed: int = 0

    def __post_init__(self) -> None:
        if not (0 < self.width <= MAX_IMAGE_WIDTH and 0 < self.height <= MAX_IMAGE_HEIGHT):
            raise ValueError(
                f"Image dimensions ({self.width}x{self.height}) outside supported range "
                f"(1..{MAX_IMAGE_WIDTH}x1..{MAX_IMAGE_HEIGHT})"
            )
        if self.sample_start < 0 or self.sample_end < self.sample_start:
            raise ValueError(
                f"Invalid sample range [{self.sample_start}, {self.sample_end})"
            )
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if self.epsilon <= 0.0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")
        if self.flush_every < 1:
            raise ValueError(f"flush_every must be at least 1, got {self.flush_every}")
        if self.arch not in _ARCHES:
            raise ValueError(f"Unknown Taichi arch: {self.arch}")

    @property
    def num_samples(self) -> int:
        """Number of samples in the configured range."""
        return self.sample_end - self.sample_start

    def with_samples(self, sample_start: int, sample_end: int) -> "RenderConfig":
        """Return a copy with a different sample range."""
        return replace(self, sample_start=sample_start, sample_end=sample_end)

    def to_dict(self) -> dict[str, Any]:
        """Export the configuration as plain Python values."""
        data = asdict(self)
        data["camera"] = {
            "eye": list(self.camera.eye),
            "center": list(self.camera.center),
            "pixel_size": self.camera.pixel_size,
        }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderConfig":
        """Build a configuration from a dictionary.

        Unknown keys are ignored; missing keys take their defaults.
        """
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        camera = values.pop("camera", None)
        if isinstance(camera, dict):
            values["camera"] = Camera(
                eye=tuple(camera.get("eye", (0.0, 0.0, 0.0))),
                center=tuple(camera.get("center", (0.0, 0.0, 1.0))),
                pixel_size=camera.get("pixel_size", 1.0),
            )
        elif camera is not None:
            values["camera"] = camera
        return cls(**values)


def init_taichi(config: RenderConfig | None = None, **kwargs: Any) -> None:
    """Initialise the Taichi runtime in double precision.

    Must run before any module that declares Taichi fields is imported.

    Args:
        config: Supplies the backend and random seed. Defaults apply when None.
        **kwargs: Extra keyword arguments forwarded to ti.init.
    """
    config = config or RenderConfig()
    ti.init(
        arch=_ARCHES[config.arch],
        default_fp=ti.f64,
        random_seed=config.random_seed,
        **kwargs,
    )
