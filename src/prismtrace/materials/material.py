"""Material model: shading recipes shared by scene primitives.

A material decides what the tracer does when a ray hits a primitive:

    - radiate != 0: the surface is a light; the path ends with its color.
    - quick_reflect: direct Lambertian response to the point lights only,
      with no recursion (cheap preview shading).
    - diffuse_reflect: cosine-weighted diffuse scattering.
    - otherwise a stochastic mixture: with probability `reflect` the ray is
      mirrored, else it is refracted using the per-channel indices of
      refraction in `refract_rate` (unequal values model dispersion).

Materials are stored Structure-of-Arrays in Taichi fields and referenced by
integer material id. Many primitives may share one material.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.materials.material import Material, add_material
    >>> glass = add_material(Material(reflect=0.1, refract_rate=(1.5, 1.5, 1.5)))
"""

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any

import taichi as ti

from src.prismtrace.core.ray import vec3


class ShadingKind(IntEnum):
    """Bounce strategy selected by a material, in priority order."""

    EMISSIVE = 0
    QUICK = 1
    DIFFUSE = 2
    MIXTURE = 3


@dataclass
class Material:
    """Shading recipe for a primitive.

    Attributes:
        color: RGB reflectance (or emission color for lights), each in [0, 1].
        radiate: Nonzero marks the material as a light source.
        quick_reflect: Use direct point-light shading with no recursion.
        diffuse_reflect: Scatter every hit diffusely.
        reflect: Probability in [0, 1] of specular reflection over
            refraction for mixture materials.
        reflect_loss_rate: Attenuation applied on reflected and diffuse
            bounces, in [0, 1].
        refract_loss_rate: Attenuation applied on refracted bounces, in [0, 1].
        refract_rate: Index of refraction per RGB channel (positive).
    """

    color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    radiate: float = 0.0
    quick_reflect: bool = False
    diffuse_reflect: bool = False
    reflect: float = 1.0
    reflect_loss_rate: float = 1.0
    refract_loss_rate: float = 1.0
    refract_rate: tuple[float, float, float] = (1.0, 1.0, 1.0)

    def __post_init__(self) -> None:
        self.color = _as_triple(self.color, "color")
        self.refract_rate = _as_triple(self.refract_rate, "refract_rate")

        for i, component in enumerate(self.color):
            if component < 0.0 or component > 1.0:
                raise ValueError(f"Color component {i} = {component} is outside [0, 1]")
        for name in ("reflect", "reflect_loss_rate", "refract_loss_rate"):
            value = getattr(self, name)
            if value < 0.0 or value > 1.0:
                raise ValueError(f"{name} = {value} is outside [0, 1]")
        for i, rate in enumerate(self.refract_rate):
            if rate <= 0.0:
                raise ValueError(f"Index of refraction {i} = {rate} must be positive")

    @property
    def is_light(self) -> bool:
        """Whether the material emits light."""
        return self.radiate != 0

    @property
    def is_dispersive(self) -> bool:
        """Whether the per-channel indices of refraction differ."""
        r = self.refract_rate
        return r[0] != r[1] or r[0] != r[2]

    @property
    def shading_kind(self) -> ShadingKind:
        """The bounce strategy this material selects."""
        if self.is_light:
            return ShadingKind.EMISSIVE
        if self.quick_reflect:
            return ShadingKind.QUICK
        if self.diffuse_reflect:
            return ShadingKind.DIFFUSE
        return ShadingKind.MIXTURE

    def to_dict(self) -> dict[str, Any]:
        """Export the material parameters as plain Python values."""
        data = asdict(self)
        data["color"] = list(self.color)
        data["refract_rate"] = list(self.refract_rate)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Material":
        """Build a material from a dictionary produced by to_dict."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def _as_triple(values: Any, name: str) -> tuple[float, float, float]:
    if len(values) != 3:
        raise ValueError(f"{name} must have exactly 3 components, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


# =============================================================================
# Material Presets
# =============================================================================


def light(color: tuple[float, float, float] = (1.0, 1.0, 1.0)) -> Material:
    """An emissive material."""
    return Material(color=color, radiate=1.0)


def diffuse(color: tuple[float, float, float], loss_rate: float = 1.0) -> Material:
    """A pure diffuse (Lambertian) material."""
    return Material(color=color, diffuse_reflect=True, reflect_loss_rate=loss_rate)


def mirror(color: tuple[float, float, float] = (1.0, 1.0, 1.0), loss_rate: float = 1.0) -> Material:
    """A perfect specular reflector."""
    return Material(color=color, reflect=1.0, reflect_loss_rate=loss_rate)


def glass(
    refract_rate: float | tuple[float, float, float] = 1.5,
    reflect: float = 0.1,
    color: tuple[float, float, float] = (1.0, 1.0, 1.0),
    refract_loss_rate: float = 1.0,
    reflect_loss_rate: float = 1.0,
) -> Material:
    """A transparent material; a triple of rates makes it dispersive."""
    if isinstance(refract_rate, (int, float)):
        refract_rate = (float(refract_rate),) * 3
    return Material(
        color=color,
        reflect=reflect,
        reflect_loss_rate=reflect_loss_rate,
        refract_loss_rate=refract_loss_rate,
        refract_rate=refract_rate,
    )


def preview(color: tuple[float, float, float]) -> Material:
    """A quick-reflect material lit directly by the point lights."""
    return Material(color=color, quick_reflect=True)


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_MATERIALS = 256

material_colors = ti.Vector.field(3, dtype=ti.f64, shape=MAX_MATERIALS)
material_refract_rates = ti.Vector.field(3, dtype=ti.f64, shape=MAX_MATERIALS)
material_kinds = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_reflect = ti.field(dtype=ti.f64, shape=MAX_MATERIALS)
material_reflect_loss = ti.field(dtype=ti.f64, shape=MAX_MATERIALS)
material_refract_loss = ti.field(dtype=ti.f64, shape=MAX_MATERIALS)
material_dispersive = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Resets the material count to zero. Existing data in the fields will be
    overwritten when new materials are added.
    """
    num_materials[None] = 0


def add_material(material: Material) -> int:
    """Add a material to the material registry.

    Args:
        material: The validated material recipe.

    Returns:
        The material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    material_colors[idx] = list(material.color)
    material_refract_rates[idx] = list(material.refract_rate)
    material_kinds[idx] = int(material.shading_kind)
    material_reflect[idx] = material.reflect
    material_reflect_loss[idx] = material.reflect_loss_rate
    material_refract_loss[idx] = material.refract_loss_rate
    material_dispersive[idx] = int(material.is_dispersive)
    num_materials[None] = idx + 1
    return idx


def get_material_count() -> int:
    """Get the number of materials in the registry."""
    return int(num_materials[None])


@ti.func
def get_shading_kind(material_id: ti.i32) -> ti.i32:
    """Get the ShadingKind of a material (as an integer)."""
    return material_kinds[material_id]


@ti.func
def get_material_color(material_id: ti.i32) -> vec3:
    """Get the base color of a material."""
    return material_colors[material_id]


@ti.func
def get_refract_rates(material_id: ti.i32) -> vec3:
    """Get the per-channel indices of refraction of a material."""
    return material_refract_rates[material_id]
