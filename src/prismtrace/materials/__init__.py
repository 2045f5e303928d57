"""Materials module.

A single parametric material drives every bounce: emissive, quick-reflect
(direct point-light shading), diffuse, or a reflect/refract mixture with
optional per-channel indices of refraction.

The material registry lives in Taichi fields, so this package must be
imported after ti.init.
"""

from .material import (
    MAX_MATERIALS,
    Material,
    ShadingKind,
    add_material,
    clear_materials,
    diffuse,
    get_material_count,
    glass,
    light,
    mirror,
    preview,
)

__all__ = [
    "MAX_MATERIALS",
    "Material",
    "ShadingKind",
    "add_material",
    "clear_materials",
    "get_material_count",
    "diffuse",
    "glass",
    "light",
    "mirror",
    "preview",
]
