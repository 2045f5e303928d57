"""Scene manager: the construction API for primitives, materials and lights.

The SceneManager is the only writer of the scene fields. It keeps a Python
mirror of everything it adds (for validation, queries and export), and it
can be frozen: once a render starts the scene is read-only and any further
mutation raises RuntimeError.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.materials.material import diffuse, light
    >>> from src.prismtrace.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> lamp = scene.add_material(light())
    >>> floor = scene.add_material(diffuse((0.8, 0.8, 0.8)))
    >>> scene.add_sphere((0, 0, 5), 1.0, lamp)
    >>> scene.add_quad((-10, -2, -10), (20, 0, 0), (0, 0, 20), floor)
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from src.prismtrace.geometry.triangle import triangle_area
from src.prismtrace.materials.material import (
    MAX_MATERIALS,
    Material,
    add_material,
    clear_materials,
)
from src.prismtrace.scene.intersection import (
    MAX_POINT_LIGHTS,
    MAX_PRIMITIVES,
    PrimitiveKind,
    add_point_light,
    add_sphere,
    add_triangle,
    clear_scene,
    get_point_light_count,
    get_primitive_count,
)

logger = logging.getLogger(__name__)

Point = tuple[float, float, float]


@dataclass
class PrimitiveInfo:
    """Information about a primitive in the scene.

    Attributes:
        index: The index in the primitive storage arrays.
        kind: Triangle or sphere.
        points: The triangle vertices, or the sphere center alone.
        radius: The sphere radius (0 for triangles).
        material_id: The material referenced by the primitive.
    """

    index: int
    kind: PrimitiveKind
    points: tuple[Point, ...]
    radius: float
    material_id: int


@dataclass
class SceneConfig:
    """Plain-data description of a scene.

    Attributes:
        materials: Material parameter dictionaries, in id order.
        primitives: Primitive dictionaries in scan order. Each has a kind
            of "triangle" (with p0, p1, p2) or "sphere" (with center and
            radius), plus a material_id.
        point_lights: Light positions.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    primitives: list[dict[str, Any]] = field(default_factory=list)
    point_lights: list[list[float]] = field(default_factory=list)


def _as_point(values: Any, name: str) -> Point:
    if len(values) != 3:
        raise ValueError(f"{name} must have exactly 3 coordinates, got {len(values)}")
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Builds and owns the scene for a render.

    Attributes:
        materials: Materials in id order.
        primitives: Primitives in scan order.
        lights: Point light positions.
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[Material] = []
        self.primitives: list[PrimitiveInfo] = []
        self.lights: list[Point] = []
        self._frozen = False
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        clear_materials()
        self.materials.clear()
        self.primitives.clear()
        self.lights.clear()

    def clear(self) -> None:
        """Clear the entire scene and unfreeze it."""
        self._frozen = False
        self._clear_all()

    # =========================================================================
    # Freezing
    # =========================================================================

    @property
    def frozen(self) -> bool:
        """Whether the scene is locked for rendering."""
        return self._frozen

    def freeze(self) -> None:
        """Validate the scene and lock it against further changes.

        Raises:
            ValueError: If the scene has no primitives.
        """
        self.validate()
        if not self._frozen:
            logger.debug(
                "Scene frozen with %d primitives, %d materials, %d point lights",
                len(self.primitives),
                len(self.materials),
                len(self.lights),
            )
        self._frozen = True

    def unfreeze(self) -> None:
        """Allow changes again (only between renders)."""
        self._frozen = False

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("Scene is frozen while rendering; call unfreeze() first")

    def validate(self) -> None:
        """Check the preconditions of a render.

        Raises:
            ValueError: If the scene has no primitives.
        """
        if not self.primitives:
            raise ValueError("Scene has no primitives to render")

    # =========================================================================
    # Materials
    # =========================================================================

    def add_material(self, material: Material) -> int:
        """Register a material and return its id.

        Raises:
            RuntimeError: If the scene is frozen or the registry is full.
        """
        self._check_mutable()
        material_id = add_material(material)
        self.materials.append(material)
        return material_id

    def get_material(self, material_id: int) -> Material:
        """Get a registered material by id.

        Raises:
            ValueError: If no material has that id.
        """
        self._check_material_id(material_id)
        return self.materials[material_id]

    def get_material_count(self) -> int:
        """Get the number of registered materials."""
        return len(self.materials)

    def _check_material_id(self, material_id: int) -> None:
        if not 0 <= material_id < len(self.materials):
            raise ValueError(
                f"Unknown material id {material_id} ({len(self.materials)} materials registered)"
            )

    # =========================================================================
    # Primitives
    # =========================================================================

    def add_triangle(self, p0: Point, p1: Point, p2: Point, material_id: int) -> int:
        """Add a triangle with vertices p0, p1, p2.

        Zero-area triangles are accepted and never hit.

        Returns:
            The primitive index.

        Raises:
            RuntimeError: If the scene is frozen or full.
            ValueError: If the material id is unknown.
        """
        self._check_mutable()
        self._check_material_id(material_id)
        p0 = _as_point(p0, "p0")
        p1 = _as_point(p1, "p1")
        p2 = _as_point(p2, "p2")
        if triangle_area(p0, p1, p2) == 0.0:
            logger.warning("Degenerate triangle %s, %s, %s will never be hit", p0, p1, p2)

        index = add_triangle(p0, p1, p2, material_id)
        self.primitives.append(
            PrimitiveInfo(
                index=index,
                kind=PrimitiveKind.TRIANGLE,
                points=(p0, p1, p2),
                radius=0.0,
                material_id=material_id,
            )
        )
        return index

    def add_sphere(self, center: Point, radius: float, material_id: int) -> int:
        """Add a sphere.

        Returns:
            The primitive index.

        Raises:
            RuntimeError: If the scene is frozen or full.
            ValueError: If the radius is not positive or the material id is
                unknown.
        """
        self._check_mutable()
        self._check_material_id(material_id)
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        center = _as_point(center, "center")

        index = add_sphere(center, float(radius), material_id)
        self.primitives.append(
            PrimitiveInfo(
                index=index,
                kind=PrimitiveKind.SPHERE,
                points=(center,),
                radius=float(radius),
                material_id=material_id,
            )
        )
        return index

    def add_quad(self, corner: Point, edge_u: Point, edge_v: Point, material_id: int) -> tuple[int, int]:
        """Add a parallelogram as two triangles.

        The vertices are corner, corner+u, corner+v and corner+u+v.

        Returns:
            The two primitive indices.
        """
        corner = _as_point(corner, "corner")
        edge_u = _as_point(edge_u, "edge_u")
        edge_v = _as_point(edge_v, "edge_v")
        p_u = tuple(corner[i] + edge_u[i] for i in range(3))
        p_v = tuple(corner[i] + edge_v[i] for i in range(3))
        p_uv = tuple(corner[i] + edge_u[i] + edge_v[i] for i in range(3))
        first = self.add_triangle(corner, p_u, p_uv, material_id)
        second = self.add_triangle(corner, p_uv, p_v, material_id)
        return first, second

    def add_cuboid(self, min_corner: Point, max_corner: Point, material_id: int) -> list[int]:
        """Add an axis-aligned box as twelve triangles.

        Returns:
            The primitive indices.
        """
        x0, y0, z0 = _as_point(min_corner, "min_corner")
        x1, y1, z1 = _as_point(max_corner, "max_corner")
        dx, dy, dz = x1 - x0, y1 - y0, z1 - z0
        faces = [
            ((x0, y0, z0), (dx, 0, 0), (0, dy, 0)),
            ((x0, y0, z1), (dx, 0, 0), (0, dy, 0)),
            ((x0, y0, z0), (0, dy, 0), (0, 0, dz)),
            ((x1, y0, z0), (0, dy, 0), (0, 0, dz)),
            ((x0, y0, z0), (dx, 0, 0), (0, 0, dz)),
            ((x0, y1, z0), (dx, 0, 0), (0, 0, dz)),
        ]
        indices: list[int] = []
        for corner, edge_u, edge_v in faces:
            indices.extend(self.add_quad(corner, edge_u, edge_v, material_id))
        return indices

    def add_point_light(self, position: Point) -> int:
        """Add a point light used by quick-reflect materials.

        Returns:
            The light index.
        """
        self._check_mutable()
        position = _as_point(position, "position")
        index = add_point_light(position)
        self.lights.append(position)
        return index

    # =========================================================================
    # Convenience
    # =========================================================================

    def add_sphere_with_material(self, center: Point, radius: float, material: Material) -> tuple[int, int]:
        """Register a material and add a sphere using it.

        Returns:
            Tuple of (primitive_index, material_id).
        """
        material_id = self.add_material(material)
        return self.add_sphere(center, radius, material_id), material_id

    def add_triangle_with_material(self, p0: Point, p1: Point, p2: Point, material: Material) -> tuple[int, int]:
        """Register a material and add a triangle using it.

        Returns:
            Tuple of (primitive_index, material_id).
        """
        material_id = self.add_material(material)
        return self.add_triangle(p0, p1, p2, material_id), material_id

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_primitive_count(self) -> int:
        """Get the number of primitives stored in the scene fields."""
        return get_primitive_count()

    def get_point_light_count(self) -> int:
        """Get the number of point lights stored in the scene fields."""
        return get_point_light_count()

    def get_light_source_count(self) -> int:
        """Get the number of primitives whose material emits light."""
        return sum(1 for p in self.primitives if self.materials[p.material_id].is_light)

    # =========================================================================
    # Export / Import
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object."""
        config = SceneConfig()
        config.materials = [m.to_dict() for m in self.materials]
        for prim in self.primitives:
            if prim.kind == PrimitiveKind.SPHERE:
                config.primitives.append(
                    {
                        "kind": "sphere",
                        "center": list(prim.points[0]),
                        "radius": prim.radius,
                        "material_id": prim.material_id,
                    }
                )
            else:
                config.primitives.append(
                    {
                        "kind": "triangle",
                        "p0": list(prim.points[0]),
                        "p1": list(prim.points[1]),
                        "p2": list(prim.points[2]),
                        "material_id": prim.material_id,
                    }
                )
        config.point_lights = [list(p) for p in self.lights]
        return config

    def from_config(self, config: SceneConfig) -> None:
        """Clear the scene and load a configuration.

        Primitives are added in the order they are listed.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()
        for mat_config in config.materials:
            self.add_material(Material.from_dict(mat_config))
        for prim in config.primitives:
            kind = prim.get("kind")
            material_id = prim.get("material_id", 0)
            if kind == "triangle":
                self.add_triangle(prim["p0"], prim["p1"], prim["p2"], material_id)
            elif kind == "sphere":
                self.add_sphere(prim["center"], prim["radius"], material_id)
            else:
                raise ValueError(f"Unknown primitive kind: {kind!r}")
        for position in config.point_lights:
            self.add_point_light(position)

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary."""
        config = self.to_config()
        return {
            "materials": config.materials,
            "primitives": config.primitives,
            "point_lights": config.point_lights,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by to_dict."""
        config = SceneConfig(
            materials=data.get("materials", []),
            primitives=data.get("primitives", []),
            point_lights=data.get("point_lights", []),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_primitives() -> int:
        """Get the maximum number of primitives supported."""
        return MAX_PRIMITIVES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS

    @staticmethod
    def get_max_point_lights() -> int:
        """Get the maximum number of point lights supported."""
        return MAX_POINT_LIGHTS
