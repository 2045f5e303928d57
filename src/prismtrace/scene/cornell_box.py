"""Cornell box scene configuration.

The classic Cornell box test scene built from triangles and spheres:

- 5 walls forming an open box (left, right, back, floor, ceiling), each a
  quad made of two triangles
- Left wall red, right wall green, the rest white diffuse
- An emissive panel just below the ceiling, plus a point light at its center
  for quick-reflect previews
- 3 spheres: diffuse, mirror and dispersive glass

The box spans 0 to box_size on every axis. The screen covers the open front
face at z = 0 and the eye sits in front of it, looking toward +Z.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.scene.cornell_box import create_cornell_box_scene
    >>> scene, camera = create_cornell_box_scene(image_size=256)
"""

from dataclasses import dataclass

from src.prismtrace.camera.basis import Camera
from src.prismtrace.materials.material import diffuse, glass, light, mirror, preview
from src.prismtrace.scene.manager import SceneManager


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_color: RGB emission of the ceiling panel, each in [0, 1].
        left_wall_color: RGB reflectance of the left wall.
        right_wall_color: RGB reflectance of the right wall.
        white_color: RGB reflectance of back wall, floor and ceiling.
        wall_loss_rate: Attenuation of a diffuse bounce off the walls.
        glass_refract_rate: Per-channel indices of refraction of the glass
            sphere. Equal values disable dispersion.
        quick_preview: Shade walls and the diffuse sphere with quick-reflect
            materials (direct point light only) for fast previews.

    Example:
        >>> custom = CornellBoxParams(
        ...     light_color=(1.0, 0.9, 0.8),  # Warm light
        ...     glass_refract_rate=(1.5, 1.5, 1.5),  # No dispersion
        ... )
    """

    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    white_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    wall_loss_rate: float = 0.9
    glass_refract_rate: tuple[float, float, float] = (1.45, 1.5, 1.55)
    quick_preview: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "CornellBoxParams":
        """Build parameters from a dictionary, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        for key in ("light_color", "left_wall_color", "right_wall_color", "white_color", "glass_refract_rate"):
            if key in known:
                known[key] = tuple(known[key])
        return cls(**known)


# =============================================================================
# Cornell Box Constants
# =============================================================================

# Classic Cornell box dimensions (approximately 555x555x555 units)
BOX_SIZE = 555.0

# Ceiling panel size (classic Cornell box light is ~130x105 units)
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

SPHERE_RADIUS = 80.0

# Distance of the eye in front of the open face
CAMERA_DISTANCE = 800.0


def get_light_panel_info(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float]]:
    """Get the ceiling panel geometry.

    Returns:
        A dictionary with the panel 'corner', its edges 'edge_u' and
        'edge_v', and its 'center'.
    """
    x_offset = (box_size - LIGHT_WIDTH) / 2.0
    z_offset = (box_size - LIGHT_DEPTH) / 2.0
    # Just below the ceiling so the two surfaces never coincide
    light_y = box_size - 1.0
    return {
        "corner": (x_offset, light_y, z_offset),
        "edge_u": (LIGHT_WIDTH, 0.0, 0.0),
        "edge_v": (0.0, 0.0, LIGHT_DEPTH),
        "center": (x_offset + LIGHT_WIDTH / 2.0, light_y, z_offset + LIGHT_DEPTH / 2.0),
    }


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
    image_size: int = 256,
) -> tuple[SceneManager, Camera]:
    """Create a Cornell box scene with standard configuration.

    Args:
        box_size: The size of the box in each dimension.
        params: Optional CornellBoxParams for customizing colors and
            materials. If None, uses default CornellBoxParams().
        image_size: Width (and height) in pixels the camera's screen is
            sized for, so that the image covers the open face of the box.

    Returns:
        A tuple of (SceneManager, Camera).

    Example:
        >>> scene, camera = create_cornell_box_scene()
        >>> scene.get_primitive_count()
        15
    """
    if params is None:
        params = CornellBoxParams()

    scene = SceneManager()

    # =========================================================================
    # Materials
    # =========================================================================

    if params.quick_preview:
        left_mat = scene.add_material(preview(params.left_wall_color))
        right_mat = scene.add_material(preview(params.right_wall_color))
        white_mat = scene.add_material(preview(params.white_color))
    else:
        left_mat = scene.add_material(diffuse(params.left_wall_color, params.wall_loss_rate))
        right_mat = scene.add_material(diffuse(params.right_wall_color, params.wall_loss_rate))
        white_mat = scene.add_material(diffuse(params.white_color, params.wall_loss_rate))
    light_mat = scene.add_material(light(params.light_color))
    mirror_mat = scene.add_material(mirror((0.95, 0.93, 0.88), loss_rate=0.95))
    glass_mat = scene.add_material(glass(params.glass_refract_rate, reflect=0.1, refract_loss_rate=0.95))

    # =========================================================================
    # Walls (5 quads forming the box, open toward the camera)
    # =========================================================================

    # Left wall, camera looks toward +Z so +X is on the left of the image
    scene.add_quad((box_size, 0.0, 0.0), (0.0, box_size, 0.0), (0.0, 0.0, box_size), left_mat)
    scene.add_quad((0.0, 0.0, 0.0), (0.0, box_size, 0.0), (0.0, 0.0, box_size), right_mat)
    # Back wall, floor, ceiling
    scene.add_quad((0.0, 0.0, box_size), (box_size, 0.0, 0.0), (0.0, box_size, 0.0), white_mat)
    scene.add_quad((0.0, 0.0, 0.0), (box_size, 0.0, 0.0), (0.0, 0.0, box_size), white_mat)
    scene.add_quad((0.0, box_size, 0.0), (box_size, 0.0, 0.0), (0.0, 0.0, box_size), white_mat)

    # =========================================================================
    # Light
    # =========================================================================

    panel = get_light_panel_info(box_size)
    scene.add_quad(panel["corner"], panel["edge_u"], panel["edge_v"], light_mat)
    light_center = panel["center"]
    scene.add_point_light((light_center[0], light_center[1] - 1.0, light_center[2]))

    # =========================================================================
    # Spheres
    # =========================================================================

    scene.add_sphere((box_size * 0.27, SPHERE_RADIUS, box_size * 0.35), SPHERE_RADIUS, white_mat)
    scene.add_sphere((box_size * 0.73, SPHERE_RADIUS, box_size * 0.35), SPHERE_RADIUS, mirror_mat)
    scene.add_sphere((box_size * 0.5, SPHERE_RADIUS, box_size * 0.65), SPHERE_RADIUS, glass_mat)

    # =========================================================================
    # Camera
    # =========================================================================

    camera = Camera(
        eye=(box_size / 2.0, box_size / 2.0, -CAMERA_DISTANCE),
        center=(box_size / 2.0, box_size / 2.0, 0.0),
        pixel_size=box_size / image_size,
    )

    return scene, camera


def get_cornell_box_bounds(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float]]:
    """Get the bounding box of the Cornell box scene."""
    return {
        "min": (0.0, 0.0, 0.0),
        "max": (box_size, box_size, box_size),
        "center": (box_size / 2.0, box_size / 2.0, box_size / 2.0),
        "size": (box_size, box_size, box_size),
    }
