"""Dispersion test scene: a glass prism between a light and a white floor.

A triangular prism of dispersive glass stands on a diffuse floor in front of
a bright spherical light. Light refracted through the prism separates into
its RGB channels, so the floor behind it shows colored fringes.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from src.prismtrace.scene.prism import create_prism_scene
    >>> scene, camera = create_prism_scene(image_size=200)
"""

from src.prismtrace.camera.basis import Camera
from src.prismtrace.materials.material import diffuse, glass, light
from src.prismtrace.scene.manager import SceneManager

# Indices of refraction per channel, strongly separated to make fringes visible
PRISM_REFRACT_RATE = (1.4, 1.5, 1.6)


def add_prism(
    scene: SceneManager,
    base: tuple[float, float, float],
    side: float,
    height: float,
    material_id: int,
) -> list[int]:
    """Add an upright triangular prism as eight triangles.

    The prism's equilateral cross-section lies in the XZ plane with one
    corner at base, and it extends height units along +Y.

    Returns:
        The primitive indices.
    """
    bx, by, bz = base
    a = (bx, by, bz)
    b = (bx + side, by, bz)
    c = (bx + side / 2.0, by, bz + side * 3.0**0.5 / 2.0)
    up = (0.0, height, 0.0)

    def lift(p: tuple[float, float, float]) -> tuple[float, float, float]:
        return (p[0], p[1] + height, p[2])

    indices = [
        scene.add_triangle(a, c, b, material_id),
        scene.add_triangle(lift(a), lift(b), lift(c), material_id),
    ]
    for p, q in ((a, b), (b, c), (c, a)):
        edge = (q[0] - p[0], q[1] - p[1], q[2] - p[2])
        indices.extend(scene.add_quad(p, edge, up, material_id))
    return indices


def create_prism_scene(image_size: int = 256) -> tuple[SceneManager, Camera]:
    """Create the dispersion test scene.

    Returns:
        A tuple of (SceneManager, Camera).
    """
    scene = SceneManager()

    floor_mat = scene.add_material(diffuse((0.9, 0.9, 0.9), loss_rate=0.9))
    light_mat = scene.add_material(light())
    prism_mat = scene.add_material(glass(PRISM_REFRACT_RATE, reflect=0.05, refract_loss_rate=0.98))

    scene.add_quad((-400.0, 0.0, -200.0), (800.0, 0.0, 0.0), (0.0, 0.0, 1000.0), floor_mat)
    scene.add_sphere((0.0, 150.0, 700.0), 100.0, light_mat)
    add_prism(scene, (-60.0, 0.0, 300.0), side=120.0, height=160.0, material_id=prism_mat)

    camera = Camera(
        eye=(0.0, 300.0, -500.0),
        center=(0.0, 220.0, -100.0),
        pixel_size=500.0 / image_size,
    )
    return scene, camera
