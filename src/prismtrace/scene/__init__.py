"""Scene module for primitive storage and scene construction.

Components:
    intersection: Primitive fields and nearest-hit queries
    manager: SceneManager, the construction API for the scene
    cornell_box: Cornell box preset
    prism: Dispersion test scene

Scene data lives in Taichi fields; import this package after ti.init.
"""

from .cornell_box import BOX_SIZE, CornellBoxParams, create_cornell_box_scene
from .intersection import (
    MAX_POINT_LIGHTS,
    MAX_PRIMITIVES,
    PrimitiveKind,
    clear_scene,
    intersect_scene,
)
from .manager import PrimitiveInfo, SceneConfig, SceneManager
from .prism import create_prism_scene

__all__ = [
    "MAX_POINT_LIGHTS",
    "MAX_PRIMITIVES",
    "PrimitiveKind",
    "clear_scene",
    "intersect_scene",
    "PrimitiveInfo",
    "SceneConfig",
    "SceneManager",
    "BOX_SIZE",
    "CornellBoxParams",
    "create_cornell_box_scene",
    "create_prism_scene",
]
