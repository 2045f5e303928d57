"""Camera module.

Components:
    basis: Camera configuration and screen basis (no Taichi state)
    screen: Screen basis fields and primary ray generation

The screen module declares Taichi fields; import it after ti.init:
    from src.prismtrace.camera.screen import setup_camera
"""

from .basis import Camera, compute_screen_basis

__all__ = ["Camera", "compute_screen_basis"]
