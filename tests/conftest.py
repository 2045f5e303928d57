"""Pytest configuration for ray tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, default_fp=ti.f64, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene, material and tracer state before and after each test."""
    # Import here so that the fields are created after ti.init
    from src.prismtrace.core.integrator import clear_render_target, configure_tracer
    from src.prismtrace.materials.material import clear_materials
    from src.prismtrace.scene.intersection import clear_scene

    def _clear_all():
        clear_scene()
        clear_materials()
        configure_tracer()
        clear_render_target()

    _clear_all()
    yield
    _clear_all()
