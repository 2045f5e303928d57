"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting sphere from outside
- Ray missing sphere
- Ray starting inside sphere or on its surface (far root)
- Sphere behind the ray
- Hit points lying on the surface for many random rays
"""

import numpy as np
import pytest
import taichi as ti


def _distance(origin, direction, center, radius, t_min=0.0) -> float:
    from src.prismtrace.geometry.sphere import ray_sphere, vec3

    result = ti.field(dtype=ti.f64, shape=())

    @ti.kernel
    def test_kernel(o: vec3, d: vec3, c: vec3, r: ti.f64, t: ti.f64):
        result[None] = ray_sphere(o, d, c, r, t)

    test_kernel(vec3(*origin), vec3(*direction), vec3(*center), radius, t_min)
    return float(result[None])


class TestSphereBasics:
    """Tests for sphere normals."""

    def test_sphere_normal_points_outward(self):
        """Test the normal at a surface point points away from the center."""
        from src.prismtrace.geometry.sphere import sphere_normal, vec3

        result = ti.field(dtype=vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = sphere_normal(vec3(1.0, 1.0, 1.0), vec3(1.0, 3.0, 1.0))

        test_kernel()
        n = result[None]
        assert (n[0], n[1], n[2]) == pytest.approx((0.0, 1.0, 0.0))


class TestSphereIntersection:
    """Tests for ray-sphere intersection."""

    def test_direct_hit(self):
        """Ray from z=5 toward a unit sphere at the origin hits at t=4."""
        t = _distance((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), (0.0, 0.0, 0.0), 1.0)
        assert t == pytest.approx(4.0, abs=1e-12)

    def test_miss(self):
        """Ray passing beside the sphere reports no hit."""
        from src.prismtrace.geometry.sphere import NO_HIT

        t = _distance((0.0, 5.0, 5.0), (0.0, 0.0, -1.0), (0.0, 0.0, 0.0), 1.0)
        assert t == NO_HIT
        assert t <= 0.0

    def test_inside_returns_far_root(self):
        """A ray starting inside the sphere hits the far side."""
        t = _distance((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 0.0), 2.0)
        assert t == pytest.approx(2.0, abs=1e-12)

    def test_leaving_surface_inward_returns_far_root(self):
        """A ray starting on the surface and pointing inward skips the near root."""
        # Near root is about 0
        t = _distance((2.0, 0.0, 0.0), (-1.0, 0.0, 0.0), (0.0, 0.0, 0.0), 2.0, t_min=1e-4)
        assert t == pytest.approx(4.0, abs=1e-9)

    def test_near_root_below_t_min_skipped(self):
        """A near root within t_min gives way to the far root."""
        t = _distance((0.0, 0.0, -1.00001), (0.0, 0.0, 1.0), (0.0, 0.0, 0.0), 1.0, t_min=1e-4)
        assert t == pytest.approx(2.00001, abs=1e-9)
        t = _distance((0.0, 0.0, -1.1), (0.0, 0.0, 1.0), (0.0, 0.0, 0.0), 1.0, t_min=1e-4)
        assert t == pytest.approx(0.1, abs=1e-9)

    def test_sphere_behind_ray(self):
        """A sphere entirely behind the origin gives a non-positive distance."""
        t = _distance((0.0, 0.0, 5.0), (0.0, 0.0, 1.0), (0.0, 0.0, 0.0), 1.0)
        assert t <= 0.0

    def test_unnormalized_direction(self):
        """The distance is measured in units of the direction length."""
        t = _distance((0.0, 0.0, 5.0), (0.0, 0.0, -2.0), (0.0, 0.0, 0.0), 1.0)
        assert t == pytest.approx(2.0, abs=1e-12)

    def test_random_hits_lie_on_surface(self):
        """Hit points of random rays are within 1e-6 of the surface."""
        from src.prismtrace.geometry.sphere import ray_sphere, vec3

        num_rays = 2000
        rng = np.random.default_rng(7)
        center = np.array([100.0, -50.0, 300.0])
        radius = 7.5

        # Origins on a shell outside the sphere, aimed at points inside it
        directions_out = rng.normal(size=(num_rays, 3))
        directions_out /= np.linalg.norm(directions_out, axis=1, keepdims=True)
        origins = center + directions_out * rng.uniform(10.0, 500.0, size=(num_rays, 1))
        targets = center + rng.uniform(-0.5, 0.5, size=(num_rays, 3)) * radius
        directions = targets - origins
        directions /= np.linalg.norm(directions, axis=1, keepdims=True)

        origin_field = ti.field(dtype=vec3, shape=num_rays)
        direction_field = ti.field(dtype=vec3, shape=num_rays)
        distances = ti.field(dtype=ti.f64, shape=num_rays)
        origin_field.from_numpy(origins)
        direction_field.from_numpy(directions)

        @ti.kernel
        def test_kernel(c: vec3, r: ti.f64):
            for i in range(num_rays):
                distances[i] = ray_sphere(origin_field[i], direction_field[i], c, r, 0.0)

        test_kernel(vec3(*center), radius)
        t = distances.to_numpy()
        assert np.all(t > 0.0)
        points = origins + t[:, None] * directions
        errors = np.abs(np.linalg.norm(points - center, axis=1) - radius)
        assert errors.max() < 1e-6
