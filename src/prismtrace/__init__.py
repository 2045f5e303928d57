"""Taichi-based Monte Carlo ray tracer with dispersion.

Renders scenes of spheres and triangles by tracing one light path per pixel
per sample and accumulating a running average, with support for:
- Diffuse, mirror, glass (reflect/refract mixture) and emissive materials
- Per-channel indices of refraction (dispersion)
- Quick point-light shading for previews
- Progressive rendering with periodic PPM/PNG output

Subpackages:
    core: Vector utilities, configuration, path tracer and render loop
    geometry: Sphere and triangle intersection
    materials: Material parameters and the material registry
    scene: Primitive storage, scene manager and preset scenes
    camera: Screen camera and primary ray generation
    preview: Image writers
"""

__version__ = "0.1.0"
