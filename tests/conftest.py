# tests/conftest.py
# Run every kernel on numba's CUDA simulator so the suite needs no GPU.
# The variable must be set before numba is first imported.
# Set PATHTRACER_USE_GPU=1 to run the same tests against a real device.
import os
import sys
from pathlib import Path

if os.environ.get("PATHTRACER_USE_GPU") != "1":
    os.environ["NUMBA_ENABLE_CUDASIM"] = "1"

_SRC = Path(__file__).resolve().parents[1] / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from camera.camera import Camera
from geometry import Box, Scene, Sphere
from materials.material import Material
from materials.presets import LightPresets, SurfacePresets


def facing_camera(resolution=(2, 2), fov_y=20.0):
    """Camera at the origin looking down -z."""
    return Camera(resolution, position=(0.0, 0.0, 0.0), look_at=(0.0, 0.0, -1.0), fov_y=fov_y)


@pytest.fixture
def light_scene():
    """Every primary ray hits a unit white light straight away."""
    scene = Scene(facing_camera(), trace_depth=1)
    light = scene.add_material(LightPresets.white_light(1.0))
    scene.add(Sphere.at((0.0, 0.0, -10.0), 5.0, light))
    return scene


@pytest.fixture
def empty_scene():
    return Scene(facing_camera(), trace_depth=4)


@pytest.fixture
def diffuse_wall_scene():
    """A matte wall filling the view with nothing behind the camera."""
    scene = Scene(facing_camera((4, 4)), trace_depth=3)
    white = scene.add_material(SurfacePresets.matte())
    scene.add(Box(white, translation=(0.0, 0.0, -5.0), scale=(20.0, 20.0, 0.5)))
    return scene


@pytest.fixture
def cornell_scene():
    """Small closed box with a ceiling light, matte walls and one mirror sphere."""
    camera = Camera((8, 8), position=(0.0, 0.0, 4.0), look_at=(0.0, 0.0, 0.0), fov_y=45.0)
    scene = Scene(camera, trace_depth=5)
    light = scene.add_material(LightPresets.white_light(4.0))
    white = scene.add_material(SurfacePresets.matte())
    red = scene.add_material(Material((0.8, 0.2, 0.2)))
    mirror = scene.add_material(SurfacePresets.mirror())
    scene.add(Box(white, scale=(6.0, 6.0, 12.0)))
    scene.add(Box(red, translation=(-2.9, 0.0, 0.0), scale=(0.1, 5.8, 5.8)))
    scene.add(Box(light, translation=(0.0, 2.9, 0.0), scale=(2.0, 0.1, 2.0)))
    scene.add(Sphere.at((0.5, -1.5, -0.5), 1.0, mirror))
    return scene


@pytest.fixture
def matte_wall_scene():
    """A matte wall filling a 2x2 view; one bounce, so every path reaches the depth cap."""
    scene = Scene(facing_camera(), trace_depth=1)
    white = scene.add_material(SurfacePresets.matte())
    scene.add(Box(white, translation=(0.0, 0.0, -5.0), scale=(20.0, 20.0, 0.5)))
    return scene


@pytest.fixture
def half_lit_scene():
    """4x4 view: a light covers the left of the frame, a matte wall sits behind it."""
    scene = Scene(facing_camera((4, 4)), trace_depth=1)
    light = scene.add_material(LightPresets.white_light(1.0))
    white = scene.add_material(SurfacePresets.matte())
    scene.add(Box(light, translation=(-5.0, 0.0, -10.0), scale=(10.0, 20.0, 1.0)))
    scene.add(Box(white, translation=(0.0, 0.0, -20.0), scale=(40.0, 40.0, 1.0)))
    return scene
