# tests/test_intersection.py
# Nearest-hit search over transformed spheres and boxes.
import numpy as np
import pytest

from geometry import Box, Sphere
from geometry.primitives import pack_primitives
from renderer.cuda_kernels import MISS, compute_intersections_kernel


def _intersect(primitives, origins, directions):
    origins = np.asarray(origins, dtype=np.float32)
    directions = np.asarray(directions, dtype=np.float32)
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    n = len(origins)
    packed = pack_primitives(primitives)

    t = np.full(n, MISS, dtype=np.float32)
    material = np.full(n, -1, dtype=np.int32)
    normal = np.zeros((n, 3), dtype=np.float32)
    front = np.zeros(n, dtype=np.int32)
    compute_intersections_kernel[1, 32](
        n, origins, directions, packed["count"], packed["types"], packed["materials"],
        packed["transform"], packed["inverse"], packed["inverse_transpose"],
        t, material, normal, front)
    return t, material, normal, front


def test_sphere_hit_from_outside():
    t, material, normal, front = _intersect([Sphere.at((0, 0, 0), 1.0, 2)],
                                            [(0, 0, 5)], [(0, 0, -1)])
    assert t[0] == pytest.approx(4.0, abs=1e-4)
    assert material[0] == 2
    assert np.allclose(normal[0], [0, 0, 1], atol=1e-5)
    assert front[0] == 1


def test_sphere_hit_from_inside_flips_normal():
    t, _, normal, front = _intersect([Sphere.at((0, 0, 0), 1.0, 0)],
                                     [(0, 0, 0)], [(0, 0, -1)])
    assert t[0] == pytest.approx(1.0, abs=1e-4)
    # Faces back toward the ray origin
    assert np.allclose(normal[0], [0, 0, 1], atol=1e-5)
    assert front[0] == 0


def test_scaled_box_hit():
    t, _, normal, front = _intersect([Box(0, scale=(2, 2, 2))], [(0, 0, 5)], [(0, 0, -1)])
    assert t[0] == pytest.approx(4.0, abs=1e-4)
    assert np.allclose(normal[0], [0, 0, 1], atol=1e-5)
    assert front[0] == 1


def test_rotated_box_normal_is_world_space():
    box = Box(0, translation=(0, 0, -3), rotation=(0, 45, 0))
    t, _, normal, _ = _intersect([box], [(0.1, 0, 0)], [(0, 0, -1)])
    # Just right of the leading edge of a unit cube turned 45 degrees
    assert t[0] == pytest.approx(3.0 - (np.sqrt(0.5) - 0.1), abs=1e-3)
    assert np.allclose(normal[0], [np.sqrt(0.5), 0, np.sqrt(0.5)], atol=1e-4)


def test_nearest_of_several_wins():
    prims = [Sphere.at((0, 0, -10), 1.0, 0), Box(1, translation=(0, 0, -4)),
             Sphere.at((0, 0, -6), 1.0, 2)]
    t, material, _, _ = _intersect(prims, [(0, 0, 0)], [(0, 0, -1)])
    assert t[0] == pytest.approx(3.5, abs=1e-4)
    assert material[0] == 1


def test_misses():
    prims = [Sphere.at((0, 0, -5), 1.0, 0), Box(1, translation=(0, 0, -5))]
    t, material, _, _ = _intersect(prims, [(5, 0, 0), (0, 0, 0)], [(0, 0, -1), (0, 0, 1)])
    assert np.all(t == MISS)
    assert np.all(material == -1)


def test_empty_scene_never_hits():
    t, material, _, _ = _intersect([], [(0, 0, 0)], [(0, 0, -1)])
    assert t[0] == MISS
    assert material[0] == -1
