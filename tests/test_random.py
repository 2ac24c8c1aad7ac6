# tests/test_random.py
# Seeded streams and sub-pixel jitter.
import numpy as np
import pytest
from numba import cuda
from numba.cuda.random import xoroshiro128p_dtype, xoroshiro128p_uniform_float32

from renderer.cuda_utils import MASK32, seed_engine, stream_seed
from renderer.pathtracer import PathTracer


def _host_hash(a):
    a &= MASK32
    a = ((a + 0x7ED55D16) + (a << 12)) & MASK32
    a = ((a ^ 0xC761C23C) ^ (a >> 19)) & MASK32
    a = ((a + 0x165667B1) + (a << 5)) & MASK32
    a = ((a + 0xD3A2646C) ^ (a << 9)) & MASK32
    a = ((a + 0xFD7046C5) + (a << 3)) & MASK32
    a = ((a ^ 0xB55A4F09) ^ (a >> 16)) & MASK32
    return a


@cuda.jit
def _draw_kernel(iterations, indices, depths, rng_states, out):
    i = cuda.grid(1)
    if i < out.shape[0]:
        seed_engine(rng_states, i, iterations[i], indices[i], depths[i])
        out[i, 0] = xoroshiro128p_uniform_float32(rng_states, i)
        out[i, 1] = xoroshiro128p_uniform_float32(rng_states, i)


def _draw(streams):
    streams = np.asarray(streams, dtype=np.int32)
    n = len(streams)
    rng_states = cuda.device_array(n, dtype=xoroshiro128p_dtype)
    out = cuda.device_array((n, 2), dtype=np.float32)
    _draw_kernel[1, n](cuda.to_device(np.ascontiguousarray(streams[:, 0])),
                      cuda.to_device(np.ascontiguousarray(streams[:, 1])),
                      cuda.to_device(np.ascontiguousarray(streams[:, 2])),
                      rng_states, out)
    return out.copy_to_host()


@cuda.jit
def _seed_kernel(iteration, index, depth, out):
    if cuda.grid(1) == 0:
        out[0] = stream_seed(iteration, index, depth)


@pytest.mark.parametrize("iteration,index,depth", [(1, 0, 0), (7, 1023, 3), (4000000, 5, 511)])
def test_stream_seed_packs_depth_and_iteration(iteration, index, depth):
    out = cuda.device_array(1, dtype=np.int64)
    _seed_kernel[1, 1](iteration, index, depth, out)
    packed = (1 << 31) | ((depth & 0x1FF) << 22) | (iteration & 0x3FFFFF)
    assert out.copy_to_host()[0] == _host_hash(packed) ^ _host_hash(index)


def test_same_stream_same_values():
    draws = _draw([(3, 7, 1), (3, 7, 1)])
    assert np.array_equal(draws[0], draws[1])


def test_streams_differ_by_each_coordinate():
    draws = _draw([(3, 7, 1), (4, 7, 1), (3, 8, 1), (3, 7, 2)])
    for i in range(1, 4):
        assert not np.array_equal(draws[0], draws[i])
    assert np.all((draws >= 0.0) & (draws < 1.0))


def test_jitter_is_reproducible(light_scene):
    with PathTracer(light_scene) as a, PathTracer(light_scene) as b:
        assert np.array_equal(a.jitter_samples(5), b.jitter_samples(5))


def test_jitter_changes_per_iteration(light_scene):
    with PathTracer(light_scene) as tracer:
        first = tracer.jitter_samples(1)
        second = tracer.jitter_samples(2)
    assert first.shape == (4, 2)
    assert not np.array_equal(first, second)
    for samples in (first, second):
        assert np.all(samples >= -0.5) and np.all(samples < 0.5)


def test_jitter_shuffle_is_a_permutation(light_scene):
    # The shuffled batch holds exactly the raw offsets, reordered
    with PathTracer(light_scene) as tracer:
        shuffled = tracer.jitter_samples(9)
        raw = tracer.context.jitter_raw.copy_to_host()
    order = np.lexsort(shuffled.T)
    raw_order = np.lexsort(raw.T)
    assert np.array_equal(shuffled[order], raw[raw_order])
