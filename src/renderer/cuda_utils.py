# renderer/cuda_utils.py

from numba import cuda, float32
import math
from numba.cuda.random import init_xoroshiro128p_state, xoroshiro128p_uniform_float32

INFINITY = 1e20
EPSILON = 1e-5

MASK32 = 0xFFFFFFFF
SQRT_OF_ONE_THIRD = 0.5773502691896257

@cuda.jit(device=True)
def normalize_inplace(v):
    """Scale v to unit length in place; zero vectors are left alone."""
    length_sq = v[0] * v[0] + v[1] * v[1] + v[2] * v[2]
    if length_sq > 0.0:
        length = math.sqrt(length_sq)
        v[0] /= length
        v[1] /= length
        v[2] /= length

@cuda.jit(device=True)
def dot(v1, v2):
    return v1[0]*v2[0] + v1[1]*v2[1] + v1[2]*v2[2]

@cuda.jit(device=True)
def cross_inplace(out, v1, v2):
    """out = v1 x v2. out may alias either input."""
    temp0 = v1[1] * v2[2] - v1[2] * v2[1]
    temp1 = v1[2] * v2[0] - v1[0] * v2[2]
    temp2 = v1[0] * v2[1] - v1[1] * v2[0]
    out[0] = temp0
    out[1] = temp1
    out[2] = temp2

@cuda.jit(device=True)
def multiply_mv(m, v, w, out):
    """out = (m * (v, w)).xyz for a 4x4 matrix m."""
    for i in range(3):
        out[i] = m[i, 0] * v[0] + m[i, 1] * v[1] + m[i, 2] * v[2] + m[i, 3] * w

# -------------------------------------------------------------------------
# Seeded per-slot random streams

@cuda.jit(device=True)
def hash_uint32(a):
    """32-bit integer avalanche hash (Bob Jenkins' six-shift variant)."""
    a = int(a) & MASK32
    a = ((a + 0x7ED55D16) + (a << 12)) & MASK32
    a = ((a ^ 0xC761C23C) ^ (a >> 19)) & MASK32
    a = ((a + 0x165667B1) + (a << 5)) & MASK32
    a = ((a + 0xD3A2646C) ^ (a << 9)) & MASK32
    a = ((a + 0xFD7046C5) + (a << 3)) & MASK32
    a = ((a ^ 0xB55A4F09) ^ (a >> 16)) & MASK32
    return a

@cuda.jit(device=True)
def stream_seed(iteration, index, depth):
    """
    Seed for the (iteration, index, depth) stream.

    depth sits above bit 22 with bit 31 set, iteration fills the low bits.
    """
    packed = (1 << 31) | ((int(depth) & 0x1FF) << 22) | (int(iteration) & 0x3FFFFF)
    return hash_uint32(packed) ^ hash_uint32(index)

@cuda.jit(device=True)
def seed_engine(rng_states, slot, iteration, index, depth):
    """Reset rng_states[slot] to the start of the (iteration, index, depth) stream."""
    init_xoroshiro128p_state(rng_states, slot, stream_seed(iteration, index, depth))

@cuda.jit(device=True)
def sample_cosine_hemisphere(rng_states, slot, normal, out_dir):
    """
    Cosine-weighted direction about 'normal' from two draws of the slot's stream.

    The tangent frame is built from the world axis least aligned with the
    normal, so it stays well conditioned for any orientation.
    """
    up = math.sqrt(xoroshiro128p_uniform_float32(rng_states, slot))
    over = math.sqrt(max(0.0, 1.0 - up * up))
    around = xoroshiro128p_uniform_float32(rng_states, slot) * 2.0 * math.pi

    axis = cuda.local.array(3, dtype=float32)
    for i in range(3):
        axis[i] = 0.0
    ax = abs(normal[0])
    ay = abs(normal[1])
    az = abs(normal[2])
    if ax < SQRT_OF_ONE_THIRD:
        axis[0] = 1.0
    elif ay < SQRT_OF_ONE_THIRD:
        axis[1] = 1.0
    else:
        axis[2] = 1.0

    perp1 = cuda.local.array(3, dtype=float32)
    perp2 = cuda.local.array(3, dtype=float32)
    cross_inplace(perp1, normal, axis)
    normalize_inplace(perp1)
    cross_inplace(perp2, normal, perp1)
    normalize_inplace(perp2)

    c = math.cos(around) * over
    s = math.sin(around) * over
    for i in range(3):
        out_dir[i] = up * normal[i] + c * perp1[i] + s * perp2[i]
    normalize_inplace(out_dir)
