# renderer/cuda_materials.py

from numba import cuda, float32
from .cuda_utils import dot, normalize_inplace, sample_cosine_hemisphere
from numba.cuda.random import xoroshiro128p_uniform_float32
import math

RAY_EPSILON = 1e-3

@cuda.jit(device=True)
def reflect(v, n, out):
    """Reflect vector v about normal n, storing result in out."""
    d = dot(v, n)
    for i in range(3):
        out[i] = v[i] - 2.0 * d * n[i]
    normalize_inplace(out)

@cuda.jit(device=True)
def refract(v, n, eta, cos_theta, sin_theta, out):
    k = math.sqrt(max(0.0, 1.0 - eta * eta * sin_theta * sin_theta))
    for i in range(3):
        out[i] = eta * v[i] + (eta * cos_theta - k) * n[i]
    normalize_inplace(out)

@cuda.jit(device=True)
def schlick(cosine, eta):
    r0 = (1.0 - eta) / (1.0 + eta)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * math.pow((1.0 - cosine), 5)

@cuda.jit(device=True)
def scatter_ray(origin, direction, color, remaining, slot,
                biased_point, hit_point, normal, front_face,
                mat_color, specular_color, reflective, refractive, ior,
                rng_states):
    """
    Pick a scattering lobe and advance one path by a bounce.

    origin, direction and color are the path's own rows and remaining is its
    1-element budget view. Lobe choice is by probability (refractive, then
    reflective, otherwise diffuse), so the lobe weight cancels and the
    throughput is only tinted by the lobe color.

    Each call spends one unit of the budget but never the last one: a path
    still holding it when the bounce loop stops is deposited by the final
    gather. A path left with black throughput is terminated (budget 0).
    """
    new_dir = cuda.local.array(3, dtype=float32)
    through_surface = False

    u = xoroshiro128p_uniform_float32(rng_states, slot)
    if u < refractive:
        eta = 1.0 / ior if front_face else ior
        cos_theta = min(-dot(direction, normal), 1.0)
        sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
        if eta * sin_theta > 1.0 or xoroshiro128p_uniform_float32(rng_states, slot) < schlick(cos_theta, eta):
            reflect(direction, normal, new_dir)
        else:
            refract(direction, normal, eta, cos_theta, sin_theta, new_dir)
            through_surface = True
        for i in range(3):
            color[i] *= specular_color[i]
    elif u < refractive + reflective:
        reflect(direction, normal, new_dir)
        for i in range(3):
            color[i] *= specular_color[i]
    else:
        sample_cosine_hemisphere(rng_states, slot, normal, new_dir)
        for i in range(3):
            color[i] *= mat_color[i]

    for i in range(3):
        direction[i] = new_dir[i]
        if through_surface:
            origin[i] = hit_point[i] + RAY_EPSILON * new_dir[i]
        else:
            origin[i] = biased_point[i]

    if color[0] <= 0.0 and color[1] <= 0.0 and color[2] <= 0.0:
        remaining[0] = 0
    elif remaining[0] > 1:
        remaining[0] -= 1
