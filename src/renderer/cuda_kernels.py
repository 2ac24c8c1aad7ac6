# renderer/cuda_kernels.py

from numba import cuda, float32, int32
from numba.cuda.random import xoroshiro128p_uniform_float32
from .cuda_utils import normalize_inplace, seed_engine
from .cuda_geometry import intersect_primitive
from .cuda_materials import scatter_ray, RAY_EPSILON

MISS = -1.0

# -------------------------------------------------------------------------
# Buffer maintenance

@cuda.jit
def clear_float_buffer(d_buffer, value):
    idx = cuda.grid(1)
    if idx < d_buffer.shape[0]:
        for c in range(d_buffer.shape[1]):
            d_buffer[idx, c] = value

@cuda.jit
def copy_float_buffer(src, dst):
    idx = cuda.grid(1)
    if idx < src.shape[0]:
        for c in range(src.shape[1]):
            dst[idx, c] = src[idx, c]

# -------------------------------------------------------------------------
# Ray generation

@cuda.jit
def generate_jitter_kernel(num_pixels, iteration, rng_states, jitter):
    """One centred sub-pixel offset per pixel from the (iteration, pixel, 0) stream."""
    idx = cuda.grid(1)
    if idx >= num_pixels:
        return
    seed_engine(rng_states, idx, iteration, idx, 0)
    jitter[idx, 0] = xoroshiro128p_uniform_float32(rng_states, idx) - 0.5
    jitter[idx, 1] = xoroshiro128p_uniform_float32(rng_states, idx) - 0.5

@cuda.jit
def shuffle_jitter_kernel(num_pixels, permutation, jitter_in, jitter_out):
    idx = cuda.grid(1)
    if idx >= num_pixels:
        return
    src = permutation[idx]
    jitter_out[idx, 0] = jitter_in[src, 0]
    jitter_out[idx, 1] = jitter_in[src, 1]

@cuda.jit
def generate_camera_rays_kernel(width, height, cam_position, cam_view, cam_right, cam_up,
                                pixel_length, trace_depth, jitter,
                                origins, directions, colors, pixel_indices, remaining):
    """Primary ray and fresh path state for every pixel."""
    x, y = cuda.grid(2)
    if x >= width or y >= height:
        return

    idx = x + y * width
    sx = pixel_length[0] * (float32(x) + jitter[idx, 0] - width * 0.5)
    sy = pixel_length[1] * (float32(y) + jitter[idx, 1] - height * 0.5)

    ray_dir = directions[idx]
    for i in range(3):
        origins[idx, i] = cam_position[i]
        ray_dir[i] = cam_view[i] - cam_right[i] * sx - cam_up[i] * sy
        colors[idx, i] = 1.0
    normalize_inplace(ray_dir)

    pixel_indices[idx] = idx
    remaining[idx] = trace_depth

# -------------------------------------------------------------------------
# Intersection

@cuda.jit
def clear_intersections_kernel(n, isect_t, isect_material, isect_normal, isect_front):
    idx = cuda.grid(1)
    if idx >= n:
        return
    isect_t[idx] = MISS
    isect_material[idx] = -1
    isect_front[idx] = 0
    for i in range(3):
        isect_normal[idx, i] = 0.0

@cuda.jit
def compute_intersections_kernel(num_paths, origins, directions,
                                 geom_count, geom_types, geom_materials,
                                 geom_transform, geom_inverse, geom_inv_transpose,
                                 isect_t, isect_material, isect_normal, isect_front):
    """Brute-force nearest hit over every primitive for each active path."""
    idx = cuda.grid(1)
    if idx >= num_paths:
        return

    ray_origin = origins[idx]
    ray_dir = directions[idx]

    tmp_normal = cuda.local.array(3, dtype=float32)
    tmp_front = cuda.local.array(1, dtype=int32)
    best_normal = cuda.local.array(3, dtype=float32)

    t_min = 1e38
    hit_geom = -1
    best_front = 0
    for g in range(geom_count):
        t = intersect_primitive(geom_types[g], ray_origin, ray_dir,
                                geom_transform[g], geom_inverse[g], geom_inv_transpose[g],
                                tmp_normal, tmp_front)
        if t > 0.0 and t < t_min:
            t_min = t
            hit_geom = g
            best_front = tmp_front[0]
            for i in range(3):
                best_normal[i] = tmp_normal[i]

    if hit_geom == -1:
        isect_t[idx] = MISS
        return

    isect_t[idx] = t_min
    isect_material[idx] = geom_materials[hit_geom]
    isect_front[idx] = best_front
    for i in range(3):
        isect_normal[idx, i] = best_normal[i]

# -------------------------------------------------------------------------
# G-buffer

@cuda.jit
def capture_gbuffer_kernel(num_paths, origins, directions, pixel_indices,
                           isect_t, isect_normal, gbuf_position, gbuf_normal):
    """First-hit world position and normal per pixel; zeros where the ray escaped."""
    idx = cuda.grid(1)
    if idx >= num_paths:
        return
    pixel = pixel_indices[idx]
    t = isect_t[idx]
    for i in range(3):
        if t > 0.0:
            gbuf_position[pixel, i] = origins[idx, i] + t * directions[idx, i]
            gbuf_normal[pixel, i] = isect_normal[idx, i]
        else:
            gbuf_position[pixel, i] = 0.0
            gbuf_normal[pixel, i] = 0.0

# -------------------------------------------------------------------------
# Shading

@cuda.jit
def shade_kernel(num_paths, iteration, depth,
                 origins, directions, colors, pixel_indices, remaining,
                 isect_t, isect_material, isect_normal, isect_front,
                 mat_color, mat_specular_color, mat_reflective, mat_refractive,
                 mat_ior, mat_emittance,
                 rng_states, image):
    """
    Resolve one bounce for every active path.

    Misses die black. Lights and paths that scatter() terminates deposit
    their throughput into image[pixel] here, so compaction can drop them.
    Everything else stays active; paths still active after the last bounce
    are deposited by final_gather_kernel.
    """
    idx = cuda.grid(1)
    if idx >= num_paths:
        return

    t = isect_t[idx]
    if t <= 0.0:
        for i in range(3):
            colors[idx, i] = 0.0
        remaining[idx] = 0
        return

    pixel = pixel_indices[idx]
    m = isect_material[idx]
    emittance = mat_emittance[m]
    if emittance > 0.0:
        for i in range(3):
            colors[idx, i] *= mat_color[m, i] * emittance
            image[pixel, i] += colors[idx, i]
        remaining[idx] = 0
        return

    # The jitter already drew from (iteration, pixel, 0); bounce d uses
    # stream d + 1 so no bounce replays those uniforms. Keyed by pixel, not
    # slot, so compaction order cannot change the result.
    seed_engine(rng_states, idx, iteration, pixel, depth + 1)

    hit_point = cuda.local.array(3, dtype=float32)
    biased_point = cuda.local.array(3, dtype=float32)
    for i in range(3):
        hit_point[i] = origins[idx, i] + t * directions[idx, i]
        biased_point[i] = origins[idx, i] + (t - RAY_EPSILON) * directions[idx, i]

    scatter_ray(origins[idx], directions[idx], colors[idx], remaining[idx:idx + 1], idx,
                biased_point, hit_point, isect_normal[idx], isect_front[idx],
                mat_color[m], mat_specular_color[m], mat_reflective[m], mat_refractive[m],
                mat_ior[m], rng_states)

    if remaining[idx] == 0:
        for i in range(3):
            image[pixel, i] += colors[idx, i]

# -------------------------------------------------------------------------
# Compaction and final gather

@cuda.jit
def compact_paths_kernel(num_paths,
                         src_origins, src_directions, src_colors, src_pixels, src_remaining,
                         dst_origins, dst_directions, dst_colors, dst_pixels, dst_remaining,
                         counter):
    """Copy paths with budget left into the next buffer; survivor order is arbitrary."""
    idx = cuda.grid(1)
    if idx >= num_paths:
        return
    if src_remaining[idx] <= 0:
        return
    slot = cuda.atomic.add(counter, 0, 1)
    for i in range(3):
        dst_origins[slot, i] = src_origins[idx, i]
        dst_directions[slot, i] = src_directions[idx, i]
        dst_colors[slot, i] = src_colors[idx, i]
    dst_pixels[slot] = src_pixels[idx]
    dst_remaining[slot] = src_remaining[idx]

@cuda.jit
def final_gather_kernel(num_paths, colors, pixel_indices, image):
    """Deposit paths that were still alive when the bounce loop hit its depth cap."""
    idx = cuda.grid(1)
    if idx >= num_paths:
        return
    pixel = pixel_indices[idx]
    for i in range(3):
        image[pixel, i] += colors[idx, i]
