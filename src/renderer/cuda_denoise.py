# renderer/cuda_denoise.py

from numba import cuda
import math

KERNEL_TAPS = 25

@cuda.jit(device=True)
def edge_weight(dist_sq, phi):
    """Gaussian similarity min(exp(-d^2 / phi), 1). A phi of zero only accepts exact matches."""
    if phi <= 0.0:
        return 1.0 if dist_sq == 0.0 else 0.0
    return min(math.exp(-dist_sq / phi), 1.0)

@cuda.jit
def atrous_kernel(width, height, step, weighted, color_scale, c_phi, n_phi, p_phi,
                  weights, offsets, src, gbuf_position, gbuf_normal, dst):
    """
    One À-Trous pass: a 5x5 kernel whose taps are spread step pixels apart.

    Out-of-bounds taps drop out and the sum is renormalised over the taps
    that remain. In weighted mode each tap is further scaled by the color,
    normal and position similarity between the center pixel and the tap.
    """
    x, y = cuda.grid(2)
    if x >= width or y >= height:
        return

    idx = x + y * width
    sum_r = 0.0
    sum_g = 0.0
    sum_b = 0.0
    weight_sum = 0.0

    for k in range(KERNEL_TAPS):
        tx = x + offsets[k, 0] * step
        ty = y + offsets[k, 1] * step
        if tx < 0 or tx >= width or ty < 0 or ty >= height:
            continue
        tap = tx + ty * width
        w = weights[k]

        if weighted:
            c_dist = 0.0
            n_dist = 0.0
            p_dist = 0.0
            for i in range(3):
                d = (src[idx, i] - src[tap, i]) * color_scale
                c_dist += d * d
                d = gbuf_normal[idx, i] - gbuf_normal[tap, i]
                n_dist += d * d
                d = gbuf_position[idx, i] - gbuf_position[tap, i]
                p_dist += d * d
            w *= edge_weight(c_dist, c_phi) * edge_weight(n_dist, n_phi) * edge_weight(p_dist, p_phi)

        sum_r += src[tap, 0] * w
        sum_g += src[tap, 1] * w
        sum_b += src[tap, 2] * w
        weight_sum += w

    if weight_sum > 0.0:
        dst[idx, 0] = sum_r / weight_sum
        dst[idx, 1] = sum_g / weight_sum
        dst[idx, 2] = sum_b / weight_sum
    else:
        dst[idx, 0] = src[idx, 0]
        dst[idx, 1] = src[idx, 1]
        dst[idx, 2] = src[idx, 2]
