# renderer/tone_mapping.py
import numpy as np
from numba import cuda

from core.errors import kernel_stage

GBUFFER_NORMAL = "normal"
GBUFFER_POSITION = "position"
POSITION_VIEW_SCALE = 20.0

@cuda.jit
def average_tone_mapping_kernel(image, num_pixels, iterations, output_image):
    """Mean radiance per iteration, scaled to 8 bits and clamped."""
    idx = cuda.grid(1)
    if idx < num_pixels:
        for c in range(3):
            v = image[idx, c] / iterations * 255.0
            output_image[idx, c] = int(min(max(v, 0.0), 255.0))

@cuda.jit
def gbuffer_view_kernel(values, num_pixels, scale, output_image):
    """|value| * scale per channel, clamped to 8 bits."""
    idx = cuda.grid(1)
    if idx < num_pixels:
        for c in range(3):
            v = abs(values[idx, c]) * scale
            output_image[idx, c] = int(min(v, 255.0))

def host_image(flat: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Reshape a flat per-pixel buffer to (height, width, 3).

    Ray generation walks pixel columns against the right vector, so the
    columns are flipped to give a non-mirrored picture.
    """
    return flat.reshape(height, width, 3)[:, ::-1]

def tone_map(context, image, iterations: int) -> np.ndarray:
    """Divide a device image by the iteration count and clamp to [0, 255] uint8."""
    context.ensure_open()
    n = context.num_pixels
    with kernel_stage("tone map", iteration=iterations):
        average_tone_mapping_kernel[context.blocks_1d(n), context.settings.block_size](
            image, n, float(max(1, iterations)), context.display)
    return host_image(context.display.copy_to_host(), context.width, context.height)

def gbuffer_view(context, mode: str = GBUFFER_NORMAL) -> np.ndarray:
    """Debug visualisation of the first-hit normals or positions."""
    context.ensure_open()
    if mode == GBUFFER_NORMAL:
        values, scale = context.gbuffer.normals, 255.0
    elif mode == GBUFFER_POSITION:
        values, scale = context.gbuffer.positions, POSITION_VIEW_SCALE
    else:
        raise ValueError(f"unknown G-buffer view '{mode}'")
    n = context.num_pixels
    with kernel_stage(f"gbuffer view ({mode})"):
        gbuffer_view_kernel[context.blocks_1d(n), context.settings.block_size](
            values, n, scale, context.display)
    return host_image(context.display.copy_to_host(), context.width, context.height)
