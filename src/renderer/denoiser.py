# renderer/denoiser.py
import logging
from typing import Optional, Tuple

import numpy as np

from core.errors import kernel_stage
from renderer.context import PingPong, allocate, upload
from renderer.cuda_denoise import atrous_kernel
from renderer.cuda_kernels import copy_float_buffer

logger = logging.getLogger(__name__)

# B3-spline 5x5 kernel: outer product of [1, 4, 6, 4, 1] / 16
_B3 = np.array([1.0, 4.0, 6.0, 4.0, 1.0], dtype=np.float32) / 16.0
FILTER_WEIGHTS = np.outer(_B3, _B3).astype(np.float32).reshape(-1)
FILTER_OFFSETS = np.array([(dx, dy) for dy in range(-2, 3) for dx in range(-2, 3)], dtype=np.int32)


class ATrousDenoiser:
    """
    Edge-avoiding À-Trous wavelet filter over a flat (width * height, 3) image.

    Owns its two ping-pong buffers unless given a PingPong to reuse; pass i
    reads front, writes back with taps 2**i pixels apart, then swaps.
    """
    def __init__(self, width: int, height: int, buffers: Optional[PingPong] = None,
                 block_size_2d: Tuple[int, int] = (8, 8), block_size: int = 128):
        self.width = width
        self.height = height
        self.num_pixels = width * height
        self.block_size_2d = block_size_2d
        self.block_size = block_size
        self.buffers = buffers or PingPong(
            allocate("denoise.front", (self.num_pixels, 3), np.float32),
            allocate("denoise.back", (self.num_pixels, 3), np.float32),
        )
        self.d_weights = upload("denoise.weights", FILTER_WEIGHTS)
        self.d_offsets = upload("denoise.offsets", FILTER_OFFSETS)

    def _as_device(self, name: str, array):
        if isinstance(array, np.ndarray):
            return upload(name, array.reshape(self.num_pixels, 3).astype(np.float32))
        return array

    def run(self, image, gbuf_position, gbuf_normal, filter_passes: int, weighted: bool = True,
            c_phi: float = 0.45, n_phi: float = 0.35, p_phi: float = 0.2,
            color_scale: float = 1.0):
        """
        Filter image and return the device buffer holding the result.

        Inputs may be host or device arrays. The source image is never
        written; with filter_passes == 0 the result is a plain copy.
        color_scale multiplies color differences before the c_phi test.
        """
        src = self._as_device("denoise.image", image)
        positions = self._as_device("denoise.positions", gbuf_position)
        normals = self._as_device("denoise.normals", gbuf_normal)

        bx, by = self.block_size_2d
        blocks = ((self.width + bx - 1) // bx, (self.height + by - 1) // by)

        with kernel_stage("denoise copy"):
            copy_float_buffer[(self.num_pixels + self.block_size - 1) // self.block_size,
                              self.block_size](src, self.buffers.front)

        for i in range(filter_passes):
            step = 1 << i
            with kernel_stage("denoise pass", depth=i):
                atrous_kernel[blocks, self.block_size_2d](
                    self.width, self.height, step, weighted, color_scale,
                    c_phi, n_phi, p_phi, self.d_weights, self.d_offsets,
                    self.buffers.front, positions, normals, self.buffers.back)
            self.buffers.swap()

        logger.debug("Denoised %dx%d with %d passes (weighted=%s)",
                     self.width, self.height, filter_passes, weighted)
        return self.buffers.front

    def denoise(self, image, gbuf_position, gbuf_normal, filter_passes: int, **kwargs) -> np.ndarray:
        """Host convenience wrapper: returns the filtered image as (height, width, 3)."""
        result = self.run(image, gbuf_position, gbuf_normal, filter_passes, **kwargs)
        return result.copy_to_host().reshape(self.height, self.width, 3)
