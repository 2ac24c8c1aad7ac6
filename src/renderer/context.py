# renderer/context.py
import logging
from typing import Optional

import numpy as np
from numba import cuda
from numba.cuda.random import xoroshiro128p_dtype

from core.errors import AllocationError, RenderError, kernel_stage
from geometry.scene import Scene
from renderer.cuda_kernels import clear_float_buffer
from renderer.settings import RenderSettings

logger = logging.getLogger(__name__)


def allocate(name: str, shape, dtype):
    """cuda.device_array that reports failure as AllocationError."""
    try:
        return cuda.device_array(shape, dtype=dtype)
    except Exception as exc:
        logger.critical("Allocation of '%s' failed", name)
        raise AllocationError(name, shape, dtype, exc) from exc


def upload(name: str, host: np.ndarray):
    """cuda.to_device that reports failure as AllocationError."""
    try:
        return cuda.to_device(np.ascontiguousarray(host))
    except Exception as exc:
        logger.critical("Upload of '%s' failed", name)
        raise AllocationError(name, host.shape, host.dtype, exc) from exc


class PathBuffer:
    """Structure-of-arrays PathState storage for one batch of paths."""
    def __init__(self, origins, directions, colors, pixel_indices, remaining):
        self.origins = origins
        self.directions = directions
        self.colors = colors
        self.pixel_indices = pixel_indices
        self.remaining = remaining

    def fields(self):
        return (self.origins, self.directions, self.colors, self.pixel_indices, self.remaining)


class IntersectionBuffer:
    def __init__(self, t, material_ids, normals, front_faces):
        self.t = t
        self.material_ids = material_ids
        self.normals = normals
        self.front_faces = front_faces


class GBuffer:
    def __init__(self, positions, normals):
        self.positions = positions
        self.normals = normals


class PingPong:
    """Two named buffers; a stage reads front, writes back, then swaps."""
    def __init__(self, front, back):
        self.front = front
        self.back = back

    def swap(self):
        self.front, self.back = self.back, self.front


class RenderContext:
    """
    Owns every device buffer one render of a scene needs.

    Construction allocates (and uploads the scene); free() releases all
    handles and may be called any number of times. Use as a context manager
    to tie the buffers' lifetime to a block.
    """
    def __init__(self, scene: Scene, settings: Optional[RenderSettings] = None):
        self.settings = settings or RenderSettings()
        self.trace_depth = (scene.trace_depth if self.settings.trace_depth is None
                            else self.settings.trace_depth)
        scene.validate(self.trace_depth)

        self.camera = scene.camera
        self.width, self.height = scene.camera.resolution
        self.num_pixels = scene.camera.pixel_count
        self._allocated_bytes = 0
        self._closed = False

        try:
            self._allocate_frame_buffers()
            self._upload_camera()
            self._upload_scene(scene)
        except RenderError:
            self.free()
            raise

        logger.info("Render context ready: %dx%d, %d primitives, %d materials, trace depth %d, %.2f MiB on device",
                    self.width, self.height, self.geom_count, self.material_count,
                    self.trace_depth, self._allocated_bytes / (1024 ** 2))

    # ------------------------------------------------------------------
    # Allocation helpers

    def _allocate(self, name: str, shape, dtype):
        buffer = allocate(name, shape, dtype)
        self._allocated_bytes += int(np.prod(shape)) * np.dtype(dtype).itemsize
        return buffer

    def _upload(self, name: str, host: np.ndarray):
        buffer = upload(name, host)
        self._allocated_bytes += host.nbytes
        return buffer

    def _path_buffer(self, tag: str) -> PathBuffer:
        n = self.num_pixels
        return PathBuffer(
            self._allocate(f"paths_{tag}.origins", (n, 3), np.float32),
            self._allocate(f"paths_{tag}.directions", (n, 3), np.float32),
            self._allocate(f"paths_{tag}.colors", (n, 3), np.float32),
            self._allocate(f"paths_{tag}.pixel_indices", n, np.int32),
            self._allocate(f"paths_{tag}.remaining", n, np.int32),
        )

    def _allocate_frame_buffers(self):
        n = self.num_pixels
        self.paths = PingPong(self._path_buffer("front"), self._path_buffer("back"))
        self.intersections = IntersectionBuffer(
            self._allocate("intersections.t", n, np.float32),
            self._allocate("intersections.material_ids", n, np.int32),
            self._allocate("intersections.normals", (n, 3), np.float32),
            self._allocate("intersections.front_faces", n, np.int32),
        )
        self.gbuffer = GBuffer(
            self._allocate("gbuffer.positions", (n, 3), np.float32),
            self._allocate("gbuffer.normals", (n, 3), np.float32),
        )
        self.image = self._allocate("image", (n, 3), np.float32)
        self.jitter_raw = self._allocate("jitter_raw", (n, 2), np.float32)
        self.jitter = self._allocate("jitter", (n, 2), np.float32)
        self.rng_states = self._allocate("rng_states", n, xoroshiro128p_dtype)
        self.compaction_counter = self._allocate("compaction_counter", 1, np.int32)
        self.denoise = PingPong(self._allocate("denoise.front", (n, 3), np.float32),
                                self._allocate("denoise.back", (n, 3), np.float32))
        self.display = self._allocate("display", (n, 3), np.uint8)

        with kernel_stage("clear buffers"):
            for buffer in (self.image, self.gbuffer.positions, self.gbuffer.normals):
                clear_float_buffer[self.blocks_1d(n), self.settings.block_size](buffer, 0.0)

    def _upload_camera(self):
        cam = self.camera
        self.cam_position = self._upload("camera.position", cam.position.astype(np.float32))
        self.cam_view = self._upload("camera.view", cam.view.astype(np.float32))
        self.cam_right = self._upload("camera.right", cam.right.astype(np.float32))
        self.cam_up = self._upload("camera.up", cam.up.astype(np.float32))
        self.cam_pixel_length = self._upload("camera.pixel_length", cam.pixel_length.astype(np.float32))

    def _upload_scene(self, scene: Scene):
        geoms = scene.pack_primitives()
        self.geom_count = geoms["count"]
        self.geom_types = self._upload("geoms.types", geoms["types"])
        self.geom_materials = self._upload("geoms.materials", geoms["materials"])
        self.geom_transform = self._upload("geoms.transform", geoms["transform"])
        self.geom_inverse = self._upload("geoms.inverse", geoms["inverse"])
        self.geom_inv_transpose = self._upload("geoms.inverse_transpose", geoms["inverse_transpose"])

        mats = scene.pack_materials()
        self.material_count = mats["count"]
        self.mat_color = self._upload("materials.color", mats["color"])
        self.mat_specular_color = self._upload("materials.specular_color", mats["specular_color"])
        self.mat_reflective = self._upload("materials.reflective", mats["reflective"])
        self.mat_refractive = self._upload("materials.refractive", mats["refractive"])
        self.mat_ior = self._upload("materials.ior", mats["ior"])
        self.mat_emittance = self._upload("materials.emittance", mats["emittance"])

    # ------------------------------------------------------------------
    # Launch geometry

    def blocks_1d(self, n: int) -> int:
        return (n + self.settings.block_size - 1) // self.settings.block_size

    def blocks_2d(self):
        bx, by = self.settings.block_size_2d
        return ((self.width + bx - 1) // bx, (self.height + by - 1) // by)

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def allocated_bytes(self) -> int:
        return self._allocated_bytes

    def reset_accumulation(self):
        """Zero the accumulation image for a fresh progressive render."""
        self.ensure_open()
        with kernel_stage("reset accumulation"):
            clear_float_buffer[self.blocks_1d(self.num_pixels), self.settings.block_size](self.image, 0.0)

    def ensure_open(self):
        if self._closed:
            raise RenderError("render context has been freed")

    def free(self):
        """Drop every device handle. Safe to call repeatedly."""
        if self._closed:
            return
        for name in list(vars(self)):
            if name in ("settings", "camera", "trace_depth", "width", "height", "num_pixels",
                        "geom_count", "material_count", "_allocated_bytes", "_closed"):
                continue
            setattr(self, name, None)
        self._closed = True
        logger.info("Render context released (%.2f MiB)", self._allocated_bytes / (1024 ** 2))
        self._allocated_bytes = 0

    def __enter__(self) -> "RenderContext":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.free()
        return False

