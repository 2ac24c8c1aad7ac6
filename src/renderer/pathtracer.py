# renderer/pathtracer.py
import logging
from typing import List, Optional

import numpy as np

from core.errors import kernel_stage
from geometry.scene import Scene
from .context import RenderContext, upload
from .cuda_kernels import (
    capture_gbuffer_kernel, clear_intersections_kernel, compact_paths_kernel,
    compute_intersections_kernel, final_gather_kernel, generate_camera_rays_kernel,
    generate_jitter_kernel, shade_kernel, shuffle_jitter_kernel,
)
from .denoiser import ATrousDenoiser
from .settings import DenoiseSettings, RenderSettings
from .tone_mapping import host_image

logger = logging.getLogger(__name__)


class PathTracer:
    """
    Wavefront path tracer.

    Each render() call runs one iteration: a full batch of jittered primary
    rays is traced bounce by bounce, terminated paths are compacted away
    after every bounce, and each path deposits its radiance exactly once
    into the persistent accumulation image. The accumulated (optionally
    denoised) sum is returned; dividing by the iteration count is up to the
    caller.
    """
    def __init__(self, scene: Scene, settings: Optional[RenderSettings] = None):
        self.scene = scene
        self.context = RenderContext(scene, settings)
        ctx = self.context
        self.denoiser = ATrousDenoiser(ctx.width, ctx.height, buffers=ctx.denoise,
                                       block_size_2d=ctx.settings.block_size_2d,
                                       block_size=ctx.settings.block_size)
        self.frame_number = 0
        self.iterations_rendered = 0
        # Active path count before the first bounce and after every compaction
        self.last_active_counts: List[int] = []
        # Paths deposited by the final gather in the last iteration
        self.last_gathered = 0

    @property
    def width(self) -> int:
        return self.context.width

    @property
    def height(self) -> int:
        return self.context.height

    @property
    def trace_depth(self) -> int:
        return self.context.trace_depth

    # ------------------------------------------------------------------
    # Stages

    def generate_jitter(self, iteration: int) -> None:
        """Regenerate and reshuffle the per-pixel sub-pixel offsets."""
        ctx = self.context
        n = ctx.num_pixels
        blocks, threads = ctx.blocks_1d(n), ctx.settings.block_size
        # Fisher-Yates permutation of the flattened pixel sequence, one per iteration
        permutation = np.random.default_rng(iteration).permutation(n).astype(np.int32)
        with kernel_stage("jitter", iteration=iteration):
            generate_jitter_kernel[blocks, threads](n, iteration, ctx.rng_states, ctx.jitter_raw)
            shuffle_jitter_kernel[blocks, threads](n, upload("jitter.permutation", permutation),
                                                   ctx.jitter_raw, ctx.jitter)

    def jitter_samples(self, iteration: int) -> np.ndarray:
        """Host copy of the jitter batch for the given iteration."""
        self.context.ensure_open()
        self.generate_jitter(iteration)
        return self.context.jitter.copy_to_host()

    def generate_camera_rays(self, iteration: int) -> int:
        ctx = self.context
        paths = ctx.paths.front
        with kernel_stage("camera rays", iteration=iteration):
            generate_camera_rays_kernel[ctx.blocks_2d(), ctx.settings.block_size_2d](
                ctx.width, ctx.height, ctx.cam_position, ctx.cam_view, ctx.cam_right,
                ctx.cam_up, ctx.cam_pixel_length, ctx.trace_depth, ctx.jitter,
                *paths.fields())
        return ctx.num_pixels

    def compute_intersections(self, num_paths: int, iteration: int, depth: int) -> None:
        ctx = self.context
        isect = ctx.intersections
        paths = ctx.paths.front
        threads = ctx.settings.block_size
        with kernel_stage("intersections", iteration=iteration, depth=depth):
            # Slots beyond the active batch must not keep last bounce's hits
            clear_intersections_kernel[ctx.blocks_1d(ctx.num_pixels), threads](
                ctx.num_pixels, isect.t, isect.material_ids, isect.normals, isect.front_faces)
            compute_intersections_kernel[ctx.blocks_1d(num_paths), threads](
                num_paths, paths.origins, paths.directions,
                ctx.geom_count, ctx.geom_types, ctx.geom_materials,
                ctx.geom_transform, ctx.geom_inverse, ctx.geom_inv_transpose,
                isect.t, isect.material_ids, isect.normals, isect.front_faces)

    def capture_gbuffer(self, num_paths: int, iteration: int) -> None:
        ctx = self.context
        paths = ctx.paths.front
        with kernel_stage("gbuffer", iteration=iteration, depth=0):
            capture_gbuffer_kernel[ctx.blocks_1d(num_paths), ctx.settings.block_size](
                num_paths, paths.origins, paths.directions, paths.pixel_indices,
                ctx.intersections.t, ctx.intersections.normals,
                ctx.gbuffer.positions, ctx.gbuffer.normals)

    def shade(self, num_paths: int, iteration: int, depth: int) -> None:
        ctx = self.context
        isect = ctx.intersections
        with kernel_stage("shading", iteration=iteration, depth=depth):
            shade_kernel[ctx.blocks_1d(num_paths), ctx.settings.block_size](
                num_paths, iteration, depth, *ctx.paths.front.fields(),
                isect.t, isect.material_ids, isect.normals, isect.front_faces,
                ctx.mat_color, ctx.mat_specular_color, ctx.mat_reflective,
                ctx.mat_refractive, ctx.mat_ior, ctx.mat_emittance,
                ctx.rng_states, ctx.image)

    def compact(self, num_paths: int, iteration: int, depth: int) -> int:
        """Keep paths with budget left; returns the new active count."""
        ctx = self.context
        with kernel_stage("compaction", iteration=iteration, depth=depth):
            ctx.compaction_counter.copy_to_device(np.zeros(1, dtype=np.int32))
            compact_paths_kernel[ctx.blocks_1d(num_paths), ctx.settings.block_size](
                num_paths, *ctx.paths.front.fields(), *ctx.paths.back.fields(),
                ctx.compaction_counter)
            survivors = int(ctx.compaction_counter.copy_to_host()[0])
        ctx.paths.swap()
        return survivors

    def final_gather(self, num_paths: int, iteration: int) -> None:
        ctx = self.context
        paths = ctx.paths.front
        with kernel_stage("final gather", iteration=iteration):
            final_gather_kernel[ctx.blocks_1d(num_paths), ctx.settings.block_size](
                num_paths, paths.colors, paths.pixel_indices, ctx.image)

    # ------------------------------------------------------------------
    # Frame

    def trace(self, iteration: int) -> List[int]:
        """Run one full iteration into the accumulation image; returns active counts per bounce."""
        self.context.ensure_open()
        self.generate_jitter(iteration)
        num_paths = self.generate_camera_rays(iteration)
        counts = [num_paths]

        depth = 0
        while num_paths > 0 and depth < self.trace_depth:
            self.compute_intersections(num_paths, iteration, depth)
            if depth == 0:
                self.capture_gbuffer(num_paths, iteration)
            self.shade(num_paths, iteration, depth)
            num_paths = self.compact(num_paths, iteration, depth)
            counts.append(num_paths)
            depth += 1

        if num_paths > 0:
            self.final_gather(num_paths, iteration)

        self.last_active_counts = counts
        self.last_gathered = num_paths
        self.iterations_rendered += 1
        logger.debug("Iteration %d: active paths per bounce %s", iteration, counts)
        return counts

    def render(self, frame: int, iteration: int, denoise: bool = False,
               filter_passes: int = DenoiseSettings.filter_passes,
               weighted: bool = DenoiseSettings.weighted,
               c_phi: float = DenoiseSettings.c_phi,
               n_phi: float = DenoiseSettings.n_phi,
               p_phi: float = DenoiseSettings.p_phi) -> np.ndarray:
        """
        Trace one iteration and return the image as (height, width, 3) float32.

        The returned image is the accumulated radiance sum, filtered when
        denoise is set. The accumulation image itself is never filtered.
        Color differences are scaled by the number of iterations summed since
        the last reset, whatever numbering the caller uses.
        """
        self.frame_number = frame
        self.trace(iteration)

        ctx = self.context
        if denoise:
            result = self.denoiser.run(ctx.image, ctx.gbuffer.positions, ctx.gbuffer.normals,
                                       filter_passes, weighted=weighted,
                                       c_phi=c_phi, n_phi=n_phi, p_phi=p_phi,
                                       color_scale=1.0 / max(1, self.iterations_rendered))
        else:
            result = ctx.image
        return host_image(result.copy_to_host(), ctx.width, ctx.height)

    def render_with(self, frame: int, iteration: int, settings: DenoiseSettings) -> np.ndarray:
        return self.render(frame, iteration, denoise=settings.enabled,
                           filter_passes=settings.filter_passes, weighted=settings.weighted,
                           c_phi=settings.c_phi, n_phi=settings.n_phi, p_phi=settings.p_phi)

    def accumulated_image(self) -> np.ndarray:
        self.context.ensure_open()
        ctx = self.context
        return host_image(ctx.image.copy_to_host(), ctx.width, ctx.height)

    def gbuffer(self):
        """Host copies of the first-hit (positions, normals), each (height, width, 3)."""
        self.context.ensure_open()
        ctx = self.context
        return (host_image(ctx.gbuffer.positions.copy_to_host(), ctx.width, ctx.height),
                host_image(ctx.gbuffer.normals.copy_to_host(), ctx.width, ctx.height))

    def reset_accumulation(self):
        self.context.reset_accumulation()
        self.iterations_rendered = 0

    def free(self):
        self.context.free()
        self.denoiser = None

    def __enter__(self) -> "PathTracer":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.free()
        return False
