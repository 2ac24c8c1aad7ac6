# tests/test_context.py
# Device buffer lifecycle and error reporting.
import numpy as np
import pytest

from core.errors import KernelLaunchError, RenderError, SceneError, kernel_stage
from geometry import Sphere
from renderer.context import PingPong, RenderContext
from renderer.pathtracer import PathTracer
from renderer.settings import RenderSettings


def test_buffers_are_sized_for_the_frame(light_scene):
    with RenderContext(light_scene) as ctx:
        assert ctx.num_pixels == 4
        assert ctx.paths.front.origins.shape == (4, 3)
        assert ctx.paths.back.remaining.shape == (4,)
        assert ctx.image.shape == (4, 3)
        assert ctx.geom_count == 1 and ctx.material_count == 1
        assert ctx.allocated_bytes > 0
        assert not ctx.image.copy_to_host().any()


def test_free_is_idempotent(light_scene):
    ctx = RenderContext(light_scene)
    ctx.free()
    ctx.free()
    assert ctx.closed
    assert ctx.image is None
    assert ctx.allocated_bytes == 0
    with pytest.raises(RenderError):
        ctx.reset_accumulation()


def test_render_after_free_fails(light_scene):
    tracer = PathTracer(light_scene)
    tracer.free()
    with pytest.raises(RenderError):
        tracer.render(0, 1)


def test_invalid_scene_is_rejected(light_scene):
    light_scene.add(Sphere.at((0, 0, -3), 1.0, material_id=5))
    with pytest.raises(SceneError):
        RenderContext(light_scene)


def test_trace_depth_override_is_validated(light_scene):
    with pytest.raises(SceneError):
        RenderContext(light_scene, RenderSettings(trace_depth=0))


def test_settings_reject_bad_block_sizes():
    with pytest.raises(ValueError):
        RenderSettings(block_size=0)


def test_ping_pong_swap():
    pp = PingPong("a", "b")
    pp.swap()
    assert (pp.front, pp.back) == ("b", "a")


def test_kernel_stage_wraps_failures():
    with pytest.raises(KernelLaunchError) as excinfo:
        with kernel_stage("shading", iteration=3, depth=2):
            raise ValueError("launch failed")
    err = excinfo.value
    assert err.stage == "shading" and err.iteration == 3 and err.depth == 2
    assert "iteration=3, depth=2" in str(err)
    assert isinstance(err.__cause__, ValueError)


def test_kernel_stage_passes_render_errors_through():
    with pytest.raises(SceneError):
        with kernel_stage("upload"):
            raise SceneError("bad scene")
