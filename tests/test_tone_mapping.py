# tests/test_tone_mapping.py
# Display conversion and G-buffer views.
import numpy as np
import pytest

from renderer.pathtracer import PathTracer
from renderer.tone_mapping import GBUFFER_NORMAL, GBUFFER_POSITION, gbuffer_view, host_image, tone_map


def test_host_image_flips_columns():
    flat = np.arange(2 * 3 * 3, dtype=np.float32).reshape(6, 3)
    image = host_image(flat, 3, 2)
    assert image.shape == (2, 3, 3)
    # Pixel (x=0, y=0) lands in the last column of the first row
    assert np.array_equal(image[0, 2], flat[0])
    assert np.array_equal(image[1, 0], flat[5])


def test_tone_map_averages_iterations(light_scene):
    with PathTracer(light_scene) as tracer:
        for iteration in (1, 2):
            tracer.render(iteration, iteration)
        # Two iterations of a unit light average back to full white
        out = tone_map(tracer.context, tracer.context.image, 2)
        assert out.dtype == np.uint8
        assert np.all(out == 255)
        # Dividing by more iterations than were traced dims it
        assert np.all(tone_map(tracer.context, tracer.context.image, 8) == 63)


def test_gbuffer_views(light_scene):
    with PathTracer(light_scene) as tracer:
        tracer.render(0, 1)
        normals = gbuffer_view(tracer.context, GBUFFER_NORMAL)
        positions = gbuffer_view(tracer.context, GBUFFER_POSITION)
        with pytest.raises(ValueError):
            gbuffer_view(tracer.context, "albedo")
    assert normals.shape == positions.shape == (2, 2, 3)
    # Normals face the camera along +z
    assert np.all(normals[..., 2] > 200)
    # |z| of about 5 at the default position scale
    assert np.all((positions[..., 2] >= 99) & (positions[..., 2] <= 110))
