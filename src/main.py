# main.py
import logging
import sys
import time

import numpy as np
import pygame
from PIL import Image

from camera.camera import Camera
from core.errors import RenderError
from geometry import Box, Scene, Sphere
from materials.presets import ColorPresets, LightPresets, SurfacePresets
from renderer.pathtracer import PathTracer
from renderer.settings import DenoiseSettings, RenderSettings
from renderer.tone_mapping import GBUFFER_NORMAL, GBUFFER_POSITION, gbuffer_view, tone_map

logger = logging.getLogger("pathtracer")

# Display modes cycled with G: the progressive image, then the first-hit buffers
VIEW_MODES = ("image", GBUFFER_NORMAL, GBUFFER_POSITION)


def create_world(resolution, trace_depth: int = 8) -> Scene:
    """Cornell box with a warm ceiling light and mirror, glass and water spheres."""
    camera = Camera(resolution, position=(0.0, 5.0, 10.5), look_at=(0.0, 5.0, 0.0), fov_y=45.0)
    scene = Scene(camera, trace_depth=trace_depth)

    light = scene.add_material(LightPresets.warm_light(5.0))
    white = scene.add_material(SurfacePresets.matte(ColorPresets.WHITE))
    red = scene.add_material(SurfacePresets.matte(ColorPresets.RED))
    green = scene.add_material(SurfacePresets.matte(ColorPresets.GREEN))
    mirror = scene.add_material(SurfacePresets.mirror())
    glass = scene.add_material(SurfacePresets.glass())
    water = scene.add_material(SurfacePresets.water())

    scene.add(Box(light, translation=(0.0, 10.0, 0.0), scale=(3.0, 0.3, 3.0)))
    scene.add(Box(white, translation=(0.0, 0.0, 0.0), scale=(10.0, 0.01, 10.0)))
    scene.add(Box(white, translation=(0.0, 10.0, 0.0), scale=(10.0, 0.01, 10.0)))
    scene.add(Box(white, translation=(0.0, 5.0, -5.0), rotation=(0.0, 90.0, 0.0), scale=(0.01, 10.0, 10.0)))
    scene.add(Box(red, translation=(-5.0, 5.0, 0.0), scale=(0.01, 10.0, 10.0)))
    scene.add(Box(green, translation=(5.0, 5.0, 0.0), scale=(0.01, 10.0, 10.0)))
    scene.add(Sphere.at((-1.5, 2.0, -1.0), 1.5, mirror))
    scene.add(Sphere.at((2.0, 1.5, 1.0), 1.5, glass))
    scene.add(Sphere.at((0.5, 0.8, 3.0), 0.8, water))

    logger.info("Created Cornell box: %d primitives, %d materials",
                len(scene.primitives), len(scene.materials))
    return scene


class Application:
    def __init__(self, quality: str = "balanced"):
        pygame.init()

        self.quality_levels = {
            "interactive": {"resolution": (320, 320), "trace_depth": 4},
            "balanced": {"resolution": (640, 640), "trace_depth": 8},
            "high_quality": {"resolution": (800, 800), "trace_depth": 12},
        }
        self.current_quality = quality
        level = self.quality_levels[quality]
        self.window_width, self.window_height = level["resolution"]

        self.screen = pygame.display.set_mode((self.window_width, self.window_height))
        pygame.display.set_caption("Wavefront Path Tracer")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("Arial", 18)

        self.scene = create_world(level["resolution"], level["trace_depth"])
        self.renderer = PathTracer(self.scene, RenderSettings(trace_depth=level["trace_depth"]))
        self.denoise = DenoiseSettings()
        self.view_mode = 0
        self.iteration = 0
        self.frame_count = 0
        self.last_frame = None

    def reset_accumulation(self):
        self.renderer.reset_accumulation()
        self.iteration = 0

    def cleanup(self):
        self.renderer.free()

    def save_screenshot(self):
        if self.last_frame is None:
            return
        filename = f"render_{time.strftime('%Y%m%d_%H%M%S')}_{self.iteration}spp.png"
        Image.fromarray(self.last_frame).save(filename)
        logger.info("Saved %s", filename)

    def handle_key(self, key) -> bool:
        """Apply one key press; returns False when the application should quit."""
        if key == pygame.K_ESCAPE:
            return False
        if key == pygame.K_SPACE:
            self.reset_accumulation()
        elif key == pygame.K_d:
            self.denoise = self.denoise.toggled()
        elif key == pygame.K_w:
            self.denoise = self.denoise.toggled_weighting()
        elif key in (pygame.K_EQUALS, pygame.K_PLUS, pygame.K_KP_PLUS):
            self.denoise = self.denoise.with_passes(self.denoise.filter_passes + 1)
        elif key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            self.denoise = self.denoise.with_passes(self.denoise.filter_passes - 1)
        elif key == pygame.K_c:
            self.denoise = self.denoise.scaled("c_phi", 1.25)
        elif key == pygame.K_n:
            self.denoise = self.denoise.scaled("n_phi", 1.25)
        elif key == pygame.K_p:
            self.denoise = self.denoise.scaled("p_phi", 1.25)
        elif key == pygame.K_g:
            self.view_mode = (self.view_mode + 1) % len(VIEW_MODES)
        elif key == pygame.K_s:
            self.save_screenshot()
        else:
            return True
        logger.info("Denoise: %s", self.denoise)
        return True

    def render_frame(self) -> np.ndarray:
        self.iteration += 1
        image = self.renderer.render_with(self.frame_count, self.iteration, self.denoise)
        mode = VIEW_MODES[self.view_mode]
        if mode != "image":
            return gbuffer_view(self.renderer.context, mode)
        if self.denoise.enabled:
            # The filtered sum lives on the host; divide and clamp here
            return np.clip(image / self.iteration * 255.0, 0.0, 255.0).astype(np.uint8)
        return tone_map(self.renderer.context, self.renderer.context.image, self.iteration)

    def run(self):
        logger.info("Render resolution: %dx%d, quality: %s, trace depth: %d",
                    self.window_width, self.window_height, self.current_quality,
                    self.renderer.trace_depth)
        running = True
        try:
            while running:
                self.clock.tick()
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        running = False
                    elif event.type == pygame.KEYDOWN:
                        running = self.handle_key(event.key)

                frame = self.render_frame()
                self.last_frame = np.ascontiguousarray(frame)

                # surfarray wants (width, height, 3)
                surface = pygame.surfarray.make_surface(np.transpose(frame, (1, 0, 2)))
                self.screen.blit(surface, (0, 0))
                self.display_status()
                pygame.display.flip()
                self.frame_count += 1
        finally:
            logger.info("Cleaning up...")
            self.cleanup()
            pygame.quit()

    def display_status(self):
        text = (f"FPS: {self.clock.get_fps():.1f} | spp: {self.iteration} | "
                f"view: {VIEW_MODES[self.view_mode]} | "
                f"denoise: {'on' if self.denoise.enabled else 'off'} "
                f"({self.denoise.filter_passes} passes, "
                f"{'weighted' if self.denoise.weighted else 'blur'})")
        self.screen.blit(self.font.render(text, True, (255, 255, 255)), (10, 10))


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    quality = sys.argv[1] if len(sys.argv) > 1 else "balanced"

    app = None
    try:
        app = Application(quality)
        app.run()
    except RenderError as e:
        logger.critical("Rendering failed: %s", e)
        if app is not None:
            app.cleanup()
        pygame.quit()
        sys.exit(1)


if __name__ == "__main__":
    main()
