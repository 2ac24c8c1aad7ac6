# materials/presets.py
from materials.material import Material


class ColorPresets:
    """Base colors used by the demo scenes."""
    WHITE = (0.98, 0.98, 0.98)
    RED = (0.85, 0.35, 0.35)
    GREEN = (0.35, 0.85, 0.35)
    WARM = (1.0, 0.85, 0.6)


class LightPresets:
    """Emissive materials."""

    @staticmethod
    def white_light(emittance: float = 5.0) -> Material:
        return Material((1.0, 1.0, 1.0), emittance=emittance, name="white_light")

    @staticmethod
    def warm_light(emittance: float = 5.0) -> Material:
        return Material(ColorPresets.WARM, emittance=emittance, name="warm_light")


class SurfacePresets:
    """Non-emissive materials."""

    @staticmethod
    def matte(color=ColorPresets.WHITE) -> Material:
        return Material(color, name="matte")

    @staticmethod
    def mirror(color=ColorPresets.WHITE) -> Material:
        return Material(color, specular_color=color, reflective=1.0, name="mirror")

    @staticmethod
    def glass(ior: float = 1.52) -> Material:
        return Material((1.0, 1.0, 1.0), specular_color=(1.0, 1.0, 1.0),
                        refractive=1.0, ior=ior, name="glass")

    @staticmethod
    def water() -> Material:
        return SurfacePresets.glass(1.33)
