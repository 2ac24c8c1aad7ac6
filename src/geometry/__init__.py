from geometry.primitives import GEOM_BOX, GEOM_SPHERE, Box, Primitive, Sphere
from geometry.scene import Scene

__all__ = ["GEOM_BOX", "GEOM_SPHERE", "Box", "Primitive", "Sphere", "Scene"]
