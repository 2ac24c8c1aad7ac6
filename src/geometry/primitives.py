# geometry/primitives.py
from typing import Sequence

import numpy as np

from core.transform import build_transformation_matrix, transform_set

# Type tags shared with renderer/cuda_geometry.py
GEOM_SPHERE = 0
GEOM_BOX = 1


class Primitive:
    """
    A transformed instance of a unit object-space shape.

    Spheres have radius 0.5 and boxes span [-0.5, 0.5]^3 before the
    transform is applied, so scale gives the world-space diameter / extent.
    """
    geom_type = -1

    def __init__(self, material_id: int,
                 translation: Sequence[float] = (0.0, 0.0, 0.0),
                 rotation: Sequence[float] = (0.0, 0.0, 0.0),
                 scale: Sequence[float] = (1.0, 1.0, 1.0)):
        self.material_id = int(material_id)
        self.translation = tuple(float(v) for v in translation)
        self.rotation = tuple(float(v) for v in rotation)
        self.scale = tuple(float(v) for v in scale)

    def transforms(self):
        """Return (transform, inverse, inverse_transpose) float32 4x4 matrices."""
        matrix = build_transformation_matrix(self.translation, self.rotation, self.scale)
        return transform_set(matrix)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(material={self.material_id}, t={self.translation}, "
                f"r={self.rotation}, s={self.scale})")


class Sphere(Primitive):
    geom_type = GEOM_SPHERE

    @classmethod
    def at(cls, center: Sequence[float], radius: float, material_id: int) -> "Sphere":
        d = 2.0 * radius
        return cls(material_id, translation=center, scale=(d, d, d))


class Box(Primitive):
    geom_type = GEOM_BOX


def pack_primitives(primitives) -> dict:
    """Flatten primitives into the arrays the intersection kernel scans."""
    count = len(primitives)
    # Device buffers are never zero-sized; the live count travels separately.
    slots = max(1, count)
    types = np.full(slots, -1, dtype=np.int32)
    materials = np.full(slots, -1, dtype=np.int32)
    transform = np.tile(np.identity(4, dtype=np.float32), (slots, 1, 1))
    inverse = transform.copy()
    inverse_transpose = transform.copy()

    for i, prim in enumerate(primitives):
        types[i] = prim.geom_type
        materials[i] = prim.material_id
        transform[i], inverse[i], inverse_transpose[i] = prim.transforms()

    return {
        "count": count,
        "types": types,
        "materials": materials,
        "transform": transform,
        "inverse": inverse,
        "inverse_transpose": inverse_transpose,
    }
