# geometry/scene.py
import logging
from typing import List, Optional

import numpy as np

from camera.camera import Camera
from core.errors import SceneError
from geometry.primitives import Primitive, pack_primitives
from materials.material import Material

logger = logging.getLogger(__name__)


class Scene:
    """
    Host-side scene: camera, materials, primitives and the trace depth.

    Materials are referenced by the index returned from add_material().
    """
    def __init__(self, camera: Camera, trace_depth: int = 8):
        self.camera = camera
        self.trace_depth = int(trace_depth)
        self.materials: List[Material] = []
        self.primitives: List[Primitive] = []

    def add_material(self, material: Material) -> int:
        self.materials.append(material)
        return len(self.materials) - 1

    def add(self, primitive: Primitive) -> Primitive:
        self.primitives.append(primitive)
        return primitive

    def validate(self, trace_depth: Optional[int] = None):
        depth = self.trace_depth if trace_depth is None else trace_depth
        if depth < 1:
            raise SceneError(f"trace depth must be at least 1, got {depth}")
        for i, prim in enumerate(self.primitives):
            if not 0 <= prim.material_id < len(self.materials):
                raise SceneError(f"primitive {i} references unknown material {prim.material_id}")

    def pack_materials(self) -> dict:
        """Flatten materials into per-field arrays for the shading kernel."""
        slots = max(1, len(self.materials))
        packed = {
            "count": len(self.materials),
            "color": np.zeros((slots, 3), dtype=np.float32),
            "specular_color": np.zeros((slots, 3), dtype=np.float32),
            "reflective": np.zeros(slots, dtype=np.float32),
            "refractive": np.zeros(slots, dtype=np.float32),
            "ior": np.ones(slots, dtype=np.float32),
            "emittance": np.zeros(slots, dtype=np.float32),
        }
        for i, mat in enumerate(self.materials):
            packed["color"][i] = mat.color
            packed["specular_color"][i] = mat.specular_color
            packed["reflective"][i] = mat.reflective
            packed["refractive"][i] = mat.refractive
            packed["ior"][i] = mat.ior
            packed["emittance"][i] = mat.emittance
        return packed

    def pack_primitives(self) -> dict:
        return pack_primitives(self.primitives)

    def __repr__(self) -> str:
        return (f"Scene({len(self.primitives)} primitives, {len(self.materials)} materials, "
                f"trace_depth={self.trace_depth}, camera={self.camera})")
