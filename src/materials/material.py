# materials/material.py
from typing import Sequence

import numpy as np


class Material:
    """
    Surface description consumed by the shading stage.

    reflective and refractive are lobe probabilities in [0, 1]; whatever is
    left over scatters diffusely. A material with emittance > 0 is a light and
    terminates any path that reaches it.
    """
    def __init__(self, color: Sequence[float] = (1.0, 1.0, 1.0),
                 emittance: float = 0.0,
                 specular_color: Sequence[float] = (1.0, 1.0, 1.0),
                 reflective: float = 0.0,
                 refractive: float = 0.0,
                 ior: float = 1.0,
                 name: str = ""):
        self.color = np.asarray(color, dtype=np.float32)
        self.emittance = float(emittance)
        self.specular_color = np.asarray(specular_color, dtype=np.float32)
        self.reflective = float(reflective)
        self.refractive = float(refractive)
        self.ior = float(ior)
        self.name = name

        if self.color.shape != (3,) or self.specular_color.shape != (3,):
            raise ValueError("material colors must have three components")
        if self.emittance < 0.0:
            raise ValueError("emittance must be non-negative")
        if not 0.0 <= self.reflective + self.refractive <= 1.0:
            raise ValueError("reflective + refractive must lie in [0, 1]")

    @property
    def is_emissive(self) -> bool:
        return self.emittance > 0.0

    def __repr__(self) -> str:
        label = self.name or "Material"
        return (f"{label}(color={self.color.tolist()}, emittance={self.emittance}, "
                f"reflective={self.reflective}, refractive={self.refractive}, ior={self.ior})")
