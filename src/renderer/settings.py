# renderer/settings.py
from dataclasses import dataclass, replace
from typing import Optional, Tuple


@dataclass(frozen=True)
class RenderSettings:
    """
    Launch configuration for a RenderContext.

    trace_depth overrides the scene's bounce limit when set.
    """
    trace_depth: Optional[int] = None
    block_size: int = 128
    block_size_2d: Tuple[int, int] = (8, 8)

    def __post_init__(self):
        if self.block_size <= 0 or min(self.block_size_2d) <= 0:
            raise ValueError("block sizes must be positive")


@dataclass(frozen=True)
class DenoiseSettings:
    """Parameters of the edge-avoiding À-Trous filter."""
    enabled: bool = False
    filter_passes: int = 5
    weighted: bool = True
    c_phi: float = 0.45
    n_phi: float = 0.35
    p_phi: float = 0.2

    MAX_PASSES = 10

    def __post_init__(self):
        if not 0 <= self.filter_passes <= self.MAX_PASSES:
            raise ValueError(f"filter_passes must lie in [0, {self.MAX_PASSES}]")

    def toggled(self) -> "DenoiseSettings":
        return replace(self, enabled=not self.enabled)

    def toggled_weighting(self) -> "DenoiseSettings":
        return replace(self, weighted=not self.weighted)

    def with_passes(self, passes: int) -> "DenoiseSettings":
        return replace(self, filter_passes=max(0, min(self.MAX_PASSES, passes)))

    def scaled(self, field: str, factor: float) -> "DenoiseSettings":
        """Multiply one of c_phi / n_phi / p_phi by factor."""
        if field not in ("c_phi", "n_phi", "p_phi"):
            raise ValueError(f"unknown filter bandwidth '{field}'")
        return replace(self, **{field: getattr(self, field) * factor})
