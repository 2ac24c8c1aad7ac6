# camera/camera.py
import math
from typing import Sequence, Tuple

import numpy as np

from core.transform import normalize


class Camera:
    """
    Pinhole camera with an orthonormal view/right/up basis.

    pixel_length is the extent of one pixel on the image plane at unit
    distance along the view vector, so a primary ray for pixel (x, y) is

        view - right * pixel_length.x * (x - width / 2)
             - up * pixel_length.y * (y - height / 2)
    """
    def __init__(self, resolution: Tuple[int, int], position: Sequence[float],
                 look_at: Sequence[float], up: Sequence[float] = (0.0, 1.0, 0.0),
                 fov_y: float = 45.0):
        width, height = int(resolution[0]), int(resolution[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid camera resolution {width}x{height}")
        self.resolution = (width, height)
        self.fov_y = fov_y
        self.position = np.asarray(position, dtype=np.float32)
        self.look_at = np.asarray(look_at, dtype=np.float32)
        self.update_camera(up)

    @property
    def width(self) -> int:
        return self.resolution[0]

    @property
    def height(self) -> int:
        return self.resolution[1]

    @property
    def pixel_count(self) -> int:
        return self.resolution[0] * self.resolution[1]

    def update_camera(self, up: Sequence[float] = (0.0, 1.0, 0.0)):
        """Recompute the basis vectors and per-pixel extent."""
        self.view = normalize(self.look_at - self.position)
        self.right = normalize(np.cross(self.view, np.asarray(up, dtype=np.float32)))
        self.up = normalize(np.cross(self.right, self.view))

        y_scaled = math.tan(math.radians(self.fov_y) / 2.0)
        x_scaled = y_scaled * self.width / self.height
        self.pixel_length = np.array([2.0 * x_scaled / self.width,
                                      2.0 * y_scaled / self.height], dtype=np.float32)

    def __repr__(self) -> str:
        return (f"Camera({self.width}x{self.height}, position={self.position.tolist()}, "
                f"view={self.view.tolist()}, fov_y={self.fov_y})")
