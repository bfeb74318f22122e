# normals.py

import numpy as np
from numpy.typing import NDArray

from profiler import Profiler


@Profiler.timed()
def estimate_normals(coefficients: np.ndarray) -> NDArray[np.float32]:
    """
    Estimates a per pixel surface normal from the linear PTM coefficients.

    The gradient of L(lu, lv) at the origin is (a3, a4). For a roughly
    Lambertian surface the brightest light direction lines up with the
    normal, so we take (a3, a4) as the normal's x and y and pick z so the
    vector has unit length. This is an approximation for shading and
    display, not a measured normal.

    Parameters:
        coefficients (np.ndarray):
            Coefficient planes of shape (6, H, W).

    Returns:
        NDArray[np.float32]:
            Unit normals of shape (H, W, 3).

    Notes:
        - When a3^2 + a4^2 >= 1 the (x, y) part is rescaled onto the unit
          circle and z is 0 (light grazing the surface).
    """
    nx = coefficients[3].astype(np.float64)
    ny = coefficients[4].astype(np.float64)
    xy_sq = nx * nx + ny * ny

    grazing = xy_sq >= 1.0
    # Only divide where we actually rescale, everywhere else the magnitude could be 0
    mag = np.sqrt(np.where(grazing, xy_sq, 1.0))
    nx = np.where(grazing, nx / mag, nx)
    ny = np.where(grazing, ny / mag, ny)
    nz = np.where(grazing, 0.0, np.sqrt(np.maximum(0.0, 1.0 - xy_sq)))

    return np.stack([nx, ny, nz], axis=-1).astype(np.float32)
