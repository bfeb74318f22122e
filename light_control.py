# light_control.py

# Light directions are (lu, lv): the light vector projected onto the image
# plane, so they always live inside the unit disk. x points right, y points
# up (screen y is flipped when converting from pointer coordinates).

import numpy as np


def clamp_unit_disk(lu: float, lv: float) -> tuple[float, float]:
    """Projects (lu, lv) back onto the unit disk if it lies outside."""
    lu, lv = float(lu), float(lv)
    r2 = lu * lu + lv * lv
    if r2 <= 1.0:
        return lu, lv
    r = np.sqrt(r2)
    return lu / r, lv / r


def light_vector(lu: float, lv: float) -> np.ndarray:
    """Full 3D unit light vector (lu, lv, sqrt(1 - lu^2 - lv^2)) after clamping to the disk."""
    lu, lv = clamp_unit_disk(lu, lv)
    lz = np.sqrt(max(0.0, 1.0 - lu * lu - lv * lv))
    vec = np.array([lu, lv, lz], dtype=np.float64)
    return vec / np.linalg.norm(vec)


def light_from_pointer(px: float, py: float, cx: float, cy: float, radius: float) -> tuple[float, float]:
    """
    Converts a pointer position into a light direction.

    Parameters:
        px, py: Pointer position in screen pixels (y grows downward).
        cx, cy: Center of the light control on screen.
        radius: Radius of the light control in pixels.

    Returns:
        tuple[float, float]:
            (lu, lv) clamped to the unit disk, with lv positive when the pointer
            is above the center.
    """
    if radius <= 0:
        raise ValueError("radius must be positive")
    return clamp_unit_disk((px - cx) / radius, -(py - cy) / radius)


def pointer_from_light(lu: float, lv: float, cx: float, cy: float, radius: float) -> tuple[int, int]:
    """Inverse of `light_from_pointer`, rounded to whole pixels."""
    lu, lv = clamp_unit_disk(lu, lv)
    return int(round(cx + lu * radius)), int(round(cy - lv * radius))


def angles_from_light(lu: float, lv: float) -> tuple[float, float]:
    """(azimuth, elevation) in degrees. Azimuth is in [0, 360), elevation 90 is straight above."""
    lx, ly, lz = light_vector(lu, lv)
    azimuth = float(np.degrees(np.arctan2(ly, lx)) % 360.0)
    elevation = float(90.0 - np.degrees(np.arccos(np.clip(lz, -1.0, 1.0))))
    return azimuth, elevation
