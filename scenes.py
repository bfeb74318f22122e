# scenes.py

# Synthetic PTMs that don't need a file. Handy for trying the viewer and
# for tests that want a DecodedPTM without going through the decoder.

import numpy as np

from ptm_decoder import DecodedPTM
from ptm_header import PtmFormat
from ptm_header import PtmHeader


def _identity_header(width: int, height: int) -> PtmHeader:
    return PtmHeader(version="PTM_1.2", format=PtmFormat.LRGB, width=width, height=height,
                     scale=(1.0,) * 6, bias=(0.0,) * 6)


def _bump_height(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Overlapping sine bumps, a gaussian bump in the middle and a ring around it."""
    bump1 = np.sin(u * np.pi * 6) * np.sin(v * np.pi * 6) * 0.3
    bump2 = np.sin(u * np.pi * 12 + 1) * np.sin(v * np.pi * 12 + 0.5) * 0.15
    bump3 = np.sin(u * np.pi * 3) * np.sin(v * np.pi * 3) * 0.2
    dist = np.sqrt((u - 0.5) ** 2 + (v - 0.5) ** 2)
    central_bump = np.exp(-dist * dist * 20) * 0.5
    ring = np.sin(dist * np.pi * 10) * np.exp(-dist * 3) * 0.2
    return bump1 + bump2 + bump3 + central_bump + ring


def demo_bumps(width=512, height=512) -> DecodedPTM:
    """
    A stone-coloured bumpy surface with coefficients built from its normals.

    The height field is differenced one pixel to the right and one pixel
    down to get a normal, then the coefficients approximate a Lambertian
    response (linear terms = normal x/y, constant = nz / 2) with a slight
    negative quadratic falloff.
    """
    x = np.arange(width, dtype=np.float64)
    y = np.arange(height, dtype=np.float64)
    X, Y = np.meshgrid(x, y)  # (H, W)
    u, v = X / width, Y / height
    h = _bump_height(u, v)
    h_dx = _bump_height((X + 1) / width, v) - h
    h_dy = _bump_height(u, (Y + 1) / height) - h

    normal = np.stack([-h_dx * 5, -h_dy * 5, np.ones_like(h)], axis=-1)
    normal /= np.linalg.norm(normal, axis=-1, keepdims=True)
    nx, ny, nz = normal[..., 0], normal[..., 1], normal[..., 2]

    coefficients = np.stack([
        -0.3 * (1 - nx * nx),  # lu^2
        -0.3 * (1 - ny * ny),  # lv^2
        -0.3 * nx * ny,        # lu*lv
        nx,                    # lu
        ny,                    # lv
        nz * 0.5,              # constant (ambient)
    ])

    base = 180 + h * 40
    base_color = np.clip(np.stack([base + 20, base, base - 30], axis=-1), 0, 255)
    # Truncate like a byte texture would
    base_color = base_color.astype(np.uint8)

    return DecodedPTM.from_planes(_identity_header(width, height), coefficients, base_color)


def flat_plate(width=8, height=8, color=(128, 128, 128), albedo=0.5) -> DecodedPTM:
    """A perfectly flat surface: only the constant term is set, so every light gives the same luminance."""
    coefficients = np.zeros((6, height, width), dtype=np.float32)
    coefficients[5] = albedo
    base_color = np.empty((height, width, 3), dtype=np.uint8)
    base_color[:] = color
    return DecodedPTM.from_planes(_identity_header(width, height), coefficients, base_color)
