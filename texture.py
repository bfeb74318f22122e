# texture.py

# 8-bit RGBA textures carrying a decoded PTM to a per pixel renderer, the
# same packing a GPU upload would use:
#   coeff_tex0 = (a0, a1, a2, 255)
#   coeff_tex1 = (a3, a4, a5, 255)
#   rgb_tex    = (R, G, B, 255)
#   normal_tex = (n * 0.5 + 0.5) * 255
# The coefficient ranges travel next to the textures so they can be unpacked.

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from coefficient_range import CoefficientRange
from coefficient_range import pack_coefficients
from coefficient_range import unpack_coefficients
from profiler import Profiler


def _rgba(channels: np.ndarray) -> NDArray[np.uint8]:
    """(H, W, 3) uint8 -> (H, W, 4) with an opaque alpha channel."""
    alpha = np.full(channels.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate((channels.astype(np.uint8), alpha), axis=-1)


class Texture:
    def __init__(self, image: np.ndarray):
        self.image: NDArray[np.uint8]  # shape: (height, width, 4)
        self.image = np.ascontiguousarray(image, dtype=np.uint8)
        if self.image.ndim != 3 or self.image.shape[2] != 4:
            raise ValueError(f"Expected an (H, W, 4) RGBA image, got {self.image.shape}")
        self.width: int = self.image.shape[1]
        self.height: int = self.image.shape[0]

    @property
    def rgb(self) -> NDArray[np.uint8]:
        return self.image[..., :3]


@dataclass(slots=True)
class PtmTextures:
    coeff_tex0: Texture
    """a0, a1, a2 packed into R, G, B."""
    coeff_tex1: Texture
    """a3, a4, a5 packed into R, G, B."""
    rgb_tex: Texture
    normal_tex: Texture
    ranges: tuple[CoefficientRange, ...]
    """Ranges the coefficients were packed with."""

    def coefficients(self) -> NDArray[np.float32]:
        """Unpacked (6, H, W) coefficients."""
        packed = np.concatenate((np.moveaxis(self.coeff_tex0.rgb, -1, 0),
                                 np.moveaxis(self.coeff_tex1.rgb, -1, 0)), axis=0)
        return unpack_coefficients(packed, self.ranges)

    def base_color(self) -> NDArray[np.float32]:
        """Base color in [0, 1], shape (H, W, 3)."""
        return self.rgb_tex.rgb.astype(np.float32) / 255.0

    def normals(self) -> NDArray[np.float32]:
        """Normals read back from the texture and renormalized, shape (H, W, 3)."""
        n = self.normal_tex.rgb.astype(np.float32) / 255.0 * 2.0 - 1.0
        length = np.linalg.norm(n, axis=-1, keepdims=True)
        return n / np.maximum(length, 1e-6)


@Profiler.timed()
def ptm_textures(decoded, ranges=None) -> PtmTextures:
    """
    Packs a DecodedPTM into RGBA textures.

    Args:
        decoded (DecodedPTM): The image to pack.
        ranges (Sequence[CoefficientRange], optional): Packing ranges. Defaults
            to the ranges computed from this image (`decoded.ranges`). Pass
            `coefficient_range.LEGACY_FIXED_RANGES` for the old fixed packing.
    """
    if ranges is None:
        ranges = decoded.ranges
    ranges = tuple(ranges)
    packed = pack_coefficients(decoded.coefficients, ranges)  # (6, H, W)

    normal_bytes = np.round((decoded.normals * 0.5 + 0.5) * 255.0)
    normal_bytes = np.clip(normal_bytes, 0, 255).astype(np.uint8)

    return PtmTextures(
        coeff_tex0=Texture(_rgba(np.moveaxis(packed[0:3], 0, -1))),
        coeff_tex1=Texture(_rgba(np.moveaxis(packed[3:6], 0, -1))),
        rgb_tex=Texture(_rgba(decoded.base_color)),
        normal_tex=Texture(_rgba(normal_bytes)),
        ranges=ranges,
    )
