# coefficient_range.py

# The display path works on 8-bit textures, but the PTM coefficients are
# floats whose range depends on the file (scale/bias differ per image and
# per coefficient). Packing each coefficient against its own min/max keeps
# all 256 levels in use instead of clipping to a guessed range.

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from profiler import Profiler

PACKED_LEVELS = 255
FLAT_MIDPOINT = 128
"""Packed value used for a coefficient that is the same on every pixel."""


@dataclass(frozen=True, slots=True)
class CoefficientRange:
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min

    @property
    def is_flat(self) -> bool:
        return self.max == self.min


LEGACY_FIXED_RANGES: tuple[CoefficientRange, ...] = (
    CoefficientRange(-2.0, 2.0),
    CoefficientRange(-2.0, 2.0),
    CoefficientRange(-2.0, 2.0),
    CoefficientRange(-2.0, 2.0),
    CoefficientRange(-2.0, 2.0),
    CoefficientRange(0.0, 2.0),
)
"""The old fixed packing ([-2, 2], and [0, 2] for the constant term).
Outliers get clipped with these, use `compute_ranges` instead. Kept so the
two policies can be compared."""


@Profiler.timed()
def compute_ranges(coefficients: np.ndarray) -> tuple[CoefficientRange, ...]:
    """Min and max of every coefficient plane, shape (K, H, W) -> K ranges."""
    flat = coefficients.reshape(coefficients.shape[0], -1)
    return tuple(CoefficientRange(float(plane.min()), float(plane.max())) for plane in flat)


def _range_arrays(ranges, count):
    if len(ranges) != count:
        raise ValueError(f"Got {len(ranges)} ranges for {count} coefficient planes")
    mins = np.array([r.min for r in ranges], dtype=np.float64)[:, None, None]
    spans = np.array([r.span for r in ranges], dtype=np.float64)[:, None, None]
    return mins, spans


@Profiler.timed()
def pack_coefficients(coefficients: np.ndarray, ranges) -> NDArray[np.uint8]:
    """
    Quantizes coefficient planes to bytes using per plane ranges.

    Parameters:
        coefficients (np.ndarray):
            Shape (K, H, W) float planes.
        ranges (Sequence[CoefficientRange]):
            One range per plane, usually from `compute_ranges`.

    Returns:
        NDArray[np.uint8]:
            Shape (K, H, W). packed = round(clip((v - min) / (max - min), 0, 1) * 255).
            Planes with a flat range are filled with FLAT_MIDPOINT.
    """
    mins, spans = _range_arrays(ranges, coefficients.shape[0])
    flat = spans == 0.0
    safe_spans = np.where(flat, 1.0, spans)
    normalized = np.clip((coefficients.astype(np.float64) - mins) / safe_spans, 0.0, 1.0)
    packed = np.round(normalized * PACKED_LEVELS)
    packed = np.where(flat, FLAT_MIDPOINT, packed)
    return packed.astype(np.uint8)


def unpack_coefficients(packed: np.ndarray, ranges) -> NDArray[np.float32]:
    """Inverse of `pack_coefficients`: value = min + packed / 255 * (max - min)."""
    mins, spans = _range_arrays(ranges, packed.shape[0])
    values = mins + (packed.astype(np.float64) / PACKED_LEVELS) * spans
    return values.astype(np.float32)
