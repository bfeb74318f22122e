# ptm_decoder.py

# Turns the pixel region of a PTM file into six float coefficient planes and
# an RGB base color. Producers disagree on how the bytes are laid out, so the
# layout is a strategy (PixelLayout) that is either given explicitly or
# guessed from the data by `detect_layout`.

from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from coefficient_range import CoefficientRange
from coefficient_range import compute_ranges
from normals import estimate_normals
from profiler import Profiler
from ptm_errors import FormatNotImplementedError
from ptm_errors import PtmFormatError
from ptm_errors import TruncatedError
from ptm_header import COEFFICIENT_COUNT
from ptm_header import PtmFormat
from ptm_header import PtmHeader
from ptm_header import read_header

DETECTION_WINDOW = 256  # Only the top-left corner is looked at when guessing the layout


class PixelLayout(Enum):
    INTERLEAVED = "interleaved"
    """All of a pixel's bytes stored together. LRGB pixel = R G B a0 a1 a2 a3 a4 a5,
    scanlines top to bottom. RGB pixel = 6 coefficients each for R, G, B,
    scanlines bottom to top."""
    PLANAR = "planar"
    """One full plane per coefficient (a0..a5, then the RGB color plane for LRGB,
    or R a0..a5, G a0..a5, B a0..a5 for RGB), scanlines bottom to top."""

    def bottom_up(self, fmt: PtmFormat) -> bool:
        """Whether the first stored scanline is the bottom row of the image."""
        return self is PixelLayout.PLANAR or fmt is PtmFormat.RGB


@dataclass(frozen=True, slots=True, eq=False)
class DecodedPTM:
    """A fully decoded PTM image. Arrays are read-only, build a new one instead of editing."""
    header: PtmHeader
    coefficients: NDArray[np.float32]  # (6, H, W)
    """Polynomial coefficient planes a0..a5, row 0 is the top of the image."""
    base_color: NDArray[np.uint8]      # (H, W, 3)
    """Appearance under the reference (overhead) light."""
    normals: NDArray[np.float32]       # (H, W, 3)
    """Unit normals estimated from a3/a4, see `normals.estimate_normals`."""
    ranges: tuple[CoefficientRange, ...]
    """Per coefficient min/max, used when packing into 8-bit textures."""
    layout: PixelLayout | None = None
    """Layout the pixels were read with. None for data that didn't come from a file."""

    @property
    def width(self) -> int:
        return self.header.width

    @property
    def height(self) -> int:
        return self.header.height

    @property
    def format(self) -> PtmFormat:
        return self.header.format

    @staticmethod
    def from_planes(header: PtmHeader, coefficients: np.ndarray, base_color: np.ndarray,
                    layout: PixelLayout | None = None) -> "DecodedPTM":
        """Builds a DecodedPTM from finished planes, deriving normals and ranges."""
        # Own copies, the caller's arrays stay writable and can't change ours
        coefficients = np.array(coefficients, dtype=np.float32, copy=True, order="C")
        base_color = np.array(base_color, dtype=np.uint8, copy=True, order="C")
        expected = (COEFFICIENT_COUNT, header.height, header.width)
        if coefficients.shape != expected:
            raise ValueError(f"Coefficients have shape {coefficients.shape}, expected {expected}")
        if base_color.shape != (header.height, header.width, 3):
            raise ValueError(f"Base color has shape {base_color.shape}, expected {(header.height, header.width, 3)}")

        normals = estimate_normals(coefficients)
        ranges = compute_ranges(coefficients)
        for arr in (coefficients, base_color, normals):
            arr.flags.writeable = False
        return DecodedPTM(header=header, coefficients=coefficients, base_color=base_color,
                          normals=normals, ranges=ranges, layout=layout)


def _split_planes(header: PtmHeader, layout: PixelLayout,
                  raw: NDArray[np.uint8]) -> tuple[NDArray[np.uint8], NDArray[np.uint8] | None]:
    """
    Rearranges the raw pixel bytes into top-down planes without converting them.

    Returns:
        tuple:
            - coefficient bytes, shape (6, H, W) for LRGB or (18, H, W) for RGB
              (R a0..a5, G a0..a5, B a0..a5).
            - color bytes of shape (H, W, 3) for LRGB, None for RGB.
    These are views into `raw` where possible, nothing is copied here.
    """
    w, h = header.width, header.height
    n = w * h
    color = None
    if header.format is PtmFormat.LRGB:
        if layout is PixelLayout.INTERLEAVED:
            records = raw.reshape(h, w, 9)
            color = records[..., :3]
            coeffs = np.moveaxis(records[..., 3:], -1, 0)
        else:
            coeffs = raw[:COEFFICIENT_COUNT * n].reshape(COEFFICIENT_COUNT, h, w)
            color = raw[COEFFICIENT_COUNT * n:].reshape(h, w, 3)
    else:
        channel_coeffs = 3 * COEFFICIENT_COUNT
        if layout is PixelLayout.INTERLEAVED:
            coeffs = np.moveaxis(raw.reshape(h, w, channel_coeffs), -1, 0)
        else:
            coeffs = raw.reshape(channel_coeffs, h, w)

    if layout.bottom_up(header.format):
        # Last stored scanline is the top of the image
        coeffs = coeffs[:, ::-1, :]
        if color is not None:
            color = color[::-1]
    return coeffs, color


def _roughness(planes: np.ndarray) -> float:
    """Mean absolute difference between neighbouring pixels over all planes."""
    planes = planes.astype(np.int16)
    total = 0.0
    count = 0
    if planes.shape[2] > 1:
        dx = np.abs(np.diff(planes, axis=2))
        total += float(dx.sum())
        count += dx.size
    if planes.shape[1] > 1:
        dy = np.abs(np.diff(planes, axis=1))
        total += float(dy.sum())
        count += dy.size
    return total / count if count else 0.0


def detect_layout(header: PtmHeader, pixel_bytes) -> PixelLayout | None:
    """
    Guesses which PixelLayout the pixel bytes were written with.

    Real coefficient planes are smooth, neighbouring pixels have similar
    values. Reading the bytes with the wrong layout mixes unrelated bytes
    next to each other, so the layout whose planes are the least noisy wins.

    Parameters:
        header (PtmHeader):
            Parsed header (LRGB or RGB).
        pixel_bytes (bytes-like):
            At least `pixel_count * bytes_per_pixel` bytes of pixel data.

    Returns:
        PixelLayout | None:
            The better layout, or None if the data can't tell them apart
            (single pixel images, identical scores).
    """
    bpp = header.format.bytes_per_pixel
    if bpp is None:
        raise FormatNotImplementedError(f"Format {header.format.value} not yet implemented", stage="pixels")
    if header.pixel_count < 2:
        return None
    raw = np.frombuffer(pixel_bytes, dtype=np.uint8, count=header.pixel_count * bpp)

    scores = {}
    for layout in PixelLayout:
        coeffs, color = _split_planes(header, layout, raw)
        planes = coeffs[:, :DETECTION_WINDOW, :DETECTION_WINDOW]
        if color is not None:
            color_planes = np.moveaxis(color[:DETECTION_WINDOW, :DETECTION_WINDOW], -1, 0)
            planes = np.concatenate([planes, color_planes], axis=0)
        scores[layout] = _roughness(planes)

    interleaved, planar = scores[PixelLayout.INTERLEAVED], scores[PixelLayout.PLANAR]
    if np.isclose(interleaved, planar):
        return None
    return PixelLayout.INTERLEAVED if interleaved < planar else PixelLayout.PLANAR


def _dequantize(raw: np.ndarray, header: PtmHeader) -> NDArray[np.float64]:
    # (raw - bias[c]) * scale[c] for the 6 coefficients along the second to last axes
    bias = np.asarray(header.bias, dtype=np.float64)[:, None, None]
    scale = np.asarray(header.scale, dtype=np.float64)[:, None, None]
    return (raw.astype(np.float64) - bias) * scale


@Profiler.timed()
def decode_pixels(header: PtmHeader, pixel_bytes, layout: PixelLayout) -> tuple[NDArray[np.float32], NDArray[np.uint8]]:
    """
    Decodes the pixel region into coefficient planes and base color.

    Parameters:
        header (PtmHeader):
            Parsed header.
        pixel_bytes (bytes-like):
            The bytes right after the header. Extra trailing bytes are ignored.
        layout (PixelLayout):
            How the bytes are arranged.

    Returns:
        tuple:
            - (6, H, W) float32 coefficients, dequantized with (raw - bias) * scale.
            - (H, W, 3) uint8 base color.

    Notes:
        - RGB files have a polynomial per channel. The three are averaged into one
          luminance polynomial and the base color is each channel's raw constant term.
    """
    bpp = header.format.bytes_per_pixel
    if bpp is None:
        raise FormatNotImplementedError(f"Format {header.format.value} not yet implemented", stage="pixels")
    required = header.pixel_count * bpp
    available = len(pixel_bytes)
    if available < required:
        raise TruncatedError("Not enough pixel data", required=required, available=available)

    raw = np.frombuffer(pixel_bytes, dtype=np.uint8, count=required)
    coeffs, color = _split_planes(header, layout, raw)

    if header.format is PtmFormat.LRGB:
        coefficients = _dequantize(coeffs, header)
        base_color = np.array(color, dtype=np.uint8)
    else:
        per_channel = coeffs.reshape(3, COEFFICIENT_COUNT, header.height, header.width)
        r, g, b = (_dequantize(channel, header) for channel in per_channel)
        coefficients = (r + g + b) / 3
        # Constant term = appearance with the light straight above
        base_color = np.moveaxis(per_channel[:, COEFFICIENT_COUNT - 1], 0, -1).astype(np.uint8)

    return coefficients.astype(np.float32), np.ascontiguousarray(base_color)


@Profiler.timed()
def decode(data, layout: PixelLayout | str | None = None,
           default_layout: PixelLayout = PixelLayout.INTERLEAVED,
           diagnostics: Callable[[PtmHeader, int, bytes], None] | None = None) -> DecodedPTM:
    """
    Decodes a complete PTM file held in memory.

    Args:
        data (bytes-like): The file contents.
        layout (PixelLayout | str | None): Force a pixel layout. None guesses it
            with `detect_layout`, falling back to `default_layout` when the
            data can't tell.
        default_layout (PixelLayout): Layout used when detection is inconclusive.
        diagnostics (callable, optional): Called as diagnostics(header, pixel_offset, pixel_bytes)
            before the planes are built, e.g. `debug.dump_pixel_bytes`.

    Returns:
        DecodedPTM

    Raises:
        PtmFormatError: Any of its subclasses, see ptm_errors.
    """
    if not isinstance(data, (bytes, bytearray)):
        data = bytes(data)
    header, offset = read_header(data)

    if header.format.bytes_per_pixel is None:
        raise FormatNotImplementedError(f"Format {header.format.value} not yet implemented",
                                        stage="pixels", offset=offset)

    required = header.pixel_count * header.format.bytes_per_pixel
    available = len(data) - offset
    if available < required:
        raise TruncatedError("Not enough pixel data", offset=offset, required=required, available=available)
    pixel_bytes = memoryview(data)[offset:offset + required]

    if diagnostics is not None:
        diagnostics(header, offset, bytes(pixel_bytes))

    if isinstance(layout, str):
        try:
            layout = PixelLayout(layout)
        except ValueError:
            choices = ", ".join(l.value for l in PixelLayout)
            raise PtmFormatError(f"Unknown pixel layout {layout!r} (expected one of {choices})",
                                 stage="pixels") from None
    if layout is None:
        layout = detect_layout(header, pixel_bytes) or default_layout

    coefficients, base_color = decode_pixels(header, pixel_bytes, layout)
    return DecodedPTM.from_planes(header, coefficients, base_color, layout=layout)


def load_ptm(filepath: str, layout: PixelLayout | str | None = None,
             default_layout: PixelLayout = PixelLayout.INTERLEAVED, diagnostics=None) -> DecodedPTM:
    """Reads a .ptm file from disk and decodes it, see `decode`."""
    with open(filepath, 'rb') as f:
        data = f.read()
    return decode(data, layout=layout, default_layout=default_layout, diagnostics=diagnostics)
