# ptm_header.py

# The PTM header is six lines of plain text in front of the binary pixel data:
#   PTM_1.2
#   PTM_FORMAT_LRGB
#   <width>
#   <height>
#   <scale0> ... <scale5>
#   <bias0> ... <bias5>
# Everything after the sixth newline is pixel data.

import math
import re
from dataclasses import dataclass
from enum import Enum

from ptm_errors import MalformedHeaderError
from ptm_errors import TruncatedError
from ptm_errors import UnsupportedFormatError
from ptm_errors import UnsupportedVersionError

HEADER_LINE_COUNT = 6
COEFFICIENT_COUNT = 6
MAX_HEADER_BYTES = 4096  # A real header is well under 200 bytes
VERSION_PREFIX = "PTM_1."
FORMAT_PREFIX = "PTM_FORMAT_"

_DIMENSION_RE = re.compile(r"[0-9]+")
_DECIMAL_RE = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


class PtmFormat(Enum):
    RGB = "PTM_FORMAT_RGB"
    LUM = "PTM_FORMAT_LUM"
    LRGB = "PTM_FORMAT_LRGB"
    JPEG_RGB = "PTM_FORMAT_JPEG_RGB"
    JPEG_LRGB = "PTM_FORMAT_JPEG_LRGB"
    JPEGLS_RGB = "PTM_FORMAT_JPEGLS_RGB"
    JPEGLS_LRGB = "PTM_FORMAT_JPEGLS_LRGB"

    @property
    def is_compressed(self) -> bool:
        return self.name.startswith("JPEG")

    @property
    def bytes_per_pixel(self) -> int | None:
        """Size of one pixel's data on disk, or None if we can't decode this format."""
        if self is PtmFormat.LRGB:
            return 9   # 3 color bytes + 6 coefficients
        if self is PtmFormat.RGB:
            return 18  # 6 coefficients for each of R, G and B
        return None


@dataclass(frozen=True, slots=True)
class PtmHeader:
    version: str
    """Version line, e.g. `PTM_1.2`."""
    format: PtmFormat
    width: int
    height: int
    scale: tuple[float, ...]
    """Per coefficient multiplier applied after removing the bias."""
    bias: tuple[float, ...]
    """Per coefficient offset subtracted from the stored byte."""

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def _read_lines(data: bytes) -> tuple[list[str], int]:
    """Pull the six header lines off the front of `data`.
    A `\\n` ends a line, a `\\r` is dropped wherever it appears."""
    lines: list[str] = []
    current = bytearray()
    offset = 0
    end = len(data)
    while len(lines) < HEADER_LINE_COUNT:
        if offset >= end:
            raise TruncatedError(f"File ended after {len(lines)} of {HEADER_LINE_COUNT} header lines",
                                 stage="header", offset=offset)
        if offset >= MAX_HEADER_BYTES:
            raise MalformedHeaderError(f"No complete header within the first {MAX_HEADER_BYTES} bytes",
                                       offset=offset)
        byte = data[offset]
        offset += 1
        if byte == 0x0A:  # \n
            lines.append(current.decode("latin-1").strip())
            current.clear()
        elif byte != 0x0D:  # \r
            current.append(byte)
    return lines, offset


def _parse_dimension(line: str, name: str, offset: int) -> int:
    # Plain ASCII digits only, int() would also take "1_0", "+5" or non-ASCII digits
    if not _DIMENSION_RE.fullmatch(line):
        raise MalformedHeaderError(f"Bad {name} {line!r}", offset=offset)
    value = int(line)
    if value <= 0:
        raise MalformedHeaderError(f"{name.capitalize()} must be positive, got {value}", offset=offset)
    return value


def _parse_coefficients(line: str, name: str, offset: int) -> tuple[float, ...]:
    tokens = line.split()
    if len(tokens) != COEFFICIENT_COUNT:
        raise MalformedHeaderError(
            f"Expected {COEFFICIENT_COUNT} {name} values, got {len(tokens)}: {line!r}", offset=offset)
    values = []
    for token in tokens:
        if not _DECIMAL_RE.fullmatch(token):
            raise MalformedHeaderError(f"Bad {name} value {token!r}", offset=offset)
        value = float(token)
        if not math.isfinite(value):  # e.g. 1e999
            raise MalformedHeaderError(f"Non-finite {name} value {token!r}", offset=offset)
        values.append(value)
    return tuple(values)


def read_header(data: bytes) -> tuple[PtmHeader, int]:
    """
    Parse the text header at the start of a PTM file.

    Args:
        data (bytes): The whole file (or at least its header).

    Returns:
        tuple[PtmHeader, int]:
            The parsed header and the byte offset where pixel data starts.

    Raises:
        UnsupportedVersionError, UnsupportedFormatError, MalformedHeaderError, TruncatedError
    """
    lines, pixel_offset = _read_lines(data)

    # Offsets of each line's first byte, only used for error messages
    starts = [0]
    for i in range(HEADER_LINE_COUNT - 1):
        starts.append(data.index(b"\n", starts[-1]) + 1)

    version = lines[0]
    if not version.startswith(VERSION_PREFIX):
        raise UnsupportedVersionError(f"Unsupported PTM version: {version!r}", offset=starts[0])

    try:
        ptm_format = PtmFormat(lines[1])
    except ValueError:
        raise UnsupportedFormatError(f"Unsupported PTM format: {lines[1]!r}", offset=starts[1]) from None

    width = _parse_dimension(lines[2], "width", starts[2])
    height = _parse_dimension(lines[3], "height", starts[3])
    scale = _parse_coefficients(lines[4], "scale", starts[4])
    bias = _parse_coefficients(lines[5], "bias", starts[5])

    header = PtmHeader(version=version, format=ptm_format, width=width, height=height,
                       scale=scale, bias=bias)
    return header, pixel_offset


def _format_number(value: float) -> str:
    # Integers are written without a trailing ".0" like the files in the wild
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def format_header(header: PtmHeader) -> bytes:
    """Write `header` back out as the six text lines (including the final newline)."""
    lines = [
        header.version,
        header.format.value,
        str(header.width),
        str(header.height),
        " ".join(_format_number(s) for s in header.scale),
        " ".join(_format_number(b) for b in header.bias),
    ]
    return ("\n".join(lines) + "\n").encode("latin-1")
