import os

# No windows or GUI backends while testing
os.environ.setdefault("MPLBACKEND", "Agg")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

import numpy as np
import pytest


def header_bytes(width, height, fmt="PTM_FORMAT_LRGB", scale=(1,) * 6, bias=(0,) * 6,
                 version="PTM_1.2", newline="\n") -> bytes:
    lines = [
        version,
        fmt,
        str(width),
        str(height),
        " ".join(str(s) for s in scale),
        " ".join(str(b) for b in bias),
    ]
    return (newline.join(lines) + newline).encode("ascii")


def build_ptm(coeff_bytes, color=None, layout="interleaved", fmt="PTM_FORMAT_LRGB",
              scale=(1,) * 6, bias=(0,) * 6, version="PTM_1.2", trailing=b"") -> bytes:
    """
    Writes a PTM byte stream by hand, pixel by pixel.

    coeff_bytes: (K, H, W) raw coefficient bytes, row 0 = top of the image.
        K = 6 for LRGB, 18 for RGB (R a0..a5, G a0..a5, B a0..a5).
    color: (H, W, 3) raw color bytes for LRGB.
    layout: "interleaved" (pixel records, top-down for LRGB, bottom-up for RGB)
        or "planar" (planes, bottom-up).
    """
    coeff_bytes = np.asarray(coeff_bytes, dtype=np.uint8)
    k, h, w = coeff_bytes.shape
    out = bytearray(header_bytes(w, h, fmt=fmt, scale=scale, bias=bias, version=version))
    if layout == "interleaved":
        rows = reversed(range(h)) if fmt == "PTM_FORMAT_RGB" else range(h)
        for y in rows:
            for x in range(w):
                if color is not None:
                    out += bytes(int(v) for v in color[y][x])
                out += bytes(int(v) for v in coeff_bytes[:, y, x])
    elif layout == "planar":
        for c in range(k):
            for y in reversed(range(h)):
                out += bytes(int(v) for v in coeff_bytes[c, y])
        if color is not None:
            for y in reversed(range(h)):
                for x in range(w):
                    out += bytes(int(v) for v in color[y][x])
    else:
        raise ValueError(layout)
    return bytes(out) + trailing


def smooth_planes(k, h, w, base=20):
    """Gently varying coefficient bytes, like a real scan."""
    y, x = np.mgrid[0:h, 0:w]
    return np.stack([base + 5 * c + x + y for c in range(k)]).astype(np.uint8)


@pytest.fixture
def ptm_bytes():
    return build_ptm


@pytest.fixture
def make_header():
    return header_bytes


@pytest.fixture
def smooth():
    return smooth_planes


@pytest.fixture
def reset_global_config():
    from config import global_config
    yield global_config
    global_config.reset_defaults()
