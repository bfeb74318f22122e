# debug.py
# Tools for poking at a PTM while figuring out a new producer's byte layout.
# Nothing in here runs unless it is asked for: pass `dump_pixel_bytes` as the
# decoder's `diagnostics` hook, or call the plotting functions by hand.

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.patches as patches
from matplotlib.colors import Normalize

COEFFICIENT_LABELS = ("a0 (lu²)", "a1 (lv²)", "a2 (lu·lv)", "a3 (lu)", "a4 (lv)", "a5 (const)")


def dump_pixel_bytes(header, pixel_offset: int, pixel_bytes: bytes, pixels=4) -> str:
    """
    Prints the first few pixels' worth of raw bytes, grouped per pixel, plus the
    start of the second scanline. Matches the decoder's `diagnostics` signature.

    Returns the printed text as well.
    """
    bpp = header.format.bytes_per_pixel or 9
    expected = header.pixel_count * bpp
    first = list(pixel_bytes[:pixels * bpp])
    groups = [first[i:i + bpp] for i in range(0, len(first), bpp)]
    second_line_start = header.width * bpp
    second_line = list(pixel_bytes[second_line_start:second_line_start + 2 * bpp])

    lines = [
        f"PTM header: {header}",
        f"Header ended at byte offset: {pixel_offset}",
        f"Expected pixel data size: {expected} bytes, got {len(pixel_bytes)}",
        f"First {len(first)} bytes as groups of {bpp}: {groups}",
        f"First {len(second_line)} bytes of line 2 (offset {pixel_offset + second_line_start}): {second_line}",
    ]
    text = "\n".join(lines)
    print(text)
    return text


def draw_array(image: np.ndarray, title=None, show=True):
    h, w = image.shape[:2]
    fig, ax = plt.subplots()

    norm = Normalize(vmin=float(image.min()), vmax=float(image.max()))

    if image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1):
        ax.imshow(image.squeeze(), norm=norm)
    elif image.ndim == 3 and image.shape[2] == 3:
        if image.dtype == np.uint8:
            ax.imshow(image)
        else:
            ax.imshow(norm(image))
    else:
        raise ValueError("Unsupported shape")

    rect = patches.Rectangle((0, 0), w-1, h-1, linewidth=1, edgecolor='red', facecolor='none')
    ax.add_patch(rect)
    ax.axis('off')
    if title:
        ax.set_title(title)

    # Show the raw value under the cursor
    def format_coord(x: float, y: float) -> str:
        xi, yi = int(x + 0.5), int(y + 0.5)
        if 0 <= yi < h and 0 <= xi < w:
            val = image[yi, xi]
            return f"x={xi}, y={yi}, val={val}"
        return ""

    ax.format_coord = format_coord
    if show:
        plt.show()
    return fig


def draw_coefficient_planes(decoded, show=True):
    """All six coefficient planes side by side, each with its own color scale, plus the base color."""
    fig, axes = plt.subplots(2, 4, figsize=(12, 6))
    for c, ax in enumerate(axes.flat[:6]):
        plane = decoded.coefficients[c]
        im = ax.imshow(plane, cmap='viridis')
        ax.set_title(COEFFICIENT_LABELS[c])
        ax.axis('off')
        fig.colorbar(im, ax=ax, fraction=0.046)
    axes.flat[6].imshow(decoded.base_color)
    axes.flat[6].set_title("base color")
    axes.flat[7].imshow(decoded.normals * 0.5 + 0.5)
    axes.flat[7].set_title("normals")
    for ax in axes.flat[6:]:
        ax.axis('off')
    fig.suptitle(f"{decoded.format.value} {decoded.width}x{decoded.height}")
    fig.tight_layout()
    if show:
        plt.show()
    return fig


def plot_coefficient_histogram(decoded, bins=64, show=True):
    """Distribution of each coefficient, useful to judge how much the 8-bit packing throws away."""
    fig, axes = plt.subplots(2, 3, figsize=(12, 6))
    for c, ax in enumerate(axes.flat):
        values = decoded.coefficients[c].ravel()
        ax.hist(values, bins=bins, edgecolor='black')
        r = decoded.ranges[c]
        ax.set_title(f"{COEFFICIENT_LABELS[c]} [{r.min:.3g}, {r.max:.3g}]")
        ax.grid(True, linestyle='--', alpha=0.5)
    fig.tight_layout()
    if show:
        plt.show()
    return fig
