# shaders.py

# Relighting works like a fragment shader: every pixel is evaluated on its
# own from its coefficients, base color and normal plus a handful of
# uniforms (RelightParams). Everything is vectorized over the whole image
# with NumPy, pixels never depend on each other.

from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from light_control import clamp_unit_disk
from light_control import light_vector
from profiler import Profiler

SPECULAR_EXPONENT = 20.0
SPECULAR_COLOR = np.array((1.0, 1.0, 0.95))  # slightly warm highlight
SPECULAR_WEIGHT = 0.5
MAX_DIFFUSE_SCALE = 4.0
REFERENCE_EPS = 1e-6
"""Below this the reference luminance (a5) is treated as missing."""
VIEW_VECTOR = np.array((0.0, 0.0, 1.0))  # looking straight down at the surface


class ViewMode(Enum):
    DEFAULT = "default"
    SPECULAR = "specular"
    NORMALS = "normals"


@dataclass(frozen=True, slots=True)
class RelightParams:
    """Everything a frame needs besides the image itself. Build a new one per frame
    rather than mutating it."""
    light: tuple[float, float] = (0.0, 0.0)
    """(lu, lv) light direction. Projected onto the unit disk when used."""
    view_mode: ViewMode = ViewMode.DEFAULT
    specular_gain: float = 1.0
    """Multiplier on the highlight (and on the luminance deviation in SPECULAR mode)."""
    diffuse_gain: float = 1.0
    """Multiplier on the relit base color."""

    @property
    def light_direction(self) -> tuple[float, float]:
        return clamp_unit_disk(*self.light)

    @staticmethod
    def from_config(config) -> "RelightParams":
        """Snapshot the relighting entries of a `config.Config`."""
        return RelightParams(
            light=(config.light_u.val, config.light_v.val),
            view_mode=ViewMode(config.view_mode.val),
            specular_gain=float(config.specular_gain.val),
            diffuse_gain=float(config.diffuse_gain.val),
        )


# ========== Shader I/O ==========
@dataclass(slots=True)
class FragmentInput:
    """Per pixel data for the fragment shaders, whole image at once."""
    coefficients: np.ndarray  # (6, H, W)
    """Unpacked float coefficients a0..a5."""
    base_color: np.ndarray  # (H, W, 3)
    """Base color in [0, 1]."""
    normal: np.ndarray  # (H, W, 3)
    """Unit surface normals."""

    @staticmethod
    def from_ptm(decoded) -> "FragmentInput":
        """Straight from the decoded floats, no 8-bit round trip."""
        return FragmentInput(coefficients=decoded.coefficients,
                             base_color=decoded.base_color.astype(np.float32) / 255.0,
                             normal=decoded.normals)

    @staticmethod
    def from_textures(textures) -> "FragmentInput":
        """From packed `texture.PtmTextures`, the way a GPU would sample them."""
        return FragmentInput(coefficients=textures.coefficients(),
                             base_color=textures.base_color(),
                             normal=textures.normals())


def luminance(coefficients: np.ndarray, lu: float, lv: float) -> NDArray[np.float64]:
    """L = a0*lu^2 + a1*lv^2 + a2*lu*lv + a3*lu + a4*lv + a5, shape (H, W), in float64.
    At (0, 0) this is exactly a5."""
    a0, a1, a2, a3, a4, a5 = (c.astype(np.float64) for c in coefficients)
    return a0 * (lu * lu) + a1 * (lv * lv) + a2 * (lu * lv) + a3 * lu + a4 * lv + a5


def specular_term(normal: np.ndarray, lu: float, lv: float) -> NDArray[np.float64]:
    """Phong highlight for the fixed view vector: max(0, reflect(-l, n) . v) ^ 20."""
    light = light_vector(lu, lv)
    n = normal.astype(np.float64)
    n_dot_l = n @ light  # (H, W)
    # reflect(-l, n) = -l + 2 (n . l) n
    reflected = 2.0 * n_dot_l[..., np.newaxis] * n - light
    r_dot_v = reflected @ VIEW_VECTOR
    return np.maximum(0.0, r_dot_v) ** SPECULAR_EXPONENT


def diffuse_scale(lum: np.ndarray, reference: np.ndarray, gain: float) -> NDArray[np.float64]:
    """How much brighter than the reference light each pixel is, times the gain.
    Where the reference luminance is ~0 the absolute luminance is used instead."""
    has_reference = reference > REFERENCE_EPS
    safe_reference = np.where(has_reference, reference, 1.0)
    ratio = np.maximum(0.0, lum) / safe_reference
    return np.clip(ratio * gain, 0.0, MAX_DIFFUSE_SCALE)


@Profiler.timed()
def ptm_fragment_shader(f: FragmentInput, params: RelightParams) -> np.ndarray:
    """Relit color: base color scaled by the luminance ratio plus a highlight. (H, W, 3) in [0, 1]."""
    lu, lv = params.light_direction
    lum = luminance(f.coefficients, lu, lv)
    reference = f.coefficients[5].astype(np.float64)
    scale = diffuse_scale(lum, reference, params.diffuse_gain)

    diffuse = f.base_color * scale[..., np.newaxis]
    spec = specular_term(f.normal, lu, lv) * params.specular_gain * SPECULAR_WEIGHT
    result = diffuse + spec[..., np.newaxis] * SPECULAR_COLOR
    return np.clip(result, 0.0, 1.0)


@Profiler.timed()
def specular_fragment_shader(f: FragmentInput, params: RelightParams) -> np.ndarray:
    """Grayscale view of the highlight or the luminance gained over the reference light,
    whichever is stronger. Hides albedo so surface detail stands out."""
    lu, lv = params.light_direction
    lum = luminance(f.coefficients, lu, lv)
    deviation = np.maximum(0.0, lum - f.coefficients[5].astype(np.float64)) * 2.0
    spec = specular_term(f.normal, lu, lv)
    value = np.maximum(spec, deviation) * params.specular_gain
    value = np.clip(value, 0.0, 1.0)
    return np.repeat(value[..., np.newaxis], 3, axis=-1)


@Profiler.timed()
def normals_fragment_shader(f: FragmentInput, params: RelightParams) -> np.ndarray:
    """Normals mapped from [-1, 1] to [0, 1]."""
    return np.clip(f.normal.astype(np.float64) * 0.5 + 0.5, 0.0, 1.0)


FRAGMENT_SHADERS = {
    ViewMode.DEFAULT: ptm_fragment_shader,
    ViewMode.SPECULAR: specular_fragment_shader,
    ViewMode.NORMALS: normals_fragment_shader,
}


def to_display(color: np.ndarray) -> NDArray[np.uint8]:
    """[0, 1] floats -> uint8, the only place output gets quantized."""
    return np.round(np.clip(color, 0.0, 1.0) * 255.0).astype(np.uint8)


@Profiler.timed()
def evaluate(decoded, params: RelightParams, textures=None) -> NDArray[np.uint8]:
    """
    Renders a decoded PTM under the given parameters.

    Args:
        decoded (DecodedPTM): The image.
        params (RelightParams): Light direction, view mode and gains.
        textures (PtmTextures, optional): If given, coefficients, color and normals
            are read back from these 8-bit textures instead of the float planes.

    Returns:
        NDArray[np.uint8]: (H, W, 3) RGB image, row 0 at the top.
    """
    if textures is not None:
        fragment = FragmentInput.from_textures(textures)
    else:
        fragment = FragmentInput.from_ptm(decoded)
    shader = FRAGMENT_SHADERS[ViewMode(params.view_mode)]
    return to_display(shader(fragment, params))
