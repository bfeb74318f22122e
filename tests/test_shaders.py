from dataclasses import replace

import numpy as np
import pytest

from ptm_decoder import DecodedPTM
from scenes import demo_bumps
from scenes import flat_plate
from shaders import RelightParams
from shaders import ViewMode
from shaders import evaluate
from shaders import luminance
from texture import ptm_textures


def _single_pixel(a3=0.0, a5=0.0, color=(200, 200, 200)) -> DecodedPTM:
    template = flat_plate(1, 1)
    coeffs = np.zeros((6, 1, 1), dtype=np.float32)
    coeffs[3] = a3
    coeffs[5] = a5
    base = np.array(color, dtype=np.uint8).reshape(1, 1, 3)
    return DecodedPTM.from_planes(template.header, coeffs, base)


# ========== Luminance ==========
def test_overhead_light_gives_the_constant_term_exactly() -> None:
    rng = np.random.default_rng(3)
    coeffs = rng.uniform(-2, 2, size=(6, 5, 7)).astype(np.float32)
    np.testing.assert_array_equal(luminance(coeffs, 0.0, 0.0), coeffs[5].astype(np.float64))


def test_luminance_polynomial() -> None:
    rng = np.random.default_rng(4)
    coeffs = rng.uniform(-2, 2, size=(6, 3, 3)).astype(np.float32)
    lu, lv = 0.3, -0.5
    a = coeffs.astype(np.float64)
    expected = a[0] * lu * lu + a[1] * lv * lv + a[2] * lu * lv + a[3] * lu + a[4] * lv + a[5]
    np.testing.assert_allclose(luminance(coeffs, lu, lv), expected, rtol=1e-12)


def test_luminance_is_continuous_in_the_light() -> None:
    decoded = demo_bumps(16, 16)
    a = luminance(decoded.coefficients, 0.2, 0.1)
    b = luminance(decoded.coefficients, 0.2 + 1e-7, 0.1 - 1e-7)
    assert np.abs(a - b).max() < 1e-5


# ========== Light direction ==========
def test_light_outside_the_disk_is_projected_onto_it() -> None:
    params = RelightParams(light=(3.0, 4.0))
    assert params.light_direction == pytest.approx((0.6, 0.8))

    decoded = demo_bumps(24, 24)
    far = evaluate(decoded, params)
    farther = evaluate(decoded, RelightParams(light=(30.0, 40.0)))
    np.testing.assert_array_equal(far, farther)

    edge = evaluate(decoded, RelightParams(light=(0.6, 0.8)))
    assert np.abs(far.astype(np.int16) - edge.astype(np.int16)).max() <= 1


# ========== Default mode ==========
def test_output_is_rgb_bytes_the_size_of_the_image() -> None:
    decoded = demo_bumps(20, 12)
    out = evaluate(decoded, RelightParams(light=(0.2, -0.3)))
    assert out.shape == (12, 20, 3)
    assert out.dtype == np.uint8


def test_flat_surface_without_highlight_shows_its_base_color() -> None:
    decoded = flat_plate(4, 3, color=(128, 60, 10), albedo=0.5)
    for light in [(0.0, 0.0), (0.5, -0.5), (-1.0, 0.0)]:
        out = evaluate(decoded, RelightParams(light=light, specular_gain=0.0))
        assert np.all(out == (128, 60, 10))


def test_overhead_highlight_is_added_to_the_base_color() -> None:
    decoded = flat_plate(2, 2, color=(128, 128, 128))
    out = evaluate(decoded, RelightParams(light=(0.0, 0.0)))
    # Full highlight at half weight, blue slightly weaker
    assert np.all(out[..., :2] == 255)
    assert np.all(out[..., 2] == round(128 + 0.5 * 0.95 * 255))

    dim = evaluate(flat_plate(2, 2, color=(20, 20, 20)), RelightParams(light=(0.0, 0.0), specular_gain=0.4))
    assert np.all(dim[..., 0] == 20 + 51)


def test_diffuse_gain_scales_the_base_color() -> None:
    decoded = flat_plate(2, 2, color=(60, 30, 90))
    out = evaluate(decoded, RelightParams(specular_gain=0.0, diffuse_gain=2.0))
    assert np.all(out == (120, 60, 180))


def test_diffuse_scale_is_capped() -> None:
    decoded = flat_plate(2, 2, color=(20, 20, 20))
    out = evaluate(decoded, RelightParams(specular_gain=0.0, diffuse_gain=10.0))
    assert np.all(out == 80)


def test_missing_reference_uses_absolute_luminance() -> None:
    decoded = _single_pixel(a3=0.5, a5=0.0, color=(200, 200, 200))
    out = evaluate(decoded, RelightParams(light=(0.4, 0.0), specular_gain=0.0))
    # L = 0.5 * 0.4 = 0.2
    assert np.all(out == 40)

    dark = evaluate(decoded, RelightParams(light=(-0.4, 0.0), specular_gain=0.0))
    assert np.all(dark == 0)


# ========== Specular mode ==========
def test_specular_mode_overhead_is_white() -> None:
    out = evaluate(flat_plate(3, 3), RelightParams(view_mode=ViewMode.SPECULAR))
    assert np.all(out == 255)


def test_specular_mode_falls_off_with_the_light_angle() -> None:
    out = evaluate(flat_plate(2, 2), RelightParams(light=(0.6, 0.0), view_mode=ViewMode.SPECULAR))
    # reflect(-l, n) . v = lz = 0.8 for a flat normal
    expected = round(0.8 ** 20 * 255)
    assert np.all(out == expected)


def test_specular_mode_is_grayscale() -> None:
    out = evaluate(demo_bumps(16, 16), RelightParams(light=(0.3, 0.4), view_mode=ViewMode.SPECULAR))
    assert np.array_equal(out[..., 0], out[..., 1])
    assert np.array_equal(out[..., 1], out[..., 2])


def test_specular_mode_shows_luminance_gain_over_reference() -> None:
    decoded = _single_pixel(a3=0.5, a5=0.1)
    out = evaluate(decoded, RelightParams(light=(0.2, 0.0), view_mode=ViewMode.SPECULAR, specular_gain=1.0))
    # deviation = (0.1 + 0.5 * 0.2 - 0.1) * 2 = 0.2, bigger than the highlight here
    assert out[0, 0, 0] == round(0.2 * 255)


# ========== Normals mode ==========
def test_normals_mode_of_a_flat_surface() -> None:
    out = evaluate(flat_plate(2, 2), RelightParams(view_mode=ViewMode.NORMALS, light=(0.9, 0.1)))
    assert np.all(out == (128, 128, 255))


def test_normals_mode_ignores_light_and_gains() -> None:
    decoded = demo_bumps(16, 16)
    a = evaluate(decoded, RelightParams(view_mode=ViewMode.NORMALS))
    b = evaluate(decoded, RelightParams(view_mode=ViewMode.NORMALS, light=(-0.7, 0.2),
                                        specular_gain=4.0, diffuse_gain=0.1))
    np.testing.assert_array_equal(a, b)


# ========== Texture path ==========
def test_texture_path_matches_float_path_on_flat_data() -> None:
    decoded = flat_plate(4, 4, color=(90, 140, 200), albedo=0.7)
    params = RelightParams(light=(0.3, -0.2), specular_gain=0.0)
    np.testing.assert_array_equal(evaluate(decoded, params, textures=ptm_textures(decoded)),
                                  evaluate(decoded, params))


def test_texture_path_stays_close_to_float_path() -> None:
    decoded = demo_bumps(64, 64)
    textures = ptm_textures(decoded)
    for mode in ViewMode:
        params = RelightParams(light=(0.4, 0.3), view_mode=mode)
        packed = evaluate(decoded, params, textures=textures).astype(np.int16)
        exact = evaluate(decoded, params).astype(np.int16)
        assert np.abs(packed - exact).mean() <= 4


# ========== Per pixel independence ==========
def test_pixels_do_not_depend_on_their_neighbours() -> None:
    decoded = demo_bumps(32, 24)
    params = RelightParams(light=(-0.25, 0.5), specular_gain=2.0)
    full = evaluate(decoded, params)

    ys, xs = slice(5, 17), slice(9, 30)
    header = replace(decoded.header, width=21, height=12)
    crop = DecodedPTM.from_planes(header, decoded.coefficients[:, ys, xs], decoded.base_color[ys, xs])
    cropped = evaluate(crop, params)

    assert np.abs(cropped.astype(np.int16) - full[ys, xs].astype(np.int16)).max() <= 1
