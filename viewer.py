#!/usr/bin/python
# viewer.py

# Interactive PTM relighting viewer.
#
#   python viewer.py scan.ptm
#   python viewer.py --demo
#   python viewer.py scan.ptm --out relit.png --light 0.5 0.3 --mode specular   (no window)
#
# Drag with the left mouse button to move the light
# 1 / 2 / 3 switch between default, specular and normals view
# R resets the light to straight above
# S saves the current render as PNG
# I plots the coefficient planes
# Drop a .ptm file on the window to open it
# Q or Esc quits

import argparse
import sys

import cv2
import numpy as np
import pygame
from numpy.typing import NDArray
from skimage.draw import circle_perimeter
from skimage.draw import disk
from skimage.draw import line

import debug
import profiler
import scenes
from config import global_config
from light_control import angles_from_light
from light_control import light_from_pointer
from light_control import pointer_from_light
from loader import PtmLoader
from profiler import Profiler
from ptm_decoder import DecodedPTM
from ptm_decoder import PixelLayout
from shaders import RelightParams
from shaders import ViewMode
from shaders import evaluate

render_config = global_config

# ========== Common Colors ==========
COLOR_BLACK = (0, 0, 0)
COLOR_DOME_BG = (30, 30, 30)
COLOR_DOME_RIM = (80, 80, 80)
COLOR_CROSSHAIR = (60, 60, 60)
COLOR_HANDLE = (250, 220, 180)
COLOR_TEXT = (220, 220, 220)

VIEW_MODE_KEYS = {
    pygame.K_1: ViewMode.DEFAULT,
    pygame.K_2: ViewMode.SPECULAR,
    pygame.K_3: ViewMode.NORMALS,
}


def draw_light_dome(lu: float, lv: float, radius: int, margin=6) -> NDArray[np.uint8]:
    """
    Draws the light position indicator: a circle for the unit disk, a crosshair
    and a handle at (lu, lv). Returns an (S, S, 3) RGB image, S = 2 * (radius + margin) + 1.
    """
    size = 2 * (radius + margin) + 1
    c = radius + margin
    canvas = np.empty((size, size, 3), dtype=np.uint8)
    canvas[:] = COLOR_DOME_BG

    rr, cc = line(c, c - radius, c, c + radius)
    canvas[rr, cc] = COLOR_CROSSHAIR
    rr, cc = line(c - radius, c, c + radius, c)
    canvas[rr, cc] = COLOR_CROSSHAIR
    rr, cc = circle_perimeter(c, c, radius, shape=canvas.shape[:2])
    canvas[rr, cc] = COLOR_DOME_RIM

    hx, hy = pointer_from_light(lu, lv, c, c, radius)
    rr, cc = disk((hy, hx), max(2, radius // 8), shape=canvas.shape[:2])
    canvas[rr, cc] = COLOR_HANDLE
    return canvas


def save_render(filepath: str, image: np.ndarray):
    """Writes an RGB uint8 image to disk (format from the extension)."""
    # OpenCV wants BGR
    if not cv2.imwrite(filepath, cv2.cvtColor(image, cv2.COLOR_RGB2BGR)):
        raise OSError(f"Could not write image to {filepath}")


def render_to_file(decoded: DecodedPTM, params: RelightParams, filepath: str) -> np.ndarray:
    image = evaluate(decoded, params)
    save_render(filepath, image)
    return image


def request_file(loader: PtmLoader, filepath: str) -> int:
    """Queues `filepath` on the loader with the decoding settings from the config."""
    if not filepath.lower().endswith(".ptm"):
        print(f"Warning: {filepath} does not have a .ptm extension")
    diagnostics = debug.dump_pixel_bytes if render_config.dump_pixel_bytes.val else None
    return loader.request(filepath, layout=render_config.pixel_layout.val,
                          default_layout=render_config.default_layout.val, diagnostics=diagnostics)


class Viewer:
    def __init__(self, loader: PtmLoader, debug_win=None) -> None:
        self.width = render_config.screen_width.val
        self.height = render_config.screen_height.val
        self.loader = loader
        self.debug_win = debug_win
        self.decoded: DecodedPTM | None = None

        # Last rendered frame, re-rendered only when the params or the image change
        self.frame: NDArray[np.uint8] | None = None
        self.frame_params: RelightParams | None = None
        self.frame_count = 0

        pygame.init()
        pygame.display.set_caption("PTM Viewer")
        self.screen = pygame.display.set_mode((self.width, self.height), pygame.RESIZABLE)
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont(None, 20)
        self.dragging = False
        self.running = True

    # ========== Light control ==========
    def image_rect(self) -> pygame.Rect:
        """Where the image is drawn inside the window."""
        if self.decoded is None:
            return pygame.Rect(0, 0, self.width, self.height)
        w, h = self.decoded.width, self.decoded.height
        if render_config.fit_to_window.val:
            scale = min(self.width / w, self.height / h)
        else:
            scale = render_config.cell_size.val
        rect = pygame.Rect(0, 0, max(1, int(w * scale)), max(1, int(h * scale)))
        rect.center = (self.width // 2, self.height // 2)
        return rect

    def set_light_from_mouse(self, pos):
        rect = self.image_rect()
        radius = min(rect.width, rect.height) / 2
        lu, lv = light_from_pointer(pos[0], pos[1], rect.centerx, rect.centery, radius)
        render_config.light_u.val = lu
        render_config.light_v.val = lv

    def reset_light(self):
        render_config.light_u.val = 0.0
        render_config.light_v.val = 0.0

    def reset_controls(self):
        """Light overhead, default view, unit gains. Done for every newly loaded image."""
        self.reset_light()
        for entry in (render_config.view_mode, render_config.specular_gain, render_config.diffuse_gain):
            entry.reset()
        if self.debug_win is not None:
            self.debug_win.sync_from_config()

    # ========== Loading ==========
    def open_file(self, filepath: str):
        """Starts loading another file, superseding any load still running."""
        request_file(self.loader, filepath)
        print(f"Loading {filepath}...")

    def poll_loader(self):
        try:
            decoded = self.loader.poll()
        except (OSError, ValueError) as e:
            print(f"Error loading PTM file: {e}")
            return
        if decoded is not None:
            # The first image keeps the settings given on the command line
            replacing = self.decoded is not None
            self.decoded = decoded
            self.frame = None
            layout = decoded.layout.value if decoded.layout else "synthetic"
            print(f"Loaded {self.loader.current_path or 'demo'}: {decoded.format.value} "
                  f"{decoded.width}x{decoded.height} ({layout})")
            if replacing:
                self.reset_controls()
            else:
                self.reset_light()

    # ========== Drawing ==========
    @Profiler.timed("render_frame")
    def render_frame(self):
        params = RelightParams.from_config(render_config)
        if self.frame is None or params != self.frame_params:
            self.frame = evaluate(self.decoded, params)
            self.frame_params = params

        surface = pygame.surfarray.make_surface(self.frame.swapaxes(0, 1))
        rect = self.image_rect()
        surface = pygame.transform.scale(surface, rect.size)
        self.screen.blit(surface, rect.topleft)

    def render_overlay(self):
        radius = render_config.light_control_radius.val
        lu, lv = render_config.light_u.val, render_config.light_v.val
        dome = draw_light_dome(lu, lv, radius)
        dome_surface = pygame.surfarray.make_surface(dome.swapaxes(0, 1))
        self.screen.blit(dome_surface, (self.width - dome.shape[1] - 10, self.height - dome.shape[0] - 10))

        az, elev = angles_from_light(lu, lv)
        text = (f"x={lu:+.2f} y={lv:+.2f}  az={az:5.1f}  el={elev:4.1f}  "
                f"mode={render_config.view_mode.val.value}")
        if self.loader.busy:
            text += "  loading..."
        self.screen.blit(self.font.render(text, True, COLOR_TEXT), (10, 10))

    # ========== Input ==========
    def handle_event(self, event):
        if event.type == pygame.QUIT:
            self.running = False
        elif event.type == pygame.VIDEORESIZE:
            self.width, self.height = event.w, event.h
        elif event.type == pygame.DROPFILE:
            self.open_file(event.file)
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:  # Left click
            self.dragging = True
            self.set_light_from_mouse(event.pos)
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self.dragging = False
        elif event.type == pygame.MOUSEMOTION and self.dragging:
            self.set_light_from_mouse(event.pos)
        elif event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_q, pygame.K_ESCAPE):
                self.running = False
            elif event.key in VIEW_MODE_KEYS:
                render_config.view_mode.val = VIEW_MODE_KEYS[event.key]
            elif event.key == pygame.K_r:
                self.reset_light()
            elif event.key == pygame.K_s and self.frame is not None:
                path = f"relit_{self.frame_count}.png"
                save_render(path, self.frame)
                print(f"Saved {path}")
            elif event.key == pygame.K_i and self.decoded is not None:
                debug.draw_coefficient_planes(self.decoded)
            if self.debug_win is not None:
                self.debug_win.sync_from_config()

    def run(self):
        interval = render_config.profile_interval.val
        while self.running:
            self.frame_count += 1
            if self.debug_win is not None:
                self.debug_win.apply_pending_updates()

            self.poll_loader()
            for event in pygame.event.get():
                self.handle_event(event)

            Profiler.accumulate_start("draw")
            self.screen.fill(COLOR_BLACK)
            if self.decoded is not None:
                self.render_frame()
            Profiler.accumulate_end("draw")

            Profiler.accumulate_start("overlay")
            self.render_overlay()
            Profiler.accumulate_end("overlay")

            Profiler.accumulate_start("flip")
            pygame.display.flip()
            Profiler.accumulate_end("flip")

            if interval and self.frame_count % interval == 0:
                Profiler.report(intervals=interval)

            self.clock.tick(60)
            if self.debug_win is not None:
                if not self.debug_win.is_open:
                    self.running = False
                self.debug_win.render_ui()

        pygame.quit()
        if self.debug_win is not None:
            self.debug_win.shutdown()


def build_debug_window():
    from debug_window import DebugWindow
    win = DebugWindow()
    win.create_enum_radio("VIEW_MODE", render_config.view_mode, ViewMode)
    win.create_slider_input_float("SPECULAR_GAIN", render_config.specular_gain, min_val=0.0, max_val=5.0)
    win.create_slider_input_float("DIFFUSE_GAIN", render_config.diffuse_gain, min_val=0.0, max_val=3.0)
    win.create_checkbox("FIT_TO_WINDOW", render_config.fit_to_window)
    win.create_debug_label("LIGHT_U", render_config.light_u)
    win.create_debug_label("LIGHT_V", render_config.light_v)
    return win


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Relight Polynomial Texture Map (.ptm) files.")
    ap.add_argument("file", nargs="?", help=".ptm file to open")
    ap.add_argument("--demo", action="store_true", help="Use the synthetic bump pattern instead of a file")
    ap.add_argument("--layout", choices=[layout.value for layout in PixelLayout],
                    help="Force the pixel layout instead of detecting it")
    ap.add_argument("--dump-bytes", action="store_true", help="Print the first raw pixel bytes while decoding")
    ap.add_argument("--controls", action="store_true", help="Open the dearpygui control panel")
    ap.add_argument("--no-profile", action="store_true", help="Disable the profiler")
    ap.add_argument("--out", help="Render once to this image file and exit")
    ap.add_argument("--light", type=float, nargs=2, default=(0.0, 0.0), metavar=("LU", "LV"),
                    help="Light direction for --out")
    ap.add_argument("--mode", choices=[mode.value for mode in ViewMode], default=ViewMode.DEFAULT.value,
                    help="View mode for --out")
    ap.add_argument("--specular-gain", type=float, default=1.0)
    ap.add_argument("--diffuse-gain", type=float, default=1.0)
    args = ap.parse_args(argv)
    if not args.demo and not args.file:
        ap.error("give a .ptm file or --demo")
    return args


def main(argv=None):
    args = parse_args(argv)
    profiler.enabled = not args.no_profile
    if args.layout:
        render_config.pixel_layout.val = PixelLayout(args.layout)
    render_config.dump_pixel_bytes.val = args.dump_bytes

    loader = PtmLoader()
    if args.demo:
        loader.set_current(scenes.demo_bumps(512, 512))
    else:
        request_file(loader, args.file)

    if args.out:
        # Headless: wait for the decode and render one frame
        loader.wait()
        try:
            decoded = loader.poll()
        except (OSError, ValueError) as e:
            print(f"Error loading PTM file: {e}", file=sys.stderr)
            return 1
        params = RelightParams(light=tuple(args.light), view_mode=ViewMode(args.mode),
                               specular_gain=args.specular_gain, diffuse_gain=args.diffuse_gain)
        render_to_file(decoded, params, args.out)
        print(f"Saved {args.out}")
        return 0

    render_config.specular_gain.val = args.specular_gain
    render_config.diffuse_gain.val = args.diffuse_gain
    debug_win = build_debug_window() if args.controls else None
    Viewer(loader, debug_win=debug_win).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
