# config.py

from typing import Generic, TypeVar

from ptm_decoder import PixelLayout
from shaders import ViewMode

T = TypeVar('T')

class ConfigEntry(Generic[T]):
    def __init__(self, default_val: T, name=None, mutable=True):
        self._mutable = True  # Allow it to be mutable at the start
        if name == None:
            name = f"UnnamedConfigEntry_{id(self)}"
        self.name = name
        self.default = default_val
        self.val = default_val
        self._mutable = mutable  # Then decide whether to remain mutable

    @property
    def val(self) -> T:
        return self._val

    @val.setter
    def val(self, new_val: T):
        if not self._mutable:
            raise AttributeError(f"{self.name} is immutable")
        self._val = new_val

    def reset(self):
        """Restore the value this entry was created with (immutable entries never change anyway)."""
        if self._mutable:
            self._val = self.default

class Config:
    def __init__(self):
        # === Initial settings ===
        # Set once at startup, changing them afterwards does nothing
        self.screen_width = ConfigEntry(1024, name="screen_width", mutable=False)
        self.screen_height = ConfigEntry(768, name="screen_height", mutable=False)
        self.light_control_radius = ConfigEntry(60, name="light_control_radius", mutable=False)  # Dome indicator size in pixels

        # === Display settings ===
        self.cell_size = ConfigEntry(1, name="cell_size")  # Screen pixels per PTM pixel when not fitting the window
        self.fit_to_window = ConfigEntry(True, name="fit_to_window")

        # === Relighting (snapshotted into RelightParams every frame) ===
        self.light_u = ConfigEntry(0.0, name="light_u")
        self.light_v = ConfigEntry(0.0, name="light_v")
        self.view_mode = ConfigEntry(ViewMode.DEFAULT, name="view_mode")
        self.specular_gain = ConfigEntry(1.0, name="specular_gain")  # 0 - 5 in the control panel
        self.diffuse_gain = ConfigEntry(1.0, name="diffuse_gain")  # 0 - 3 in the control panel

        # === Decoding ===
        self.pixel_layout: ConfigEntry[PixelLayout | None] = ConfigEntry(None, name="pixel_layout")  # None = detect
        self.default_layout = ConfigEntry(PixelLayout.INTERLEAVED, name="default_layout")
        self.dump_pixel_bytes = ConfigEntry(False, name="dump_pixel_bytes")

        # === Debug values ===
        self.profile_interval = ConfigEntry(60, name="profile_interval")  # Frames between profiler reports, 0 = off

    def entries(self) -> dict[str, ConfigEntry]:
        return {key: value for key, value in vars(self).items() if isinstance(value, ConfigEntry)}

    def reset_defaults(self):
        """Resets all configs to their default values."""
        for entry in self.entries().values():
            entry.reset()


# Global instance
global_config = Config()
