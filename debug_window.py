# debug_window.py

import dearpygui.dearpygui as dpg


class DebugWindow:
    """
    A small dearpygui panel whose widgets are bound to `ConfigEntry` objects.

    Widget callbacks never touch the config directly. They stage the value and
    `apply_pending_updates()` writes it at a safe point of the main loop, so a
    frame is always rendered from one consistent set of settings.
    """
    def __init__(self, title="PTM Controls", width=360, height=260):
        dpg.create_context()
        dpg.create_viewport(title=title, width=width, height=height)
        dpg.setup_dearpygui()
        self.controls = {}
        self.pending_updates = {}

        with dpg.window(label=title, width=width, height=height) as self.window_id:
            pass  # Widgets are added by the create_* methods

        dpg.show_viewport()

    # === INPUT ELEMENTS ===
    def create_slider_input_float(self, label, config_ref, min_val=0.0, max_val=1.0, on_change=None):
        """
        Create a float slider.

        Args:
            label (str): UI label and identifier.
            config_ref: Object with a mutable `val` attribute.
            min_val (float): Minimum slider value.
            max_val (float): Maximum slider value.
            on_change (callable, optional): Callback executed when the value is applied.
        """
        self.controls[label] = config_ref
        dpg.add_slider_float(label=label, default_value=config_ref.val, min_value=min_val, max_value=max_val,
                             tag=f"ctl_{label}",
                             callback=lambda s, a: self._update_config(label, a, on_change),
                             parent=self.window_id)

    def create_enum_radio(self, label, config_ref, enum_cls, on_change=None):
        """
        Create a radio button group for an Enum valued entry. The entry receives
        the enum member, not the displayed string.
        """
        self.controls[label] = config_ref
        items = [member.value for member in enum_cls]
        dpg.add_text(label, parent=self.window_id)
        dpg.add_radio_button(items=items, default_value=config_ref.val.value, horizontal=True,
                             tag=f"ctl_{label}",
                             callback=lambda s, a: self._update_config(label, enum_cls(a), on_change),
                             parent=self.window_id)

    def create_checkbox(self, label, config_ref, on_change=None):
        self.controls[label] = config_ref
        dpg.add_checkbox(label=label, default_value=bool(config_ref.val), tag=f"ctl_{label}",
                         callback=lambda s, a: self._update_config(label, a, on_change),
                         parent=self.window_id)

    def create_debug_label(self, label, tracked_val):
        """
        Create a read-only label showing `tracked_val.val`, refreshed by `update_debug_labels()`.
        """
        self.controls[label] = tracked_val
        dpg.add_text(default_value=f"{label}: {tracked_val.val}",
                     tag=f"dbg_{label}",
                     parent=self.window_id)

    # === INTERNAL UPDATE LOGIC ===
    def _update_config(self, label, value, on_change=None):
        # Staged, applied by apply_pending_updates()
        self.pending_updates[label] = (value, on_change)

    def apply_pending_updates(self):
        """
        Apply all queued configuration updates and run their `on_change` callbacks.
        Call this at the start of a frame, before the frame's RelightParams are built.
        """
        for label, (value, on_change) in self.pending_updates.items():
            ref = self.controls[label]
            ref.val = value
            if on_change:
                on_change(value)
        self.pending_updates.clear()

    def sync_from_config(self):
        """Push config values changed elsewhere (keyboard shortcuts) back into the widgets."""
        for label, ref in self.controls.items():
            tag = f"ctl_{label}"
            if dpg.does_item_exist(tag):
                value = ref.val.value if hasattr(ref.val, "value") else ref.val
                dpg.set_value(tag, value)

    def update_debug_labels(self):
        """Updates all debug labels with the latest values."""
        for label, ref in self.controls.items():
            tag = f"dbg_{label}"
            if dpg.does_item_exist(tag):
                dpg.set_value(tag, f"{label}: {ref.val}")

    @property
    def is_open(self) -> bool:
        return dpg.is_dearpygui_running()

    def render_ui(self):
        """Render the UI for this frame (call inside the viewer loop)."""
        self.update_debug_labels()
        dpg.render_dearpygui_frame()

    def shutdown(self):
        dpg.destroy_context()
