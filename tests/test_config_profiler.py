import pytest

import profiler
from config import Config
from config import ConfigEntry
from profiler import Profiler
from ptm_decoder import PixelLayout
from shaders import RelightParams
from shaders import ViewMode


# ========== Config ==========
def test_immutable_entries_refuse_changes() -> None:
    entry = ConfigEntry(5, name="fixed", mutable=False)
    with pytest.raises(AttributeError, match="fixed"):
        entry.val = 6
    entry.reset()
    assert entry.val == 5


def test_unnamed_entries_get_a_name() -> None:
    assert ConfigEntry(1).name.startswith("UnnamedConfigEntry_")


def test_defaults() -> None:
    config = Config()
    assert config.view_mode.val is ViewMode.DEFAULT
    assert config.pixel_layout.val is None
    assert config.default_layout.val is PixelLayout.INTERLEAVED
    assert (config.light_u.val, config.light_v.val) == (0.0, 0.0)
    assert "specular_gain" in config.entries()
    assert all(entry.name == key for key, entry in config.entries().items())


def test_reset_defaults_restores_mutable_entries() -> None:
    config = Config()
    config.light_u.val = 0.7
    config.view_mode.val = ViewMode.NORMALS
    config.reset_defaults()
    assert config.light_u.val == 0.0
    assert config.view_mode.val is ViewMode.DEFAULT
    assert config.screen_width.val == 1024


def test_relight_params_snapshot_the_config(reset_global_config) -> None:
    config = reset_global_config
    config.light_u.val = 0.25
    config.light_v.val = -0.5
    config.view_mode.val = ViewMode.SPECULAR
    config.specular_gain.val = 3
    params = RelightParams.from_config(config)
    assert params == RelightParams(light=(0.25, -0.5), view_mode=ViewMode.SPECULAR,
                                   specular_gain=3.0, diffuse_gain=1.0)

    # Later changes don't leak into the snapshot
    config.light_u.val = 0.9
    assert params.light == (0.25, -0.5)


# ========== Profiler ==========
@pytest.fixture
def clean_profiler(monkeypatch):
    monkeypatch.setattr(profiler, "enabled", True)
    Profiler.reset()
    yield
    Profiler.reset()


def test_timed_counts_calls_and_keeps_the_result(clean_profiler) -> None:
    @Profiler.timed()
    def double(x):
        return 2 * x

    assert double(4) == 8
    assert double(5) == 10
    assert double.__name__ == "double"
    total, calls = Profiler.totals()["f:double"]
    assert calls == 2
    assert total >= 0.0


def test_timed_still_counts_when_the_function_raises(clean_profiler) -> None:
    @Profiler.timed("boom")
    def boom():
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        boom()
    assert Profiler.totals()["f:boom"][1] == 1


def test_manual_segments(clean_profiler) -> None:
    Profiler.accumulate_end("never_started")
    assert "never_started" not in Profiler.totals()

    Profiler.accumulate_start("segment")
    Profiler.accumulate_end("segment")
    assert Profiler.totals()["segment"][1] == 1


def test_report_prints_and_clears(clean_profiler, capsys) -> None:
    Profiler.accumulate_start("segment")
    Profiler.accumulate_end("segment")
    text = Profiler.report(intervals=2)
    assert "segment" in text
    assert "==== Profile ====" in capsys.readouterr().out
    assert Profiler.totals() == {}


def test_disabled_profiler_records_nothing(monkeypatch) -> None:
    monkeypatch.setattr(profiler, "enabled", False)
    Profiler.reset()

    @Profiler.timed()
    def quiet():
        return 1

    assert quiet() == 1
    assert Profiler.totals() == {}
    assert Profiler.report() == ""
