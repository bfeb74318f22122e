import threading

import pytest

from loader import PtmLoader
from ptm_decoder import PixelLayout
from ptm_errors import TruncatedError
from scenes import flat_plate


class FakeLoad:
    """load_fn stand-in that blocks per path until released."""

    def __init__(self):
        self.gates = {}
        self.results = {}

    def add(self, path, result):
        self.gates[path] = threading.Event()
        self.results[path] = result

    def release(self, path):
        self.gates[path].set()

    def __call__(self, filepath, layout=None, default_layout=None, diagnostics=None):
        assert self.gates[filepath].wait(5)
        result = self.results[filepath]
        if isinstance(result, Exception):
            raise result
        return result


def test_nothing_is_loaded_at_first() -> None:
    loader = PtmLoader()
    assert loader.current is None
    assert loader.poll() is None
    assert not loader.busy
    assert loader.wait(0.1)


def test_newest_request_wins_even_when_older_finishes_last() -> None:
    fake = FakeLoad()
    old, new = flat_plate(2, 2), flat_plate(3, 3)
    fake.add("old.ptm", old)
    fake.add("new.ptm", new)
    loader = PtmLoader(load_fn=fake)

    first = loader.request("old.ptm")
    first_thread = loader._thread
    second = loader.request("new.ptm")
    assert second > first

    fake.release("new.ptm")
    assert loader.wait(5)
    assert loader.poll() is new

    fake.release("old.ptm")
    first_thread.join(5)
    assert loader.poll() is None
    assert loader.current is new
    assert loader.current_path == "new.ptm"


def test_result_is_handed_out_once() -> None:
    fake = FakeLoad()
    image = flat_plate()
    fake.add("a.ptm", image)
    fake.release("a.ptm")
    loader = PtmLoader(load_fn=fake)
    loader.request("a.ptm")
    assert loader.wait(5)
    assert loader.poll() is image
    assert loader.poll() is None
    assert loader.current is image


def test_failed_load_raises_once_and_keeps_previous_image() -> None:
    fake = FakeLoad()
    good = flat_plate()
    fake.add("good.ptm", good)
    fake.add("bad.ptm", TruncatedError("Not enough pixel data", required=36, available=3))
    fake.release("good.ptm")
    fake.release("bad.ptm")
    loader = PtmLoader(load_fn=fake)

    loader.request("good.ptm")
    loader.wait(5)
    assert loader.poll() is good

    loader.request("bad.ptm")
    loader.wait(5)
    with pytest.raises(TruncatedError):
        loader.poll()
    assert loader.poll() is None
    assert loader.current is good
    assert loader.current_path == "good.ptm"


def test_set_current_supersedes_pending_load() -> None:
    fake = FakeLoad()
    fake.add("slow.ptm", flat_plate(2, 2))
    loader = PtmLoader(load_fn=fake)
    loader.request("slow.ptm")
    thread = loader._thread

    demo = flat_plate(5, 5)
    loader.set_current(demo)
    assert loader.poll() is demo

    fake.release("slow.ptm")
    thread.join(5)
    assert loader.poll() is None
    assert loader.current is demo
    assert loader.current_path is None


def test_loads_a_real_file(tmp_path, ptm_bytes, smooth) -> None:
    path = tmp_path / "scan.ptm"
    path.write_bytes(ptm_bytes(smooth(6, 8, 8), layout="planar", color=[[(1, 2, 3)] * 8] * 8))
    loader = PtmLoader()
    loader.request(str(path))
    assert loader.wait(10)
    decoded = loader.poll()
    assert decoded.layout is PixelLayout.PLANAR
    assert (decoded.width, decoded.height) == (8, 8)


def test_missing_file_is_an_os_error(tmp_path) -> None:
    loader = PtmLoader()
    loader.request(str(tmp_path / "nope.ptm"))
    loader.wait(10)
    with pytest.raises(OSError):
        loader.poll()
