# loader.py

# Decoding a big PTM takes a while, so the viewer does it on a worker thread
# and keeps rendering the old image meanwhile. Only the newest request
# counts: a load that finishes after a newer one was requested is thrown away.

import threading

from ptm_decoder import DecodedPTM
from ptm_decoder import PixelLayout
from ptm_decoder import load_ptm


class PtmLoader:
    def __init__(self, load_fn=load_ptm):
        self._load_fn = load_fn
        self._lock = threading.Lock()
        self._generation = 0
        self._current: DecodedPTM | None = None
        self._current_path: str | None = None
        self._error: Exception | None = None
        self._fresh = False  # Set when something new is ready for poll()
        self._thread: threading.Thread | None = None

    @property
    def current(self) -> DecodedPTM | None:
        return self._current

    @property
    def current_path(self) -> str | None:
        return self._current_path

    @property
    def busy(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def request(self, filepath: str, layout: PixelLayout | None = None,
                default_layout: PixelLayout = PixelLayout.INTERLEAVED, diagnostics=None) -> int:
        """
        Starts loading `filepath` on a worker thread.

        Returns:
            int: The generation number of this request. Any earlier request still
            running will have its result discarded.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
        thread = threading.Thread(target=self._run,
                                  args=(generation, filepath, layout, default_layout, diagnostics),
                                  daemon=True)
        self._thread = thread
        thread.start()
        return generation

    def set_current(self, decoded: DecodedPTM, path: str | None = None):
        """Replace the current image directly (e.g. a synthetic scene), superseding pending loads."""
        with self._lock:
            self._generation += 1
            self._current = decoded
            self._current_path = path
            self._error = None
            self._fresh = True

    def _run(self, generation, filepath, layout, default_layout, diagnostics):
        try:
            decoded = self._load_fn(filepath, layout=layout, default_layout=default_layout,
                                    diagnostics=diagnostics)
            error = None
        except (OSError, ValueError) as e:  # PtmFormatError is a ValueError
            decoded = None
            error = e
        with self._lock:
            if generation != self._generation:
                return  # superseded
            if error is not None:
                self._error = error
            else:
                self._current = decoded
                self._current_path = filepath
                self._error = None
            self._fresh = True

    def wait(self, timeout: float | None = None) -> bool:
        """Blocks until the latest request finished. Returns False on timeout."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def poll(self) -> DecodedPTM | None:
        """
        Returns the newly loaded image once, then None until the next one arrives.

        Raises:
            The error of the latest request if it failed. The previous image stays current.
        """
        with self._lock:
            if not self._fresh:
                return None
            self._fresh = False
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            return self._current
