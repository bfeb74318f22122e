# profiler.py

import functools
import time

# Accumulated time per label: [total_seconds, call_count, start_time or None]
_profile_accumulators: dict[str, list] = {}

enabled = True


def _entry(label: str) -> list:
    if label not in _profile_accumulators:
        _profile_accumulators[label] = [0.0, 0, None]
    return _profile_accumulators[label]


class Profiler:
    @staticmethod
    def accumulate_start(name: str):
        if enabled:
            _entry(name)[2] = time.perf_counter()

    @staticmethod
    def accumulate_end(name: str):
        if not enabled:
            return
        entry = _profile_accumulators.get(name)
        if entry is None or entry[2] is None:
            return  # ignore unmatched end
        entry[0] += time.perf_counter() - entry[2]
        entry[1] += 1
        entry[2] = None

    @staticmethod
    def timed(name=""):
        """Decorator adding each call's duration under `f:<name>` (defaults to the function name)."""
        def wrapper(fn):
            label = "f:" + (name or fn.__name__)

            @functools.wraps(fn)
            def inner(*args, **kwargs):
                if not enabled:
                    return fn(*args, **kwargs)
                start = time.perf_counter()
                try:
                    return fn(*args, **kwargs)
                finally:
                    entry = _entry(label)
                    entry[0] += time.perf_counter() - start
                    entry[1] += 1
            return inner
        return wrapper

    @staticmethod
    def totals() -> dict[str, tuple[float, int]]:
        """Snapshot of (total_seconds, calls) per label."""
        return {label: (total, count) for label, (total, count, _) in _profile_accumulators.items()}

    @staticmethod
    def reset():
        _profile_accumulators.clear()

    @staticmethod
    def report(intervals=1) -> str:
        """Prints and returns a summary of everything timed since the last report,
        then clears the accumulators. `intervals` divides the numbers (e.g. frames)."""
        if not enabled:
            return ""
        lines = ["==== Profile ===="]
        grand_total = sum(total for total, _, _ in _profile_accumulators.values())

        # Manual segments first, then decorated functions ("f:" prefix)
        for label, (total, count, _) in sorted(_profile_accumulators.items(),
                                               key=lambda x: (x[0].startswith("f:"), x[0])):
            if count == 0:
                continue
            percent = (total / grand_total) * 100 if grand_total > 0 else 0
            avg_ms = total / count * 1000
            lines.append(f"{percent:5.1f}% {label}: {total * 1000 / intervals:.3f}ms "
                         f"over {count / intervals:g} calls (avg {avg_ms:.3f}ms)")
        lines.append("=================")
        _profile_accumulators.clear()

        text = "\n".join(lines)
        print(text)
        return text
