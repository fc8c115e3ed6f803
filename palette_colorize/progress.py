# palette_colorize/progress.py
from __future__ import annotations

"""
Per-pass progress reporting.

A ProgressReporter is created with the pass's pixel total and a label, is
advanced from any worker thread with increment(), and is closed with finish().
Counting is exact; only the visible output is throttled (one line per whole
percent).
"""

import threading
import time
from typing import Callable, Optional

from .core_types import clamp_value
from .utils import format_eta, format_seconds_compact, log, print_progress_line

BAR_WIDTH = 30
BAR_CHARS = "#>-"

ProgressSink = Callable[[str, bool], None]  # (line, final) -> None


class _EtaStable:
    """
    ETA that avoids oscillation and early zero.
    Blends fast/slow EWMAs and enforces a naive floor from overall pace.
    """

    def __init__(
        self,
        total_units: int,
        win_alpha_fast: float = 0.25,
        win_alpha_slow: float = 0.08,
    ):
        self.total = max(1, int(total_units))
        self.units = 0
        self.elapsed = 0.0
        self.ema_fast: Optional[float] = None
        self.ema_slow: Optional[float] = None
        self.display_eta: Optional[float] = None
        self.af = win_alpha_fast
        self.aslow = win_alpha_slow

    def update_units(self, units_delta: int, dt: float) -> float:
        if units_delta <= 0:
            return self._eta_current()
        per_unit = dt / float(units_delta)
        self.units += units_delta
        self.elapsed += dt
        self.ema_fast = (
            per_unit
            if self.ema_fast is None
            else (1 - self.af) * self.ema_fast + self.af * per_unit
        )
        self.ema_slow = (
            per_unit
            if self.ema_slow is None
            else (1 - self.aslow) * self.ema_slow + self.aslow * per_unit
        )
        return self._eta_current()

    def _eta_current(self) -> float:
        units_left = max(0, self.total - self.units)
        unit_est = max(self.ema_fast or 0.0, self.ema_slow or 0.0)
        eta_raw = units_left * unit_est
        naive = self.elapsed * (self.total / max(1, self.units) - 1.0)
        eta = max(eta_raw, max(0.0, 0.9 * naive))
        self.display_eta = (
            eta if self.display_eta is None else 0.3 * eta + 0.7 * self.display_eta
        )
        return self.display_eta


def _render_bar(fraction: float) -> str:
    full, head, empty = BAR_CHARS
    filled = int(round(clamp_value(fraction, 0.0, 1.0) * BAR_WIDTH))
    if filled >= BAR_WIDTH:
        return full * BAR_WIDTH
    return full * filled + head + empty * (BAR_WIDTH - filled - 1)


class ProgressReporter:
    """
    Thread-safe pixel counter with throttled terminal output.

    Args:
      total   : number of increments expected for the pass
      label   : printed once when the pass starts
      enabled : False keeps counting but prints nothing
      sink    : line writer, defaults to print_progress_line
    """

    def __init__(
        self,
        total: int,
        label: str,
        *,
        enabled: bool = True,
        sink: Optional[ProgressSink] = None,
    ) -> None:
        self.total = max(0, int(total))
        self.label = label
        self.enabled = enabled
        self._sink: ProgressSink = sink or print_progress_line
        self._lock = threading.Lock()
        self._count = 0
        self._last_pct = -1
        self._finished = False
        self._t_start = time.perf_counter()
        self._t_last = self._t_start
        self._count_last = 0
        self._eta = _EtaStable(self.total)
        if self.enabled:
            log(label)

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._finished

    def increment(self, n: int = 1) -> None:
        """Advance by n (a pixel, or a whole row of pixels)."""
        with self._lock:
            self._count += int(n)
            if not self.enabled or self._finished:
                return
            pct = 100 if self.total == 0 else int(100 * self._count / self.total)
            if pct <= self._last_pct:
                return
            now = time.perf_counter()
            eta = self._eta.update_units(
                self._count - self._count_last, max(1e-6, now - self._t_last)
            )
            self._t_last = now
            self._count_last = self._count
            self._last_pct = pct
            self._sink(self._format_line(pct, eta), False)

    def finish(self, message: str) -> None:
        """Print the closing 100% line and the completion message. Idempotent."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
            if not self.enabled:
                return
            self._sink(self._format_line(100, 0.0), True)
        log(message)

    def _format_line(self, pct: int, eta_seconds: Optional[float]) -> str:
        elapsed = time.perf_counter() - self._t_start
        pct_i = max(0, min(100, int(pct)))
        return (
            f"[{format_seconds_compact(elapsed)}] [{_render_bar(pct_i / 100.0)}] "
            f"{pct_i:3d}% ({format_eta(eta_seconds)})"
        )


__all__ = ["ProgressReporter", "ProgressSink"]
