from __future__ import annotations

import tkinter as tk
from typing import Callable


class TkTickDriver:
    """
    Tick source for FrameScheduler on the Tk event loop.

    Tk has no display-refresh callback, so ticks are scheduled with `after()`
    at roughly the display rate.
    """

    def __init__(self, widget: tk.Misc, interval_ms: int = 16):
        self._widget = widget
        self._interval_ms = interval_ms

    def request_tick(self, callback: Callable[[], None]) -> str:
        return self._widget.after(self._interval_ms, callback)

    def cancel_tick(self, handle: str) -> None:
        self._widget.after_cancel(handle)
