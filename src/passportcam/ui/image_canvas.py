from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageTk


def fit_size(img_w: int, img_h: int, box_w: int, box_h: int) -> Tuple[int, int]:
    if img_w <= 0 or img_h <= 0 or box_w <= 2 or box_h <= 2:
        return (1, 1)
    scale = min(box_w / img_w, box_h / img_h)
    return max(1, int(img_w * scale)), max(1, int(img_h * scale))


class ImageCanvas(ttk.Frame):
    """
    Resizable canvas showing a BGR frame scaled to fit.

    Called on every preview tick, so the frame is resized with OpenCV before
    the Tk conversion and the canvas image item is reused.
    """

    def __init__(self, master, *, bg: str = "#1f2937", placeholder: str = "No image", mirror: bool = False):
        super().__init__(master)
        self._canvas = tk.Canvas(self, highlightthickness=0, bg=bg)
        self._canvas.pack(fill="both", expand=True)

        self._frame: Optional[np.ndarray] = None
        self._photo: Optional[ImageTk.PhotoImage] = None
        self._image_id: Optional[int] = None
        self._mirror = mirror

        self._canvas.bind("<Configure>", lambda _evt: self._redraw())

        self._placeholder_id = self._canvas.create_text(
            10, 10, anchor="nw",
            text=placeholder,
            fill="#d1d5db",
            font=("TkDefaultFont", 11),
        )

    def set_frame(self, frame_bgr: Optional[np.ndarray]) -> None:
        self._frame = frame_bgr
        self._redraw()

    def clear(self) -> None:
        self.set_frame(None)

    def _redraw(self) -> None:
        if self._frame is None:
            if self._image_id is not None:
                self._canvas.delete(self._image_id)
                self._image_id = None
            self._photo = None
            self._canvas.itemconfigure(self._placeholder_id, state="normal")
            return

        self._canvas.itemconfigure(self._placeholder_id, state="hidden")
        box_w = max(1, self._canvas.winfo_width())
        box_h = max(1, self._canvas.winfo_height())

        h, w = self._frame.shape[:2]
        new_w, new_h = fit_size(w, h, box_w, box_h)
        view = cv2.resize(self._frame, (new_w, new_h), interpolation=cv2.INTER_LINEAR)
        if self._mirror:
            view = cv2.flip(view, 1)
        if view.ndim == 3:
            view = cv2.cvtColor(view, cv2.COLOR_BGR2RGB)

        self._photo = ImageTk.PhotoImage(Image.fromarray(view))
        x, y = (box_w - new_w) // 2, (box_h - new_h) // 2
        if self._image_id is None:
            self._image_id = self._canvas.create_image(x, y, anchor="nw", image=self._photo)
        else:
            self._canvas.coords(self._image_id, x, y)
            self._canvas.itemconfigure(self._image_id, image=self._photo)
