from __future__ import annotations

import argparse
import logging
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, ttk
from typing import Callable, Optional

from passportcam.app.export_paths import DEFAULT_FILENAME, ExportPaths
from passportcam.app.session import CaptureSession
from passportcam.camera.source import CameraSource
from passportcam.core.config import AppConfig, load_config
from passportcam.core.errors import CaptureUnavailableError, ConfigError, ModelLoadError
from passportcam.core.logging_config import setup_logging
from passportcam.core.models import GuidanceState, WorkflowState
from passportcam.imaging.processing import decode_image, face_brightness
from passportcam.ui.image_canvas import ImageCanvas
from passportcam.ui.overlay import ADJUST_COLOR, OPTIMAL_COLOR, draw_face_overlay, draw_guide_box, guidance_color
from passportcam.ui.tk_driver import TkTickDriver
from passportcam.validation.compliance import compliance_summary, format_report_text

_log = logging.getLogger(__name__)


def bind_capture_key(master: tk.Misc, on_capture: Callable[[], None]) -> Callable[[tk.Event], str]:
    """
    Space captures. ttk buttons take space as a press, so their class binding
    is replaced too: a focused button runs the capture and is not pressed.
    """

    def handler(_evt: tk.Event) -> str:
        on_capture()
        return "break"

    master.bind_class("TButton", "<space>", handler)
    master.bind("<space>", handler)
    return handler


class PassportCamApp(ttk.Frame):
    """Live capture window: Capture -> Review -> Export."""

    def __init__(self, master: tk.Tk, config: AppConfig, camera_id: int = 0):
        super().__init__(master)
        self.master = master
        self.config = config

        self.export_paths = ExportPaths.default(app_name="passportcam")
        self.camera = CameraSource(camera_id)
        self.session = CaptureSession(
            self.camera,
            TkTickDriver(master, interval_ms=config.scheduler.tick_interval_ms),
            config,
            on_frame=self._on_frame,
            on_guidance=self._on_guidance,
            on_error=self._on_session_error,
        )
        self.session.workflow.add_listener(lambda _old, _new: self._sync_buttons())

        self._build_style()
        self._build_layout()
        self._bind_shortcuts()

        self.master.protocol("WM_DELETE_WINDOW", self.on_close)
        self._sync_buttons()
        self._start_session()

    # ---------- UI construction ----------

    def _build_style(self) -> None:
        style = ttk.Style(self.master)
        if "clam" in style.theme_names():
            style.theme_use("clam")

    def _build_layout(self) -> None:
        self.pack(fill="both", expand=True)

        # Top toolbar
        toolbar = ttk.Frame(self, padding=(10, 8))
        toolbar.pack(side="top", fill="x")

        self.btn_capture = ttk.Button(toolbar, text="Capture", command=self.on_capture)
        self.btn_retake = ttk.Button(toolbar, text="Retake", command=self.on_retake)
        self.btn_accept = ttk.Button(toolbar, text="Use Photo", command=self.on_accept)
        self.btn_save = ttk.Button(toolbar, text="Save…", command=self.on_save)
        self.btn_start_over = ttk.Button(toolbar, text="Start Over", command=self.on_start_over)

        self.btn_capture.pack(side="left")
        ttk.Separator(toolbar, orient="vertical").pack(side="left", fill="y", padx=8)
        self.btn_retake.pack(side="left")
        self.btn_accept.pack(side="left", padx=(6, 0))
        ttk.Separator(toolbar, orient="vertical").pack(side="left", fill="y", padx=8)
        self.btn_save.pack(side="left")
        self.btn_start_over.pack(side="left", padx=(6, 0))

        self.progress = ttk.Progressbar(toolbar, mode="indeterminate", length=120)
        self.progress.pack(side="right")

        # Main split area
        main = ttk.PanedWindow(self, orient="horizontal")
        main.pack(side="top", fill="both", expand=True, padx=10, pady=(0, 10))

        # Left pane: live preview / captured photo
        left = ttk.Frame(main)
        main.add(left, weight=3)

        lf_preview = ttk.LabelFrame(left, text="Camera", padding=8)
        lf_preview.pack(fill="both", expand=True)

        self.preview_canvas = ImageCanvas(lf_preview, placeholder="Starting camera…", mirror=True)
        self.preview_canvas.pack(fill="both", expand=True)

        self.guidance_label = ttk.Label(lf_preview, text="", font=("TkDefaultFont", 13, "bold"))
        self.guidance_label.pack(side="bottom", anchor="w", pady=(6, 0))

        # Right pane: Notebook
        right = ttk.Frame(main)
        main.add(right, weight=2)

        self.notebook = ttk.Notebook(right)
        self.notebook.pack(fill="both", expand=True)

        # Review tab
        tab_review = ttk.Frame(self.notebook, padding=8)
        self.notebook.add(tab_review, text="Review")

        tab_review.columnconfigure(0, weight=1)
        tab_review.rowconfigure(1, weight=1)

        self.summary_label = ttk.Label(tab_review, text="No photo captured yet.", wraplength=380)
        self.summary_label.grid(row=0, column=0, sticky="w", pady=(0, 6))

        columns = ("rule", "status", "details")
        self.tree = ttk.Treeview(tab_review, columns=columns, show="headings", height=8)
        self.tree.heading("rule", text="Rule")
        self.tree.heading("status", text="Status")
        self.tree.heading("details", text="Requirement")
        self.tree.column("rule", width=140, stretch=False)
        self.tree.column("status", width=60, stretch=False)
        self.tree.column("details", width=300, stretch=True)
        self.tree.grid(row=1, column=0, sticky="nsew")

        self.review_meta = ttk.Label(tab_review, text="")
        self.review_meta.grid(row=2, column=0, sticky="w", pady=(6, 0))

        btn_row = ttk.Frame(tab_review)
        btn_row.grid(row=3, column=0, sticky="ew", pady=(8, 0))

        self.btn_copy_report = ttk.Button(btn_row, text="Copy report", command=self.on_copy_report)
        self.btn_copy_report.pack(side="left")

        # Export tab
        tab_export = ttk.Frame(self.notebook, padding=8)
        self.notebook.add(tab_export, text="Export")

        self.export_canvas = ImageCanvas(tab_export, bg="#f3f3f3", placeholder="Accept a photo to export it.")
        self.export_canvas.pack(fill="both", expand=True)
        rules = self.config.rules
        self.export_meta = ttk.Label(
            tab_export,
            text=f"{rules.output_width} × {rules.output_height} px, {rules.output_dpi} DPI, JPEG",
        )
        self.export_meta.pack(side="bottom", anchor="w", pady=(6, 0))

        # Status bar
        status = ttk.Frame(self, padding=(10, 6))
        status.pack(side="bottom", fill="x")

        self.status_var = tk.StringVar(value="Ready.")
        self.status_label = ttk.Label(status, textvariable=self.status_var)
        self.status_label.pack(side="left")

    def _bind_shortcuts(self) -> None:
        bind_capture_key(self.master, self.on_capture)
        self.master.bind_all("<Control-s>", lambda e: self.on_save())
        self.master.bind_all("<Command-s>", lambda e: self.on_save())

    # ---------- Utilities ----------

    def set_status(self, text: str) -> None:
        self.status_var.set(text)

    def set_busy(self, busy: bool, message: str | None = None) -> None:
        if message:
            self.set_status(message)
        if busy:
            self.progress.start(12)
        else:
            self.progress.stop()

    def _enable(self, button: ttk.Button, enabled: bool) -> None:
        button.state(["!disabled"] if enabled else ["disabled"])

    def _sync_buttons(self) -> None:
        state = self.session.state
        self._enable(self.btn_capture, self.session.can_capture)
        self._enable(self.btn_retake, state is WorkflowState.REVIEW)
        self._enable(self.btn_accept, state is WorkflowState.REVIEW)
        self._enable(self.btn_save, state is WorkflowState.EXPORT)
        self._enable(self.btn_start_over, state is WorkflowState.EXPORT)
        self._enable(self.btn_copy_report, self.session.workflow.compliance is not None)

    def _clear_review_view(self) -> None:
        for iid in self.tree.get_children():
            self.tree.delete(iid)
        self.summary_label.configure(text="No photo captured yet.")
        self.review_meta.configure(text="")

    def _render_review(self) -> None:
        self._clear_review_view()
        wf = self.session.workflow
        result = wf.compliance
        photo = wf.captured
        if result is None or photo is None:
            return

        for r in result.results:
            status = "✅" if r.passed else "❌"
            self.tree.insert("", "end", values=(r.rule_id, status, r.message))
        if not result.results:
            for reason in result.reasons:
                self.tree.insert("", "end", values=("Face", "❌", reason))

        self.summary_label.configure(text=compliance_summary(result, self.config.rules))

        image = decode_image(photo.image_data)
        meta = f"{photo.width}x{photo.height}"
        if photo.detection is not None:
            meta += f"   Face brightness: {face_brightness(image, photo.detection.bounding_box):.0f}"
        self.review_meta.configure(text=meta)
        self.preview_canvas.set_frame(image)

    # ---------- Session ----------

    def _start_session(self) -> None:
        if not self.camera.is_open:
            messagebox.showerror("Camera unavailable", "Could not open the camera. Check that it is connected and not in use.")
            self.set_status("Camera unavailable.")
            return

        self.set_busy(True, "Loading face model…")

        def worker() -> None:
            err: Exception | None = None
            try:
                self.session.detector.initialize()
            except ModelLoadError as e:
                err = e

            def finish_on_ui_thread() -> None:
                self.set_busy(False)
                if err is not None:
                    messagebox.showerror("Face model", f"{err}\n\nThe preview and capture still work without face guidance.")
                    self.session.start_preview()
                    self.set_status("Face model unavailable; no face guidance.")
                    return
                self.session.open()
                self.set_status("Position your face inside the guide.")

            self.master.after(0, finish_on_ui_thread)

        threading.Thread(target=worker, daemon=True).start()

    def _on_frame(self, frame) -> None:
        view = frame.copy()
        draw_guide_box(view)
        detection = self.session.detection
        if detection is not None:
            color = OPTIMAL_COLOR if self.session.guidance.is_optimal else ADJUST_COLOR
            draw_face_overlay(view, detection, color)
        self.preview_canvas.set_frame(view)
        self._enable(self.btn_capture, self.session.can_capture)

    def _on_guidance(self, guidance: GuidanceState) -> None:
        self.guidance_label.configure(text=guidance.message, foreground=guidance_color(guidance.severity))

    def _on_session_error(self, error: BaseException) -> None:
        self.set_status(f"Detection error: {error}")

    # ---------- Actions ----------

    def on_capture(self) -> None:
        if not self.session.can_capture:
            return
        try:
            result = self.session.capture()
        except CaptureUnavailableError as e:
            messagebox.showwarning("Not ready", str(e))
            return
        self.guidance_label.configure(text="")
        self._render_review()
        self.notebook.select(0)
        self.set_status(compliance_summary(result, self.config.rules))

    def on_retake(self) -> None:
        if self.session.state is not WorkflowState.REVIEW:
            return
        self.session.retake()
        self._clear_review_view()
        self.set_status("Position your face inside the guide.")

    def on_accept(self) -> None:
        if self.session.state is not WorkflowState.REVIEW:
            return
        result = self.session.workflow.compliance
        if result is not None and not result.passed:
            proceed = messagebox.askyesno(
                "Photo not compliant",
                "This photo does not meet every requirement:\n\n"
                + "\n".join(f"• {r}" for r in result.reasons)
                + "\n\nUse it anyway?",
            )
            if not proceed:
                return

        try:
            data = self.session.accept()
            self.export_paths.save(data)
            image = decode_image(data)
        except (OSError, ValueError) as e:
            _log.exception("Export failed")
            messagebox.showerror("Export failed", f"Failed to process image.\n\n{e}")
            self.set_status("Export failed.")
            self._sync_buttons()
            return
        self.export_canvas.set_frame(image)
        self.notebook.select(1)
        if self.session.workflow.accepted_with_warnings:
            self.set_status("Photo ready (accepted with warnings).")
        else:
            self.set_status("Photo ready.")

    def on_save(self) -> None:
        data = self.session.workflow.export_data
        if self.session.state is not WorkflowState.EXPORT or data is None:
            return
        path = filedialog.asksaveasfilename(
            title="Save passport photo",
            defaultextension=".jpg",
            initialfile=DEFAULT_FILENAME,
            filetypes=[("JPEG", "*.jpg *.jpeg")],
        )
        if not path:
            return
        try:
            saved = self.export_paths.save(data, path)
        except OSError as e:
            messagebox.showerror("Save failed", f"Could not save photo.\n\n{e}")
            self.set_status("Save failed.")
            return
        self.set_status(f"Saved: {saved}")

    def on_start_over(self) -> None:
        if self.session.state is not WorkflowState.EXPORT:
            return
        self.session.start_over()
        self._clear_review_view()
        self.export_canvas.clear()
        self.notebook.select(0)
        self.set_status("Position your face inside the guide.")

    def on_copy_report(self) -> None:
        result = self.session.workflow.compliance
        if result is None:
            messagebox.showinfo("No report", "Capture a photo first.")
            return

        text = format_report_text(result, self.config.rules)
        self.master.clipboard_clear()
        self.master.clipboard_append(text)
        self.set_status("Copied compliance report.")

    def on_close(self) -> None:
        self.session.close()
        self.camera.release()
        self.export_paths.cleanup()
        self.master.destroy()


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Live passport photo capture with pose coaching.")
    p.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    p.add_argument("--config", default=None, help="YAML rule-set file (default: $PASSPORTCAM_CONFIG or US rules)")
    p.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    p.add_argument("--log-file", default=None, help="Also write logs to this file")
    return p


def run(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    setup_logging(args.log_level, log_file=args.log_file)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        _log.error("%s", e)
        return 2

    root = tk.Tk()
    root.title("PassportCam")
    root.geometry("1200x720")
    root.minsize(900, 600)

    PassportCamApp(root, config, camera_id=args.camera)

    root.mainloop()
    return 0
