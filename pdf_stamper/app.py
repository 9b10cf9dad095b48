"""tkinter editor: page 1 on the left for placing signatures, a page-by-page
preview on the right, toolbar on top, status bar at the bottom."""
from __future__ import annotations

import logging
import queue
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from PIL import Image, ImageEnhance, ImageTk

from .config import (
    EDITOR_PADDING_PX, HANDLE_SIZE_PX, PREVIEW_PADDING_PX, THUMBNAIL_PX, UI_POLL_MS, ZOOM_OPTIONS,
)
from .coordinates import compute_scale, units_to_pixels
from .errors import EditorError
from .manipulation import DragMode, ManipulationController, handle_positions, item_at, outline_points
from .rendering import PageRasterizer, RenderGuard
from .session import EditorSession

logger = logging.getLogger(__name__)

SELECTION_COLOR = "#1677ff"


class SignatureEditorApp:
    def __init__(self, root, session: EditorSession):
        self.root = root
        self.session = session
        self.store = session.store
        self.controller = ManipulationController(self.store)

        self.rasterizer = None
        self._ui_queue = queue.SimpleQueue()
        self.editor_guard = RenderGuard(
            None, self._on_editor_rendered, on_failure=self._on_editor_render_failed,
            dispatch=self._ui_queue.put, name="editor",
        )
        self.preview_guard = RenderGuard(
            None, self._on_preview_rendered, on_failure=self._on_preview_render_failed,
            dispatch=self._ui_queue.put, name="preview",
        )
        self.preview_page = 1
        self._editor_scale = 1.0
        self._preview_scale = 1.0
        self._editor_requested = None   # (page, scale) last sent to the editor guard
        self._preview_requested = None
        self._editor_photo = None
        self._preview_photo = None
        self._base_images = {}           # asset id -> RGBA PIL image
        self._photos = {"editor": {}, "preview": {}}
        self._refresh_pending = False
        self._strip_assets = None        # asset ids the strip was last built for
        self._thumbnails = []

        self._build_toolbar()
        self._build_asset_strip()

        # Status bar
        self.status_label = tk.Label(root, text="Open a PDF to start", bd=1, relief="sunken", anchor="w")
        self.status_label.pack(side="bottom", fill="x")

        panes = tk.Frame(root)
        panes.pack(fill="both", expand=True)
        self.editor_canvas = self._build_canvas(panes, "Editor - page 1")
        self.preview_canvas = self._build_canvas(panes, None)

        nav = tk.Frame(self.preview_canvas.master)
        nav.pack(side="top", fill="x", before=self.preview_canvas)
        tk.Button(nav, text="< Prev", command=lambda: self.show_preview_page(self.preview_page - 1)).pack(side="left")
        self.preview_label = tk.Label(nav, text="Preview")
        self.preview_label.pack(side="left", expand=True)
        tk.Button(nav, text="Next >", command=lambda: self.show_preview_page(self.preview_page + 1)).pack(side="right")

        for canvas in (self.editor_canvas, self.preview_canvas):
            canvas.create_rectangle(0, 0, 0, 0, fill="white", outline="#666", tags="paper")
            canvas.create_image(0, 0, anchor="nw", tags="page")
            canvas.bind("<Configure>", lambda e: self._schedule_refresh())

        # Mouse bindings
        self.editor_canvas.bind("<Button-1>", self.on_mouse_down)
        self.editor_canvas.bind("<B1-Motion>", self.on_mouse_drag)
        self.editor_canvas.bind("<ButtonRelease-1>", self.on_mouse_up)
        self.editor_canvas.bind("<FocusOut>", lambda e: self.controller.end())

        # Keyboard bindings
        root.bind("<Delete>", self.delete_selected)
        root.bind("<BackSpace>", self.delete_selected)
        root.bind("<Control-d>", self.duplicate_selected)
        root.bind("<Escape>", lambda e: self.store.deselect_all())
        root.bind("<Control-plus>", lambda e: self.store.zoom_in())
        root.bind("<Control-minus>", lambda e: self.store.zoom_out())
        root.bind("<Control-s>", lambda e: self.save_pdf())
        root.protocol("WM_DELETE_WINDOW", self.close)

        self.store.subscribe(self._schedule_refresh)
        self._drain_ui_queue()
        self._schedule_refresh()

    # ---------------- Layout
    def _build_toolbar(self):
        bar = tk.Frame(self.root)
        bar.pack(side="top", fill="x", padx=6, pady=4)

        tk.Button(bar, text="Open PDF", command=self.open_pdf).pack(side="left")
        self.add_button = tk.Button(bar, text="Add signature", command=self.add_signature, state="disabled")
        self.add_button.pack(side="left", padx=(4, 12))

        tk.Button(bar, text="-", width=2, command=self.store.zoom_out).pack(side="left")
        self.zoom_var = tk.StringVar(value="100%")
        zoom_box = ttk.Combobox(
            bar, textvariable=self.zoom_var, values=[f"{int(z * 100)}%" for z in ZOOM_OPTIONS],
            state="readonly", width=6,
        )
        zoom_box.pack(side="left")
        zoom_box.bind("<<ComboboxSelected>>", self._on_zoom_selected)
        tk.Button(bar, text="+", width=2, command=self.store.zoom_in).pack(side="left", padx=(0, 12))

        tk.Button(bar, text="Duplicate", command=self.duplicate_selected).pack(side="left")
        tk.Button(bar, text="Delete", command=self.delete_selected).pack(side="left", padx=(4, 12))
        tk.Label(bar, text="Opacity").pack(side="left")
        self.opacity_var = tk.DoubleVar(value=1.0)
        ttk.Scale(bar, from_=0.1, to=1.0, variable=self.opacity_var, command=self._on_opacity, length=100).pack(side="left")

        self.save_button = tk.Button(bar, text="Save PDF", command=self.save_pdf, state="disabled")
        self.save_button.pack(side="right")
        self.info_label = tk.Label(bar, text="", fg="#666")
        self.info_label.pack(side="right", padx=12)

    def _build_asset_strip(self):
        self.asset_strip = tk.Frame(self.root)
        self.asset_strip.pack(side="top", fill="x", padx=6)
        tk.Label(self.asset_strip, text="Signatures:").pack(side="left")

    def _rebuild_asset_strip(self):
        ids = tuple(a.id for a in self.store.assets)
        if ids == self._strip_assets:
            return
        self._strip_assets = ids
        for child in self.asset_strip.winfo_children()[1:]:
            child.destroy()
        self._thumbnails = []
        for asset in self.store.assets:
            photo = ImageTk.PhotoImage(asset.thumbnail(THUMBNAIL_PX))
            self._thumbnails.append(photo)
            button = tk.Button(self.asset_strip, image=photo, relief="groove",
                               command=lambda aid=asset.id: self.place_asset(aid))
            button.bind("<Button-3>", lambda e, aid=asset.id: self.remove_asset(aid))
            button.pack(side="left", padx=2, pady=2)

    def _build_canvas(self, parent, title):
        frame = tk.Frame(parent)
        frame.pack(side="left", fill="both", expand=True)
        if title:
            tk.Label(frame, text=title, anchor="w").pack(side="top", fill="x")

        h_scroll = tk.Scrollbar(frame, orient="horizontal")
        h_scroll.pack(side="bottom", fill="x")
        canvas = tk.Canvas(frame, bg="grey", highlightthickness=0, xscrollcommand=h_scroll.set)
        v_scroll = tk.Scrollbar(frame, orient="vertical", command=canvas.yview)
        v_scroll.pack(side="right", fill="y")
        canvas.configure(yscrollcommand=v_scroll.set)
        h_scroll.config(command=canvas.xview)
        canvas.pack(side="left", fill="both", expand=True)
        return canvas

    def update_status(self, text):
        self.status_label.config(text=text)

    def _report(self, error: EditorError):
        logger.warning("%s", error)
        self.update_status(str(error))
        messagebox.showerror("PDF Stamper", str(error), parent=self.root)

    # ---------------- UI thread plumbing
    def _drain_ui_queue(self):
        while True:
            try:
                callback = self._ui_queue.get_nowait()
            except queue.Empty:
                break
            callback()
        self.root.after(UI_POLL_MS, self._drain_ui_queue)

    def _schedule_refresh(self):
        if not self._refresh_pending:
            self._refresh_pending = True
            self.root.after_idle(self._refresh)

    def _scale_for(self, canvas, padding):
        meta = self.store.document
        available = canvas.winfo_width() - padding * 2
        if meta is None or available <= 1:
            return 1.0
        return compute_scale(available, meta.page_width, self.store.zoom)

    def _refresh(self):
        self._refresh_pending = False
        meta = self.store.document
        self.zoom_var.set(f"{round(self.store.zoom * 100)}%")
        self.add_button.config(state="normal" if meta else "disabled")
        self.save_button.config(state="normal" if self.session.can_export else "disabled")
        self._rebuild_asset_strip()
        selected = self.store.selected_item
        if selected is not None and not self.controller.dragging:
            self.opacity_var.set(selected.opacity)
        if meta is None:
            return

        self.info_label.config(
            text=f"{meta.file_name_base}.pdf ({meta.page_count} pages) | "
                 f"{len(self.store.assets)} images, {len(self.store.items)} signatures"
        )
        self._editor_scale = self._scale_for(self.editor_canvas, EDITOR_PADDING_PX)
        self._preview_scale = self._scale_for(self.preview_canvas, PREVIEW_PADDING_PX)

        if self._editor_requested != (1, self._editor_scale):
            self._editor_requested = (1, self._editor_scale)
            self.editor_guard.request(1, self._editor_scale)
        if self._preview_requested != (self.preview_page, self._preview_scale):
            self._preview_requested = (self.preview_page, self._preview_scale)
            self.preview_guard.request(self.preview_page, self._preview_scale)

        self._layout_page(self.editor_canvas, self._editor_scale, EDITOR_PADDING_PX)
        self._layout_page(self.preview_canvas, self._preview_scale, PREVIEW_PADDING_PX)
        self._draw_overlays(self.editor_canvas, "editor", self._editor_scale, EDITOR_PADDING_PX, interactive=True)
        self._draw_overlays(self.preview_canvas, "preview", self._preview_scale, PREVIEW_PADDING_PX, interactive=False)
        self.preview_label.config(text=f"Preview - page {self.preview_page}/{meta.page_count}")

    # ---------------- Page surfaces
    def _layout_page(self, canvas, scale, pad):
        meta = self.store.document
        w = units_to_pixels(meta.page_width, scale)
        h = units_to_pixels(meta.page_height, scale)
        canvas.coords("paper", pad, pad, pad + w, pad + h)
        canvas.coords("page", pad, pad)
        canvas.config(scrollregion=(0, 0, w + pad * 2, h + pad * 2))

    def _on_editor_rendered(self, outcome):
        self._editor_photo = ImageTk.PhotoImage(outcome.image)
        self.editor_canvas.itemconfig("page", image=self._editor_photo, state="normal")

    def _on_preview_rendered(self, outcome):
        self._preview_photo = ImageTk.PhotoImage(outcome.image)
        self.preview_canvas.itemconfig("page", image=self._preview_photo, state="normal")

    def _on_editor_render_failed(self, outcome):
        self.editor_canvas.itemconfig("page", state="hidden")
        self.update_status("Page 1 could not be rendered")

    def _on_preview_render_failed(self, outcome):
        self.preview_canvas.itemconfig("page", state="hidden")
        self.update_status(f"Page {self.preview_page} could not be rendered")

    def _install_rasterizer(self):
        self.editor_guard.cancel()
        self.preview_guard.cancel()
        if self.rasterizer is not None:
            self.rasterizer.close()
        self.rasterizer = PageRasterizer(self.store.document_data)
        self.editor_guard.set_rasterizer(self.rasterizer)
        self.preview_guard.set_rasterizer(self.rasterizer)
        self._editor_requested = None
        self._preview_requested = None
        self.preview_page = 1

    def show_preview_page(self, page_number):
        meta = self.store.document
        if meta is None:
            return
        self.preview_page = max(1, min(page_number, meta.page_count))
        self._schedule_refresh()

    # ---------------- Overlays
    def _base_image(self, asset_id):
        img = self._base_images.get(asset_id)
        if img is None:
            img = self.store.get_asset(asset_id).to_image().convert("RGBA")
            self._base_images[asset_id] = img
        return img

    def _signature_photo(self, item, scale, cache, used):
        w = max(1, int(round(units_to_pixels(item.width, scale))))
        h = max(1, int(round(units_to_pixels(item.height, scale))))
        key = (item.asset_id, w, h, item.rotation, round(item.opacity, 2))
        photo = used.get(key) or cache.get(key)
        if photo is None:
            img = self._base_image(item.asset_id).resize((w, h), Image.LANCZOS)
            if item.opacity < 1:
                r, g, b, a = img.split()
                a = ImageEnhance.Brightness(a).enhance(item.opacity)
                img = Image.merge("RGBA", (r, g, b, a))
            if item.rotation:
                # PIL turns counter-clockwise, the editor clockwise
                img = img.rotate(-item.rotation, resample=Image.BICUBIC, expand=True)
            photo = ImageTk.PhotoImage(img)
        # Keep a reference to images to prevent garbage collection
        used[key] = photo
        return photo

    def _draw_overlays(self, canvas, surface, scale, pad, interactive):
        canvas.delete("overlay")
        cache = self._photos[surface]
        used = {}
        for item in self.store.items_by_z():
            if self.store.get_asset(item.asset_id) is None:
                continue
            cx, cy = item.center
            canvas.create_image(
                pad + units_to_pixels(cx, scale), pad + units_to_pixels(cy, scale),
                image=self._signature_photo(item, scale, cache, used), anchor="center", tags="overlay",
            )
            if interactive and item.id == self.store.selected_id:
                self._draw_bbox_and_handles(canvas, item, scale, pad)
        self._photos[surface] = used
        if not interactive:
            meta = self.store.document
            w = units_to_pixels(meta.page_width, scale)
            h = units_to_pixels(meta.page_height, scale)
            canvas.create_text(pad + w - 6, pad + h - 6, anchor="se", text=f"{self.preview_page}/{meta.page_count}",
                               fill="#444", tags="overlay")

    def _draw_bbox_and_handles(self, canvas, item, scale, pad):
        points = [p + pad for p in outline_points(item, scale)]
        canvas.create_polygon(points, outline=SELECTION_COLOR, fill="", width=2, dash=(5, 3), tags="overlay")

        positions = handle_positions(item, scale)
        tl, tr = positions[DragMode.RESIZE_TOP_LEFT], positions[DragMode.RESIZE_TOP_RIGHT]
        rx, ry = positions[DragMode.ROTATE]
        canvas.create_line(pad + (tl[0] + tr[0]) / 2, pad + (tl[1] + tr[1]) / 2, pad + rx, pad + ry,
                           fill=SELECTION_COLOR, tags="overlay")
        r = HANDLE_SIZE_PX / 2 + 2
        canvas.create_oval(pad + rx - r, pad + ry - r, pad + rx + r, pad + ry + r,
                           fill=SELECTION_COLOR, outline=SELECTION_COLOR, tags="overlay")

        half = HANDLE_SIZE_PX / 2
        for mode, (hx, hy) in positions.items():
            if mode.is_resize:
                canvas.create_rectangle(pad + hx - half, pad + hy - half, pad + hx + half, pad + hy + half,
                                        fill="white", outline=SELECTION_COLOR, width=2, tags="overlay")

    # ---------------- Mouse
    def _page_pointer(self, event):
        return (self.editor_canvas.canvasx(event.x) - EDITOR_PADDING_PX,
                self.editor_canvas.canvasy(event.y) - EDITOR_PADDING_PX)

    def on_mouse_down(self, event):
        self.editor_canvas.focus_set()
        if self.store.document is None:
            return
        x, y = self._page_pointer(event)
        hit = item_at(self.store.items, x, y, self._editor_scale, self.store.selected_id)
        if hit is None:
            self.store.deselect_all()
            return
        item, mode = hit
        self.controller.begin(item.id, mode, x, y)
        if mode is DragMode.ROTATE:
            self.update_status(f"Rotating: {item.rotation}°")
        elif mode.is_resize:
            self.update_status("Resizing signature")
        else:
            self.update_status("Dragging signature")

    def on_mouse_drag(self, event):
        if not self.controller.dragging:
            return
        x, y = self._page_pointer(event)
        frame = self.controller.update(x, y, self._editor_scale)
        if frame is not None and self.controller.mode is DragMode.ROTATE:
            self.update_status(f"Rotating: {frame.rotation}°")

    def on_mouse_up(self, event):
        self.controller.end()
        if self.store.selected_item is not None:
            self.update_status("Drag to move, corners to resize, top handle to rotate | Del removes, Ctrl+D duplicates")

    # ---------------- Actions
    def open_pdf(self, path=None):
        path = path or filedialog.askopenfilename(parent=self.root, filetypes=[("PDF files", "*.pdf")])
        if not path:
            return
        try:
            meta = self.session.open_document(path)
        except EditorError as e:
            self._report(e)
            return
        self.controller.end()
        self._install_rasterizer()
        self.update_status(f"Loaded {meta.file_name_base}.pdf ({meta.page_count} pages)")
        self._schedule_refresh()

    def add_signature(self, paths=None):
        if paths is None:
            paths = filedialog.askopenfilenames(
                parent=self.root, filetypes=[("Images", "*.png *.jpg *.jpeg")],
            )
        for path in paths or ():
            try:
                self.session.add_signature(path)
            except EditorError as e:
                self._report(e)
                continue
            self.update_status(f"Added signature {path}")

    def place_asset(self, asset_id):
        try:
            self.session.place_asset(asset_id)
        except EditorError as e:
            self._report(e)

    def remove_asset(self, asset_id):
        asset = self.store.get_asset(asset_id)
        if asset is None:
            return
        if not messagebox.askyesno("PDF Stamper", f"Remove {asset.name} and every copy placed from it?",
                                   parent=self.root):
            return
        self.controller.end()
        self._base_images.pop(asset_id, None)
        self.store.remove_asset(asset_id)
        self.update_status(f"Removed {asset.name}")

    def delete_selected(self, event=None):
        selected = self.store.selected_id
        if selected is None:
            return
        self.controller.end()
        self.store.remove_item(selected)
        self.update_status("Signature deleted")

    def duplicate_selected(self, event=None):
        selected = self.store.selected_id
        if selected is not None:
            self.store.duplicate_item(selected)

    def _on_zoom_selected(self, event=None):
        self.store.set_zoom(int(self.zoom_var.get().rstrip("%")) / 100)

    def _on_opacity(self, value):
        selected = self.store.selected_id
        if selected is not None:
            self.store.set_opacity(selected, float(value))

    def save_pdf(self):
        if not self.session.can_export:
            self.update_status("Nothing to save yet")
            return
        path = filedialog.asksaveasfilename(
            parent=self.root, defaultextension=".pdf", initialfile=self.session.default_export_name,
            filetypes=[("PDF files", "*.pdf")],
        )
        if not path:
            return
        try:
            self.session.export_to(path)
        except EditorError as e:
            self._report(e)
            return
        self.update_status(f"Saved: {path}")

    def close(self):
        self.controller.end()
        self.editor_guard.cancel()
        self.preview_guard.cancel()
        if self.rasterizer is not None:
            self.rasterizer.close()
        self.root.destroy()


def run(pdf_path=None, signatures=()):
    root = tk.Tk()
    root.title("PDF Signature Stamper")
    root.geometry("1400x850")
    try:
        root.state("zoomed")
    except tk.TclError:
        pass

    app = SignatureEditorApp(root, EditorSession())
    if pdf_path:
        app.open_pdf(pdf_path)
        if signatures:
            app.add_signature(list(signatures))
    root.mainloop()
