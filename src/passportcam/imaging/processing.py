"""
Image helpers for capture and export.

Frames are OpenCV BGR arrays. Encoding goes through Pillow so the exported
JPEG carries DPI metadata.
"""
from __future__ import annotations

import io
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from passportcam.core.config import US_PASSPORT_CONFIG, PassportPhotoConfig
from passportcam.core.models import BoundingBox, CapturedPhoto


def bgr_to_pil(img_bgr: np.ndarray) -> Image.Image:
    """OpenCV BGR numpy array -> PIL RGB."""
    if img_bgr.ndim == 2:
        return Image.fromarray(img_bgr)
    rgb = cv2.cvtColor(img_bgr, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


def pil_to_bgr(img: Image.Image) -> np.ndarray:
    """PIL image -> OpenCV BGR numpy array."""
    if img.mode != "RGB":
        img = img.convert("RGB")
    return cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)


def encode_jpeg(
    img_bgr: np.ndarray,
    quality: int = 95,
    dpi: Optional[Tuple[int, int]] = None,
) -> bytes:
    buf = io.BytesIO()
    kwargs = {"format": "JPEG", "quality": quality, "optimize": True}
    if dpi is not None:
        kwargs["dpi"] = dpi
    bgr_to_pil(img_bgr).save(buf, **kwargs)
    return buf.getvalue()


def decode_image(data: bytes) -> np.ndarray:
    """Encoded image bytes -> BGR array."""
    with Image.open(io.BytesIO(data)) as img:
        return pil_to_bgr(img)


def resize_to(img_bgr: np.ndarray, width: int, height: int) -> np.ndarray:
    h, w = img_bgr.shape[:2]
    interp = cv2.INTER_AREA if width * height < w * h else cv2.INTER_LANCZOS4
    return cv2.resize(img_bgr, (width, height), interpolation=interp)


def crop_square_around(img_bgr: np.ndarray, center_xy: Tuple[float, float], size: int) -> np.ndarray:
    """
    Crop a size x size square centered at center_xy, shifted so it stays
    inside the image. `size` must not exceed the shorter image side.
    """
    h, w = img_bgr.shape[:2]
    if size <= 0 or size > min(h, w):
        raise ValueError(f"Crop size {size} does not fit a {w}x{h} image")
    cx, cy = center_xy
    left = int(round(cx - size / 2.0))
    top = int(round(cy - size / 2.0))
    left = max(0, min(left, w - size))
    top = max(0, min(top, h - size))
    return img_bgr[top : top + size, left : left + size]


def crop_to_passport_size(
    img_bgr: np.ndarray,
    face_box: BoundingBox,
    output_width: int = 600,
    output_height: int = 600,
) -> np.ndarray:
    """Square crop of the shorter side centered on the face, resized to the output size."""
    h, w = img_bgr.shape[:2]
    crop = crop_square_around(img_bgr, (face_box.center_x, face_box.center_y), min(w, h))
    return resize_to(crop, output_width, output_height)


def face_brightness(img_bgr: np.ndarray, face_box: BoundingBox) -> float:
    """Mean channel brightness inside the face box (0-255)."""
    h, w = img_bgr.shape[:2]
    x0 = max(0, int(face_box.x))
    y0 = max(0, int(face_box.y))
    x1 = min(w, int(face_box.x + face_box.width))
    y1 = min(h, int(face_box.y + face_box.height))
    region = img_bgr[y0:y1, x0:x1]
    if region.size == 0:
        return 0.0
    return float(region.mean())


def finalize_photo(photo: CapturedPhoto, config: PassportPhotoConfig = US_PASSPORT_CONFIG) -> bytes:
    """
    Produce the export JPEG for a captured photo.

    With a detection the frame is cropped around the face; without one the
    whole frame is resized to the output size.
    """
    img = decode_image(photo.image_data)
    if photo.detection is not None:
        out = crop_to_passport_size(img, photo.detection.bounding_box, config.output_width, config.output_height)
    else:
        out = resize_to(img, config.output_width, config.output_height)
    return encode_jpeg(out, quality=config.jpeg_quality, dpi=(config.output_dpi, config.output_dpi))
