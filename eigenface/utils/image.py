"""Raster helpers.

An image buffer is a plain numpy ``uint8`` array: ``(H, W)`` for grayscale or
``(H, W, C)`` for color in OpenCV's BGR channel order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from eigenface.config import DISPLAY_WIDTH, FACE_SIZE


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (width, height)."""
    return int(image.shape[1]), int(image.shape[0])


def channels(image: np.ndarray) -> int:
    return 1 if image.ndim == 2 else int(image.shape[2])


def to_gray(image: np.ndarray) -> np.ndarray:
    """Reduce a color image to one channel. Grayscale input is copied."""
    img = np.asarray(image)
    if img.ndim not in (2, 3):
        raise ValueError(f"Unsupported image shape: {img.shape}")
    n = channels(img)
    if n == 1:
        return img.reshape(img.shape[:2]).copy()
    if n == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    if n == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    raise ValueError(f"Unsupported image shape: {img.shape}")


def crop(image: np.ndarray, bbox) -> np.ndarray:
    """Copy the region of `bbox` (x, y, width, height), clipped to the image."""
    w, h = image_size(image)
    x, y, bw, bh = [int(v) for v in (bbox.x, bbox.y, bbox.width, bbox.height)]
    x1 = max(0, min(w, x))
    y1 = max(0, min(h, y))
    x2 = max(x1, min(w, x + bw))
    y2 = max(y1, min(h, y + bh))
    if x2 <= x1 or y2 <= y1:
        raise ValueError(f"Empty crop for bbox {bbox} in image of size {w}x{h}")
    return image[y1:y2, x1:x2].copy()


def resize(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Bicubic resize to `size` = (width, height)."""
    width, height = int(size[0]), int(size[1])
    if image_size(image) == (width, height):
        return image.copy()
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_CUBIC)


def resize_to_width(image: np.ndarray, width: int = DISPLAY_WIDTH) -> np.ndarray:
    """Aspect-preserving bicubic resize so that the width equals `width`."""
    w, h = image_size(image)
    if w <= 0 or h <= 0:
        raise ValueError(f"Invalid image size: {w}x{h}")
    scale = float(width) / float(w)
    height = max(1, int(round(h * scale)))
    return resize(image, (int(width), height))


def normalize_face(image: np.ndarray, size: Tuple[int, int] = FACE_SIZE) -> np.ndarray:
    """Grayscale + bicubic resize to the training face size (92x112)."""
    if is_normalized_face(image, size):
        return np.array(image, copy=True)
    gray = to_gray(image)
    return resize(gray, size).astype(np.uint8, copy=False)


def is_normalized_face(image: np.ndarray, size: Tuple[int, int] = FACE_SIZE) -> bool:
    image = np.asarray(image)
    return image.ndim == 2 and image.dtype == np.uint8 and image_size(image) == tuple(size)


def read_image(path: Union[str, Path], gray: bool = False) -> np.ndarray:
    """Read an image file; raises instead of returning None."""
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Image not found: {p}")
    # np.fromfile + imdecode keeps non-ASCII paths working on Windows.
    data = np.fromfile(str(p), dtype=np.uint8)
    flags = cv2.IMREAD_GRAYSCALE if gray else cv2.IMREAD_COLOR
    img = cv2.imdecode(data, flags) if data.size else None
    if img is None:
        raise OSError(f"Cannot decode image: {p}")
    return img


def write_image(path: Union[str, Path], image: np.ndarray) -> Path:
    """Encode `image` by the path's extension and write it; raises on failure."""
    p = Path(path)
    ok, buf = cv2.imencode(p.suffix or ".jpg", image)
    if not ok:
        raise OSError(f"Cannot encode image for: {p}")
    buf.tofile(str(p))
    return p
