from __future__ import annotations

from functools import lru_cache
from typing import Iterable, Sequence, Tuple

import warnings

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from eigenface.config import FONT_LIST


_WARNED_NO_FONT = False


@lru_cache(maxsize=128)
def _load_font(font_path: str, font_size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(font_path, font_size)


@lru_cache(maxsize=64)
def _get_best_font(font_size: int) -> ImageFont.ImageFont:
    """Return the first loadable font of FONT_LIST (cached)."""
    for p in FONT_LIST:
        try:
            return _load_font(p, int(font_size))
        except OSError:
            continue
    return ImageFont.load_default()


def _warn_once_no_font_if_needed(texts: Iterable[str]) -> None:
    global _WARNED_NO_FONT
    if _WARNED_NO_FONT:
        return
    need_unicode = any(any(ord(ch) > 127 for ch in t) for t in texts)
    if not need_unicode:
        return
    for p in FONT_LIST:
        try:
            _load_font(p, 16)
            return
        except OSError:
            continue
    _WARNED_NO_FONT = True
    warnings.warn(
        "No font from FONT_LIST could be loaded; non-ASCII labels may render incorrectly. "
        "Install fonts-dejavu or add a font path to FONT_LIST in eigenface/config.py.",
        RuntimeWarning,
    )


def _to_bgr(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    return img


def draw_texts(
    img: np.ndarray,
    items: Sequence[Tuple[str, Tuple[int, int], int, Tuple[int, int, int]]],
) -> None:
    """Draw several unicode texts onto one BGR image with a single PIL conversion.

    Args:
        img: OpenCV BGR image, modified in-place.
        items: sequence of (text, (x, y), font_size_px, bgr_color)
    """
    if img is None or len(items) == 0:
        return

    _warn_once_no_font_if_needed([t for (t, _, _, _) in items])

    try:
        pil_img = Image.fromarray(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(pil_img)

        for text, org, font_size, bgr in items:
            font = _get_best_font(int(font_size))
            # PIL uses RGB
            rgb_color = (int(bgr[2]), int(bgr[1]), int(bgr[0]))
            draw.text(tuple(org), str(text), font=font, fill=rgb_color)

        img[:] = cv2.cvtColor(np.array(pil_img), cv2.COLOR_RGB2BGR)
    except (OSError, ValueError):
        # Fallback: OpenCV Hershey font (ASCII only)
        for text, org, font_size, bgr in items:
            font_scale = max(0.3, int(font_size) / 24.0)
            cv2.putText(
                img,
                str(text),
                (int(org[0]), int(org[1]) + int(font_size)),
                cv2.FONT_HERSHEY_DUPLEX,
                font_scale,
                (int(bgr[0]), int(bgr[1]), int(bgr[2])),
                1,
                cv2.LINE_AA,
            )


def draw_box(img: np.ndarray, box: Tuple[int, int, int, int], color=(0, 0, 255), thickness: int = 2) -> None:
    """Draw an xyxy rectangle in-place."""
    x1, y1, x2, y2 = [int(v) for v in box]
    cv2.rectangle(img, (x1, y1), (x2, y2), tuple(int(c) for c in color), int(thickness))


def measure_text(text: str, font_size: int = 14) -> Tuple[int, int]:
    """Measure text with PIL, falling back to OpenCV."""
    return _measure_text_cached(str(text), int(font_size))


@lru_cache(maxsize=1024)
def _measure_text_cached(text: str, font_size: int) -> Tuple[int, int]:
    try:
        font = _get_best_font(int(font_size))
        dummy = Image.new("RGB", (10, 10))
        draw = ImageDraw.Draw(dummy)
        bbox = draw.textbbox((0, 0), text, font=font)
        width = bbox[2] - bbox[0]
        height = bbox[3] - bbox[1]
        return int(width), int(height)
    except (OSError, ValueError):
        font_scale = max(0.3, float(font_size) / 24.0)
        (w, h), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_DUPLEX, font_scale, 1)
        return int(w), int(h)


def as_display(img: np.ndarray) -> np.ndarray:
    """Return a BGR copy of `img` suitable for drawing."""
    return _to_bgr(np.asarray(img)).copy()
