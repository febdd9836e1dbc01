from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from eigenface.utils.draw import as_display, draw_box, draw_texts, measure_text


@dataclass(frozen=True)
class AnnotatorConfig:
    box_color: Tuple[int, int, int] = (0, 0, 255)  # BGR red
    box_thickness: int = 2
    label_color: Tuple[int, int, int] = (230, 216, 173)  # BGR light blue
    font_size: int = 18
    # Label position relative to the box's top-left corner (bottom-left of the text).
    label_offset: Tuple[int, int] = (-2, -2)


class FaceAnnotator:
    """Draws detected boxes and recognized labels onto a copy of an image."""

    def __init__(self, config: AnnotatorConfig = AnnotatorConfig()):
        self.config = config

    def _label_origin(self, text: str, bbox, image_shape) -> Tuple[int, int]:
        h, w = int(image_shape[0]), int(image_shape[1])
        text_w, text_h = measure_text(text, self.config.font_size)
        dx, dy = self.config.label_offset
        x = int(bbox.x) + int(dx)
        y = int(bbox.y) + int(dy) - text_h
        x = max(0, min(x, max(0, w - text_w)))
        y = max(0, min(y, max(0, h - text_h)))
        return x, y

    def annotate(self, image: np.ndarray, results: Sequence, draw_labels: bool = True) -> np.ndarray:
        """Return a BGR copy with one box per result and labels for known faces."""
        out = as_display(image)
        texts = []
        for r in results:
            draw_box(out, r.bbox.xyxy, color=self.config.box_color, thickness=self.config.box_thickness)
            if draw_labels and r.label:
                org = self._label_origin(r.label, r.bbox, out.shape)
                texts.append((r.label, org, int(self.config.font_size), self.config.label_color))
        draw_texts(out, texts)
        return out
