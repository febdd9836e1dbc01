from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import numpy as np

from eigenface.config import DEFAULT_CASCADE_PATH
from eigenface.utils.image import image_size, to_gray
from eigenface.utils.log import get_logger

logger = get_logger(__name__)


class DetectorModelError(FileNotFoundError):
    """The cascade model file is missing or cannot be parsed."""


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int

    @property
    def xyxy(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def area(self) -> int:
        return int(self.width) * int(self.height)

    def clip(self, width: int, height: int) -> Optional["BoundingBox"]:
        """Clip into a width x height image; None if nothing is left."""
        x1 = max(0, min(int(width), int(self.x)))
        y1 = max(0, min(int(height), int(self.y)))
        x2 = max(0, min(int(width), int(self.x + self.width)))
        y2 = max(0, min(int(height), int(self.y + self.height)))
        if x2 <= x1 or y2 <= y1:
            return None
        return BoundingBox(x1, y1, x2 - x1, y2 - y1)


@dataclass(frozen=True)
class DetectorConfig:
    model_path: str = DEFAULT_CASCADE_PATH
    # Window grows by this factor between scans.
    scale_factor: float = 1.2
    # Raw window hits that must agree before a face is reported.
    min_neighbors: int = 10
    # Smallest window (width, height) in source pixels.
    min_size: Tuple[int, int] = (10, 10)
    # Skip windows with little edge content before running the cascade.
    canny_pruning: bool = True


class HaarFaceDetector:
    """Multi-scale Haar cascade face detector.

    The cascade is loaded once in the constructor; `detect` is a pure function
    of the image and the model. A ready cascade object (anything with
    ``detectMultiScale``) can be injected instead of a model path.
    """

    def __init__(self, config: Optional[DetectorConfig] = None, cascade=None):
        self.config = config or DetectorConfig()
        if cascade is not None:
            self._cascade = cascade
        else:
            self._cascade = self._load_cascade(self.config.model_path)

    @staticmethod
    def _load_cascade(model_path: str):
        path = Path(model_path)
        if not path.is_file():
            logger.error(f"Cascade model not found: {path}")
            raise DetectorModelError(f"Cascade model not found: {path}")
        try:
            cascade = cv2.CascadeClassifier(str(path))
        except (cv2.error, SystemError) as e:
            # Newer bindings surface a parse failure as SystemError chained to cv2.error.
            logger.error(f"Cascade model could not be parsed: {path}: {e}")
            raise DetectorModelError(f"Cascade model could not be parsed: {path}") from e
        if cascade.empty():
            logger.error(f"Cascade model could not be loaded: {path}")
            raise DetectorModelError(f"Cascade model could not be loaded: {path}")
        logger.info(f"Loaded cascade model: {path.name}")
        return cascade

    @property
    def flags(self) -> int:
        return int(cv2.CASCADE_DO_CANNY_PRUNING) if self.config.canny_pruning else 0

    def detect(self, image: np.ndarray) -> List[BoundingBox]:
        """Return face boxes in the order the cascade reports them."""
        gray = to_gray(image)
        width, height = image_size(gray)

        rects = self._cascade.detectMultiScale(
            gray,
            scaleFactor=float(self.config.scale_factor),
            minNeighbors=int(self.config.min_neighbors),
            flags=self.flags,
            minSize=tuple(int(v) for v in self.config.min_size),
        )

        # OpenCV returns an empty tuple when nothing is found.
        arr = np.asarray(rects, dtype=np.int64).reshape(-1, 4) if len(rects) else np.zeros((0, 4), dtype=np.int64)

        boxes: List[BoundingBox] = []
        for rect in arr:
            x, y, w, h = [int(v) for v in rect]
            box = BoundingBox(x, y, w, h).clip(width, height)
            if box is not None:
                boxes.append(box)

        logger.debug(f"Detected {len(boxes)} face(s) in {width}x{height} image")
        return boxes
