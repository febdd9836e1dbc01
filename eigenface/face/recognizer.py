from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from eigenface.config import DEFAULT_FACES_DIR, DEFAULT_INFO_FILE, DISPLAY_WIDTH
from eigenface.face.annotator import AnnotatorConfig, FaceAnnotator
from eigenface.face.corpus import FaceInfo, TrainingCorpus
from eigenface.face.detector import BoundingBox, DetectorConfig, HaarFaceDetector
from eigenface.face.eigen import EigenConfig, EigenfaceRecognizer
from eigenface.utils.image import crop, normalize_face, resize_to_width
from eigenface.utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class RecognitionResult:
    bbox: BoundingBox
    label: str = ""
    distance: float = float("inf")
    info: FaceInfo = field(default_factory=FaceInfo)

    @property
    def is_known(self) -> bool:
        return bool(self.label)


class FaceRecognizer:
    """
    Face recognition pipeline: Haar cascade detection + eigenface recognition
    against a labeled training corpus.

    Usage mirrors an interactive front end:
    1. `set_image` installs a picture (scaled to the display width)
    2. `recognize_faces` detects, labels and annotates it (`current_image`)
    3. `get_train_faces` + `add_face` grow the corpus with confirmed faces
    """

    def __init__(
        self,
        corpus: TrainingCorpus,
        detector: Optional[HaarFaceDetector] = None,
        eigen: Optional[EigenfaceRecognizer] = None,
        annotator: Optional[FaceAnnotator] = None,
        display_width: int = DISPLAY_WIDTH,
    ):
        """
        Args:
            corpus: loaded training corpus
            detector: face detector, defaults to the bundled frontal-face cascade
            eigen: eigenface classifier (holds the model cache)
            annotator: draws boxes/labels on the display image
            display_width: width every installed image is scaled to
        """
        self.corpus = corpus
        self.detector = detector or HaarFaceDetector(DetectorConfig())
        self.eigen = eigen or EigenfaceRecognizer(EigenConfig())
        self.annotator = annotator or FaceAnnotator(AnnotatorConfig())
        self.display_width = int(display_width)

        self._original_image: Optional[np.ndarray] = None
        self._current_image: Optional[np.ndarray] = None
        self.last_results: List[RecognitionResult] = []

    @classmethod
    def from_paths(
        cls,
        faces_dir: Union[str, Path] = DEFAULT_FACES_DIR,
        info_path: Union[str, Path] = DEFAULT_INFO_FILE,
        detector_config: Optional[DetectorConfig] = None,
        eigen_config: Optional[EigenConfig] = None,
        annotator_config: Optional[AnnotatorConfig] = None,
    ) -> "FaceRecognizer":
        """Load the corpus from disk and build the default components."""
        detector = HaarFaceDetector(detector_config or DetectorConfig())
        corpus = TrainingCorpus.load(faces_dir, info_path)
        return cls(
            corpus,
            detector=detector,
            eigen=EigenfaceRecognizer(eigen_config or EigenConfig()),
            annotator=FaceAnnotator(annotator_config or AnnotatorConfig()),
        )

    @property
    def current_image(self) -> Optional[np.ndarray]:
        """The latest annotated image (the scaled original before any recognition)."""
        return self._current_image

    @current_image.setter
    def current_image(self, image: np.ndarray) -> None:
        self.set_image(image)

    @property
    def original_image(self) -> Optional[np.ndarray]:
        return self._original_image

    def set_image(self, image: np.ndarray) -> None:
        """Install a new source image, scaled to the display width (bicubic)."""
        if image is None:
            raise ValueError("image must not be None")
        scaled = resize_to_width(np.asarray(image), self.display_width)
        self._original_image = scaled
        self._current_image = scaled.copy()
        self.last_results = []

    def _require_image(self, image: Optional[np.ndarray] = None) -> np.ndarray:
        if image is not None:
            return resize_to_width(np.asarray(image), self.display_width)
        if self._original_image is None:
            raise RuntimeError("No image installed; call set_image first")
        return self._original_image

    def detect_faces(self, image: Optional[np.ndarray] = None) -> List[BoundingBox]:
        """Detect faces in `image` (scaled to display width) or in the installed image."""
        return self.detector.detect(self._require_image(image))

    def _recognize_boxes(self, image: np.ndarray, boxes: List[BoundingBox]) -> List[RecognitionResult]:
        results: List[RecognitionResult] = []
        has_corpus = len(self.corpus) > 0
        for i, bbox in enumerate(boxes):
            face = normalize_face(crop(image, bbox))
            result = RecognitionResult(bbox=bbox)
            if has_corpus:
                label, distance = self.eigen.recognize(self.corpus, face)
                result.label = label
                result.distance = float(distance)
                if label:
                    result.info = self.corpus.lookup(label)
            results.append(result)
            logger.info(
                f"Face {i + 1}: {result.label or 'unknown'} (distance: {result.distance:.1f}, "
                f"bbox: {bbox.x},{bbox.y},{bbox.width}x{bbox.height})"
            )
        return results

    def recognize(self, image: Optional[np.ndarray] = None) -> List[RecognitionResult]:
        """Detect and classify every face; one result per face, in detector order.

        Passing `image` installs it first (same as `set_image`).
        """
        if image is not None:
            self.set_image(image)
        original = self._require_image()

        boxes = self.detector.detect(original)
        results = self._recognize_boxes(original, boxes)

        self._current_image = self.annotator.annotate(original, results, draw_labels=len(self.corpus) > 0)
        self.last_results = results

        if not boxes:
            logger.info("No faces detected")
        return results

    def recognize_faces(self) -> Tuple[int, FaceInfo]:
        """
        Recognize faces in the installed image and refresh `current_image`.

        Returns:
            (number of detected faces, FaceInfo of the last detected face).
            Only the last face's record is returned; unknown faces and empty
            corpora give an empty FaceInfo. Per-face results are kept in
            `last_results`.

        An unknown last face yields an empty FaceInfo even when an earlier
        face was recognized; the record of an earlier match is not carried
        over.
        """
        results = self.recognize()
        info = results[-1].info if results else FaceInfo()
        return len(results), info

    def get_train_faces(self) -> List[np.ndarray]:
        """Normalized (92x112 grayscale) crops of the faces in the installed image."""
        original = self._require_image()
        return [normalize_face(crop(original, bbox)) for bbox in self.detector.detect(original)]

    def add_face(self, label: str, face: np.ndarray) -> Path:
        """Persist `face` under `label`; the next recognition uses it."""
        return self.corpus.add_face(label, face)

    def lookup(self, label: str) -> FaceInfo:
        return self.corpus.lookup(label)
