from __future__ import annotations

from pathlib import Path

import json
import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from eigenface.face.annotator import AnnotatorConfig, FaceAnnotator
from eigenface.face.corpus import FaceInfo, TrainingCorpus
from eigenface.face.detector import BoundingBox, HaarFaceDetector
from eigenface.face.recognizer import FaceRecognizer, RecognitionResult
from eigenface.utils.serializer import serialize_results

FACE_W, FACE_H = 92, 112


class _DummyCascade:
    """Reports the rectangles where the test pasted faces."""

    def __init__(self, rects) -> None:
        self.rects = np.asarray(rects, dtype=np.int32) if rects else ()

    def detectMultiScale(self, image, **kwargs):
        return self.rects


def _face(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(FACE_H, FACE_W), dtype=np.uint8)


def _scene(faces_at) -> np.ndarray:
    """500x300 BGR picture with gray faces pasted at (x, y)."""
    img = np.zeros((300, 500, 3), dtype=np.uint8)
    for face, (x, y) in faces_at:
        img[y : y + FACE_H, x : x + FACE_W] = np.repeat(face[:, :, None], 3, axis=2)
    return img


def _corpus(tmp_path: Path) -> TrainingCorpus:
    faces = tmp_path / "faces"
    faces.mkdir()
    (faces / "info.txt").write_text("Alice;Alice;Kowalska;30;F;no;fair;no;long\n", encoding="utf-8")
    corpus = TrainingCorpus.load(faces, faces / "info.txt")
    corpus.add_face("Alice", _face(1))
    corpus.add_face("Bob", _face(2))
    corpus.add_face("Carol", _face(3))
    return corpus


def _recognizer(corpus: TrainingCorpus, positions) -> FaceRecognizer:
    rects = [[x, y, FACE_W, FACE_H] for (x, y) in positions]
    return FaceRecognizer(corpus, detector=HaarFaceDetector(cascade=_DummyCascade(rects)))


def test_set_image_scales_to_display_width(tmp_path: Path):
    recognizer = _recognizer(_corpus(tmp_path), [])
    recognizer.set_image(np.zeros((500, 1000, 3), dtype=np.uint8))
    assert recognizer.current_image.shape == (250, 500, 3)
    assert recognizer.original_image.shape == (250, 500, 3)


def test_operations_need_an_image(tmp_path: Path):
    recognizer = _recognizer(_corpus(tmp_path), [])
    with pytest.raises(RuntimeError):
        recognizer.recognize_faces()
    with pytest.raises(RuntimeError):
        recognizer.get_train_faces()


def test_recognize_faces_returns_count_and_last_record(tmp_path: Path):
    corpus = _corpus(tmp_path)
    stranger = _face(9)

    recognizer = _recognizer(corpus, [(300, 100), (50, 50)])
    recognizer.set_image(_scene([(stranger, (300, 100)), (_face(1), (50, 50))]))
    count, info = recognizer.recognize_faces()

    assert count == 2
    assert info.label == "Alice"
    assert info.last_name == "Kowalska"
    assert [r.label for r in recognizer.last_results] == ["", "Alice"]
    assert recognizer.last_results[0].info == FaceInfo()
    assert recognizer.last_results[1].distance < 3000


def test_last_face_unknown_gives_empty_record(tmp_path: Path):
    corpus = _corpus(tmp_path)
    recognizer = _recognizer(corpus, [(50, 50), (300, 100)])
    recognizer.set_image(_scene([(_face(2), (50, 50)), (_face(9), (300, 100))]))

    count, info = recognizer.recognize_faces()

    assert count == 2
    assert info == FaceInfo()
    # Earlier faces are still available per face.
    assert recognizer.last_results[0].label == "Bob"
    assert recognizer.last_results[0].info == FaceInfo("Bob")


def test_no_faces_is_not_an_error(tmp_path: Path):
    recognizer = _recognizer(_corpus(tmp_path), [])
    recognizer.set_image(_scene([]))
    assert recognizer.recognize_faces() == (0, FaceInfo())
    assert np.array_equal(recognizer.current_image, recognizer.original_image)


def test_empty_corpus_degrades_to_detection_only(tmp_path: Path):
    corpus = TrainingCorpus.create(tmp_path / "faces", tmp_path / "faces" / "info.txt")
    recognizer = _recognizer(corpus, [(50, 50), (300, 100)])
    recognizer.set_image(_scene([(_face(1), (50, 50)), (_face(2), (300, 100))]))

    count, info = recognizer.recognize_faces()

    assert count == 2
    assert info == FaceInfo()
    assert all(r.label == "" and r.distance == float("inf") for r in recognizer.last_results)
    # boxes are still drawn
    assert tuple(recognizer.current_image[50, 50]) == (0, 0, 255)


def test_recognition_is_idempotent_and_does_not_accumulate(tmp_path: Path):
    corpus = _corpus(tmp_path)
    recognizer = _recognizer(corpus, [(50, 50), (300, 100)])
    recognizer.set_image(_scene([(_face(1), (50, 50)), (_face(3), (300, 100))]))
    pristine = recognizer.original_image.copy()

    first = recognizer.recognize()
    first_image = recognizer.current_image.copy()
    second = recognizer.recognize()

    assert [(r.bbox, r.label) for r in first] == [(r.bbox, r.label) for r in second]
    assert [r.label for r in first] == ["Alice", "Carol"]
    assert recognizer.detect_faces() == [r.bbox for r in first]
    assert np.array_equal(first_image, recognizer.current_image)
    assert np.array_equal(pristine, recognizer.original_image)
    assert not np.array_equal(first_image, pristine)


def test_train_faces_then_add_face_makes_face_known(tmp_path: Path):
    corpus = _corpus(tmp_path)
    newcomer = _face(42)
    recognizer = _recognizer(corpus, [(200, 80)])
    recognizer.set_image(_scene([(newcomer, (200, 80))]))

    assert recognizer.recognize_faces()[1] == FaceInfo()

    faces = recognizer.get_train_faces()
    assert len(faces) == 1
    assert faces[0].shape == (FACE_H, FACE_W)
    assert np.array_equal(faces[0], newcomer)

    path = recognizer.add_face("Dorota", faces[0])
    assert path.name == "Dorota (0).jpg"

    count, info = recognizer.recognize_faces()
    assert count == 1
    assert info == FaceInfo("Dorota")
    assert recognizer.last_results[0].label == "Dorota"


def test_annotator_draws_labels_only_when_asked():
    image = np.zeros((200, 200), dtype=np.uint8)
    results = [RecognitionResult(bbox=BoundingBox(40, 60, 50, 50), label="Łucja", distance=10.0)]
    annotator = FaceAnnotator(AnnotatorConfig())

    plain = annotator.annotate(image, results, draw_labels=False)
    labeled = annotator.annotate(image, results, draw_labels=True)

    assert plain.shape == (200, 200, 3)
    assert tuple(plain[60, 40]) == (0, 0, 255)
    assert image.max() == 0
    assert np.count_nonzero(labeled) > np.count_nonzero(plain)


def test_serialize_results_is_json_safe(tmp_path: Path):
    corpus = _corpus(tmp_path)
    recognizer = _recognizer(corpus, [(50, 50), (300, 100)])
    recognizer.set_image(_scene([(_face(1), (50, 50)), (_face(9), (300, 100))]))
    results = recognizer.recognize()

    data = serialize_results(results, recognizer.original_image.shape[:2])
    text = json.dumps(data, ensure_ascii=False)

    assert data[0]["bbox"] == [50, 50, 50 + FACE_W, 50 + FACE_H]
    assert data[0]["label"] == "Alice"
    assert data[0]["info"]["last_name"] == "Kowalska"
    assert data[0]["bbox_norm"][0] == pytest.approx(0.1)
    assert data[1]["known"] is False
    assert "Kowalska" in text

    empty = TrainingCorpus.create(tmp_path / "empty", tmp_path / "empty" / "info.txt")
    unrecognized = _recognizer(empty, [(50, 50)])
    unrecognized.set_image(_scene([(_face(1), (50, 50))]))
    assert serialize_results(unrecognized.recognize())[0]["distance"] is None


def test_from_paths_loads_corpus_and_default_detector(tmp_path: Path):
    corpus = _corpus(tmp_path)
    recognizer = FaceRecognizer.from_paths(corpus.image_dir, corpus.info_path)
    assert recognizer.corpus.labels == ["Alice", "Bob", "Carol"]
    recognizer.set_image(np.full((240, 320, 3), 127, dtype=np.uint8))
    assert recognizer.recognize_faces() == (0, FaceInfo())
