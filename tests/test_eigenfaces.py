from __future__ import annotations

from pathlib import Path

import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from eigenface.face.corpus import TrainingCorpus
from eigenface.face.eigen import EigenConfig, EigenfaceRecognizer


def _face(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(112, 92), dtype=np.uint8)


def _perturb(img: np.ndarray, seed: int, amount: int = 5) -> np.ndarray:
    rng = np.random.default_rng(seed)
    noise = rng.integers(-amount, amount + 1, size=img.shape)
    return np.clip(img.astype(np.int32) + noise, 0, 255).astype(np.uint8)


@pytest.fixture
def trained():
    recognizer = EigenfaceRecognizer()
    images = [_face(1), _face(2), _face(3), _face(4)]
    labels = ["Alice", "Bob", "Carol", "Alice"]
    return recognizer, recognizer.train_arrays(images, labels), images


def test_model_shape_and_unit_eigenfaces(trained):
    _, model, images = trained
    assert model.num_samples == len(images)
    assert 0 < model.num_components <= len(images)
    assert model.eigenfaces.shape == (model.num_components, 92 * 112)
    norms = np.linalg.norm(model.eigenfaces, axis=1)
    assert np.allclose(norms, 1.0)
    assert np.all(np.diff(model.eigenvalues) <= 0)


def test_known_face_classifies_to_its_label(trained):
    recognizer, model, images = trained

    label, distance = recognizer.classify(model, images[1])
    assert label == "Bob"
    assert distance == pytest.approx(0.0, abs=1e-3)

    label, distance = recognizer.classify(model, _perturb(images[2], seed=99))
    assert label == "Carol"
    assert distance < 3000


def test_unrelated_face_is_unknown(trained):
    recognizer, model, _ = trained
    label, distance = recognizer.classify(model, _face(1234))
    assert label == ""
    assert distance > 3000


def test_ties_go_to_first_training_face():
    recognizer = EigenfaceRecognizer()
    same = _face(7)
    model = recognizer.train_arrays([same, same.copy(), _face(8)], ["first", "second", "other"])
    label, _ = recognizer.classify(model, same)
    assert label == "first"


def test_single_sample_corpus_never_fails():
    recognizer = EigenfaceRecognizer()
    only = _face(11)
    model = recognizer.train_arrays([only], ["Solo"])
    assert model.num_components == 0

    assert recognizer.classify(model, only) == ("Solo", 0.0)
    assert recognizer.classify(model, _perturb(only, seed=3))[0] == "Solo"
    label, distance = recognizer.classify(model, _face(12))
    assert label == ""
    assert distance > 3000


def test_threshold_also_limits_components():
    images = [_face(i) for i in range(5)]
    labels = [str(i) for i in range(5)]

    normal = EigenfaceRecognizer().train_arrays(images, labels)
    strict = EigenfaceRecognizer(EigenConfig(threshold=1e9)).train_arrays(images, labels)

    assert normal.num_components > 0
    assert strict.num_components == 0
    # Still usable: compares raw pixels instead.
    assert EigenfaceRecognizer(EigenConfig(threshold=1e9)).classify(strict, images[3])[0] == "3"


def test_max_iterations_caps_components():
    images = [_face(i) for i in range(6)]
    model = EigenfaceRecognizer(EigenConfig(max_iterations=2)).train_arrays(images, list("abcdef"))
    assert model.num_components == 2


def test_training_requires_images():
    with pytest.raises(ValueError):
        EigenfaceRecognizer().train_arrays([], [])
    with pytest.raises(ValueError):
        EigenfaceRecognizer().train_arrays([_face(1)], ["a", "b"])


def test_recognize_with_empty_corpus_is_unknown(tmp_path: Path):
    corpus = TrainingCorpus.create(tmp_path / "faces", tmp_path / "faces" / "info.txt")
    label, distance = EigenfaceRecognizer().recognize(corpus, _face(1))
    assert label == ""
    assert distance == float("inf")


def test_model_cache_follows_corpus_revision(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    corpus = TrainingCorpus.create(tmp_path / "faces", tmp_path / "faces" / "info.txt")
    for i, name in enumerate(["Ann", "Ben", "Cid"]):
        corpus.add_face(name, _face(100 + i))

    recognizer = EigenfaceRecognizer()
    calls = []
    original_train = recognizer.train

    def _counting_train(c):
        calls.append(c.revision)
        return original_train(c)

    monkeypatch.setattr(recognizer, "train", _counting_train)

    newcomer = _face(500)
    assert recognizer.recognize(corpus, newcomer)[0] == ""
    recognizer.recognize(corpus, _face(100))
    assert len(calls) == 1

    corpus.add_face("Dee", newcomer)
    label, distance = recognizer.recognize(corpus, newcomer)
    assert len(calls) == 2
    assert label == "Dee"
    assert distance < 3000
