from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from eigenface.config import UNKNOWN_LABEL
from eigenface.utils.image import normalize_face
from eigenface.utils.log import get_logger
from eigenface.utils.math import euclidean_distances, flatten_images

logger = get_logger(__name__)


@dataclass(frozen=True)
class EigenConfig:
    # Acceptance distance in eigenspace. Also sets the smallest component
    # spread kept during fitting (epsilon * threshold).
    threshold: float = 3000.0
    # Components whose eigenvalue falls below epsilon * largest are dropped.
    epsilon: float = 0.001
    # Upper bound on retained components; None means the number of training images.
    max_iterations: Optional[int] = None
    unknown_label: str = UNKNOWN_LABEL


@dataclass
class EigenModel:
    mean: np.ndarray  # (D,)
    eigenfaces: np.ndarray  # (K, D), unit rows
    eigenvalues: np.ndarray  # (K,)
    projections: np.ndarray  # (N, K)
    labels: List[str]
    threshold: float
    # Raw training vectors, kept only when no component survives (K == 0).
    samples: Optional[np.ndarray] = None

    @property
    def num_components(self) -> int:
        return int(self.eigenfaces.shape[0])

    @property
    def num_samples(self) -> int:
        return len(self.labels)

    def project(self, face: np.ndarray) -> np.ndarray:
        vec = np.asarray(face, dtype=np.float64).reshape(-1) - self.mean
        return self.eigenfaces @ vec


class EigenfaceRecognizer:
    """Eigenface nearest-neighbor classifier.

    `train` fits the eigenspace of a corpus, `classify` labels a probe face.
    `recognize` does both and keeps the last model until the corpus changes.
    """

    def __init__(self, config: Optional[EigenConfig] = None):
        self.config = config or EigenConfig()
        self._cache_corpus = None
        self._cache_revision: Optional[int] = None
        self._cache_model: Optional[EigenModel] = None

    def train(self, corpus) -> EigenModel:
        return self.train_arrays(corpus.images, corpus.labels)

    def train_arrays(self, images: Sequence[np.ndarray], labels: Sequence[str]) -> EigenModel:
        if len(images) == 0:
            raise ValueError("Cannot train an eigenspace from zero images")
        if len(images) != len(labels):
            raise ValueError(f"Got {len(images)} image(s) but {len(labels)} label(s)")

        data = flatten_images([normalize_face(img) for img in images])  # (N, D)
        n = int(data.shape[0])
        mean = data.mean(axis=0)
        centered = data - mean[None, :]

        # Eigenvectors of the small N x N Gram matrix map onto the covariance's
        # eigenvectors: u = A^T v / sqrt(lambda).
        gram = centered @ centered.T
        values, vectors = np.linalg.eigh(gram)
        order = np.argsort(values)[::-1]
        values = values[order]
        vectors = vectors[:, order]

        k = self._select_components(values, n)
        if k > 0:
            scale = np.sqrt(values[:k])
            eigenfaces = (centered.T @ vectors[:, :k] / scale[None, :]).T
            projections = centered @ eigenfaces.T
            samples = None
        else:
            eigenfaces = np.zeros((0, data.shape[1]), dtype=np.float64)
            projections = np.zeros((n, 0), dtype=np.float64)
            samples = data

        logger.debug(f"Trained eigenspace: {n} image(s), {k} component(s)")
        return EigenModel(
            mean=mean,
            eigenfaces=eigenfaces,
            eigenvalues=values[:k].copy(),
            projections=projections,
            labels=[str(lbl) for lbl in labels],
            threshold=float(self.config.threshold),
            samples=samples,
        )

    def _select_components(self, values: np.ndarray, n: int) -> int:
        limit = n if self.config.max_iterations is None else min(n, int(self.config.max_iterations))
        if limit <= 0 or values.size == 0 or values[0] <= 0.0:
            return 0
        eps = float(self.config.epsilon)
        min_spread = eps * float(self.config.threshold)
        k = 0
        for value in values[:limit]:
            if value <= 0.0:
                break
            if value / values[0] < eps:
                break
            if np.sqrt(value) < min_spread:
                break
            k += 1
        return k

    def classify(self, model: EigenModel, probe: np.ndarray) -> Tuple[str, float]:
        """Return (label, distance) of the nearest training face.

        The label is unknown when the distance exceeds the threshold. Ties go
        to the earliest training face.
        """
        face = flatten_images([normalize_face(probe)])[0]
        if model.num_components == 0:
            dists = euclidean_distances(model.samples, face)
        else:
            dists = euclidean_distances(model.projections, model.project(face))

        best = int(np.argmin(dists))
        distance = float(dists[best])
        if distance > model.threshold:
            return self.config.unknown_label, distance
        return model.labels[best], distance

    def model_for(self, corpus) -> Optional[EigenModel]:
        """Return the model for the corpus's current contents, training only when it changed."""
        if len(corpus) == 0:
            return None
        revision = int(corpus.revision)
        if self._cache_corpus is corpus and self._cache_revision == revision and self._cache_model is not None:
            return self._cache_model
        self._cache_model = self.train(corpus)
        self._cache_corpus = corpus
        self._cache_revision = revision
        return self._cache_model

    def recognize(self, corpus, probe: np.ndarray) -> Tuple[str, float]:
        model = self.model_for(corpus)
        if model is None:
            return self.config.unknown_label, float("inf")
        return self.classify(model, probe)
