from __future__ import annotations

import numpy as np


def euclidean_distances(rows: np.ndarray, vec: np.ndarray) -> np.ndarray:
    """Euclidean distance from `vec` to every row of a 2D array."""
    mat = np.asarray(rows, dtype=np.float64)
    v = np.asarray(vec, dtype=np.float64).reshape(-1)
    if mat.ndim == 1:
        mat = mat.reshape(1, -1)
    if mat.shape[1] != v.shape[0]:
        raise ValueError(f"Dimension mismatch: rows have {mat.shape[1]}, vector has {v.shape[0]}")
    diff = mat - v[None, :]
    return np.sqrt(np.einsum("ij,ij->i", diff, diff))


def flatten_images(images) -> np.ndarray:
    """Stack equally sized images into an (N, D) float64 matrix."""
    vecs = [np.asarray(img, dtype=np.float64).reshape(-1) for img in images]
    if not vecs:
        return np.zeros((0, 0), dtype=np.float64)
    dim = vecs[0].shape[0]
    for i, v in enumerate(vecs):
        if v.shape[0] != dim:
            raise ValueError(f"Image {i} has {v.shape[0]} pixels, expected {dim}")
    return np.stack(vecs, axis=0)
