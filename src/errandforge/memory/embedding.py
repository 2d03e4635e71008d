"""Text embeddings for memory retrieval.

The default embedder uses signed feature hashing over word unigrams and
bigrams. It needs no model download and is deterministic across runs and
processes, so query rankings are reproducible.
"""

import hashlib
import re
from typing import Protocol

import numpy as np

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


class Embedder(Protocol):
    """Protocol for turning text into a fixed-size vector.

    Any object with a ``dimensions`` attribute and an ``embed`` method
    satisfies this protocol through structural typing.
    """

    dimensions: int

    def embed(self, text: str) -> list[float]:
        """Embed text into a vector of ``dimensions`` floats."""
        ...


class HashingEmbedder:
    """Deterministic feature-hashing embedder.

    Each lower-cased word and each pair of adjacent words is hashed with
    blake2b; the hash selects a dimension and a sign. The resulting vector
    is L2-normalized, so the dot product of two embeddings is their cosine
    similarity.

    Example:
        >>> embedder = HashingEmbedder(dimensions=64)
        >>> len(embedder.embed("electricity bill due friday"))
        64
    """

    def __init__(self, dimensions: int = 128) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self.dimensions = dimensions

    def _features(self, text: str) -> list[str]:
        tokens = _TOKEN_PATTERN.findall(text.lower())
        bigrams = [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        return tokens + bigrams

    def embed(self, text: str) -> list[float]:
        vector = np.zeros(self.dimensions, dtype=np.float64)
        for feature in self._features(text):
            digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
            index = int.from_bytes(digest[:4], "little") % self.dimensions
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[index] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors, 0.0 for mismatched or zero vectors."""
    if len(a) != len(b) or not a:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)
