"""Local, model-independent text embeddings.

Feature hashing over word tokens and their character trigrams. Vectors are
deterministic across runs and processes, so stored embeddings stay comparable
no matter which language model is configured.
"""

import hashlib
import math
import unicodedata
from typing import List

EMBEDDING_DIM = 384
TRIGRAM_WEIGHT = 0.5


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens; punctuation and symbols act as separators."""
    chars = []
    for char in text.lower():
        category = unicodedata.category(char)
        if category[0] in ("L", "N") or char.isspace():
            chars.append(char)
        else:
            chars.append(" ")
    return [token for token in "".join(chars).split() if len(token) > 1]


def char_ngrams(token: str, n: int = 3) -> List[str]:
    """Character n-grams of a token padded with ``<`` and ``>`` boundary markers."""
    padded = f"<{token}>"
    return [padded[i : i + n] for i in range(len(padded) - n + 1)]


def _hash_to_index(value: str, dim: int) -> int:
    digest = hashlib.md5(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "little") % dim


def _hash_to_sign(value: str) -> int:
    digest = hashlib.md5(f"{value}_sign".encode("utf-8")).digest()
    return 1 if digest[0] % 2 == 0 else -1


def embed(text: str, dim: int = EMBEDDING_DIM) -> List[float]:
    """Embed text into an L2-normalised vector of width ``dim``.

    Empty or token-free text yields the zero vector.
    """
    vec = [0.0] * dim

    for token in tokenize(text):
        vec[_hash_to_index(token, dim)] += _hash_to_sign(token)
        for gram in char_ngrams(token):
            vec[_hash_to_index(gram, dim)] += _hash_to_sign(gram) * TRIGRAM_WEIGHT

    norm = math.sqrt(sum(v * v for v in vec))
    if norm > 0:
        vec = [v / norm for v in vec]
    return vec


def similarity(a: List[float], b: List[float]) -> float:
    """Cosine similarity of two pre-normalised vectors."""
    return sum(x * y for x, y in zip(a, b))
