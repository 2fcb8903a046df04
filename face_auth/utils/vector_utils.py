"""
Serialization helpers for embeddings stored in the database.

Embeddings are stored as JSON text in ``face_embeddings.embedding_data``.
Parsing is lenient: anything that does not decode to a list comes back as
None, and the matching engine's validator decides what to do with it.
"""

import json
import logging
from typing import Any, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class EmbeddingSerializationError(Exception):
    """Raised when an embedding cannot be encoded for storage."""
    pass


def embedding_to_json(embedding: Any) -> str:
    """
    Encode an embedding as a JSON array of floats.

    Args:
        embedding: numpy array or sequence of numbers

    Returns:
        str: JSON text

    Raises:
        EmbeddingSerializationError: If the embedding contains non-numeric values
    """
    try:
        values = np.asarray(embedding, dtype=np.float64).ravel().tolist()
    except (TypeError, ValueError) as e:
        raise EmbeddingSerializationError(f"Embedding is not numeric: {e}")
    return json.dumps(values)


def parse_embedding(raw: Any) -> Optional[List[Any]]:
    """
    Decode a stored embedding.

    Args:
        raw: JSON text, or an already-decoded list (PostgREST returns jsonb as lists)

    Returns:
        The decoded list, or None if it cannot be decoded into a list
    """
    if raw is None:
        return None
    if isinstance(raw, list):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return None

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Stored embedding is not valid JSON: {e}")
        return None

    if not isinstance(decoded, list):
        logger.warning(f"Stored embedding decoded to {type(decoded).__name__}, expected list")
        return None
    return decoded
