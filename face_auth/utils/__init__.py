# Utilities module

from .vector_utils import (
    EmbeddingSerializationError,
    embedding_to_json,
    parse_embedding,
)

__all__ = [
    "EmbeddingSerializationError",
    "embedding_to_json",
    "parse_embedding",
]
