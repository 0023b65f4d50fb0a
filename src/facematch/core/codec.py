"""Fixed-width binary encoding of embeddings.

Each component is an IEEE-754 binary32 value in big-endian byte order, so an
encoded vector of dimension D is exactly ``4 * D`` bytes. The dimension is
not part of the byte stream; callers that persist embeddings store it next
to the bytes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

EMBEDDING_BYTE_ORDER: str = ">"
COMPONENT_SIZE: int = 4

_WIRE_DTYPE = np.dtype(f"{EMBEDDING_BYTE_ORDER}f{COMPONENT_SIZE}")


class EmbeddingCodecError(ValueError):
    """Raised when a byte sequence is not a valid encoded embedding."""

    def __init__(self, length: int) -> None:
        super().__init__(f"Encoded embedding length {length} is not a multiple of {COMPONENT_SIZE}")
        self.length = length


def encode_embedding(vector: NDArray[np.floating] | Sequence[float]) -> bytes:
    """Encode a vector; components are rounded to float32 if they are wider."""
    return np.asarray(vector, dtype=np.float32).astype(_WIRE_DTYPE).tobytes()


def decode_embedding(data: bytes) -> NDArray[np.float32]:
    """Decode bytes produced by :func:`encode_embedding`.

    Raises:
        EmbeddingCodecError: If the length is not a multiple of 4.
    """
    if len(data) % COMPONENT_SIZE != 0:
        raise EmbeddingCodecError(len(data))
    return np.frombuffer(data, dtype=_WIRE_DTYPE).astype(np.float32)
