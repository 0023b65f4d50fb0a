"""Tests for the binary embedding codec."""

from __future__ import annotations

import numpy as np
import pytest

from facematch.core.codec import (
    COMPONENT_SIZE,
    EmbeddingCodecError,
    decode_embedding,
    encode_embedding,
)
from facematch.core.features import EMBEDDING_DIM


class TestEncode:
    def test_big_endian_binary32(self) -> None:
        assert encode_embedding([1.0]) == b"\x3f\x80\x00\x00"
        assert encode_embedding([-2.0, 0.5]) == b"\xc0\x00\x00\x00\x3f\x00\x00\x00"

    def test_length_is_four_bytes_per_component(self) -> None:
        data = encode_embedding(np.zeros(EMBEDDING_DIM, dtype=np.float32))
        assert len(data) == COMPONENT_SIZE * EMBEDDING_DIM

    def test_empty_vector(self) -> None:
        assert encode_embedding([]) == b""


class TestDecode:
    def test_round_trip_is_exact(self) -> None:
        rng = np.random.default_rng(42)
        vector = rng.normal(size=EMBEDDING_DIM).astype(np.float32)
        decoded = decode_embedding(encode_embedding(vector))
        assert decoded.dtype == np.float32
        assert np.array_equal(decoded, vector)

    def test_decodes_native_float32(self) -> None:
        decoded = decode_embedding(b"\x3f\x80\x00\x00\xbf\x80\x00\x00")
        assert decoded.tolist() == [1.0, -1.0]
        assert decoded.dtype == np.float32

    def test_empty_bytes(self) -> None:
        assert decode_embedding(b"").shape == (0,)

    @pytest.mark.parametrize("length", [1, 3, 5, 799])
    def test_bad_length_raises(self, length: int) -> None:
        with pytest.raises(EmbeddingCodecError) as exc_info:
            decode_embedding(b"\x00" * length)
        assert exc_info.value.length == length
        assert isinstance(exc_info.value, ValueError)
