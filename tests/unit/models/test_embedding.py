"""Test embedding vector models."""

import pytest
from pydantic import ValidationError

from problem_matcher.models.embedding import EmbeddingVector, VectorSource


class TestEmbeddingVector:
    """Test embedding vector model."""

    def test_should_create_with_factory_method(self):
        """Test factory method detects dimensions."""
        vector = EmbeddingVector.create(vector=[1.0, 2.0, 3.0], model="test-model")

        assert vector.dimensions == 3
        assert vector.model == "test-model"
        assert vector.normalized is False
        assert vector.source == VectorSource.PROVIDER
        assert vector.is_fallback is False

    def test_should_reject_empty_vector(self):
        """Test empty vector validation."""
        with pytest.raises(ValidationError):
            EmbeddingVector(vector=[], dimensions=1, model="test-model")

    def test_should_reject_dimension_mismatch(self):
        """Test declared dimensions must match vector length."""
        with pytest.raises(ValidationError):
            EmbeddingVector(vector=[0.1, 0.2], dimensions=3, model="test-model")

    def test_should_normalize(self):
        """Test normalization produces a unit vector."""
        vector = EmbeddingVector.create(vector=[3.0, 4.0], model="test-model")
        normalized = vector.normalize()

        assert normalized.vector == pytest.approx([0.6, 0.8])
        assert normalized.normalized is True
        assert normalized.magnitude == pytest.approx(1.0)
        assert vector.vector == [3.0, 4.0]

    def test_should_keep_zero_vector(self):
        """Test zero vector normalizes to itself."""
        vector = EmbeddingVector.create(vector=[0.0, 0.0], model="test-model")
        normalized = vector.normalize()

        assert normalized.vector == [0.0, 0.0]
        assert normalized.normalized is False

    def test_should_preserve_fallback_flag(self):
        """Test normalization keeps the placeholder marker."""
        vector = EmbeddingVector.create(
            vector=[1.0, 1.0], model="test-model", source=VectorSource.PLACEHOLDER
        )
        assert vector.normalize().is_fallback is True

    def test_magnitude(self):
        """Test L2 norm."""
        vector = EmbeddingVector.create(vector=[3.0, 4.0], model="test-model")
        assert vector.magnitude == 5.0
