"""
Embedding vector models.

Sandi Metz Principles:
- Small classes with clear purpose
- Type-safe vector representation
- Clear naming conventions
"""

import math
from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator


class VectorSource(str, Enum):
    """Where a vector came from."""

    PROVIDER = "provider"
    CACHE = "cache"
    PLACEHOLDER = "placeholder"


class EmbeddingVector(BaseModel):
    """
    Embedding of one text.

    Placeholder vectors are deterministic per text but carry no meaning;
    ranking code uses ``is_fallback`` to tag results built from them.
    """

    vector: List[float] = Field(..., description="Vector components")
    dimensions: int = Field(..., ge=1, le=10000, description="Vector size")
    model: str = Field(..., description="Model that produced the vector")
    normalized: bool = Field(default=False, description="Scaled to unit length")
    source: VectorSource = Field(default=VectorSource.PROVIDER)

    @field_validator("vector")
    @classmethod
    def validate_vector_not_empty(cls, v: List[float]) -> List[float]:
        if not v:
            raise ValueError("Embedding vector cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_vector_dimensions(self) -> "EmbeddingVector":
        if len(self.vector) != self.dimensions:
            raise ValueError(
                f"Vector has {len(self.vector)} components, expected {self.dimensions}"
            )
        return self

    @classmethod
    def create(
        cls,
        vector: List[float],
        model: str,
        normalized: bool = False,
        source: VectorSource = VectorSource.PROVIDER,
    ) -> "EmbeddingVector":
        """
        Build a vector, taking dimensions from its length.

        Args:
            vector: Vector components
            model: Embedding model name
            normalized: Whether components are already unit length
            source: Provider response, memo hit or placeholder

        Returns:
            EmbeddingVector instance
        """
        return cls(
            vector=vector,
            dimensions=len(vector),
            model=model,
            normalized=normalized,
            source=source,
        )

    def normalize(self) -> "EmbeddingVector":
        """Unit-length copy; zero vectors come back unchanged."""
        norm = self.magnitude
        if norm == 0.0:
            return self.model_copy()

        return self.model_copy(
            update={"vector": [x / norm for x in self.vector], "normalized": True}
        )

    @property
    def magnitude(self) -> float:
        """L2 norm."""
        return math.sqrt(sum(x * x for x in self.vector))

    @property
    def is_fallback(self) -> bool:
        """Check if this is a placeholder."""
        return self.source == VectorSource.PLACEHOLDER
