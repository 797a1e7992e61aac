"""
Text data models.

This module defines bucketed free-text columns and the per-bucket
feature sets computed from them.

Models:
    TextDocument: A single immutable document
    TextBucket: Caller-defined time bucket of documents
    TextData: A text column partitioned into buckets
    SentimentDistribution: Positive/neutral/negative document proportions
    TextFeatures: Per-bucket features used for drift detection
"""

from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

# Tolerance used when checking that proportions sum to 1.0
PROPORTION_TOLERANCE: float = 1e-6


class TextDocument(BaseModel):
    """
    A single document of a text column.

    Attributes:
        id: Unique document identifier.
        content: Free-text content.
        timestamp: Document time.
        category: Optional category label.
        keywords: Keywords attached upstream.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(..., min_length=1)
    content: str = ""
    timestamp: datetime
    category: Optional[str] = None
    keywords: Tuple[str, ...] = ()


class TextBucket(BaseModel):
    """
    Time bucket of documents. Bucket boundaries are chosen by the caller.

    Attributes:
        start: Bucket start time.
        end: Bucket end time.
        documents: Documents falling in the bucket.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    start: datetime
    end: datetime
    documents: Tuple[TextDocument, ...] = ()

    @model_validator(mode="after")
    def check_bounds(self) -> "TextBucket":
        """Ensure start <= end and document ids are unique."""
        if self.start > self.end:
            raise ValueError(
                f"bucket start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )
        seen = set()
        for doc in self.documents:
            if doc.id in seen:
                raise ValueError(f"duplicate document id in bucket: {doc.id}")
            seen.add(doc.id)
        return self

    @property
    def is_empty(self) -> bool:
        """Check if the bucket holds no documents."""
        return len(self.documents) == 0


class TextData(BaseModel):
    """
    A text column partitioned into time buckets.

    Attributes:
        name: Column name / data source.
        buckets: Buckets in chronological order.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(..., min_length=1)
    buckets: Tuple[TextBucket, ...] = ()

    @model_validator(mode="after")
    def check_bucket_order(self) -> "TextData":
        """Ensure buckets are in chronological order."""
        for previous, current in zip(self.buckets, self.buckets[1:]):
            if current.start < previous.start:
                raise ValueError("buckets must be ordered by start time")
        return self

    @property
    def documents(self) -> List[TextDocument]:
        """Full corpus across all buckets."""
        return [doc for bucket in self.buckets for doc in bucket.documents]


class SentimentDistribution(BaseModel):
    """
    Proportion of positive, neutral and negative documents.

    Sums to 1.0 for a non-empty bucket and is zero-filled for an empty one.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    positive: float = Field(default=0.0, ge=0.0, le=1.0)
    neutral: float = Field(default=0.0, ge=0.0, le=1.0)
    negative: float = Field(default=0.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_total(self) -> "SentimentDistribution":
        """Proportions must sum to 1.0 or be all zero."""
        total = self.positive + self.neutral + self.negative
        if total != 0.0 and abs(total - 1.0) > PROPORTION_TOLERANCE:
            raise ValueError(f"sentiment proportions sum to {total}, expected 1.0")
        return self

    def as_dict(self) -> Dict[str, float]:
        """Return proportions keyed by label."""
        return {
            "positive": self.positive,
            "neutral": self.neutral,
            "negative": self.negative,
        }


class TextFeatures(BaseModel):
    """
    Features of one text bucket.

    TF-IDF vectors are computed against the whole corpus, so vectors of
    different buckets share one dimension (the corpus vocabulary size).

    Attributes:
        bucket_start: Start of the bucket.
        bucket_end: End of the bucket.
        document_count: Number of documents in the bucket.
        categorized_count: Number of documents carrying a category.
        vocabulary: Terms seen in the bucket.
        term_frequencies: Term to occurrence count.
        tfidf: Document id to TF-IDF vector.
        centroid: Mean TF-IDF vector of the bucket (empty when bucket empty).
        category_proportions: Category to share of categorized documents.
        sentiment: Sentiment distribution.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    bucket_start: datetime
    bucket_end: datetime
    document_count: int = Field(default=0, ge=0)
    categorized_count: int = Field(default=0, ge=0)
    vocabulary: FrozenSet[str] = frozenset()
    term_frequencies: Dict[str, int] = Field(default_factory=dict)
    tfidf: Dict[str, List[float]] = Field(default_factory=dict)
    centroid: List[float] = Field(default_factory=list)
    category_proportions: Dict[str, float] = Field(default_factory=dict)
    sentiment: SentimentDistribution = Field(default_factory=SentimentDistribution)

    @model_validator(mode="after")
    def check_category_total(self) -> "TextFeatures":
        """Category proportions must sum to 1.0 when present."""
        if self.category_proportions:
            total = sum(self.category_proportions.values())
            if abs(total - 1.0) > PROPORTION_TOLERANCE:
                raise ValueError(f"category proportions sum to {total}, expected 1.0")
        return self

    @property
    def is_empty(self) -> bool:
        """Check if the bucket had no documents or no vocabulary."""
        return self.document_count == 0 or not self.vocabulary

    @property
    def total_terms(self) -> int:
        """Total number of term occurrences."""
        return sum(self.term_frequencies.values())
