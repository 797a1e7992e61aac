"""
Text drift detection.

Components:
    features: TextFeatureExtractor computing per-bucket TF-IDF, term,
        category and sentiment features
    drift: TextDriftDetector comparing buckets against a baseline

Example:
    >>> from anomaly_engine.text import TextFeatureExtractor, TextDriftDetector
    >>> features = TextFeatureExtractor(text.documents).extract_all(text)
    >>> result = TextDriftDetector(parameters).detect(text.name, features)
"""

from anomaly_engine.text.features import (
    DEFAULT_NEGATIVE_WORDS,
    DEFAULT_POSITIVE_WORDS,
    SentimentLexicon,
    TextFeatureExtractor,
    weighted_centroid,
)
from anomaly_engine.text.drift import (
    Baseline,
    TextDetection,
    TextDriftDetector,
    proportion_changes,
)

__all__ = [
    # Features
    "SentimentLexicon",
    "TextFeatureExtractor",
    "weighted_centroid",
    "DEFAULT_POSITIVE_WORDS",
    "DEFAULT_NEGATIVE_WORDS",
    # Drift
    "Baseline",
    "TextDetection",
    "TextDriftDetector",
    "proportion_changes",
]
