"""
Text feature extraction.

Builds per-bucket features for a text column:
    - term frequencies from the tokenized content
    - TF-IDF vectors with inverse document frequency fitted on the FULL
      corpus, so vectors of different buckets are comparable
    - category proportions (uncategorized documents excluded)
    - sentiment distribution from a word lexicon

Tokenization and TF-IDF use scikit-learn's TfidfVectorizer. Empty buckets,
and corpora without usable tokens, produce empty vocabularies and
zero-filled distributions instead of errors.

Classes:
    SentimentLexicon: Positive/negative word lists
    TextFeatureExtractor: Corpus-fitted feature extractor
"""

from collections import Counter
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

import numpy as np
import structlog
from pydantic import BaseModel, Field
from sklearn.feature_extraction.text import TfidfVectorizer

from anomaly_engine.models.text import (
    SentimentDistribution,
    TextBucket,
    TextData,
    TextDocument,
    TextFeatures,
)

logger = structlog.get_logger(__name__)


DEFAULT_POSITIVE_WORDS: FrozenSet[str] = frozenset(
    {
        "good", "great", "excellent", "positive", "improved", "improvement",
        "success", "successful", "satisfied", "satisfaction", "happy", "pleased",
        "efficient", "effective", "benefit", "beneficial", "growth", "gain",
        "strong", "resolved", "praise", "commend", "helpful",
        "outstanding", "safe", "stable", "approve", "approved", "welcome",
    }
)

DEFAULT_NEGATIVE_WORDS: FrozenSet[str] = frozenset(
    {
        "bad", "poor", "negative", "decline", "declined", "failure", "failed",
        "complaint", "complaints", "problem", "problems", "issue", "issues",
        "delay", "delayed", "fraud", "risk", "loss", "losses", "unsafe",
        "unhappy", "dissatisfied", "error", "errors", "breach", "violation",
        "shortage", "concern", "concerns", "worse", "critical", "angry",
    }
)


class SentimentLexicon(BaseModel):
    """
    Word lists for lexicon-based sentiment.

    A document is positive when it has more positive than negative hits,
    negative when it has more negative hits, and neutral otherwise.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    positive: FrozenSet[str] = Field(default=DEFAULT_POSITIVE_WORDS)
    negative: FrozenSet[str] = Field(default=DEFAULT_NEGATIVE_WORDS)

    def classify(self, tokens: Iterable[str]) -> str:
        """Label a tokenized document positive, neutral or negative."""
        balance = 0
        for token in tokens:
            if token in self.positive:
                balance += 1
            elif token in self.negative:
                balance -= 1
        if balance > 0:
            return "positive"
        if balance < 0:
            return "negative"
        return "neutral"


class TextFeatureExtractor:
    """
    Extracts TextFeatures for the buckets of one corpus.

    The vectorizer is fitted once on every document of the corpus; buckets
    are then transformed against that shared vocabulary.

    Example:
        >>> extractor = TextFeatureExtractor(text_data.documents)
        >>> features = extractor.extract_all(text_data)
    """

    def __init__(
        self,
        corpus: Sequence[TextDocument],
        lexicon: Optional[SentimentLexicon] = None,
    ) -> None:
        """
        Fit the TF-IDF model on the full corpus.

        Args:
            corpus: All documents of the column, across buckets.
            lexicon: Sentiment lexicon (default English word lists).
        """
        self.lexicon = lexicon or SentimentLexicon()
        self._vectorizer: Optional[TfidfVectorizer] = TfidfVectorizer(
            stop_words="english",
            lowercase=True,
        )
        self._analyzer: Callable[[str], List[str]] = self._vectorizer.build_analyzer()

        contents = [doc.content for doc in corpus]
        try:
            self._vectorizer.fit(contents)
        except ValueError as e:
            # Raised for an empty corpus or one holding only stop words
            logger.info(
                "tfidf_vocabulary_empty",
                documents=len(contents),
                error=str(e),
            )
            self._vectorizer = None

        logger.debug(
            "text_feature_extractor_fitted",
            documents=len(contents),
            vocabulary_size=self.vocabulary_size,
        )

    @property
    def vocabulary_size(self) -> int:
        """Size of the corpus vocabulary (TF-IDF vector dimension)."""
        if self._vectorizer is None:
            return 0
        return len(self._vectorizer.vocabulary_)

    def tokenize(self, content: str) -> List[str]:
        """Lowercase, strip stop words and split content into terms."""
        return self._analyzer(content)

    def extract(self, bucket: TextBucket) -> TextFeatures:
        """
        Compute features for one bucket.

        Args:
            bucket: Bucket of documents (may be empty).

        Returns:
            TextFeatures: Features; empty vocabulary and zero-filled
                distributions for an empty bucket.
        """
        if bucket.is_empty:
            return TextFeatures(bucket_start=bucket.start, bucket_end=bucket.end)

        term_frequencies: Counter = Counter()
        sentiment_counts: Counter = Counter()
        for doc in bucket.documents:
            tokens = self.tokenize(doc.content)
            term_frequencies.update(tokens)
            sentiment_counts[self.lexicon.classify(tokens)] += 1

        tfidf: Dict[str, List[float]] = {}
        centroid: List[float] = []
        if self._vectorizer is not None:
            matrix = self._vectorizer.transform([doc.content for doc in bucket.documents])
            dense = matrix.toarray()
            tfidf = {doc.id: row.tolist() for doc, row in zip(bucket.documents, dense)}
            centroid = dense.mean(axis=0).tolist()

        categories = Counter(
            doc.category for doc in bucket.documents if doc.category is not None
        )
        categorized = sum(categories.values())
        category_proportions = (
            {name: count / categorized for name, count in categories.items()}
            if categorized
            else {}
        )

        total = len(bucket.documents)
        sentiment = SentimentDistribution(
            positive=sentiment_counts["positive"] / total,
            neutral=sentiment_counts["neutral"] / total,
            negative=sentiment_counts["negative"] / total,
        )

        return TextFeatures(
            bucket_start=bucket.start,
            bucket_end=bucket.end,
            document_count=total,
            categorized_count=categorized,
            vocabulary=frozenset(term_frequencies),
            term_frequencies=dict(term_frequencies),
            tfidf=tfidf,
            centroid=centroid,
            category_proportions=category_proportions,
            sentiment=sentiment,
        )

    def extract_all(self, text_data: TextData) -> List[TextFeatures]:
        """Compute features for every bucket of a column, in order."""
        features = [self.extract(bucket) for bucket in text_data.buckets]
        logger.info(
            "text_features_extracted",
            source=text_data.name,
            buckets=len(features),
            empty_buckets=sum(1 for f in features if f.is_empty),
            vocabulary_size=self.vocabulary_size,
        )
        return features


def weighted_centroid(features: Sequence[TextFeatures]) -> Optional[np.ndarray]:
    """
    Document-weighted mean of bucket centroids.

    Returns:
        Optional[np.ndarray]: Combined centroid, None if no bucket has one.
    """
    vectors = [
        (np.asarray(f.centroid, dtype=float), f.document_count)
        for f in features
        if f.centroid and f.document_count
    ]
    if not vectors:
        return None
    total = sum(weight for _, weight in vectors)
    return sum(vector * weight for vector, weight in vectors) / total
