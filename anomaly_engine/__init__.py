"""
Institutional Data Anomaly Detection Engine.

A batch engine that surfaces statistically significant deviations in
numeric time series and bucketed free-text columns, and turns them into
ranked, explainable anomaly records.

This package provides:
- Data models for time series, text buckets, candidates and anomalies
- Time-series detectors (z-score, moving average, percentile, seasonal residual)
- Text feature extraction and drift detection
- Scoring, window resolution, prioritization and parallel orchestration
"""

__version__ = "0.1.0"
