"""
Quiz module for question bucketing and selection.

This module provides:
- classify: Filter a pool to the bucket a SessionMode studies
- bucket_counts: Questions available per mode
- sample: Randomized, duplicate-free subset of a bucket

Modes:
- warmup: questions never attempted
- review: last attempt wrong
- repetition: last attempt right
- comprehensive: the whole pool
"""

from .classifier import bucket_counts, classify, outcome_of
from .sampler import sample

__all__ = [
    "bucket_counts",
    "classify",
    "outcome_of",
    "sample",
]
